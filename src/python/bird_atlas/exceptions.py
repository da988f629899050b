"""
Exception hierarchy for bird-atlas.

Only TaxonomyLoadError is fatal to a scan. Everything else raised here is
either caught by the orchestrator and downgraded to a warning, or belongs to
an outer surface (CLI, file-manager calls).
"""


class BirdAtlasError(Exception):
    """Base exception for all bird-atlas errors."""
    pass


class TaxonomyLoadError(BirdAtlasError):
    """Raised when the taxonomy source is missing, unreadable or has no usable rows."""
    pass


class CachePersistError(BirdAtlasError):
    """Raised when the match cache cannot be written to disk."""
    pass


class ScanCancelled(BirdAtlasError):
    """Raised to the caller of a scan that was abandoned in favour of a newer one."""
    pass


class LocatorError(BirdAtlasError):
    """Raised when a file cannot be revealed or opened with the OS handler."""
    pass


class ConfigError(BirdAtlasError):
    """Raised when a configuration file is missing or malformed."""
    pass
