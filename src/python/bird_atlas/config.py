"""
Configuration management for bird-atlas.

Settings are grouped into dataclass sections with sensible defaults, can be
loaded from a YAML file, and can be overridden by environment variables.

Example:
    >>> from bird_atlas.config import load_config
    >>> config = load_config()
    >>> config.scanning.max_workers = 8
    >>> config.cache.path
    PosixPath('/home/user/.bird_atlas/match_cache.json')
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from bird_atlas.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "BIRD_ATLAS_"

# Default locations to search for a config file
CONFIG_SEARCH_PATHS = [
    Path("bird_atlas.yaml"),
    Path("config.yaml"),
    Path.home() / ".bird_atlas" / "config.yaml",
]

DEFAULT_CACHE_PATH = Path.home() / ".bird_atlas" / "match_cache.json"

# Photo formats a bird photographer's library is expected to hold
DEFAULT_EXTENSIONS = ["jpg", "jpeg", "png", "heic", "heif", "tif", "tiff", "webp"]

# Filename tokens that never carry species information
DEFAULT_NOISE_TOKENS = [
    "img", "dsc", "dscf", "dscn", "pxl", "sam", "cimg", "mvimg", "pano",
    "edit", "edited", "copy", "final", "crop", "sp", "spp", "cf",
]


@dataclass
class TaxonomyConfig:
    """
    Where the taxonomy lives and how its columns are named.

    Attributes:
        path: Default taxonomy source when a scan does not name one
        sheet: Worksheet to read from xlsx workbooks
        latin_columns: Candidate headers for the Latin binomial, first present wins
        common_columns: Vernacular name headers in order of preference
        order_column: Header of the Order column
        family_column: Header of the Family column
        genus_column: Optional header of a Genus column, checked against the binomial
        fill_down_lineage: Forward-fill blank Order/Family cells (hierarchical sheets)
        header_search_rows: How many leading rows to search for the header row
    """
    path: Optional[str] = None
    sheet: str = "List"
    latin_columns: List[str] = field(default_factory=lambda: [
        "IOC_15.1", "IOC_14.2", "IOC_14.1", "Latin", "Scientific name", "latin_name",
    ])
    common_columns: List[str] = field(default_factory=lambda: [
        "English", "Chinese", "common_name",
    ])
    order_column: str = "Order"
    family_column: str = "Family"
    genus_column: Optional[str] = "Genus"
    fill_down_lineage: bool = False
    header_search_rows: int = 10


@dataclass
class ScanningConfig:
    """
    File discovery and worker pool settings.

    Attributes:
        extensions: Allow-listed photo extensions, case-insensitive, no dot
        max_workers: Match workers in the pool
        batch_size: Files handed to a worker at a time
        follow_symlinks: Descend into symlinked directories (cycles are detected)
        include_hidden: Include dot-files and dot-directories
    """
    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    max_workers: int = 4
    batch_size: int = 256
    follow_symlinks: bool = True
    include_hidden: bool = False


@dataclass
class CacheConfig:
    """
    Match cache settings.

    Attributes:
        path: Cache file location
        prune_missing: Drop entries under scanned roots that were not found again
    """
    path: str = str(DEFAULT_CACHE_PATH)
    prune_missing: bool = True


@dataclass
class MatchingConfig:
    """
    Filename matcher settings.

    Attributes:
        noise_tokens: Tokens ignored by the exact-match tiers
        min_keyword_length: Shortest common-name keyword the keyword tier accepts
    """
    noise_tokens: List[str] = field(default_factory=lambda: list(DEFAULT_NOISE_TOKENS))
    min_keyword_length: int = 4


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class Config:
    """
    Main configuration for bird-atlas.

    Example:
        >>> config = Config.from_dict({"scanning": {"max_workers": 2}})
        >>> config.scanning.max_workers
        2
    """
    taxonomy: TaxonomyConfig = field(default_factory=TaxonomyConfig)
    scanning: ScanningConfig = field(default_factory=ScanningConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """
        Create a Config from a (possibly partial) dictionary.

        Unknown sections and keys are ignored with a warning so that newer
        config files still load.
        """
        config = cls()
        for section_name, values in (data or {}).items():
            section = getattr(config, section_name, None)
            if section is None or not hasattr(section, "__dataclass_fields__"):
                logger.warning("Ignoring unknown config section: %s", section_name)
                continue
            if not isinstance(values, dict):
                raise ConfigError(f"Config section '{section_name}' must be a mapping")
            known = {f.name for f in fields(section)}
            for key, value in values.items():
                if key not in known:
                    logger.warning("Ignoring unknown config key: %s.%s", section_name, key)
                    continue
                setattr(section, key, value)
        return config

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def save_to_file(self, path: Union[str, Path]) -> None:
        """Write the configuration as YAML."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

    def update_from_env(self, environ: Optional[Dict[str, str]] = None) -> None:
        """
        Override settings from environment variables.

        Variables are prefixed with BIRD_ATLAS_ and use a double underscore
        between section and key, e.g. BIRD_ATLAS_SCANNING__MAX_WORKERS=8.
        List settings take comma-separated values.
        """
        environ = os.environ if environ is None else environ
        for key, value in environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            parts = key[len(ENV_PREFIX):].lower().split("__")
            if len(parts) != 2:
                continue

            section_name, setting = parts
            section = getattr(self, section_name, None)
            if section is None or not hasattr(section, setting):
                continue

            current_value = getattr(section, setting)
            setattr(section, setting, _coerce(value, current_value))

    @property
    def extensions(self) -> frozenset:
        """Normalized extension allow-list, lowercase with a leading dot."""
        return frozenset(
            "." + ext.lower().lstrip(".") for ext in self.scanning.extensions if ext
        )


def _coerce(value: str, current_value: Any) -> Any:
    if isinstance(current_value, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current_value, int):
        return int(value)
    if isinstance(current_value, float):
        return float(value)
    if isinstance(current_value, list):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


def find_config_file(config_path: Optional[Path] = None) -> Optional[Path]:
    """
    Resolve which config file to load.

    Args:
        config_path: Explicit path. If None, searches default locations.

    Returns:
        Path to the config file, or None when no default location has one.

    Raises:
        ConfigError: If an explicit path does not exist.
    """
    if config_path:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        return config_path

    for path in CONFIG_SEARCH_PATHS:
        if path.exists():
            return path
    return None


def load_config(config_path: Optional[Path] = None, apply_env: bool = True) -> Config:
    """
    Load configuration from YAML, falling back to defaults.

    Args:
        config_path: Specific path to config file. If None, searches default locations.
        apply_env: Apply BIRD_ATLAS_* environment overrides after the file.

    Returns:
        Config instance.

    Raises:
        ConfigError: If an explicit path is missing or the YAML is malformed.
    """
    path_to_load = find_config_file(config_path)

    data: Dict[str, Any] = {}
    if path_to_load:
        logger.info("Loading config from %s", path_to_load)
        try:
            with open(path_to_load, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path_to_load}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path_to_load} must contain a mapping")
    else:
        logger.debug("No config file found, using defaults")

    config = Config.from_dict(data)
    if apply_env:
        config.update_from_env()
    return config
