"""Version information for bird-atlas."""

__version__ = "0.1.0"
