"""Enumerations for bird-atlas models."""

from enum import Enum


class ScanState(Enum):
    """
    Lifecycle of a single scan.

    A scan moves strictly forward through the working states:
    IDLE -> LOADING_TAXONOMY -> LOADING_CACHE -> WALKING -> AGGREGATING
    -> PERSISTING_CACHE -> DONE.

    FAILED and CANCELLED can be entered from any working state. DONE, FAILED
    and CANCELLED are terminal.
    """
    IDLE = "idle"
    LOADING_TAXONOMY = "loading_taxonomy"
    LOADING_CACHE = "loading_cache"
    WALKING = "walking"
    AGGREGATING = "aggregating"
    PERSISTING_CACHE = "persisting_cache"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return self in (ScanState.DONE, ScanState.FAILED, ScanState.CANCELLED)


class MatchRule(Enum):
    """
    The matcher tier that decided a file's species.

    Tiers are tried in declaration order; the first one producing a hit wins.
    NONE means no tier produced anything.
    """
    LATIN_EXACT = 1
    COMMON_EXACT = 2
    SUBSTRING = 3
    COMMON_KEYWORD = 4
    GENUS = 5
    NONE = 6

    @property
    def label(self) -> str:
        """Human readable name used in CLI output."""
        return self.name.lower().replace("_", "-")
