"""Scanner module for discovering photo files and matching them to species."""

from bird_atlas.scanner.matcher import MatchDecision, SpeciesMatcher
from bird_atlas.scanner.patterns import (
    is_photo_file,
    normalize_file_name,
    normalize_name,
    strip_noise,
)
from bird_atlas.scanner.walker import FileWalker

__all__ = [
    "FileWalker",
    "MatchDecision",
    "SpeciesMatcher",
    "is_photo_file",
    "normalize_file_name",
    "normalize_name",
    "strip_noise",
]
