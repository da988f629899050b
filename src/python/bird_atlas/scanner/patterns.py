"""
Filename patterns and name normalization.

Both taxonomy names and path components go through the same normalization
before they are compared, so the matcher only ever sees lowercase tokens
separated by single spaces:

    "IMG_Turdus_merula_001.jpg" -> "img turdus merula 001"
    "Cetti's Warbler"           -> "cettis warbler"
    "Red-winged Blackbird"      -> "red winged blackbird"
"""

import re
import unicodedata
from pathlib import Path
from typing import Iterable, Tuple

# Apostrophes are dropped rather than split on so possessive names survive
_APOSTROPHES = re.compile(r"['’ʼ`]")
_SEPARATORS = re.compile(r"[\W_]+", flags=re.UNICODE)
_HAS_DIGIT = re.compile(r"\d")

# Scripts written without spaces between words (CJK, kana)
_UNSPACED_SCRIPT = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff]")


def normalize_name(text: str) -> str:
    """
    Normalize a name for comparison.

    Lowercases, drops apostrophes, turns punctuation and underscores into
    spaces and collapses whitespace.

    Args:
        text: Any name, e.g. a Latin binomial or a path component

    Returns:
        Normalized string (possibly empty)
    """
    text = unicodedata.normalize("NFKC", text).casefold()
    text = _APOSTROPHES.sub("", text)
    text = _SEPARATORS.sub(" ", text)
    return " ".join(text.split())


def normalize_file_name(file_name: str) -> str:
    """
    Normalize a file name, dropping its extension first.

    Examples:
        >>> normalize_file_name("IMG_Turdus_merula_001.JPG")
        'img turdus merula 001'
    """
    return normalize_name(strip_extension(file_name))


def strip_extension(file_name: str) -> str:
    """Remove the final extension."""
    return Path(file_name).stem


def tokenize(normalized: str) -> Tuple[str, ...]:
    """Split an already normalized name into tokens."""
    return tuple(normalized.split())


def strip_noise(tokens: Iterable[str], noise_tokens: Iterable[str] = ()) -> Tuple[str, ...]:
    """
    Drop tokens that never name a species.

    Any token containing a digit (frame counters, "dsc0123", dates) is noise,
    as is anything in noise_tokens.

    Examples:
        >>> strip_noise(("img", "turdus", "merula", "001"), {"img"})
        ('turdus', 'merula')
    """
    noise = set(noise_tokens)
    return tuple(
        token for token in tokens
        if token not in noise and not _HAS_DIGIT.search(token)
    )


def has_unspaced_script(text: str) -> bool:
    """Check if text contains characters from a script written without spaces."""
    return bool(_UNSPACED_SCRIPT.search(text))


def get_final_extension(file_name: str) -> str:
    """Get the final extension (lowercase, with leading dot)."""
    return Path(file_name).suffix.lower()


def is_photo_file(file_name: str, extensions: Iterable[str]) -> bool:
    """
    Check if a file name has an allow-listed photo extension.

    Args:
        file_name: The file name to check
        extensions: Allowed extensions, lowercase with leading dot

    Returns:
        True if the extension is allowed (case-insensitive)
    """
    return get_final_extension(file_name) in extensions


def is_hidden(name: str) -> bool:
    """Dot-files, including macOS AppleDouble "._" files."""
    return name.startswith(".")
