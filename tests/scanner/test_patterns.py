"""Unit tests for scanner.patterns module."""

import pytest

from bird_atlas.scanner.patterns import (
    get_final_extension,
    has_unspaced_script,
    is_hidden,
    is_photo_file,
    normalize_file_name,
    normalize_name,
    strip_extension,
    strip_noise,
    tokenize,
)

PHOTO_EXTENSIONS = {".jpg", ".jpeg", ".png", ".heic"}


class TestNormalizeName:
    """Tests for normalize_name() function."""

    @pytest.mark.parametrize("text,expected", [
        # Case and separators
        ("Turdus merula", "turdus merula"),
        ("TURDUS_MERULA", "turdus merula"),
        ("turdus-merula", "turdus merula"),
        ("turdus.merula", "turdus merula"),

        # Whitespace collapsing
        ("  Turdus   merula  ", "turdus merula"),
        ("Turdus\tmerula", "turdus merula"),

        # Punctuation inside common names
        ("Red-winged Blackbird", "red winged blackbird"),
        ("Cetti's Warbler", "cettis warbler"),
        ("Cetti’s Warbler", "cettis warbler"),
        ("Grey Heron (adult)", "grey heron adult"),

        # Non-Latin scripts pass through
        ("乌鸫", "乌鸫"),
        ("Ｔｕｒｄｕｓ", "turdus"),

        # Nothing left
        ("___", ""),
        ("", ""),
    ])
    def test_normalize_name(self, text, expected):
        """Test normalization of names and path components."""
        assert normalize_name(text) == expected

    def test_normalize_is_idempotent(self):
        """Test that normalizing twice changes nothing."""
        once = normalize_name("IMG_Turdus merula (1)")
        assert normalize_name(once) == once


class TestNormalizeFileName:
    """Tests for normalize_file_name() function."""

    @pytest.mark.parametrize("file_name,expected", [
        ("IMG_Turdus_merula_001.jpg", "img turdus merula 001"),
        ("IMG_Turdus_merula_001.JPG", "img turdus merula 001"),
        ("blackbird_garden.jpg", "blackbird garden"),
        ("Song Thrush.jpeg", "song thrush"),
        ("my.photo.file.jpg", "my photo file"),
        ("no_extension", "no extension"),
    ])
    def test_normalize_file_name(self, file_name, expected):
        """Test that only the final extension is dropped."""
        assert normalize_file_name(file_name) == expected

    def test_strip_extension(self):
        """Test strip_extension keeps inner dots."""
        assert strip_extension("a.b.heic") == "a.b"


class TestStripNoise:
    """Tests for strip_noise() function."""

    def test_strips_digits_and_noise_tokens(self):
        """Test removing counters and camera prefixes."""
        tokens = tokenize("img turdus merula 001")
        assert strip_noise(tokens, {"img"}) == ("turdus", "merula")

    def test_strips_tokens_containing_digits(self):
        """Test that mixed alphanumerics like dsc0123 are noise."""
        assert strip_noise(("dsc0123", "heron", "2024x")) == ("heron",)

    def test_keeps_everything_else(self):
        """Test that ordinary words survive."""
        assert strip_noise(("eurasian", "blackbird"), {"img"}) == ("eurasian", "blackbird")

    def test_empty(self):
        """Test empty token list."""
        assert strip_noise(()) == ()


class TestHasUnspacedScript:
    """Tests for has_unspaced_script() function."""

    @pytest.mark.parametrize("text,expected", [
        ("乌鸫", True),
        ("img 乌鸫 001", True),
        ("ヒヨドリ", True),
        ("turdus merula", False),
        ("", False),
    ])
    def test_has_unspaced_script(self, text, expected):
        """Test detection of CJK and kana."""
        assert has_unspaced_script(text) is expected


class TestIsPhotoFile:
    """Tests for is_photo_file() function."""

    @pytest.mark.parametrize("file_name", [
        "photo.jpg",
        "photo.JPG",
        "photo.jpeg",
        "photo.Png",
        "IMG_0001.HEIC",
    ])
    def test_photo_files(self, file_name):
        """Test allow-listed extensions, case-insensitive."""
        assert is_photo_file(file_name, PHOTO_EXTENSIONS) is True

    @pytest.mark.parametrize("file_name", [
        "notes.txt",
        "photo.jpg.xmp",
        "photo.CR2",
        "jpg",
        "photo",
    ])
    def test_non_photo_files(self, file_name):
        """Test that other files are rejected."""
        assert is_photo_file(file_name, PHOTO_EXTENSIONS) is False

    def test_get_final_extension(self):
        """Test final extension is lowercased with a dot."""
        assert get_final_extension("a.b.JPG") == ".jpg"
        assert get_final_extension("noext") == ""


class TestIsHidden:
    """Tests for is_hidden() function."""

    @pytest.mark.parametrize("name,expected", [
        (".DS_Store", True),
        ("._IMG_0001.jpg", True),
        (".thumbnails", True),
        ("IMG_0001.jpg", False),
    ])
    def test_is_hidden(self, name, expected):
        """Test dot-file detection."""
        assert is_hidden(name) is expected
