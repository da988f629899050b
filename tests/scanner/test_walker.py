"""Unit tests for scanner.walker module."""

import os
import sys

import pytest

from bird_atlas.models import CancellationToken, ScanWarnings
from bird_atlas.scanner.walker import FileWalker

EXTENSIONS = ["jpg", "jpeg", "png", "heic"]


def relative_names(files, root):
    return [file.path.relative_to(root).as_posix() for file in files]


class TestFileWalker:
    """Tests for FileWalker.walk()."""

    def test_walk_finds_photos_recursively(self, tmp_path, make_photos):
        """Test photos at every depth are found."""
        root = tmp_path / "photos"
        make_photos(["a.jpg", "b/c.jpg", "b/d/e.png"], root)

        files = list(FileWalker(EXTENSIONS).walk([root]))

        assert sorted(relative_names(files, root)) == ["a.jpg", "b/c.jpg", "b/d/e.png"]

    def test_walk_filters_extensions_case_insensitive(self, tmp_path, make_photos):
        """Test the extension allow-list ignores case and excludes other files."""
        root = tmp_path / "photos"
        make_photos(["A.JPG", "b.Jpeg", "c.txt", "d.jpg.xmp", "e.CR2"], root)

        files = list(FileWalker(EXTENSIONS).walk([root]))

        assert sorted(relative_names(files, root)) == ["A.JPG", "b.Jpeg"]

    def test_walk_order_is_stable(self, tmp_path, make_photos):
        """Test files in a directory come before its subdirectories, sorted by name."""
        root = tmp_path / "photos"
        make_photos(["d.jpg", "b/c.jpg", "a.jpg", "b/a.jpg", "z/y.jpg"], root)

        first = relative_names(FileWalker(EXTENSIONS).walk([root]), root)
        second = relative_names(FileWalker(EXTENSIONS).walk([root]), root)

        assert first == ["a.jpg", "d.jpg", "b/a.jpg", "b/c.jpg", "z/y.jpg"]
        assert first == second

    def test_walk_records_metadata(self, tmp_path, make_photos):
        """Test size and modification time are captured."""
        root = tmp_path / "photos"
        (path,) = make_photos(["a.jpg"], root)

        (file,) = FileWalker(EXTENSIONS).walk([root])

        stats = path.stat()
        assert file.readable
        assert file.size_bytes == stats.st_size
        assert file.modified_ns == stats.st_mtime_ns
        assert file.file_name == "a.jpg"
        assert file.root == root
        assert file.path.is_absolute()

    def test_walk_skips_hidden(self, tmp_path, make_photos):
        """Test dot-files and dot-directories are skipped by default."""
        root = tmp_path / "photos"
        make_photos(["a.jpg", "._a.jpg", ".thumbs/b.jpg"], root)

        hidden_off = relative_names(FileWalker(EXTENSIONS).walk([root]), root)
        hidden_on = relative_names(FileWalker(EXTENSIONS, include_hidden=True).walk([root]), root)

        assert hidden_off == ["a.jpg"]
        assert sorted(hidden_on) == ["._a.jpg", ".thumbs/b.jpg", "a.jpg"]

    def test_walk_multiple_roots(self, tmp_path, make_photos):
        """Test each root is walked in turn."""
        make_photos(["a.jpg"], tmp_path / "one")
        make_photos(["b.jpg"], tmp_path / "two")

        files = list(FileWalker(EXTENSIONS).walk([tmp_path / "one", tmp_path / "two"]))

        assert [file.file_name for file in files] == ["a.jpg", "b.jpg"]
        assert [file.root.name for file in files] == ["one", "two"]

    def test_overlapping_roots_yield_each_file_once(self, tmp_path, make_photos):
        """Test a root nested in another root does not duplicate files."""
        root = tmp_path / "photos"
        make_photos(["a.jpg", "sub/b.jpg"], root)

        files = list(FileWalker(EXTENSIONS).walk([root, root / "sub"]))

        assert sorted(file.file_name for file in files) == ["a.jpg", "b.jpg"]

    def test_missing_root_is_a_warning(self, tmp_path):
        """Test a missing root is skipped with a warning."""
        warnings = ScanWarnings()
        walker = FileWalker(EXTENSIONS, warnings=warnings)

        files = list(walker.walk([tmp_path / "does-not-exist"]))

        assert files == []
        assert walker.directories_skipped == 1
        assert len(warnings) == 1
        assert "does-not-exist" in warnings.messages[0]

    @pytest.mark.skipif(not hasattr(os, "symlink") or sys.platform == "win32",
                        reason="symlinks not available")
    def test_symlink_cycle_terminates(self, tmp_path, make_photos):
        """Test a symlink pointing back up the tree is not followed forever."""
        root = tmp_path / "photos"
        make_photos(["a/x.jpg"], root)
        os.symlink(root, root / "a" / "loop")

        files = list(FileWalker(EXTENSIONS).walk([root]))

        assert [file.file_name for file in files] == ["x.jpg"]

    @pytest.mark.skipif(not hasattr(os, "symlink") or sys.platform == "win32",
                        reason="symlinks not available")
    def test_symlinks_not_followed_when_disabled(self, tmp_path, make_photos):
        """Test follow_symlinks=False ignores linked directories."""
        make_photos(["x.jpg"], tmp_path / "elsewhere")
        root = tmp_path / "photos"
        root.mkdir()
        os.symlink(tmp_path / "elsewhere", root / "linked")

        followed = list(FileWalker(EXTENSIONS).walk([root]))
        not_followed = list(FileWalker(EXTENSIONS, follow_symlinks=False).walk([root]))

        assert [file.file_name for file in followed] == ["x.jpg"]
        assert not_followed == []

    @pytest.mark.skipif(sys.platform == "win32" or (hasattr(os, "geteuid") and os.geteuid() == 0),
                        reason="permissions are not enforced")
    def test_unreadable_directory_is_skipped(self, tmp_path, make_photos):
        """Test a directory without read permission is skipped, not fatal."""
        root = tmp_path / "photos"
        make_photos(["a.jpg", "locked/b.jpg", "open/c.jpg"], root)
        locked = root / "locked"
        locked.chmod(0o000)
        try:
            warnings = ScanWarnings()
            walker = FileWalker(EXTENSIONS, warnings=warnings)
            names = relative_names(walker.walk([root]), root)
        finally:
            locked.chmod(0o755)

        assert names == ["a.jpg", "open/c.jpg"]
        assert walker.directories_skipped == 1
        assert any("locked" in message for message in warnings.messages)

    def test_permission_denied_directory_is_skipped(self, tmp_path, make_photos, mocker):
        """Test a directory that raises PermissionError is skipped with a warning."""
        root = tmp_path / "photos"
        make_photos(["a.jpg", "locked/b.jpg", "open/c.jpg"], root)
        real_scandir = os.scandir

        def scandir(path):
            if os.path.basename(os.fspath(path)) == "locked":
                raise PermissionError(13, "Permission denied", os.fspath(path))
            return real_scandir(path)

        mocker.patch("bird_atlas.scanner.walker.os.scandir", side_effect=scandir)
        warnings = ScanWarnings()
        walker = FileWalker(EXTENSIONS, warnings=warnings)

        names = relative_names(walker.walk([root]), root)

        assert names == ["a.jpg", "open/c.jpg"]
        assert walker.directories_skipped == 1
        assert warnings.messages == [f"Skipped directory {root / 'locked'}: Permission denied"]

    def test_cancelled_walk_stops(self, tmp_path, make_photos):
        """Test a cancelled token stops the walk at the next directory."""
        root = tmp_path / "photos"
        make_photos(["a.jpg", "b/c.jpg"], root)
        token = CancellationToken()
        token.cancel()

        files = list(FileWalker(EXTENSIONS, cancel_token=token).walk([root]))

        assert files == []
