"""
Recursive photo discovery.

FileWalker enumerates allow-listed photo files under one or more roots. It
is a depth-first os.scandir walk with sorted entries, so traversal order is
stable for an unchanged tree. Directories that cannot be opened are skipped
with a warning; directory identities (device, inode) are tracked so symlink
cycles and overlapping roots never deliver a file twice.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, Optional, Set, Tuple

from bird_atlas.models.scan import CancellationToken, DiscoveredFile, ScanWarnings
from bird_atlas.scanner.patterns import is_hidden, is_photo_file

logger = logging.getLogger(__name__)


class FileWalker:
    """
    Lazily yields DiscoveredFile for every photo under the given roots.

    A walker instance is single-use per scan: create a fresh one for each
    walk so visited-directory tracking starts empty.

    Attributes:
        directories_visited: Directories successfully listed
        directories_skipped: Directories that could not be opened
    """

    def __init__(
        self,
        extensions: Iterable[str],
        follow_symlinks: bool = True,
        include_hidden: bool = False,
        warnings: Optional[ScanWarnings] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.extensions = frozenset(
            "." + ext.lower().lstrip(".") for ext in extensions if ext
        )
        self.follow_symlinks = follow_symlinks
        self.include_hidden = include_hidden
        self.warnings = warnings if warnings is not None else ScanWarnings()
        self.cancel_token = cancel_token

        self.directories_visited = 0
        self.directories_skipped = 0
        self._visited: Set[Tuple[int, int]] = set()

    def walk(self, roots: Iterable[Path]) -> Iterator[DiscoveredFile]:
        """Walk each root in turn."""
        for root in roots:
            yield from self.walk_root(Path(root))

    def walk_root(self, root: Path) -> Iterator[DiscoveredFile]:
        """
        Depth-first walk of a single root.

        An inaccessible or missing root is a warning, not an error.
        """
        root = Path(os.path.abspath(root))
        if not root.is_dir():
            self._skip(root, "not a directory or not accessible")
            return

        stack = [root]
        while stack:
            if self.cancel_token is not None and self.cancel_token.cancelled:
                logger.debug("Walk of %s cancelled", root)
                return

            current = stack.pop()
            if not self._mark_visited(current):
                continue

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                self._skip(current, e.strerror or str(e))
                continue

            self.directories_visited += 1

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name)

            dirs = []
            for entry in entries:
                if not self.include_hidden and is_hidden(entry.name):
                    continue
                try:
                    if entry.is_dir(follow_symlinks=self.follow_symlinks):
                        dirs.append(Path(entry.path))
                        continue
                    if not entry.is_file(follow_symlinks=self.follow_symlinks):
                        continue
                except OSError as e:
                    self._skip(Path(entry.path), e.strerror or str(e))
                    continue

                if is_photo_file(entry.name, self.extensions):
                    yield self._discover(entry, root)

            # Push dirs reversed so A is processed before Z
            for directory in reversed(dirs):
                stack.append(directory)

    def _mark_visited(self, directory: Path) -> bool:
        """Record a directory's identity; False if it was already walked."""
        try:
            stats = directory.stat()
        except OSError as e:
            self._skip(directory, e.strerror or str(e))
            return False

        identity = (stats.st_dev, stats.st_ino)
        if identity in self._visited:
            logger.debug("Already visited %s (symlink cycle or overlapping root)", directory)
            return False
        self._visited.add(identity)
        return True

    def _discover(self, entry: os.DirEntry, root: Path) -> DiscoveredFile:
        path = Path(entry.path)
        try:
            stats = entry.stat(follow_symlinks=self.follow_symlinks)
        except OSError as e:
            message = f"Cannot read {path}: {e.strerror or e}"
            logger.warning(message)
            self.warnings.add(message)
            return DiscoveredFile(path=path, file_name=entry.name, root=root)

        return DiscoveredFile(
            path=path,
            file_name=entry.name,
            size_bytes=stats.st_size,
            modified_ns=stats.st_mtime_ns,
            root=root,
        )

    def _skip(self, directory: Path, reason: str) -> None:
        self.directories_skipped += 1
        message = f"Skipped directory {directory}: {reason}"
        logger.warning(message)
        self.warnings.add(message)
