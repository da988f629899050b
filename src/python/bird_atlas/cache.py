"""
Persistent match cache.

Matching every photo on every scan is the expensive part of a scan, so the
result for each file is remembered between runs, keyed on the file's path,
size and modification time. A cached result is only served while all three
still agree with the file on disk; anything else is stale and re-matched.

The cache file is JSON:

    {
      "version": 1,
      "taxonomy_fingerprint": "…",
      "entries": [
        {"path": "/photos/a.jpg", "size": 123, "modifiedTime": 1700000000000000000,
         "result": "matched:Turdus merula"},
        ...
      ]
    }

modifiedTime is in nanoseconds. Unknown fields are ignored on load. A file
written for a different taxonomy fingerprint (taxonomy edited, or matching
rules changed) is discarded as a whole.

Example:
    cache = load_cache(cache_path, table.fingerprint)
    key = CacheKey.for_file(discovered)
    result = cache.lookup(key)
    if result is None:
        result = matcher.match(discovered)
        cache.put(key, result)
    save_cache(cache, cache_path)
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from bird_atlas.exceptions import CachePersistError
from bird_atlas.models.scan import DiscoveredFile, MatchResult, ScanWarnings

logger = logging.getLogger(__name__)

CACHE_VERSION = 1


@dataclass(frozen=True)
class CacheKey:
    """Fingerprint of a file's identity and modification state."""
    path: str
    size: int
    modified_ns: int

    @classmethod
    def for_file(cls, file: DiscoveredFile) -> Optional["CacheKey"]:
        """Key for a discovered file, or None if its metadata could not be read."""
        if not file.readable:
            return None
        return cls(path=str(file.path), size=file.size_bytes, modified_ns=file.modified_ns)


class Cache:
    """
    In-memory path -> (size, mtime, result) map.

    At most one entry is kept per path; putting a new key for a path
    replaces whatever was there. Writes are serialized with a lock so match
    workers can share one instance.
    """

    def __init__(self, taxonomy_fingerprint: Optional[str] = None):
        self.taxonomy_fingerprint = taxonomy_fingerprint
        self._entries: Dict[str, Tuple[int, int, MatchResult]] = {}
        self._lock = threading.Lock()

    def lookup(self, key: CacheKey) -> Optional[MatchResult]:
        """
        Return the cached result for key, or None if absent or stale.

        An entry is stale when the file's size or modification time differs
        from what was recorded.
        """
        entry = self._entries.get(key.path)
        if entry is None:
            return None
        size, modified_ns, result = entry
        if size != key.size or modified_ns != key.modified_ns:
            return None
        return result

    def put(self, key: CacheKey, result: MatchResult) -> None:
        """Insert or overwrite the entry for key.path."""
        with self._lock:
            self._entries[key.path] = (key.size, key.modified_ns, result)

    def discard(self, path: str) -> None:
        with self._lock:
            self._entries.pop(path, None)

    def keys(self) -> List[CacheKey]:
        with self._lock:
            return [
                CacheKey(path=path, size=size, modified_ns=modified_ns)
                for path, (size, modified_ns, _) in self._entries.items()
            ]

    def prune(self, seen_paths: Set[str], roots: Iterable[Path]) -> int:
        """
        Drop entries under the given roots whose files were not seen.

        Entries outside the roots are left alone, so scanning one folder does
        not throw away what is known about another.

        Returns:
            Number of entries removed.
        """
        roots = [Path(os.path.abspath(root)) for root in roots]
        with self._lock:
            stale = [
                path for path in self._entries
                if path not in seen_paths
                and any(Path(path).is_relative_to(root) for root in roots)
            ]
            for path in stale:
                del self._entries[path]
        if stale:
            logger.info("Pruned %d stale cache entries", len(stale))
        return len(stale)

    def to_dict(self) -> dict:
        with self._lock:
            items = sorted(self._entries.items())
        return {
            "version": CACHE_VERSION,
            "taxonomy_fingerprint": self.taxonomy_fingerprint,
            "entries": [
                {
                    "path": path,
                    "size": size,
                    "modifiedTime": modified_ns,
                    "result": result.to_token(),
                }
                for path, (size, modified_ns, result) in items
            ],
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries


def load_cache(
    cache_path: Path,
    taxonomy_fingerprint: Optional[str] = None,
    warnings: Optional[ScanWarnings] = None,
) -> Cache:
    """
    Load a cache file, failing soft.

    A missing, unreadable or corrupt file, a version mismatch or a
    fingerprint mismatch all produce an empty cache plus a warning. Pass
    taxonomy_fingerprint=None to accept a file regardless of fingerprint.

    Args:
        cache_path: Cache file location
        taxonomy_fingerprint: Fingerprint of the taxonomy in use
        warnings: Collector for non-fatal problems

    Returns:
        Cache (possibly empty) tagged with taxonomy_fingerprint.
    """
    cache_path = Path(cache_path)
    cache = Cache(taxonomy_fingerprint)

    def _warn(message: str) -> Cache:
        logger.warning(message)
        if warnings is not None:
            warnings.add(message)
        return cache

    if not cache_path.exists():
        return _warn(f"No match cache at {cache_path}, every file will be matched")

    try:
        data = json.loads(cache_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        return _warn(f"Ignoring unreadable match cache {cache_path}: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("entries"), list):
        return _warn(f"Ignoring malformed match cache {cache_path}")

    if data.get("version") != CACHE_VERSION:
        return _warn(
            f"Ignoring match cache {cache_path}: version {data.get('version')!r} "
            f"is not {CACHE_VERSION}"
        )

    stored_fingerprint = data.get("taxonomy_fingerprint")
    if taxonomy_fingerprint is not None and stored_fingerprint != taxonomy_fingerprint:
        return _warn(
            f"Taxonomy or matching rules changed since {cache_path} was written, "
            f"discarding cached matches"
        )
    if taxonomy_fingerprint is None:
        cache.taxonomy_fingerprint = stored_fingerprint

    bad = 0
    for raw in data["entries"]:
        key_result = _parse_entry(raw)
        if key_result is None:
            bad += 1
            continue
        cache.put(*key_result)

    if bad:
        _warn(f"Skipped {bad} malformed entries in match cache {cache_path}")

    logger.info("Loaded %d cached matches from %s", len(cache), cache_path)
    return cache


def _parse_entry(raw) -> Optional[Tuple[CacheKey, MatchResult]]:
    if not isinstance(raw, dict):
        return None
    path = raw.get("path")
    size = raw.get("size")
    modified = raw.get("modifiedTime")
    token = raw.get("result")
    if not isinstance(path, str) or not isinstance(token, str):
        return None
    if not _is_int(size) or not _is_int(modified):
        return None
    try:
        result = MatchResult.from_token(token)
    except ValueError:
        return None
    return CacheKey(path=path, size=size, modified_ns=modified), result


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def save_cache(cache: Cache, cache_path: Path) -> None:
    """
    Write the cache atomically.

    The document goes to a temporary file beside cache_path which then
    replaces it, so an interrupted write never leaves a truncated cache.

    Raises:
        CachePersistError: If the directory or file cannot be written.
    """
    cache_path = Path(cache_path)
    payload = json.dumps(cache.to_dict(), ensure_ascii=False, indent=2)

    tmp_name = None
    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=cache_path.parent,
            prefix=f".{cache_path.name}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            tmp_name = f.name
            f.write(payload)
        os.replace(tmp_name, cache_path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise CachePersistError(f"Failed to write match cache {cache_path}: {e}") from e

    logger.info("Saved %d cached matches to %s", len(cache), cache_path)
