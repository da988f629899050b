"""
Scan models.

These describe what flows through one scan:

- DiscoveredFile: a candidate photo found by the walker
- MatchResult: the species (or none) a file was resolved to
- TaxonTree and its nodes: the Order/Family/Genus/Species hierarchy
- ScanStats, ScanRequest, ScanResponse: the request/response contract

All result types expose to_dict() so a response can be dumped straight to
JSON or handed to pandas.
"""

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

MATCHED_PREFIX = "matched:"
UNMATCHED_TOKEN = "unmatched"


@dataclass(frozen=True)
class DiscoveredFile:
    """
    A candidate photo file found during a walk.

    Attributes:
        path: Absolute path to the file
        file_name: Name of the file including extension
        size_bytes: File size, None when the file could not be stat'ed
        modified_ns: Modification time in nanoseconds, None when unknown
        root: The scan root this file was discovered under
    """
    path: Path
    file_name: str
    size_bytes: Optional[int] = None
    modified_ns: Optional[int] = None
    root: Optional[Path] = None

    @classmethod
    def from_path(cls, path: Path, root: Optional[Path] = None) -> "DiscoveredFile":
        """
        Create a DiscoveredFile by stat'ing a path.

        Missing or unreadable files come back without size/mtime rather
        than raising.
        """
        try:
            stats = path.stat()
        except OSError:
            return cls(path=path, file_name=path.name, root=root)
        return cls(
            path=path,
            file_name=path.name,
            size_bytes=stats.st_size,
            modified_ns=stats.st_mtime_ns,
            root=root,
        )

    @property
    def readable(self) -> bool:
        """True when size and modification time are known."""
        return self.size_bytes is not None and self.modified_ns is not None

    def ancestor_names(self) -> List[str]:
        """
        Directory names between the scan root (exclusive) and the file.

        Returned nearest-first. Without a root, no ancestors are considered.
        """
        if self.root is None:
            return []
        try:
            relative = self.path.parent.relative_to(self.root)
        except ValueError:
            return []
        return [part for part in reversed(relative.parts) if part not in ("", ".")]


@dataclass(frozen=True)
class MatchResult:
    """Either Matched(latin_name) or Unmatched (latin_name is None)."""
    latin_name: Optional[str] = None

    @classmethod
    def matched(cls, latin_name: str) -> "MatchResult":
        return cls(latin_name=latin_name)

    @classmethod
    def unmatched(cls) -> "MatchResult":
        return cls(latin_name=None)

    @property
    def is_matched(self) -> bool:
        return self.latin_name is not None

    def to_token(self) -> str:
        """Serialize to the cache file form: "matched:<latin>" or "unmatched"."""
        if self.latin_name is None:
            return UNMATCHED_TOKEN
        return f"{MATCHED_PREFIX}{self.latin_name}"

    @classmethod
    def from_token(cls, token: str) -> "MatchResult":
        """
        Parse the cache file form.

        Raises:
            ValueError: If the token is neither form.
        """
        if token == UNMATCHED_TOKEN:
            return cls.unmatched()
        if token.startswith(MATCHED_PREFIX) and len(token) > len(MATCHED_PREFIX):
            return cls.matched(token[len(MATCHED_PREFIX):])
        raise ValueError(f"Not a match result token: {token!r}")

    def __str__(self) -> str:
        return self.to_token()


@dataclass(frozen=True)
class PhotoRef:
    """A photo listed under a species."""
    path: str
    file_name: str

    def to_dict(self) -> dict:
        return {"path": self.path, "file_name": self.file_name}


@dataclass
class SpeciesNode:
    latin: str
    common_name: str
    count: int
    photos: List[PhotoRef] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "latin": self.latin,
            "common_name": self.common_name,
            "count": self.count,
            "photos": [photo.to_dict() for photo in self.photos],
        }


@dataclass
class GenusNode:
    name: str
    count: int
    species: List[SpeciesNode] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "count": self.count,
            "species": [node.to_dict() for node in self.species],
        }


@dataclass
class FamilyNode:
    name: str
    count: int
    genera: List[GenusNode] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "count": self.count,
            "genera": [node.to_dict() for node in self.genera],
        }


@dataclass
class OrderNode:
    name: str
    count: int
    families: List[FamilyNode] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "count": self.count,
            "families": [node.to_dict() for node in self.families],
        }


@dataclass
class TaxonTree:
    """
    The Order/Family/Genus/Species hierarchy of matched photos.

    Every node's count is the sum of its children's counts, and a species
    node's count is the length of its photo list.
    """
    orders: List[OrderNode] = field(default_factory=list)

    def iter_species(self) -> Iterator[SpeciesNode]:
        """Yield every species node in tree order."""
        for order in self.orders:
            for family in order.families:
                for genus in family.genera:
                    yield from genus.species

    @property
    def species_count(self) -> int:
        """Number of distinct species with at least one photo."""
        return sum(1 for _ in self.iter_species())

    @property
    def photo_count(self) -> int:
        return sum(order.count for order in self.orders)

    def to_dict(self) -> dict:
        return {"orders": [order.to_dict() for order in self.orders]}


@dataclass(frozen=True)
class ScanStats:
    """File counts for one scan. total_files is always matched + unmatched."""
    total_files: int = 0
    matched_files: int = 0
    unmatched_files: int = 0

    def __post_init__(self):
        if self.total_files != self.matched_files + self.unmatched_files:
            raise ValueError(
                f"Inconsistent stats: {self.total_files} != "
                f"{self.matched_files} + {self.unmatched_files}"
            )

    def to_dict(self) -> dict:
        return {
            "total_files": self.total_files,
            "matched_files": self.matched_files,
            "unmatched_files": self.unmatched_files,
        }


@dataclass(frozen=True)
class ScanRequest:
    """
    What to scan.

    Attributes:
        roots: Directories to walk
        taxonomy_path: Taxonomy source document (xlsx/csv/tsv)
        cache_path: Where the match cache is persisted
    """
    roots: Sequence[Path]
    taxonomy_path: Path
    cache_path: Path

    def __post_init__(self):
        object.__setattr__(self, "roots", tuple(Path(root) for root in self.roots))
        object.__setattr__(self, "taxonomy_path", Path(self.taxonomy_path))
        object.__setattr__(self, "cache_path", Path(self.cache_path))


@dataclass
class ScanResponse:
    """
    Result of a completed scan.

    Attributes:
        tree: Matched photos arranged by taxonomy
        stats: File counts
        total_species: Number of species in the taxonomy table
        warnings: Non-fatal problems encountered during the scan
        unmatched: Photos no species could be resolved for, sorted by path
        duration_seconds: Wall-clock time of the scan
    """
    tree: TaxonTree
    stats: ScanStats
    total_species: int
    warnings: List[str] = field(default_factory=list)
    unmatched: List[PhotoRef] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "tree": self.tree.to_dict(),
            "stats": self.stats.to_dict(),
            "total_species": self.total_species,
            "warnings": list(self.warnings),
            "unmatched": [photo.to_dict() for photo in self.unmatched],
            "duration_seconds": self.duration_seconds,
        }


class ScanWarnings:
    """Thread-safe collector for non-fatal problems found during a scan."""

    def __init__(self):
        self._messages: List[str] = []
        self._lock = threading.Lock()

    def add(self, message: str) -> None:
        with self._lock:
            self._messages.append(message)

    def extend(self, messages: Sequence[str]) -> None:
        with self._lock:
            self._messages.extend(messages)

    @property
    def messages(self) -> List[str]:
        with self._lock:
            return list(self._messages)

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)


class CancellationToken:
    """
    Cooperative cancellation flag shared by a scan's producer and workers.

    Workers poll it between files; nothing is interrupted mid-file.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
