"""
In-memory taxonomy table.

The table holds one TaxonomyEntry per species in source order plus the
normalized lookup indexes the matcher needs. It is built once per scan and
is read-only afterwards, so worker threads can share it freely.
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from bird_atlas.models.taxonomy import TaxonomyEntry
from bird_atlas.scanner.patterns import normalize_name

logger = logging.getLogger(__name__)


class TaxonomyTable:
    """
    Species reference data with normalized indexes.

    Attributes:
        entries: Species in source order, duplicates already removed
        by_latin: normalized binomial -> entry
        by_common: normalized vernacular name -> latin names using it
        by_genus: normalized genus -> entries in that genus
        fingerprint: Identity of the source the table was read from
        rows_read: Data rows seen in the source
        skipped_rows: Rows rejected as malformed
        duplicate_rows: Rows rejected because the binomial was already present
        warnings: One message per rejected row
    """

    def __init__(
        self,
        entries: Iterable[TaxonomyEntry],
        fingerprint: str = "",
        rows_read: int = 0,
        skipped_rows: int = 0,
        warnings: Iterable[str] = (),
    ):
        self.fingerprint = fingerprint
        self.rows_read = rows_read
        self.skipped_rows = skipped_rows
        self.duplicate_rows = 0
        self.warnings: List[str] = list(warnings)

        kept: List[TaxonomyEntry] = []
        by_latin: Dict[str, TaxonomyEntry] = {}
        for entry in entries:
            key = normalize_name(entry.latin_name)
            if key in by_latin:
                self.duplicate_rows += 1
                message = (
                    f"Duplicate species '{entry.latin_name}' ignored, "
                    f"keeping first occurrence"
                )
                logger.warning(message)
                self.warnings.append(message)
                continue
            by_latin[key] = entry
            kept.append(entry)

        by_common: Dict[str, List[str]] = {}
        by_genus: Dict[str, List[TaxonomyEntry]] = {}
        for entry in kept:
            for name in entry.all_common_names:
                key = normalize_name(name)
                if not key:
                    continue
                owners = by_common.setdefault(key, [])
                if entry.latin_name not in owners:
                    owners.append(entry.latin_name)
            by_genus.setdefault(normalize_name(entry.genus), []).append(entry)

        self.entries: Tuple[TaxonomyEntry, ...] = tuple(kept)
        self.by_latin: Mapping[str, TaxonomyEntry] = MappingProxyType(by_latin)
        self.by_common: Mapping[str, Tuple[str, ...]] = MappingProxyType(
            {key: tuple(owners) for key, owners in by_common.items()}
        )
        self.by_genus: Mapping[str, Tuple[TaxonomyEntry, ...]] = MappingProxyType(
            {key: tuple(members) for key, members in by_genus.items()}
        )

    @property
    def size(self) -> int:
        """Number of distinct species."""
        return len(self.entries)

    def get(self, latin_name: str) -> Optional[TaxonomyEntry]:
        """Look up an entry by binomial, ignoring case and punctuation."""
        return self.by_latin.get(normalize_name(latin_name))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[TaxonomyEntry]:
        return iter(self.entries)

    def __contains__(self, latin_name: object) -> bool:
        return isinstance(latin_name, str) and self.get(latin_name) is not None

    def __repr__(self) -> str:
        return f"TaxonomyTable(species={self.size}, fingerprint={self.fingerprint!r})"
