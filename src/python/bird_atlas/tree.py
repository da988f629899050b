"""
Aggregation of match results into the taxonomic tree.

TreeBuilder folds (DiscoveredFile, MatchResult) pairs into a TaxonTree and
ScanStats. The fold is order-independent: photos are collected per species
and the tree is laid out only in build(), with every level sorted
lexicographically, so the same set of inputs always produces the same tree
no matter what order the match workers finished in.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from bird_atlas.models.scan import (
    DiscoveredFile,
    FamilyNode,
    GenusNode,
    MatchResult,
    OrderNode,
    PhotoRef,
    ScanStats,
    ScanWarnings,
    SpeciesNode,
    TaxonTree,
)
from bird_atlas.taxonomy.table import TaxonomyTable

logger = logging.getLogger(__name__)

TREE_COLUMNS = ["order", "family", "genus", "latin", "common_name", "path", "file_name"]


class TreeBuilder:
    """
    Builds a TaxonTree from match results.

    Example:
        >>> builder = TreeBuilder(table)
        >>> for file, result in pairs:
        ...     builder.add(file, result)
        >>> tree, stats, unmatched = builder.build()
    """

    def __init__(self, table: TaxonomyTable, warnings: Optional[ScanWarnings] = None):
        self.table = table
        self.warnings = warnings if warnings is not None else ScanWarnings()
        self._photos: Dict[str, List[PhotoRef]] = {}
        self._unmatched: List[PhotoRef] = []

    def add(self, file: DiscoveredFile, result: MatchResult) -> None:
        """Record one file's match result."""
        photo = PhotoRef(path=str(file.path), file_name=file.file_name)

        if not result.is_matched:
            self._unmatched.append(photo)
            return

        entry = self.table.get(result.latin_name)
        if entry is None:
            message = f"{file.path} matched unknown species '{result.latin_name}', counted as unmatched"
            logger.warning(message)
            self.warnings.add(message)
            self._unmatched.append(photo)
            return

        self._photos.setdefault(entry.latin_name, []).append(photo)

    def add_all(self, pairs: Iterable[Tuple[DiscoveredFile, MatchResult]]) -> None:
        for file, result in pairs:
            self.add(file, result)

    def build(self) -> Tuple[TaxonTree, ScanStats, List[PhotoRef]]:
        """
        Lay out the tree.

        Returns:
            Tuple of (tree, stats, unmatched photos sorted by path)
        """
        # order -> family -> genus -> [species]
        lineage: Dict[str, Dict[str, Dict[str, List[SpeciesNode]]]] = {}
        matched = 0

        for latin, photos in self._photos.items():
            entry = self.table.get(latin)
            photos = sorted(photos, key=lambda p: (p.file_name, p.path))
            node = SpeciesNode(
                latin=entry.latin_name,
                common_name=entry.common_name,
                count=len(photos),
                photos=photos,
            )
            matched += node.count
            families = lineage.setdefault(entry.order, {})
            genera = families.setdefault(entry.family, {})
            genera.setdefault(entry.genus, []).append(node)

        orders = []
        for order_name in sorted(lineage):
            families = []
            for family_name in sorted(lineage[order_name]):
                genera = []
                for genus_name in sorted(lineage[order_name][family_name]):
                    species = sorted(
                        lineage[order_name][family_name][genus_name], key=lambda s: s.latin
                    )
                    genera.append(GenusNode(
                        name=genus_name,
                        count=sum(s.count for s in species),
                        species=species,
                    ))
                families.append(FamilyNode(
                    name=family_name,
                    count=sum(g.count for g in genera),
                    genera=genera,
                ))
            orders.append(OrderNode(
                name=order_name,
                count=sum(f.count for f in families),
                families=families,
            ))

        unmatched = sorted(self._unmatched, key=lambda p: p.path)
        stats = ScanStats(
            total_files=matched + len(unmatched),
            matched_files=matched,
            unmatched_files=len(unmatched),
        )
        return TaxonTree(orders=orders), stats, unmatched


def build_tree(
    table: TaxonomyTable,
    pairs: Iterable[Tuple[DiscoveredFile, MatchResult]],
) -> Tuple[TaxonTree, ScanStats, List[PhotoRef]]:
    """Fold (file, result) pairs into a tree in one call."""
    builder = TreeBuilder(table)
    builder.add_all(pairs)
    return builder.build()


def tree_to_dataframe(tree: TaxonTree) -> pd.DataFrame:
    """
    Flatten a TaxonTree into a DataFrame with one row per photo.

    Args:
        tree: Tree from a completed scan

    Returns:
        DataFrame with columns order, family, genus, latin, common_name,
        path and file_name, in tree order.
    """
    rows = []
    for order in tree.orders:
        for family in order.families:
            for genus in family.genera:
                for species in genus.species:
                    for photo in species.photos:
                        rows.append({
                            "order": order.name,
                            "family": family.name,
                            "genus": genus.name,
                            "latin": species.latin,
                            "common_name": species.common_name,
                            "path": photo.path,
                            "file_name": photo.file_name,
                        })
    return pd.DataFrame(rows, columns=TREE_COLUMNS)
