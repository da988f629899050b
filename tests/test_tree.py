"""Unit tests for tree aggregation."""

import random
from pathlib import Path

import pandas as pd
import pytest

from bird_atlas.models import DiscoveredFile, MatchResult, ScanWarnings
from bird_atlas.tree import TREE_COLUMNS, TreeBuilder, build_tree, tree_to_dataframe

ROOT = Path("/photos")


def pair(name, latin=None):
    file = DiscoveredFile(path=ROOT / name, file_name=Path(name).name, size_bytes=1,
                          modified_ns=1, root=ROOT)
    result = MatchResult.matched(latin) if latin else MatchResult.unmatched()
    return file, result


@pytest.fixture
def pairs():
    return [
        pair("b_blackbird.jpg", "Turdus merula"),
        pair("a_blackbird.jpg", "Turdus merula"),
        pair("thrush.jpg", "Turdus philomelos"),
        pair("robin.jpg", "Erithacus rubecula"),
        pair("tit.jpg", "Parus major"),
        pair("heron.jpg", "Ardea cinerea"),
        pair("z_unknown.jpg"),
        pair("a_unknown.jpg"),
    ]


def assert_counts_consistent(tree):
    for order in tree.orders:
        assert order.count == sum(family.count for family in order.families)
        for family in order.families:
            assert family.count == sum(genus.count for genus in family.genera)
            for genus in family.genera:
                assert genus.count == sum(species.count for species in genus.species)
                for species in genus.species:
                    assert species.count == len(species.photos)


class TestTreeBuilder:
    """Tests for TreeBuilder."""

    def test_stats(self, taxonomy_table, pairs):
        """Test file counts."""
        _, stats, _ = build_tree(taxonomy_table, pairs)

        assert stats.total_files == 8
        assert stats.matched_files == 6
        assert stats.unmatched_files == 2

    def test_counts_are_sums(self, taxonomy_table, pairs):
        """Test every node count is the sum of its children."""
        tree, stats, _ = build_tree(taxonomy_table, pairs)

        assert_counts_consistent(tree)
        assert tree.photo_count == stats.matched_files

    def test_lineage(self, taxonomy_table, pairs):
        """Test species land under their Order, Family and Genus."""
        tree, _, _ = build_tree(taxonomy_table, pairs)

        passeriformes = next(order for order in tree.orders if order.name == "Passeriformes")
        turdidae = next(f for f in passeriformes.families if f.name == "Turdidae")
        (turdus,) = turdidae.genera

        assert passeriformes.count == 5
        assert turdidae.count == 3
        assert turdus.name == "Turdus"
        assert [s.latin for s in turdus.species] == ["Turdus merula", "Turdus philomelos"]
        assert turdus.species[0].common_name == "Eurasian Blackbird"

    def test_sorted_lexicographically(self, taxonomy_table, pairs):
        """Test siblings and photos are sorted by name."""
        tree, _, unmatched = build_tree(taxonomy_table, pairs)

        assert [order.name for order in tree.orders] == ["Passeriformes", "Pelecaniformes"]
        families = [family.name for family in tree.orders[0].families]
        assert families == sorted(families)

        merula = next(s for s in tree.iter_species() if s.latin == "Turdus merula")
        assert [photo.file_name for photo in merula.photos] == ["a_blackbird.jpg", "b_blackbird.jpg"]
        assert [photo.file_name for photo in unmatched] == ["a_unknown.jpg", "z_unknown.jpg"]

    def test_insensitive_to_arrival_order(self, taxonomy_table, pairs):
        """Test the fold gives the same tree for any input order."""
        expected = build_tree(taxonomy_table, pairs)
        shuffled = list(pairs)
        random.Random(42).shuffle(shuffled)

        tree, stats, unmatched = build_tree(taxonomy_table, shuffled)

        assert tree.to_dict() == expected[0].to_dict()
        assert stats == expected[1]
        assert unmatched == expected[2]

    def test_unmatched_not_in_tree(self, taxonomy_table):
        """Test unmatched files only appear in stats and the unmatched list."""
        tree, stats, unmatched = build_tree(taxonomy_table, [pair("x.jpg")])

        assert tree.orders == []
        assert stats.unmatched_files == 1
        assert [photo.path for photo in unmatched] == [str(ROOT / "x.jpg")]

    def test_unknown_species_counted_unmatched(self, taxonomy_table):
        """Test a result naming a species outside the table is not placed."""
        warnings = ScanWarnings()
        builder = TreeBuilder(taxonomy_table, warnings)
        builder.add(*pair("x.jpg", "Aquila chrysaetos"))

        tree, stats, _ = builder.build()

        assert tree.orders == []
        assert stats.unmatched_files == 1
        assert len(warnings) == 1

    def test_empty(self, taxonomy_table):
        """Test an empty scan."""
        tree, stats, unmatched = build_tree(taxonomy_table, [])

        assert tree.orders == []
        assert stats.total_files == 0
        assert unmatched == []


class TestTreeToDataFrame:
    """Tests for tree_to_dataframe()."""

    def test_one_row_per_photo(self, taxonomy_table, pairs):
        """Test flattening to a DataFrame."""
        tree, _, _ = build_tree(taxonomy_table, pairs)

        df = tree_to_dataframe(tree)

        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == TREE_COLUMNS
        assert len(df) == 6
        assert df[df["latin"] == "Turdus merula"]["family"].unique().tolist() == ["Turdidae"]
        assert df.groupby("order").size().to_dict() == {"Passeriformes": 5, "Pelecaniformes": 1}

    def test_empty_tree(self, taxonomy_table):
        """Test an empty tree still has the columns."""
        tree, _, _ = build_tree(taxonomy_table, [])

        df = tree_to_dataframe(tree)

        assert df.empty
        assert list(df.columns) == TREE_COLUMNS
