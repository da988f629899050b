"""Taxonomy reference data: loading the source document and indexing it."""

from bird_atlas.taxonomy.loader import MATCHER_VERSION, load_taxonomy, taxonomy_fingerprint
from bird_atlas.taxonomy.table import TaxonomyTable

__all__ = [
    "MATCHER_VERSION",
    "TaxonomyTable",
    "load_taxonomy",
    "taxonomy_fingerprint",
]
