"""Data models for bird-atlas."""

from bird_atlas.models.enums import MatchRule, ScanState
from bird_atlas.models.scan import (
    CancellationToken,
    DiscoveredFile,
    FamilyNode,
    GenusNode,
    MatchResult,
    OrderNode,
    PhotoRef,
    ScanRequest,
    ScanResponse,
    ScanStats,
    ScanWarnings,
    SpeciesNode,
    TaxonTree,
)
from bird_atlas.models.taxonomy import TaxonomyEntry

__all__ = [
    "CancellationToken",
    "DiscoveredFile",
    "FamilyNode",
    "GenusNode",
    "MatchResult",
    "MatchRule",
    "OrderNode",
    "PhotoRef",
    "ScanRequest",
    "ScanResponse",
    "ScanState",
    "ScanStats",
    "ScanWarnings",
    "SpeciesNode",
    "TaxonTree",
    "TaxonomyEntry",
]
