"""
bird-atlas - index a bird photo library by species.

Photos are discovered under one or more folders, their species inferred
from file and folder names against a taxonomy list (such as the IOC World
Bird List), and arranged into an Order / Family / Genus / Species tree with
per-node photo counts. Match results are cached between runs, keyed on each
file's path, size and modification time.

Usage:
    from pathlib import Path
    from bird_atlas import run_scan

    response = run_scan([Path("/photos/birds")], Path("master_ioc_list.xlsx"))
    print(f"{response.tree.species_count} of {response.total_species} species photographed")
"""

from bird_atlas.__version__ import __version__
from bird_atlas.cache import Cache, CacheKey, load_cache, save_cache
from bird_atlas.config import Config, load_config
from bird_atlas.exceptions import (
    BirdAtlasError,
    CachePersistError,
    ConfigError,
    LocatorError,
    ScanCancelled,
    TaxonomyLoadError,
)
from bird_atlas.locator import open_file, reveal_in_file_manager
from bird_atlas.models import (
    MatchResult,
    ScanRequest,
    ScanResponse,
    ScanState,
    ScanStats,
    TaxonomyEntry,
    TaxonTree,
)
from bird_atlas.orchestrator import ScanOrchestrator, ScanService, run_scan
from bird_atlas.scanner import FileWalker, SpeciesMatcher
from bird_atlas.taxonomy import TaxonomyTable, load_taxonomy
from bird_atlas.tree import TreeBuilder, build_tree, tree_to_dataframe

__all__ = [
    "__version__",
    # Models
    "MatchResult",
    "ScanRequest",
    "ScanResponse",
    "ScanState",
    "ScanStats",
    "TaxonomyEntry",
    "TaxonTree",
    # Pipeline
    "Cache",
    "CacheKey",
    "FileWalker",
    "ScanOrchestrator",
    "ScanService",
    "SpeciesMatcher",
    "TaxonomyTable",
    "TreeBuilder",
    "build_tree",
    "load_cache",
    "load_taxonomy",
    "run_scan",
    "save_cache",
    "tree_to_dataframe",
    # Boundary calls
    "open_file",
    "reveal_in_file_manager",
    # Configuration and errors
    "Config",
    "load_config",
    "BirdAtlasError",
    "CachePersistError",
    "ConfigError",
    "LocatorError",
    "ScanCancelled",
    "TaxonomyLoadError",
]
