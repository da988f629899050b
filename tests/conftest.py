"""Pytest configuration and shared fixtures."""

import csv
from pathlib import Path
from typing import Callable, Iterable, List, Sequence

import pytest

from bird_atlas.config import Config
from bird_atlas.models.taxonomy import TaxonomyEntry
from bird_atlas.taxonomy import TaxonomyTable, load_taxonomy

TAXONOMY_HEADER = ["Order", "Family", "IOC_15.1", "English", "Chinese"]

# A small slice of the IOC list, in IOC column layout
TAXONOMY_ROWS = [
    ["Anseriformes", "Anatidae", "Anas platyrhynchos", "Mallard", "绿头鸭"],
    ["Pelecaniformes", "Ardeidae", "Ardea cinerea", "Grey Heron", "苍鹭"],
    ["Coraciiformes", "Alcedinidae", "Alcedo atthis", "Common Kingfisher", "普通翠鸟"],
    ["Passeriformes", "Corvidae", "Pica pica", "Eurasian Magpie", "喜鹊"],
    ["Passeriformes", "Paridae", "Parus major", "Great Tit", "大山雀"],
    ["Passeriformes", "Paridae", "Cyanistes caeruleus", "Eurasian Blue Tit", "蓝山雀"],
    ["Passeriformes", "Turdidae", "Turdus merula", "Eurasian Blackbird", "乌鸫"],
    ["Passeriformes", "Turdidae", "Turdus philomelos", "Song Thrush", "欧歌鸫"],
    ["Passeriformes", "Muscicapidae", "Erithacus rubecula", "European Robin", "欧亚鸲"],
]

# Ten photos: seven name distinct species, three name nothing
SCENARIO_PHOTOS = {
    "IMG_Turdus_merula_001.jpg": "Turdus merula",
    "Song Thrush.jpeg": "Turdus philomelos",
    "robin_on_fence.png": "Erithacus rubecula",
    "DSC_0042 great tit.jpg": "Parus major",
    "Heron/DSC01234.JPG": "Ardea cinerea",
    "喜鹊_2023.jpg": "Pica pica",
    "2024/mallard-duck.heic": "Anas platyrhynchos",
    "unknown_bird_42.jpg": None,
    "turdus_sp.jpg": None,
    "2024/IMG_0001.jpg": None,
}


def write_taxonomy_csv(
    path: Path,
    rows: Iterable[Sequence[str]],
    header: Sequence[str] = TAXONOMY_HEADER,
    preamble: Sequence[Sequence[str]] = (),
    delimiter: str = ",",
) -> Path:
    """Write a taxonomy CSV with optional title rows above the header."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, delimiter=delimiter)
        for line in preamble:
            writer.writerow(line)
        writer.writerow(header)
        for row in rows:
            writer.writerow(row)
    return path


def make_entry(latin: str, common: str = "", order: str = "Passeriformes",
               family: str = "Turdidae", alternates: Sequence[str] = ()) -> TaxonomyEntry:
    """Build a TaxonomyEntry without going through a file."""
    return TaxonomyEntry(
        latin_name=latin,
        common_name=common,
        order=order,
        family=family,
        genus=latin.split()[0],
        alternate_names=tuple(alternates),
    )


@pytest.fixture
def taxonomy_csv(tmp_path: Path) -> Path:
    """IOC-style taxonomy CSV with nine species."""
    return write_taxonomy_csv(tmp_path / "taxonomy" / "ioc_list.csv", TAXONOMY_ROWS)


@pytest.fixture
def taxonomy_table(taxonomy_csv: Path) -> TaxonomyTable:
    """TaxonomyTable loaded from taxonomy_csv."""
    return load_taxonomy(taxonomy_csv)


@pytest.fixture
def make_photos(tmp_path: Path) -> Callable[..., List[Path]]:
    """Factory creating photo files under a root from relative paths."""

    def _make(relative_paths: Iterable[str], root: Path = None) -> List[Path]:
        root = root or tmp_path / "photos"
        created = []
        for index, relative in enumerate(relative_paths):
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"\xff\xd8\xff" + str(index).encode())
            created.append(path)
        return created

    return _make


@pytest.fixture
def scenario_root(tmp_path: Path, make_photos) -> Path:
    """Photo root holding SCENARIO_PHOTOS plus a non-photo file."""
    root = tmp_path / "photos"
    make_photos(SCENARIO_PHOTOS, root)
    (root / "notes.txt").write_text("not a photo")
    return root


@pytest.fixture
def config() -> Config:
    """Default configuration with a small pool and batch size."""
    config = Config()
    config.scanning.max_workers = 2
    config.scanning.batch_size = 3
    return config
