"""
Taxonomy source loading.

Reads a tabular taxonomy document (the IOC World Bird List workbook, or any
CSV/TSV export with equivalent columns) into a TaxonomyTable using pandas.

The layout is driven by TaxonomyConfig: which header names hold the Latin
binomial, the vernacular names and the lineage. Everything is read as
strings; the header row is located by searching the first few rows, so
title rows above the real header are tolerated.
"""

import csv
import hashlib
import logging
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from bird_atlas.config import TaxonomyConfig
from bird_atlas.exceptions import TaxonomyLoadError
from bird_atlas.models.taxonomy import TaxonomyEntry
from bird_atlas.taxonomy.table import TaxonomyTable

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
DELIMITED_SUFFIXES = {".csv": ",", ".tsv": "\t", ".txt": "\t"}

# Bumped whenever normalization or matching rules change, so cached matches
# made under the old rules are discarded
MATCHER_VERSION = "1"


def load_taxonomy(path: Path, config: Optional[TaxonomyConfig] = None) -> TaxonomyTable:
    """
    Load a taxonomy source into a TaxonomyTable.

    Args:
        path: Taxonomy workbook or delimited text file
        config: Column layout; defaults to the IOC list layout

    Returns:
        TaxonomyTable with duplicates and malformed rows removed.

    Raises:
        TaxonomyLoadError: If the source is missing, unreadable, lacks the
            required columns, or yields no valid rows.
    """
    config = config or TaxonomyConfig()
    path = Path(path)

    if not path.exists():
        raise TaxonomyLoadError(f"Taxonomy source not found: {path}")
    if not path.is_file():
        raise TaxonomyLoadError(f"Taxonomy source is not a file: {path}")

    raw = _read_raw_frame(path, config)
    frame = _apply_header(raw, config, path)

    if config.fill_down_lineage:
        for column in (config.order_column, config.family_column):
            frame[column] = frame[column].replace("", pd.NA).ffill().fillna("")

    entries, skipped, warnings = _parse_rows(frame, config)

    table = TaxonomyTable(
        entries,
        fingerprint=taxonomy_fingerprint(path),
        rows_read=len(frame),
        skipped_rows=skipped,
        warnings=warnings,
    )

    if table.size == 0:
        raise TaxonomyLoadError(f"No valid species rows in taxonomy source: {path}")

    logger.info(
        "Loaded %d species from %s (%d rows skipped, %d duplicates)",
        table.size, path, table.skipped_rows, table.duplicate_rows,
    )
    return table


def taxonomy_fingerprint(path: Path) -> str:
    """
    Fingerprint a taxonomy source from its path, size and modification time.

    The matcher version is mixed in so a change to matching rules
    invalidates cached results just like an edited taxonomy does.
    """
    try:
        stats = path.stat()
    except OSError as e:
        raise TaxonomyLoadError(f"Cannot stat taxonomy source {path}: {e}") from e

    h = hashlib.sha256()
    h.update(str(path.resolve()).encode("utf-8"))
    h.update(f"|{stats.st_size}|{stats.st_mtime_ns}|{MATCHER_VERSION}".encode("ascii"))
    return h.hexdigest()[:32]


def _read_raw_frame(path: Path, config: TaxonomyConfig) -> pd.DataFrame:
    """Read the whole sheet as strings with no header interpretation."""
    suffix = path.suffix.lower()
    if suffix == ".xls":
        supported = ", ".join(sorted(EXCEL_SUFFIXES | set(DELIMITED_SUFFIXES)))
        raise TaxonomyLoadError(
            f"Legacy .xls workbooks are not supported ({path}); save it as one of: {supported}"
        )
    try:
        if suffix in EXCEL_SUFFIXES:
            return _read_workbook(path, config.sheet)
        sep = DELIMITED_SUFFIXES.get(suffix, ",")
        return pd.read_csv(
            path,
            sep=sep,
            header=None,
            names=range(_max_field_count(path, sep)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            on_bad_lines="skip",
            encoding="utf-8-sig",
        )
    except TaxonomyLoadError:
        raise
    except pd.errors.EmptyDataError as e:
        raise TaxonomyLoadError(f"Taxonomy source is empty: {path}") from e
    except (OSError, ValueError, ImportError, zipfile.BadZipFile, pd.errors.ParserError) as e:
        raise TaxonomyLoadError(f"Failed to read taxonomy source {path}: {e}") from e


def _read_workbook(path: Path, sheet: str) -> pd.DataFrame:
    """Read one worksheet, falling back to the first sheet if the named one is absent."""
    with pd.ExcelFile(path) as workbook:
        sheet_name = sheet if sheet in workbook.sheet_names else workbook.sheet_names[0]
        if sheet_name != sheet:
            logger.warning("Worksheet '%s' not found in %s, using '%s'", sheet, path, sheet_name)
        return workbook.parse(sheet_name, header=None, dtype=str, keep_default_na=False)


def _max_field_count(path: Path, sep: str) -> int:
    """
    Widest row in a delimited file.

    Title rows above the header are usually narrower than the data, so the
    column count cannot be taken from the first line.
    """
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        widths = [len(row) for row in csv.reader(f, delimiter=sep)]
    if not widths or max(widths) == 0:
        raise TaxonomyLoadError(f"Taxonomy source is empty: {path}")
    return max(widths)


def _apply_header(raw: pd.DataFrame, config: TaxonomyConfig, path: Path) -> pd.DataFrame:
    """
    Locate the header row and return the data below it with named columns.

    The header row is the first row (within header_search_rows) containing a
    Latin column, the Order column and the Family column.
    """
    if raw.empty:
        raise TaxonomyLoadError(f"Taxonomy source is empty: {path}")

    limit = min(len(raw), max(1, config.header_search_rows))
    for index in range(limit):
        labels = [_cell(value) for value in raw.iloc[index].tolist()]
        if _find_latin_column(labels, config) is None:
            continue
        if config.order_column not in labels or config.family_column not in labels:
            continue

        frame = raw.iloc[index + 1:].copy().fillna("")
        frame.columns = _dedupe_labels(labels)
        not_blank = frame.apply(lambda row: any(_cell(value) for value in row), axis=1)
        return frame[not_blank] if len(frame) else frame

    raise TaxonomyLoadError(
        f"Could not find a header row with a Latin column {config.latin_columns}, "
        f"'{config.order_column}' and '{config.family_column}' in {path}"
    )


def _dedupe_labels(labels: List[str]) -> List[str]:
    """Keep the first of any repeated header; later ones get a numeric suffix."""
    seen: Dict[str, int] = {}
    result = []
    for label in labels:
        count = seen.get(label, 0)
        seen[label] = count + 1
        result.append(label if count == 0 else f"{label}.{count}")
    return result


def _find_latin_column(labels: List[str], config: TaxonomyConfig) -> Optional[str]:
    for candidate in config.latin_columns:
        if candidate in labels:
            return candidate
    return None


def _parse_rows(
    frame: pd.DataFrame, config: TaxonomyConfig
) -> Tuple[List[TaxonomyEntry], int, List[str]]:
    """Turn data rows into entries, skipping malformed ones with a warning each."""
    latin_column = _find_latin_column(list(frame.columns), config)
    common_columns = [c for c in config.common_columns if c in frame.columns]
    genus_column = config.genus_column if config.genus_column in frame.columns else None

    entries: List[TaxonomyEntry] = []
    warnings: List[str] = []
    skipped = 0

    for index, row in zip(frame.index, frame.to_dict(orient="records")):
        values = {key: _cell(value) for key, value in row.items()}

        entry, problem = _row_to_entry(values, latin_column, common_columns, genus_column, config)
        if entry is None:
            skipped += 1
            message = f"Row {index + 1}: {problem}"
            logger.warning("Skipping taxonomy row. %s", message)
            warnings.append(message)
            continue
        entries.append(entry)

    return entries, skipped, warnings


def _row_to_entry(
    values: Dict[str, str],
    latin_column: str,
    common_columns: List[str],
    genus_column: Optional[str],
    config: TaxonomyConfig,
) -> Tuple[Optional[TaxonomyEntry], str]:
    latin = " ".join(values.get(latin_column, "").split())
    if not latin:
        return None, "missing Latin name"

    tokens = latin.split(" ")
    if len(tokens) != 2:
        return None, f"'{latin}' is not a binomial"

    order = values.get(config.order_column, "")
    family = values.get(config.family_column, "")
    if not order or not family:
        return None, f"'{latin}' is missing its Order or Family"

    genus = tokens[0]
    if genus_column:
        stated = values.get(genus_column, "")
        if stated and stated.casefold() != genus.casefold():
            return None, f"'{latin}' disagrees with its Genus column '{stated}'"

    names = [values.get(column, "") for column in common_columns]
    names = [name for name in names if name]
    common_name = names[0] if names else ""

    return TaxonomyEntry(
        latin_name=f"{genus[:1].upper()}{genus[1:]} {tokens[1].lower()}",
        common_name=common_name,
        order=order,
        family=family,
        genus=f"{genus[:1].upper()}{genus[1:]}",
        alternate_names=tuple(names[1:]),
    ), ""


def _cell(value) -> str:
    """Cell value as a trimmed string; NaN and None become empty."""
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value).strip()
