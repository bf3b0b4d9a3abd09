from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

import polars as pl

from .record_builder import NormalizedRecord
from .schema import (
    DEFAULT_COLUMNS,
    MISSING_FIELD_TOKEN,
    VALUE_DELIMITER,
    Arity,
    SchemaColumn,
    column_labels,
    is_known_field,
)

LOGGER = logging.getLogger(__name__)


def sort_records(records: Iterable[NormalizedRecord]) -> List[NormalizedRecord]:
    """Repeatable record order, so unchanged input produces an identical CSV."""

    return sorted(records, key=lambda record: record.handle)


def cell_value(record: NormalizedRecord, column: SchemaColumn) -> str:
    if not is_known_field(column):
        return f"{MISSING_FIELD_TOKEN} {column.field!r}"
    if column.arity is Arity.SCALAR:
        return record.scalar(column.field)
    return VALUE_DELIMITER.join(record.values(column.field))


def to_frame(header: Sequence[str], rows: Sequence[Sequence[str]]) -> pl.DataFrame:
    """All-string frame with columns in ``header`` order."""

    duplicates = sorted({name for name in header if list(header).count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate column names: {', '.join(duplicates)}")
    data: Dict[str, List[str]] = {name: [row[idx] for row in rows] for idx, name in enumerate(header)}
    return pl.DataFrame(data, schema={name: pl.Utf8 for name in header})


def write_csv_text(frame: pl.DataFrame) -> str:
    """BMET CSV convention: comma separated, header row, every field quoted."""

    return frame.write_csv(include_header=True, quote_style="always")


def build_crosswalk_frame(
    records: Iterable[NormalizedRecord],
    columns: Sequence[SchemaColumn] = DEFAULT_COLUMNS,
) -> pl.DataFrame:
    unknown = [column.field for column in columns if not is_known_field(column)]
    if unknown:
        LOGGER.warning("Crosswalk columns with unknown fields: %s", ", ".join(unknown))

    rows = [[cell_value(record, column) for column in columns] for record in sort_records(records)]
    return to_frame(column_labels(columns), rows)


def render_bmet_csv(
    records: Iterable[NormalizedRecord],
    columns: Sequence[SchemaColumn] = DEFAULT_COLUMNS,
) -> str:
    """Render records as DSpace BMET CSV text, sorted by handle."""

    return write_csv_text(build_crosswalk_frame(records, columns))
