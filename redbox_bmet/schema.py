from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Sequence, Tuple

# In a single CSV column, multiple values are separated by this delimiter.
VALUE_DELIMITER = "||"

DOI_RESOLVER = "http://dx.doi.org/"
INSERT_MARKER = "+"
MISSING_FIELD_TOKEN = "MISSING-FIELD"


class Arity(str, enum.Enum):
    SCALAR = "scalar"
    MULTI = "multi"


@dataclass(frozen=True)
class SchemaColumn:
    """One output column of the crosswalk CSV."""

    arity: Arity
    field: str  # key into NormalizedRecord
    label: str  # output CSV column name


SCALAR_FIELDS: FrozenSet[str] = frozenset(
    {"dc_title", "dc_type", "dc_created", "citation", "dc_language", "dc_description"}
)
MULTI_FIELDS: FrozenSet[str] = frozenset(
    {"dc_creators", "ident_uris", "dc_rights", "funders", "grant_numbers", "subjects"}
)

# CSV columns appear in the order below.
DEFAULT_COLUMNS: Tuple[SchemaColumn, ...] = (
    SchemaColumn(Arity.SCALAR, "dc_title", "dc.title[en_US]"),
    SchemaColumn(Arity.SCALAR, "dc_type", "dc.type[en_US]"),
    SchemaColumn(Arity.SCALAR, "dc_created", "dc.date"),
    SchemaColumn(Arity.MULTI, "dc_creators", "dc.creator[en_US]"),
    SchemaColumn(Arity.MULTI, "ident_uris", "dc.identifier.uri"),
    SchemaColumn(Arity.SCALAR, "citation", "dc.identifier.citation[en_US]"),
    SchemaColumn(Arity.MULTI, "dc_rights", "dc.rights[en_US]"),
    SchemaColumn(Arity.MULTI, "funders", "dc.description.sponsorship[en_US]"),
    SchemaColumn(Arity.MULTI, "grant_numbers", "dc.relation.grantnumber[en_US]"),
    SchemaColumn(Arity.MULTI, "subjects", "dc.subject[en_US]"),
    SchemaColumn(Arity.SCALAR, "dc_language", "dc.language[en_US]"),
    SchemaColumn(Arity.SCALAR, "dc_description", "dc.description[en_US]"),
)


def column_labels(columns: Sequence[SchemaColumn]) -> List[str]:
    return [col.label for col in columns]


def is_known_field(column: SchemaColumn) -> bool:
    """True when the column's field exists in the record model with the declared arity."""

    if column.arity is Arity.SCALAR:
        return column.field in SCALAR_FIELDS
    return column.field in MULTI_FIELDS


def parse_columns(entries: Iterable[Sequence[str]]) -> Tuple[SchemaColumn, ...]:
    """
    Build a column table from ``[arity, field, label]`` triples (as read from YAML).

    Unknown fields are accepted here; the writer flags them per cell so a bad
    table still produces a reviewable CSV.
    """

    columns: List[SchemaColumn] = []
    for entry in entries:
        if len(entry) != 3:
            raise ValueError(f"Crosswalk column must be [arity, field, label], got: {entry!r}")
        arity_raw, field, label = (str(part).strip() for part in entry)
        try:
            arity = Arity(arity_raw.lower())
        except ValueError as exc:
            raise ValueError(f"Unknown arity {arity_raw!r} for column {label!r}") from exc
        columns.append(SchemaColumn(arity, field, label))

    labels = column_labels(columns)
    duplicates = sorted({label for label in labels if labels.count(label) > 1})
    if duplicates:
        raise ValueError(f"Duplicate crosswalk column labels: {', '.join(duplicates)}")
    return tuple(columns)
