"""
Merge a ReDBox BMET CSV (from the crosswalk) with a DSpace BMET CSV (from
``dspace metadata-export``) into a batch for ``dspace metadata-import``.

Both files identify a dataset by its ReDBox handle URL, packed among other
values in the multi-valued ``dc.identifier.uri`` column. DSpace rows also carry
their own handle in that column and the DSpace item id in ``id``.

- ReDBox handle known to DSpace: the row updates that item (``id`` = item id)
  and gets the DSpace handle appended to its identifier cell.
- Otherwise: the row creates a new item (``id`` = ``+``); DSpace assigns the
  handle itself on import.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Pattern, Tuple

import polars as pl

from .config import DSpaceSettings
from .crosswalk import to_frame, write_csv_text
from .schema import INSERT_MARKER, VALUE_DELIMITER

LOGGER = logging.getLogger(__name__)

ROW_KEY_COLUMN = "id"
COLLECTION_COLUMN = "collection"


@dataclass
class TabularExtract:
    header: List[str]
    rows: List[Dict[str, str]]
    path: Optional[Path] = None


def frame_to_extract(frame: pl.DataFrame, path: Optional[Path] = None) -> TabularExtract:
    rows = [{key: value or "" for key, value in row.items()} for row in frame.iter_rows(named=True)]
    return TabularExtract(header=list(frame.columns), rows=rows, path=path)


def read_extract(path: Path) -> TabularExtract:
    """Read a BMET CSV with every cell as a string; empty or null cells read as ''."""

    frame = pl.read_csv(path, infer_schema_length=0)
    return frame_to_extract(frame, Path(path))


def split_packed(cell: Optional[str]) -> List[str]:
    if not cell:
        return []
    return cell.split(VALUE_DELIMITER)


def recover_identifiers(
    cell: Optional[str],
    redbox_pattern: Pattern[str],
    dspace_pattern: Pattern[str],
) -> Tuple[Optional[str], Optional[str]]:
    """
    Return (redbox_id, dspace_id) found among the packed values of ``cell``.

    For each pattern the first matching value wins; further matches are
    ignored.
    """

    redbox_id: Optional[str] = None
    dspace_id: Optional[str] = None
    for value in split_packed(cell):
        if redbox_id is None and redbox_pattern.search(value):
            redbox_id = value
        if dspace_id is None and dspace_pattern.search(value):
            dspace_id = value
    return redbox_id, dspace_id


@dataclass(frozen=True)
class RowIdentity:
    item_id: str
    redbox_id: Optional[str]
    dspace_id: Optional[str]


def extract_identities(extract: TabularExtract, settings: DSpaceSettings) -> List[RowIdentity]:
    identities: List[RowIdentity] = []
    for row in extract.rows:
        redbox_id, dspace_id = recover_identifiers(
            row.get(settings.identifier_field),
            settings.redbox_id_regex,
            settings.dspace_id_regex,
        )
        item_id = row.get(ROW_KEY_COLUMN, "")
        if item_id or redbox_id or dspace_id:
            identities.append(RowIdentity(item_id, redbox_id, dspace_id))
    return identities


def redbox_ids(identities: Iterable[RowIdentity]) -> List[str]:
    return [identity.redbox_id for identity in identities if identity.redbox_id]


@dataclass(frozen=True)
class ReconciliationIndex:
    """Lookups from ReDBox id into the DSpace export."""

    item_ids: Mapping[str, str]
    dspace_ids: Mapping[str, str]

    @classmethod
    def from_extract(cls, extract: TabularExtract, settings: DSpaceSettings) -> "ReconciliationIndex":
        item_ids: Dict[str, str] = {}
        dspace_ids: Dict[str, str] = {}
        for identity in extract_identities(extract, settings):
            if not identity.redbox_id:
                continue
            item_ids[identity.redbox_id] = identity.item_id
            if identity.dspace_id:
                dspace_ids[identity.redbox_id] = identity.dspace_id
            else:
                dspace_ids.pop(identity.redbox_id, None)
        return cls(item_ids=item_ids, dspace_ids=dspace_ids)

    def row_key(self, redbox_id: Optional[str]) -> str:
        if redbox_id and self.item_ids.get(redbox_id):
            return self.item_ids[redbox_id]
        return INSERT_MARKER

    def dspace_id(self, redbox_id: Optional[str]) -> Optional[str]:
        if not redbox_id:
            return None
        return self.dspace_ids.get(redbox_id)


def _warn_duplicates(ids: Iterable[str], label: str) -> None:
    for redbox_id, count in Counter(ids).items():
        if count > 1:
            LOGGER.warning("%s CSV has %d rows for ReDBox id %s", label, count, redbox_id)


def verify(source_ids: List[str], archive_ids: List[str]) -> Tuple[List[str], List[str]]:
    """
    Split source ids into (new, update) lists. Diagnostic only: the merge
    processes every source row either way.
    """

    archive_set = set(archive_ids)
    new_ids = [redbox_id for redbox_id in source_ids if redbox_id not in archive_set]
    new_set = set(new_ids)
    update_ids = [redbox_id for redbox_id in source_ids if redbox_id not in new_set]

    _warn_duplicates(source_ids, "ReDBox")
    _warn_duplicates(archive_ids, "DSpace")
    LOGGER.info("%d new record(s), %d update(s)", len(new_ids), len(update_ids))
    LOGGER.debug("New ReDBox ids: %s", new_ids)
    LOGGER.debug("Updated ReDBox ids: %s", update_ids)
    return new_ids, update_ids


def augment_identifier_cell(cell: str, dspace_id: Optional[str]) -> str:
    """Append ``dspace_id`` unless the cell is empty or already contains it."""

    if not dspace_id or not cell:
        return cell
    if dspace_id in split_packed(cell):
        return cell
    return f"{cell}{VALUE_DELIMITER}{dspace_id}"


def merge_rows(
    source: TabularExtract,
    index: ReconciliationIndex,
    settings: DSpaceSettings,
) -> Tuple[List[str], List[List[str]]]:
    """Build the import batch header and rows, keeping the source's row order."""

    clashing = [name for name in (ROW_KEY_COLUMN, COLLECTION_COLUMN) if name in source.header]
    if clashing:
        raise ValueError(f"ReDBox CSV already has column(s): {', '.join(clashing)}")

    header = [ROW_KEY_COLUMN, COLLECTION_COLUMN, *source.header]
    rows: List[List[str]] = []
    for row in source.rows:
        redbox_id, _ = recover_identifiers(
            row.get(settings.identifier_field),
            settings.redbox_id_regex,
            settings.dspace_id_regex,
        )
        dspace_id = index.dspace_id(redbox_id)

        line = [index.row_key(redbox_id), settings.collection_handle]
        for name in source.header:
            value = row.get(name, "")
            # Existing items keep their DSpace handle.
            if name == settings.identifier_field:
                value = augment_identifier_cell(value, dspace_id)
            line.append(value)
        rows.append(line)
    return header, rows


def reconcile(source: TabularExtract, archive: TabularExtract, settings: DSpaceSettings) -> str:
    """Merge a ReDBox extract with a DSpace extract into import batch CSV text."""

    index = ReconciliationIndex.from_extract(archive, settings)
    verify(
        redbox_ids(extract_identities(source, settings)),
        redbox_ids(extract_identities(archive, settings)),
    )
    header, rows = merge_rows(source, index, settings)
    return write_csv_text(to_frame(header, rows))


def reconcile_files(source_path: Path, archive_path: Path, settings: DSpaceSettings) -> str:
    return reconcile(read_extract(source_path), read_extract(archive_path), settings)


class OutputExistsError(FileExistsError):
    """The import batch already exists and overwriting is disabled."""


def write_batch(text: str, path: Path, *, force_overwrite: bool) -> Path:
    """Write the batch CSV, refusing to replace an existing (possibly unreviewed) file."""

    path = Path(path)
    if path.exists() and not force_overwrite:
        raise OutputExistsError(f"Output file already exists (overwrite disabled): {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    LOGGER.info("Wrote import batch: %s", path)
    return path
