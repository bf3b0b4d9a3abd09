from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, List, Mapping, NamedTuple, Optional, Pattern, Sequence

from .config import RedboxSettings
from .documents import get_field, load_package_document, read_sidecar
from .indexed_groups import group_values

LOGGER = logging.getLogger(__name__)

ASSIGNED_HANDLE = re.compile(r"^http")
NOTE_TEMPLATE = "skos:note.{index}.dc:description"


class RecordPaths(NamedTuple):
    object_path: Path
    package_path: Path


def find_object_files(root: Path, object_filename: str) -> List[Path]:
    return sorted(p for p in Path(root).rglob(object_filename) if p.is_file())


def is_published_dataset(sidecar_lines: Sequence[str], dataset_config_pid: str) -> bool:
    """Dataset (not a DMP or self-submission) whose handle has been assigned."""

    is_dataset = get_field(sidecar_lines, "jsonConfigPid") == dataset_config_pid
    has_handle = bool(ASSIGNED_HANDLE.match(get_field(sidecar_lines, "handle") or ""))
    return is_dataset and has_handle


def package_path_for(object_path: Path, sidecar_lines: Sequence[str]) -> Optional[Path]:
    """The package lives beside the sidecar; ``file.path`` may point elsewhere, so only its basename counts."""

    other_path = get_field(sidecar_lines, "file.path")
    if not other_path:
        return None
    name = re.split(r"[\\/]", other_path.strip())[-1]
    if not name:
        return None
    return object_path.parent / name


def has_target_note(document: Mapping[str, Any], note_pattern: Pattern[str]) -> bool:
    return any(note_pattern.search(note) for note in group_values(document, NOTE_TEMPLATE))


def discover(root: Optional[Path] = None, settings: Optional[RedboxSettings] = None) -> List[RecordPaths]:
    """
    Walk ReDBox storage and return the (sidecar, package) pairs destined for DSpace.

    A record is selected when it is a dataset, has a handle, and one of its
    Notes-tab entries mentions the target keyword. Anything else is skipped
    without complaint.
    """

    settings = settings or RedboxSettings()
    root = Path(root) if root is not None else settings.storage_root
    note_pattern = settings.note_pattern

    selected: List[RecordPaths] = []
    for object_path in find_object_files(root, settings.object_filename):
        sidecar_lines = read_sidecar(object_path)
        if not is_published_dataset(sidecar_lines, settings.dataset_config_pid):
            continue

        package_path = package_path_for(object_path, sidecar_lines)
        if package_path is None or not package_path.is_file():
            LOGGER.debug("No package file for %s", object_path)
            continue

        if not has_target_note(load_package_document(package_path), note_pattern):
            continue
        selected.append(RecordPaths(object_path, package_path))

    LOGGER.info("Selected %d record(s) under %s", len(selected), root)
    return selected
