from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Pattern, Tuple

import yaml
from dotenv import load_dotenv

from .schema import DEFAULT_COLUMNS, DOI_RESOLVER, SchemaColumn, parse_columns

load_dotenv()

CONFIG_ENV_KEY = "R2D_CONFIG"
DEFAULT_CONFIG_PATH = Path("config.yaml")

DEFAULT_STORAGE_ROOT = "/PATH/TO/REDBOX/storage"
DEFAULT_OBJECT_FILENAME = "TF-OBJ-META"
DEFAULT_DATASET_CONFIG_PID = "dataset.json"
DEFAULT_NOTE_KEYWORD = "dspace"

DEFAULT_HANDLE_HOST = "hdl.handle.net/"
DEFAULT_DSPACE_HANDLE_PREFIX = "123456789"
DEFAULT_REDBOX_HANDLE_PREFIX = "0000"
DEFAULT_IDENTIFIER_FIELD = "dc.identifier.uri"
DEFAULT_DSPACE_COMMAND = "/home/dspacedir/dspace/bin/dspace"
DEFAULT_USER_EMAIL = "dspaceuser@example.com"

REDBOX_CSV_NAME = "redbox_export.csv"
DSPACE_CSV_NAME = "dspace_export.csv"
IMPORT_CSV_NAME = "dspace_import.csv"


class ConfigError(ValueError):
    """Raised when configuration (file, paths, or arguments) is unusable."""


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on", "y"}


def _resolve_path(base: Path, value: str) -> Path:
    return (base / value).expanduser().resolve()


def handle_url_regex(host: str, prefix: str) -> Pattern[str]:
    """Regex matching a handle URL for ``prefix``; group 1 is the ``prefix/suffix`` part."""

    return re.compile(re.escape(host) + "(" + re.escape(f"{prefix}/") + ".*)$")


@dataclass
class RedboxSettings:
    storage_root: Path = Path(DEFAULT_STORAGE_ROOT)
    object_filename: str = DEFAULT_OBJECT_FILENAME
    dataset_config_pid: str = DEFAULT_DATASET_CONFIG_PID
    target_note_keyword: str = DEFAULT_NOTE_KEYWORD
    doi_resolver: str = DOI_RESOLVER

    @property
    def note_pattern(self) -> Pattern[str]:
        keyword = re.escape(self.target_note_keyword)
        return re.compile(rf"(^|[^a-z]){keyword}($|[^a-z])", re.IGNORECASE)


@dataclass
class DSpaceSettings:
    handle_host: str = DEFAULT_HANDLE_HOST
    handle_prefix: str = DEFAULT_DSPACE_HANDLE_PREFIX
    redbox_handle_prefix: str = DEFAULT_REDBOX_HANDLE_PREFIX
    collection_handle: str = ""
    identifier_field: str = DEFAULT_IDENTIFIER_FIELD
    redbox_id_regex: Optional[Pattern[str]] = None
    dspace_id_regex: Optional[Pattern[str]] = None
    command: str = DEFAULT_DSPACE_COMMAND
    user_email: str = DEFAULT_USER_EMAIL
    confirm_import: bool = False
    force_overwrite: bool = True
    result_dir: Path = Path("result")
    log_dir: Path = Path("log")

    def __post_init__(self) -> None:
        if not self.collection_handle:
            self.collection_handle = f"{self.handle_prefix}/999000"
        if self.redbox_id_regex is None:
            self.redbox_id_regex = handle_url_regex(self.handle_host, self.redbox_handle_prefix)
        if self.dspace_id_regex is None:
            self.dspace_id_regex = handle_url_regex(self.handle_host, self.handle_prefix)

    @property
    def redbox_csv(self) -> Path:
        return self.result_dir / REDBOX_CSV_NAME

    @property
    def dspace_csv(self) -> Path:
        return self.result_dir / DSPACE_CSV_NAME

    @property
    def import_csv(self) -> Path:
        return self.result_dir / IMPORT_CSV_NAME

    @property
    def export_logs(self) -> Tuple[Path, Path]:
        return self.log_dir / "dspace_exp.log", self.log_dir / "dspace_exp.err"

    @property
    def import_logs(self) -> Tuple[Path, Path]:
        return self.log_dir / "dspace_imp.log", self.log_dir / "dspace_imp.err"


@dataclass
class AppConfig:
    path: Optional[Path]
    redbox: RedboxSettings = field(default_factory=RedboxSettings)
    columns: Tuple[SchemaColumn, ...] = DEFAULT_COLUMNS
    dspace: DSpaceSettings = field(default_factory=DSpaceSettings)


def _section(raw: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"`{name}` section must be a mapping")
    return value


def _compile(value: Any, name: str) -> Optional[Pattern[str]]:
    if not value:
        return None
    try:
        return re.compile(str(value))
    except re.error as exc:
        raise ConfigError(f"Invalid regex for {name}: {exc}") from exc


def _parse_redbox(section: Mapping[str, Any], base: Path) -> RedboxSettings:
    storage_root = os.getenv("REDBOX_STORAGE_ROOT") or section.get("storage_root") or DEFAULT_STORAGE_ROOT
    return RedboxSettings(
        storage_root=_resolve_path(base, str(storage_root)),
        object_filename=str(section.get("object_filename", DEFAULT_OBJECT_FILENAME)),
        dataset_config_pid=str(section.get("dataset_config_pid", DEFAULT_DATASET_CONFIG_PID)),
        target_note_keyword=str(section.get("target_note_keyword", DEFAULT_NOTE_KEYWORD)),
        doi_resolver=str(section.get("doi_resolver", DOI_RESOLVER)),
    )


def _parse_dspace(section: Mapping[str, Any], base: Path) -> DSpaceSettings:
    return DSpaceSettings(
        handle_host=str(section.get("handle_host", DEFAULT_HANDLE_HOST)),
        handle_prefix=str(section.get("handle_prefix", DEFAULT_DSPACE_HANDLE_PREFIX)),
        redbox_handle_prefix=str(section.get("redbox_handle_prefix", DEFAULT_REDBOX_HANDLE_PREFIX)),
        collection_handle=str(section.get("collection_handle") or ""),
        identifier_field=str(section.get("identifier_field", DEFAULT_IDENTIFIER_FIELD)),
        redbox_id_regex=_compile(section.get("redbox_id_regex"), "redbox_id_regex"),
        dspace_id_regex=_compile(section.get("dspace_id_regex"), "dspace_id_regex"),
        command=os.getenv("DSPACE_CMD") or str(section.get("command", DEFAULT_DSPACE_COMMAND)),
        user_email=str(section.get("user_email", DEFAULT_USER_EMAIL)),
        confirm_import=_parse_bool(section.get("confirm_import"), False),
        force_overwrite=_parse_bool(section.get("force_overwrite"), True),
        result_dir=_resolve_path(base, str(section.get("result_dir", "./result"))),
        log_dir=_resolve_path(base, str(section.get("log_dir", "./log"))),
    )


def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Load the YAML configuration.

    Resolution order: explicit ``path``, then ``$R2D_CONFIG``, then
    ``./config.yaml``. Only the last one may be missing, in which case the
    built-in defaults apply. Relative paths resolve from the config file's
    directory.
    """

    explicit = path is not None or bool(os.getenv(CONFIG_ENV_KEY))
    config_path = Path(path) if path is not None else Path(os.getenv(CONFIG_ENV_KEY) or DEFAULT_CONFIG_PATH)

    if config_path.exists():
        try:
            with config_path.open("r", encoding="utf-8") as handle:
                raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Could not parse {config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Configuration root must be a mapping: {config_path}")
        base = config_path.resolve().parent
        source: Optional[Path] = config_path
    elif explicit:
        raise ConfigError(f"Configuration file not found: {config_path}")
    else:
        raw = {}
        base = Path.cwd()
        source = None

    crosswalk = _section(raw, "crosswalk")
    columns = DEFAULT_COLUMNS
    if crosswalk.get("columns"):
        try:
            columns = parse_columns(crosswalk["columns"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"crosswalk.columns: {exc}") from exc

    return AppConfig(
        path=source,
        redbox=_parse_redbox(_section(raw, "redbox"), base),
        columns=columns,
        dspace=_parse_dspace(_section(raw, "dspace"), base),
    )
