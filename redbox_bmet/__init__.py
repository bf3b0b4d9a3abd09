"""
Shared ReDBox -> DSpace crosswalk and reconciliation helpers used by the
``redbox2dspace`` command line.
"""

from .schema import (  # noqa: F401
    DEFAULT_COLUMNS,
    INSERT_MARKER,
    VALUE_DELIMITER,
    Arity,
    SchemaColumn,
)

from .config import (  # noqa: F401
    AppConfig,
    ConfigError,
    DSpaceSettings,
    RedboxSettings,
    load_config,
)

from .indexed_groups import (  # noqa: F401
    collect_group,
    key_pattern,
    max_index,
    values_for_indices,
)

from .record_builder import NormalizedRecord, build_record  # noqa: F401
from .discovery import RecordPaths, discover  # noqa: F401
from .crosswalk import render_bmet_csv  # noqa: F401

from .reconcile import (  # noqa: F401
    OutputExistsError,
    ReconciliationIndex,
    TabularExtract,
    read_extract,
    reconcile,
    reconcile_files,
    write_batch,
)

from .archive_bridge import (  # noqa: F401
    CommandSpec,
    ExternalCommandError,
    run_external_batch_operation,
)

__all__ = [
    "DEFAULT_COLUMNS",
    "INSERT_MARKER",
    "VALUE_DELIMITER",
    "Arity",
    "SchemaColumn",
    "AppConfig",
    "ConfigError",
    "DSpaceSettings",
    "RedboxSettings",
    "load_config",
    "collect_group",
    "key_pattern",
    "max_index",
    "values_for_indices",
    "NormalizedRecord",
    "build_record",
    "RecordPaths",
    "discover",
    "render_bmet_csv",
    "OutputExistsError",
    "ReconciliationIndex",
    "TabularExtract",
    "read_extract",
    "reconcile",
    "reconcile_files",
    "write_batch",
    "CommandSpec",
    "ExternalCommandError",
    "run_external_batch_operation",
]
