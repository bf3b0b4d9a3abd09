#!/usr/bin/env python3
"""Transfer ReDBox dataset metadata into a DSpace collection.

Two stages, normally run on different hosts:

``extract`` (ReDBox server)
    Find ReDBox records that are datasets, have a handle assigned, and mention
    "dspace" in a Notes-tab entry. Crosswalk each into DSpace BMET (Batch
    Metadata Editing Tool) columns and write one CSV, sorted by handle so
    repeated runs diff cleanly. Copy the result to the DSpace server as
    ``result/redbox_export.csv``.

``update`` (DSpace server)
    Export the dataset collection with ``dspace metadata-export``, match its
    rows to the ReDBox CSV by ReDBox handle, and write an import batch where
    known datasets update their DSpace item and the rest are added. With
    ``--import`` the batch is handed to ``dspace metadata-import``.

Usage
-----
    python redbox2dspace.py extract --config config.yaml > redbox_export.csv
    python redbox2dspace.py update --config config.yaml --import
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

import polars as pl
import yaml

from redbox_bmet.archive_bridge import (
    ExternalCommandError,
    check_external_batch_operation,
    export_command,
    import_command,
)
from redbox_bmet.config import AppConfig, ConfigError, load_config
from redbox_bmet.crosswalk import render_bmet_csv
from redbox_bmet.discovery import discover
from redbox_bmet.reconcile import OutputExistsError, reconcile_files, write_batch
from redbox_bmet.record_builder import build_record

LOGGER = logging.getLogger("redbox2dspace")


def configure_logging(verbosity: int) -> None:
    level = logging.DEBUG if verbosity > 0 else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s", stream=sys.stderr)


def cmd_extract(args: argparse.Namespace, config: AppConfig) -> int:
    root = args.storage_root or config.redbox.storage_root
    paths = discover(root, config.redbox)
    records = [
        build_record(pair.object_path, pair.package_path, doi_resolver=config.redbox.doi_resolver)
        for pair in paths
    ]
    csv_text = render_bmet_csv(records, config.columns)

    if args.output is None or str(args.output) == "-":
        sys.stdout.write(csv_text)
    else:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(csv_text, encoding="utf-8")
        LOGGER.info("Wrote %d record(s) to %s", len(records), args.output)
    return 0


def cmd_update(args: argparse.Namespace, config: AppConfig) -> int:
    settings = config.dspace
    if args.force_overwrite is not None:
        settings.force_overwrite = args.force_overwrite
    if args.confirm_import is not None:
        settings.confirm_import = args.confirm_import

    redbox_csv: Path = args.redbox_csv or settings.redbox_csv
    dspace_csv: Path = args.dspace_csv or settings.dspace_csv
    output: Path = args.output or settings.import_csv

    if output.exists() and not settings.force_overwrite:
        raise OutputExistsError(f"Output file already exists (overwrite disabled): {output}")

    if not args.skip_export:
        dspace_csv.parent.mkdir(parents=True, exist_ok=True)
        check_external_batch_operation(export_command(settings, dspace_csv))

    batch = reconcile_files(redbox_csv, dspace_csv, settings)
    write_batch(batch, output, force_overwrite=settings.force_overwrite)

    if args.run_import:
        check_external_batch_operation(import_command(settings, output))
        LOGGER.info("Import finished (confirmed=%s)", settings.confirm_import)
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Crosswalk ReDBox datasets into DSpace BMET CSV and reconcile them with DSpace.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML config (default: $R2D_CONFIG or ./config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command")

    extract = subparsers.add_parser(
        "extract",
        help="Crosswalk selected ReDBox datasets into a BMET CSV.",
    )
    extract.add_argument(
        "--storage-root",
        type=Path,
        help="ReDBox storage directory (overrides redbox.storage_root).",
    )
    extract.add_argument(
        "--output",
        type=Path,
        help="CSV destination; '-' or omitted writes to stdout.",
    )
    extract.set_defaults(func=cmd_extract)

    update = subparsers.add_parser(
        "update",
        help="Export DSpace, merge with the ReDBox CSV and write an import batch.",
    )
    update.add_argument("--redbox-csv", type=Path, help="ReDBox BMET CSV (default: result/redbox_export.csv)")
    update.add_argument("--dspace-csv", type=Path, help="DSpace export CSV (default: result/dspace_export.csv)")
    update.add_argument("--output", type=Path, help="Import batch CSV (default: result/dspace_import.csv)")
    update.add_argument(
        "--skip-export",
        action="store_true",
        help="Use an existing DSpace export instead of running metadata-export.",
    )
    update.add_argument(
        "--import",
        dest="run_import",
        action="store_true",
        help="Run metadata-import on the batch after writing it.",
    )
    update.add_argument(
        "--force-overwrite",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Allow replacing an existing import batch (default from config).",
    )
    update.add_argument(
        "--confirm-import",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Answer yes to the metadata-import confirmation (default from config).",
    )
    update.set_defaults(func=cmd_update)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 2

    configure_logging(args.verbose)
    try:
        config = load_config(args.config)
        return args.func(args, config)
    except ExternalCommandError as exc:
        LOGGER.error("%s", exc)
        return exc.returncode
    except (ConfigError, OutputExistsError) as exc:
        LOGGER.error("%s", exc)
        return 1
    except (yaml.YAMLError, pl.exceptions.PolarsError, ValueError, OSError) as exc:
        LOGGER.error("Aborting: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
