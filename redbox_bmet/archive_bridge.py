from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .config import DSpaceSettings

LOGGER = logging.getLogger(__name__)


class ExternalCommandError(RuntimeError):
    """An external DSpace batch command exited with a non-zero status."""

    def __init__(self, argv: List[str], returncode: int, log_path: Path, err_log_path: Path) -> None:
        self.argv = argv
        self.returncode = returncode
        self.log_path = log_path
        self.err_log_path = err_log_path
        super().__init__(
            f"Command exited with status {returncode}: {' '.join(argv)}. "
            f"See log files {log_path} and {err_log_path}"
        )


@dataclass(frozen=True)
class CommandSpec:
    argv: List[str]
    log_path: Path
    err_log_path: Path
    stdin_text: Optional[str] = None


def run_external_batch_operation(spec: CommandSpec) -> int:
    """Run ``spec.argv`` with stdout/stderr redirected to its log files; return the exit status."""

    spec.log_path.parent.mkdir(parents=True, exist_ok=True)
    spec.err_log_path.parent.mkdir(parents=True, exist_ok=True)
    LOGGER.info("Running: %s", " ".join(spec.argv))
    with spec.log_path.open("w", encoding="utf-8") as out, spec.err_log_path.open("w", encoding="utf-8") as err:
        completed = subprocess.run(
            spec.argv,
            input=spec.stdin_text,
            stdout=out,
            stderr=err,
            text=True,
            shell=False,
            check=False,
        )
    LOGGER.debug("Exit status %d for %s", completed.returncode, spec.argv[0])
    return completed.returncode


def check_external_batch_operation(spec: CommandSpec) -> None:
    returncode = run_external_batch_operation(spec)
    if returncode != 0:
        raise ExternalCommandError(spec.argv, returncode, spec.log_path, spec.err_log_path)


def export_command(settings: DSpaceSettings, output_path: Path) -> CommandSpec:
    """``dspace metadata-export`` of the dataset collection into ``output_path``."""

    log_path, err_log_path = settings.export_logs
    argv = [
        *shlex.split(settings.command),
        "metadata-export",
        "-i",
        settings.collection_handle,
        "-f",
        str(output_path),
    ]
    return CommandSpec(argv=argv, log_path=log_path, err_log_path=err_log_path)


def import_command(settings: DSpaceSettings, batch_path: Path) -> CommandSpec:
    """
    ``dspace metadata-import`` of ``batch_path`` as ``settings.user_email``.

    The importer asks for confirmation on stdin; the answer comes from
    ``settings.confirm_import`` so a dry run only shows the pending changes.
    """

    log_path, err_log_path = settings.import_logs
    argv = [
        *shlex.split(settings.command),
        "metadata-import",
        "-f",
        str(batch_path),
        "-e",
        settings.user_email,
    ]
    answer = "y\n" if settings.confirm_import else "n\n"
    return CommandSpec(argv=argv, log_path=log_path, err_log_path=err_log_path, stdin_text=answer)
