import csv
import io
import json
import shlex
import sys
from pathlib import Path

import pytest

import redbox2dspace
from redbox_bmet.config import CONFIG_ENV_KEY


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in (CONFIG_ENV_KEY, "REDBOX_STORAGE_ROOT", "DSPACE_CMD"):
        monkeypatch.delenv(key, raising=False)


def make_storage(root: Path) -> None:
    for number, note in ((2, "dspace"), (1, "dspace please"), (3, "keep local")):
        folder = root / f"obj{number}"
        folder.mkdir(parents=True)
        (folder / "TF-OBJ-META").write_text(
            "jsonConfigPid=dataset.json\n"
            f"handle=http\\://hdl.handle.net/0000/{number}\n"
            f"file.path=/var/redbox/obj{number}/pkg.tfpackage\n",
            encoding="utf-8",
        )
        package = {"dc:title": f"Dataset {number}", "skos:note.1.dc:description": note}
        (folder / "pkg.tfpackage").write_text(json.dumps(package), encoding="utf-8")


def write_config(tmp_path: Path, command: str = "false") -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"redbox:\n  storage_root: storage\ndspace:\n  command: {json.dumps(command)}\n"
        "  force_overwrite: false\n",
        encoding="utf-8",
    )
    return config_path


def test_extract_writes_sorted_csv(tmp_path):
    make_storage(tmp_path / "storage")
    config_path = write_config(tmp_path)
    output = tmp_path / "result" / "redbox_export.csv"

    assert redbox2dspace.main(["--config", str(config_path), "extract", "--output", str(output)]) == 0

    rows = list(csv.DictReader(io.StringIO(output.read_text(encoding="utf-8"))))
    assert [row["dc.title[en_US]"] for row in rows] == ["Dataset 1", "Dataset 2"]
    assert rows[0]["dc.identifier.uri"] == "http://hdl.handle.net/0000/1"


def test_extract_defaults_to_stdout(tmp_path, capsys):
    make_storage(tmp_path / "storage")
    config_path = write_config(tmp_path)

    assert redbox2dspace.main(["--config", str(config_path), "extract"]) == 0
    out = capsys.readouterr().out
    assert out.splitlines()[1].startswith('"Dataset 1"')


def test_update_with_existing_export(tmp_path):
    config_path = write_config(tmp_path)
    result = tmp_path / "result"
    result.mkdir()
    (result / "redbox_export.csv").write_text(
        '"dc.title[en_US]","dc.identifier.uri"\n"Dataset 1","http://hdl.handle.net/0000/1"\n',
        encoding="utf-8",
    )
    (result / "dspace_export.csv").write_text(
        '"id","collection","dc.identifier.uri"\n'
        '"17","123456789/999000","http://hdl.handle.net/0000/1||http://hdl.handle.net/123456789/5"\n',
        encoding="utf-8",
    )

    argv = ["--config", str(config_path), "update", "--skip-export"]
    assert redbox2dspace.main(argv) == 0
    rows = list(csv.DictReader(io.StringIO((result / "dspace_import.csv").read_text(encoding="utf-8"))))
    assert rows[0]["id"] == "17"
    assert rows[0]["dc.identifier.uri"] == "http://hdl.handle.net/0000/1||http://hdl.handle.net/123456789/5"

    # Overwriting is disabled in this config.
    assert redbox2dspace.main(argv) == 1
    assert redbox2dspace.main(argv + ["--force-overwrite"]) == 0


def test_failed_export_returns_command_status(tmp_path):
    script = tmp_path / "broken_dspace.py"
    script.write_text("import sys\nsys.exit(3)\n", encoding="utf-8")
    command = f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"
    config_path = write_config(tmp_path, command)

    assert redbox2dspace.main(["--config", str(config_path), "update"]) == 3
    assert (tmp_path / "log" / "dspace_exp.err").exists()


def test_missing_config_file_exits_with_error(tmp_path):
    assert redbox2dspace.main(["--config", str(tmp_path / "nope.yaml"), "extract"]) == 1


def test_no_subcommand_prints_help(capsys):
    assert redbox2dspace.main([]) == 2
    assert "extract" in capsys.readouterr().out


def test_empty_dspace_export_aborts_cleanly(tmp_path):
    config_path = write_config(tmp_path)
    result = tmp_path / "result"
    result.mkdir()
    (result / "redbox_export.csv").write_text('"dc.identifier.uri"\n"http://hdl.handle.net/0000/1"\n', encoding="utf-8")
    (result / "dspace_export.csv").write_bytes(b"")

    assert redbox2dspace.main(["--config", str(config_path), "update", "--skip-export"]) == 1
    assert not (result / "dspace_import.csv").exists()


def test_verbose_flag_switches_on_debug_logging():
    parser = redbox2dspace.build_arg_parser()
    assert parser.parse_args(["-v", "extract"]).verbose == 1
    assert "Enable debug logging." in parser.format_help()
