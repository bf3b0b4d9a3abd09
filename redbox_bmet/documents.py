from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

_ESCAPED_CHAR = re.compile(r"\\(.)")
_SURROGATE = re.compile("[\ud800-\udfff]")


def read_sidecar(path: Path) -> List[str]:
    """Read a TF-OBJ-META style file as a list of ``key=value`` lines."""

    return Path(path).read_text(encoding="utf-8").splitlines()


def get_field(lines: Sequence[str], field_name: str) -> Optional[str]:
    """
    Value of the first line starting with ``field_name=``.

    Returns None when no line carries the field. Lines without ``=`` or for
    other keys are ignored.
    """

    prefix = f"{field_name}="
    for line in lines:
        if line.startswith(prefix):
            return line[len(prefix):]
    return None


def unescape(value: str) -> str:
    """Drop Java-properties escaping, e.g. ``http\\://hdl`` -> ``http://hdl``."""

    return _ESCAPED_CHAR.sub(r"\1", value)


def join_surrogates(value: Any) -> Any:
    """
    Rejoin UTF-16 surrogate pairs left by YAML's per-escape decoding of
    ``"\\ud83d\\ude00"``; unpaired halves become U+FFFD.
    """

    if isinstance(value, str):
        if not _SURROGATE.search(value):
            return value
        return value.encode("utf-16", "surrogatepass").decode("utf-16", "replace")
    if isinstance(value, list):
        return [join_surrogates(item) for item in value]
    if isinstance(value, dict):
        return {join_surrogates(key): join_surrogates(item) for key, item in value.items()}
    return value


def parse_package_text(text: str) -> Dict[str, Any]:
    """
    Parse a tfpackage JSON document.

    ReDBox writes literal newlines inside string values, which a strict JSON
    parser rejects. YAML is a superset of JSON and folds those newlines into
    spaces, so the document goes through PyYAML. YAML forbids tabs as token
    separators, hence the replacement.
    """

    data = yaml.safe_load(text.replace("\t", " "))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Package document must be a JSON object, got {type(data).__name__}")
    return {str(join_surrogates(key)): join_surrogates(value) for key, value in data.items()}


def load_package_document(path: Path) -> Dict[str, Any]:
    return parse_package_text(Path(path).read_text(encoding="utf-8"))
