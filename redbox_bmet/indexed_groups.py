"""
Helpers for ReDBox package documents, where repeated groups are flattened into
numbered keys such as ``dc:creator.foaf:Person.3.foaf:familyName``.

Every group is read the same way: find the largest index present among the
keys, then walk 1..max and compose one value per index. Indices may be sparse;
a missing index simply contributes nothing.
"""

from __future__ import annotations

import re
from typing import Any, Callable, List, Mapping, Optional, Pattern

INDEX_PLACEHOLDER = "{index}"

Composer = Callable[[Mapping[str, Any], int], Optional[str]]


def text_value(document: Mapping[str, Any], key: str) -> str:
    """Return the stripped string value for ``key``; absent or null reads as ''."""

    value = document.get(key)
    if value is None:
        return ""
    return str(value).strip()


def key_pattern(template: str) -> Pattern[str]:
    """
    Compile a key template into a regex capturing the index.

    ``"dc:subject.anzsrc:for.{index}.skos:prefLabel"`` matches
    ``dc:subject.anzsrc:for.12.skos:prefLabel`` and captures ``12``.
    """

    if template.count(INDEX_PLACEHOLDER) != 1:
        raise ValueError(f"Key template must contain exactly one {INDEX_PLACEHOLDER}: {template}")
    before, after = template.split(INDEX_PLACEHOLDER)
    return re.compile(re.escape(before) + r"(\d+)" + re.escape(after))


def max_index(document: Mapping[str, Any], pattern: Pattern[str] | str) -> int:
    """
    Largest integer captured by the first group of ``pattern`` over all keys.

    Returns 0 when no key matches.
    """

    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    best = 0
    for key in document:
        match = regex.search(str(key))
        if match and match.group(1) is not None:
            best = max(best, int(match.group(1)))
    return best


def compose_range(document: Mapping[str, Any], upper: int, compose: Composer) -> List[str]:
    values: List[str] = []
    for index in range(1, upper + 1):
        value = compose(document, index)
        if value:
            values.append(value)
    return values


def collect_group(
    document: Mapping[str, Any],
    pattern: Pattern[str] | str,
    compose: Composer,
) -> List[str]:
    """Compose one value per index in 1..max_index, dropping empty results."""

    return compose_range(document, max_index(document, pattern), compose)


def single_field(template: str) -> Composer:
    def compose(document: Mapping[str, Any], index: int) -> str:
        return text_value(document, template.format(index=index))

    return compose


def values_for_indices(document: Mapping[str, Any], template: str, upper: int) -> List[str]:
    """Trimmed, non-empty values of ``template`` for indices 1..upper, in order."""

    return compose_range(document, upper, single_field(template))


def group_values(document: Mapping[str, Any], template: str) -> List[str]:
    """All values of a single-field group, e.g. every FOR code label."""

    return collect_group(document, key_pattern(template), single_field(template))
