"""
Crosswalk one ReDBox dataset into a flat, DSpace-oriented metadata record.

Inputs per dataset are the object sidecar (TF-OBJ-META: handle, DOI) and the
package document (``*.tfpackage``: everything else). Missing keys are normal in
hand-curated metadata and simply yield empty values.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import ConfigError
from .documents import get_field, load_package_document, read_sidecar, unescape
from .indexed_groups import collect_group, group_values, text_value
from .schema import DOI_RESOLVER

LOGGER = logging.getLogger(__name__)

CITATION_PLACEHOLDER = re.compile(r" *\{ID_WILL_BE_HERE\}")
DATA_SOURCE_PREFIX = re.compile(r"^\([^)]*\) (.*)$")

SCALAR_KEYS: Mapping[str, str] = {
    "dc_title": "dc:title",
    "dc_type": "dc:type.rdf:PlainLiteral",
    "dc_created": "dc:created",
    "dc_description": "dc:description",
    "dc_language": "dc:language.skos:prefLabel",
}
CITATION_KEY = "dc:biblioGraphicCitation.skos:prefLabel"

RIGHTS_KEYS: Sequence[str] = (
    "dc:accessRights.skos:prefLabel",
    "dc:accessRights.dc:RightsStatement.skos:prefLabel",
    "dc:license.skos:prefLabel",
)

CREATOR_PATTERN = re.compile(r"dc:creator\.foaf:Person\.(\d+)\.foaf:(?:familyName|givenName)")
GRANT_PATTERN = re.compile(r"foaf:fundedBy\.vivo:Grant\.(\d+)\.(?:redbox:grantNumber|skos:prefLabel)")
FUNDER_TEMPLATE = "foaf:fundedBy.foaf:Agent.{index}.skos:prefLabel"

# Subject sources, concatenated in this order.
SUBJECT_TEMPLATES: Sequence[str] = (
    "dc:subject.anzsrc:for.{index}.skos:prefLabel",
    "dc:subject.anzsrc:seo.{index}.skos:prefLabel",
    "dc:subject.vivo:keyword.{index}.rdf:PlainLiteral",
)


@dataclass(frozen=True)
class NormalizedRecord:
    """Crosswalked metadata for one dataset; field names come from ``schema``."""

    handle: str
    doi: Optional[str]
    scalars: Mapping[str, str]
    multi: Mapping[str, Tuple[str, ...]]

    def scalar(self, field: str) -> str:
        return self.scalars.get(field, "")

    def values(self, field: str) -> Tuple[str, ...]:
        return self.multi.get(field, ())


def identifier_uris(handle: str, doi: Optional[str], doi_resolver: str = DOI_RESOLVER) -> List[str]:
    uris: List[str] = []
    if handle:
        uris.append(handle)
    if doi:
        uris.append(f"{doi_resolver}{doi}")
    return uris


def resolve_citation(template: str, doi_url: Optional[str]) -> str:
    replacement = f" {doi_url}" if doi_url else ""
    return CITATION_PLACEHOLDER.sub(lambda _match: replacement, template)


def compose_creator(document: Mapping[str, Any], index: int) -> Optional[str]:
    # People tab, not the citation: it also lists locally entered people.
    family_name = text_value(document, f"dc:creator.foaf:Person.{index}.foaf:familyName")
    given_names = text_value(document, f"dc:creator.foaf:Person.{index}.foaf:givenName")
    if family_name and given_names:
        return f"{family_name}, {given_names}"
    return family_name or given_names or None


def strip_data_source(label: str) -> str:
    """``"(MIS Projects) 12345 NHMRC ..."`` -> ``"12345 NHMRC ..."``."""

    match = DATA_SOURCE_PREFIX.match(label)
    return match.group(1) if match else label


def compose_grant(document: Mapping[str, Any], index: int) -> Optional[str]:
    grant_number = text_value(document, f"foaf:fundedBy.vivo:Grant.{index}.redbox:grantNumber")
    grant_label = text_value(document, f"foaf:fundedBy.vivo:Grant.{index}.skos:prefLabel")
    if grant_label:
        grant_label = strip_data_source(grant_label)
    if grant_number and grant_label:
        return f"{grant_number}: {grant_label}"
    return grant_number or grant_label or None


def extract_rights(document: Mapping[str, Any]) -> List[str]:
    return [value for value in (text_value(document, key) for key in RIGHTS_KEYS) if value]


def extract_subjects(document: Mapping[str, Any]) -> List[str]:
    subjects: List[str] = []
    for template in SUBJECT_TEMPLATES:
        subjects.extend(group_values(document, template))
    return subjects


def _raw_scalar(document: Mapping[str, Any], key: str) -> str:
    value = document.get(key)
    return "" if value is None else str(value)


def build_from_documents(
    sidecar_lines: Sequence[str],
    document: Mapping[str, Any],
    *,
    doi_resolver: str = DOI_RESOLVER,
) -> NormalizedRecord:
    """Crosswalk already-loaded sidecar lines and package document."""

    doi = (get_field(sidecar_lines, "andsDoi") or "").strip() or None
    handle = unescape(get_field(sidecar_lines, "handle") or "")

    scalars: Dict[str, str] = {name: _raw_scalar(document, key) for name, key in SCALAR_KEYS.items()}
    doi_url = f"{doi_resolver}{doi}" if doi else None
    scalars["citation"] = resolve_citation(_raw_scalar(document, CITATION_KEY), doi_url)

    multi: Dict[str, Tuple[str, ...]] = {
        "dc_creators": tuple(collect_group(document, CREATOR_PATTERN, compose_creator)),
        "ident_uris": tuple(identifier_uris(handle, doi, doi_resolver)),
        "dc_rights": tuple(extract_rights(document)),
        "funders": tuple(group_values(document, FUNDER_TEMPLATE)),
        "grant_numbers": tuple(collect_group(document, GRANT_PATTERN, compose_grant)),
        "subjects": tuple(extract_subjects(document)),
    }

    return NormalizedRecord(
        handle=handle,
        doi=doi,
        scalars=MappingProxyType(scalars),
        multi=MappingProxyType(multi),
    )


def build_record(
    object_path: Optional[Path | str],
    package_path: Optional[Path | str],
    *,
    doi_resolver: str = DOI_RESOLVER,
) -> NormalizedRecord:
    """Read a dataset's sidecar and package files and crosswalk them."""

    if not object_path or not str(object_path):
        raise ConfigError("Empty file path to the object metadata (TF-OBJ-META) file.")
    if not package_path or not str(package_path):
        raise ConfigError("Empty file path to the package (.tfpackage) file.")

    LOGGER.debug("Building record from %s + %s", object_path, package_path)
    return build_from_documents(
        read_sidecar(Path(object_path)),
        load_package_document(Path(package_path)),
        doi_resolver=doi_resolver,
    )
