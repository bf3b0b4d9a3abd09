import json
from pathlib import Path

import pytest

from redbox_bmet.config import ConfigError
from redbox_bmet.crosswalk import render_bmet_csv
from redbox_bmet.documents import parse_package_text
from redbox_bmet.record_builder import (
    build_from_documents,
    build_record,
    compose_grant,
    resolve_citation,
    strip_data_source,
)

CITATION = "Smith, Jane (2014): Soil cores. James Cook University. {ID_WILL_BE_HERE}"


def write_record(tmp_path: Path, sidecar: str, package: dict) -> tuple:
    object_path = Path(tmp_path) / "TF-OBJ-META"
    package_path = Path(tmp_path) / "abc.tfpackage"
    object_path.write_text(sidecar, encoding="utf-8")
    package_path.write_text(json.dumps(package), encoding="utf-8")
    return object_path, package_path


def test_record_without_doi_has_handle_only(tmp_path):
    object_path, package_path = write_record(
        tmp_path,
        "handle=http://hdl/0000/1\n",
        {"dc:title": "Soil cores", "dc:biblioGraphicCitation.skos:prefLabel": "{ID_WILL_BE_HERE}"},
    )

    record = build_record(object_path, package_path)

    assert record.doi is None
    assert record.values("ident_uris") == ("http://hdl/0000/1",)
    assert record.scalar("citation") == ""
    assert record.scalar("dc_title") == "Soil cores"


def test_doi_adds_identifier_and_fills_citation(tmp_path):
    object_path, package_path = write_record(
        tmp_path,
        "jsonConfigPid=dataset.json\nhandle=http\\://hdl.handle.net/0000/7\nandsDoi=10.4225/28/abc\n",
        {"dc:biblioGraphicCitation.skos:prefLabel": CITATION},
    )

    record = build_record(object_path, package_path)

    assert record.handle == "http://hdl.handle.net/0000/7"
    assert record.values("ident_uris") == (
        "http://hdl.handle.net/0000/7",
        "http://dx.doi.org/10.4225/28/abc",
    )
    assert record.scalar("citation") == (
        "Smith, Jane (2014): Soil cores. James Cook University. http://dx.doi.org/10.4225/28/abc"
    )


def test_empty_doi_counts_as_absent():
    record = build_from_documents(["handle=http://hdl/0000/2", "andsDoi="], {})
    assert record.doi is None
    assert record.values("ident_uris") == ("http://hdl/0000/2",)


def test_citation_placeholder_removed_with_leading_spaces():
    assert resolve_citation("Cite me.   {ID_WILL_BE_HERE}", None) == "Cite me."
    assert resolve_citation("No placeholder", "http://dx.doi.org/x") == "No placeholder"


def test_creators_combine_family_and_given_names():
    doc = {
        "dc:creator.foaf:Person.1.foaf:familyName": "Smith",
        "dc:creator.foaf:Person.1.foaf:givenName": "Jane",
        "dc:creator.foaf:Person.2.foaf:givenName": "Prince",
        "dc:creator.foaf:Person.4.foaf:familyName": " Jones ",
    }
    record = build_from_documents([], doc)
    assert record.values("dc_creators") == ("Smith, Jane", "Prince", "Jones")


def test_grant_label_loses_data_source_prefix():
    doc = {
        "foaf:fundedBy.vivo:Grant.1.redbox:grantNumber": "GN99",
        "foaf:fundedBy.vivo:Grant.1.skos:prefLabel": "(MIS Projects) 12345 NHMRC Fellowship",
        "foaf:fundedBy.vivo:Grant.2.skos:prefLabel": "Unprefixed grant",
        "foaf:fundedBy.vivo:Grant.3.redbox:grantNumber": "GN3",
    }
    assert compose_grant(doc, 1) == "GN99: 12345 NHMRC Fellowship"
    assert build_from_documents([], doc).values("grant_numbers") == (
        "GN99: 12345 NHMRC Fellowship",
        "Unprefixed grant",
        "GN3",
    )
    assert strip_data_source("no source") == "no source"


def test_rights_funders_and_subjects():
    doc = {
        "dc:accessRights.skos:prefLabel": "Open",
        "dc:accessRights.dc:RightsStatement.skos:prefLabel": "",
        "dc:license.skos:prefLabel": "CC BY 3.0 AU",
        "foaf:fundedBy.foaf:Agent.1.skos:prefLabel": "ARC",
        "dc:subject.anzsrc:for.1.skos:prefLabel": "Biology",
        "dc:subject.anzsrc:for.3.skos:prefLabel": "Physics",
        "dc:subject.anzsrc:seo.1.skos:prefLabel": "Environment",
        "dc:subject.vivo:keyword.2.rdf:PlainLiteral": "soil",
    }
    record = build_from_documents([], doc)

    assert record.values("dc_rights") == ("Open", "CC BY 3.0 AU")
    assert record.values("funders") == ("ARC",)
    assert record.values("subjects") == ("Biology", "Physics", "Environment", "soil")


def test_missing_keys_give_empty_values():
    record = build_from_documents([], {})
    assert record.handle == ""
    assert record.scalar("dc_description") == ""
    assert record.values("dc_creators") == ()
    assert record.values("ident_uris") == ()


def test_package_text_tolerates_literal_newlines_and_tabs():
    text = '{\n\t"dc:title": "First line\n  second line",\n\t"dc:language.skos:prefLabel": "English"\n}\n'
    doc = parse_package_text(text)
    assert doc["dc:title"] == "First line second line"
    assert doc["dc:language.skos:prefLabel"] == "English"


def test_package_text_must_be_an_object():
    with pytest.raises(ValueError):
        parse_package_text('["not", "an", "object"]')


def test_empty_paths_are_rejected(tmp_path):
    with pytest.raises(ConfigError):
        build_record("", tmp_path / "abc.tfpackage")
    with pytest.raises(ConfigError):
        build_record(tmp_path / "TF-OBJ-META", None)


def test_escaped_astral_character_survives_to_csv():
    doc = parse_package_text('{"dc:title": "a\\/b \\u00e9 \\ud83d\\ude00", "dc:description": "half \\ud83d"}')

    assert doc["dc:title"] == "a/b é \U0001F600"
    assert doc["dc:description"] == "half \ufffd"
    text = render_bmet_csv([build_from_documents(["handle=http://hdl/0000/1"], doc)])
    assert "\U0001F600" in text
    text.encode("utf-8")
