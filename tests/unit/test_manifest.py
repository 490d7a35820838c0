"""Unit tests for YAML/JSON dependency manifests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tool2agent.engine.graph import CycleError, DanglingReferenceError
from tool2agent.manifest import ManifestError, load_manifest, read_document, spec_from_manifest

_BOOKING_YAML = """\
schema_version: 1
name: book_flight
description: Book seats on a scheduled flight
fields:
  - name: passengers
    requires: [departure, arrival, date]
  - name: date
    requires: [departure, arrival]
  - name: arrival
    requires: [departure]
    influenced_by: [date]
  - name: departure
"""


def test_yaml_manifest_builds_a_spec(tmp_path: Path) -> None:
    path = tmp_path / "booking.yaml"
    path.write_text(_BOOKING_YAML, encoding="utf-8")

    spec = load_manifest(path)

    assert spec.name == "book_flight"
    assert spec.order == ("departure", "arrival", "date", "passengers")
    assert spec.get_field("arrival").influenced_by == ("date",)


def test_json_manifest_is_parsed_as_json(tmp_path: Path) -> None:
    path = tmp_path / "tool.json"
    path.write_text(
        json.dumps({"fields": [{"name": "b", "requires": ["a"]}, {"name": "a"}]}),
        encoding="utf-8",
    )

    spec = load_manifest(path)

    assert spec.name == "manifest"
    assert spec.order == ("a", "b")


def test_cycles_and_dangling_references_raise_spec_errors() -> None:
    with pytest.raises(CycleError):
        spec_from_manifest(
            {"fields": [{"name": "A", "requires": ["B"]}, {"name": "B", "requires": ["A"]}]}
        )
    with pytest.raises(DanglingReferenceError):
        spec_from_manifest({"fields": [{"name": "A", "influenced_by": ["ghost"]}]})


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        (["not", "an", "object"], "manifest root must be an object"),
        ({"fields": [], "owner": "x"}, "unknown manifest key(s): owner"),
        ({"schema_version": 9, "fields": []}, "unsupported manifest schema_version 9"),
        ({"fields": "a, b"}, "manifest 'fields' must be a list"),
        ({"fields": [{"name": ""}]}, "fields[0].name must be a non-empty string"),
        ({"fields": [{"name": "a", "validate": "x"}]}, "fields[0] has unknown key(s): validate"),
        ({"fields": [{"name": "a", "requires": "b"}]}, "fields[0].requires must be a list"),
        ({"fields": [{"name": "a", "influenced_by": ["a"]}]}, "fields[0]: field 'a'"),
    ],
)
def test_malformed_manifests_raise_manifest_error(payload: object, message: str) -> None:
    with pytest.raises(ManifestError) as exc_info:
        spec_from_manifest(payload)

    assert message in str(exc_info.value)


def test_read_document_reports_unreadable_files(tmp_path: Path) -> None:
    with pytest.raises(ManifestError, match="unable to read"):
        read_document(tmp_path / "missing.yaml")

    broken = tmp_path / "broken.yaml"
    broken.write_text("fields: [unclosed", encoding="utf-8")
    with pytest.raises(ManifestError, match="unable to parse"):
        read_document(broken)
