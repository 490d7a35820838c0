"""
tool2agent — dependency manifests.

Purpose
- Describe a tool's fields and their ``requires`` / ``influenced_by`` lists in
  YAML or JSON, without validators, so the dependency structure can be linted
  (dangling references, cycles, evaluation order) before any code is written.

Manifest shape::

    schema_version: 1
    name: book_flight
    description: Book seats on a scheduled flight
    fields:
      - name: departure
      - name: arrival
        requires: [departure]
        influenced_by: [date]
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml

from tool2agent.constants import MANIFEST_SCHEMA_VERSION
from tool2agent.engine.context import FieldContext
from tool2agent.engine.spec import FieldSpec, ToolSpec, build_spec
from tool2agent.protocol.feedback import FieldOutcome

_FIELD_KEYS = frozenset({"name", "requires", "influenced_by", "description"})
_ROOT_KEYS = frozenset({"schema_version", "name", "description", "fields"})


class ManifestError(ValueError):
    """Raised when a manifest cannot be read or is structurally malformed."""


def read_document(path: str | Path) -> Any:
    """Parse a ``.json`` file with ``json`` and anything else as YAML."""

    resolved = Path(path).expanduser()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"unable to read {resolved}: {exc}") from exc

    try:
        if resolved.suffix.lower() == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ManifestError(f"unable to parse {resolved}: {exc}") from exc


def load_manifest(path: str | Path) -> ToolSpec:
    """Read a manifest file and build its ``ToolSpec`` (raises ``SpecError``)."""

    return spec_from_manifest(read_document(path))


def spec_from_manifest(payload: object) -> ToolSpec:
    if not isinstance(payload, Mapping):
        raise ManifestError("manifest root must be an object")

    unknown = sorted(str(key) for key in payload if key not in _ROOT_KEYS)
    if unknown:
        raise ManifestError(f"unknown manifest key(s): {', '.join(unknown)}")

    version = payload.get("schema_version", MANIFEST_SCHEMA_VERSION)
    if version != MANIFEST_SCHEMA_VERSION:
        raise ManifestError(
            f"unsupported manifest schema_version {version!r}; expected {MANIFEST_SCHEMA_VERSION}"
        )

    raw_fields = payload.get("fields")
    if not isinstance(raw_fields, Sequence) or isinstance(raw_fields, (str, bytes)):
        raise ManifestError("manifest 'fields' must be a list")

    fields = [_field_from_entry(entry, index) for index, entry in enumerate(raw_fields)]
    return build_spec(
        fields,
        name=_optional_text(payload, "name", default="manifest"),
        description=_optional_text(payload, "description", default=""),
    )


def _field_from_entry(entry: object, index: int) -> FieldSpec:
    path = f"fields[{index}]"
    if not isinstance(entry, Mapping):
        raise ManifestError(f"{path} must be an object")
    unknown = sorted(str(key) for key in entry if key not in _FIELD_KEYS)
    if unknown:
        raise ManifestError(f"{path} has unknown key(s): {', '.join(unknown)}")

    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(f"{path}.name must be a non-empty string")

    try:
        return FieldSpec(
            name=name,
            validate=_accept_any,
            requires=_name_list(entry, "requires", path),
            influenced_by=_name_list(entry, "influenced_by", path),
            description=_optional_text(entry, "description", default=""),
        )
    except (TypeError, ValueError) as exc:
        raise ManifestError(f"{path}: {exc}") from exc


def _name_list(entry: Mapping[str, object], key: str, path: str) -> tuple[str, ...]:
    raw = entry.get(key, [])
    if raw is None:
        return ()
    if isinstance(raw, str) or not isinstance(raw, Sequence):
        raise ManifestError(f"{path}.{key} must be a list of field names")
    if not all(isinstance(item, str) for item in raw):
        raise ManifestError(f"{path}.{key} must contain only strings")
    return tuple(raw)


def _optional_text(payload: Mapping[str, object], key: str, *, default: str) -> str:
    raw = payload.get(key, default)
    if not isinstance(raw, str):
        raise ManifestError(f"manifest {key!r} must be a string")
    return raw


def _accept_any(value: object, context: FieldContext) -> FieldOutcome:
    # Manifests carry structure only.
    return FieldOutcome.accept(value)


__all__ = [
    "ManifestError",
    "load_manifest",
    "read_document",
    "spec_from_manifest",
]
