"""JSON Schema (draft 2020-12) for decoded API metadata payloads."""

from __future__ import annotations

from typing import Any

UI_EVENT_KEYS: tuple[str, ...] = ("name", "since", "parameters")

_NON_NEGATIVE_INT: dict[str, Any] = {"type": "integer", "minimum": 0}

_PARAMETER: dict[str, Any] = {
    "type": "array",
    "prefixItems": [{"type": "string"}, {"type": "string"}],
    "minItems": 2,
    "maxItems": 2,
}

_VERSION: dict[str, Any] = {
    "type": "object",
    "required": ["api_level", "api_compatible", "api_prerelease"],
    "properties": {
        "api_level": _NON_NEGATIVE_INT,
        "api_compatible": _NON_NEGATIVE_INT,
        "api_prerelease": {"type": "boolean"},
        "major": _NON_NEGATIVE_INT,
        "minor": _NON_NEGATIVE_INT,
        "patch": _NON_NEGATIVE_INT,
        "prerelease": {"type": "boolean"},
        "build": {"type": ["string", "null"]},
    },
}


def metadata_schema(*, legacy: bool = False, require_version: bool = False) -> dict[str, Any]:
    """Build the payload schema.

    ``legacy`` describes snapshots that predate version tagging: functions may
    omit ``since`` and carry the unfiltered dispatch flags.
    """
    function_required = ["name", "return_type", "parameters"]
    if not legacy:
        function_required.insert(1, "since")

    function_properties: dict[str, Any] = {
        "name": {"type": "string", "minLength": 1},
        "since": _NON_NEGATIVE_INT,
        "deprecated_since": _NON_NEGATIVE_INT,
        "return_type": {"type": "string", "minLength": 1},
        "parameters": {"type": "array", "items": _PARAMETER},
        "method": {"type": "boolean"},
        "can_fail": {"type": "boolean"},
        "async": {"type": "boolean"},
        "fast": {"type": "boolean"},
        "receives_channel_id": {"type": "boolean"},
    }

    root_required = ["functions"]
    if require_version:
        root_required.append("version")

    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "required": root_required,
        "properties": {
            "version": _VERSION,
            "functions": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": function_required,
                    "properties": function_properties,
                    "additionalProperties": False,
                },
            },
            "ui_events": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": list(UI_EVENT_KEYS),
                    "properties": {
                        "name": {"type": "string", "minLength": 1},
                        "since": _NON_NEGATIVE_INT,
                        "parameters": {"type": "array", "items": _PARAMETER},
                    },
                    "additionalProperties": False,
                },
            },
            "ui_options": {"type": "array", "items": {"type": "string"}},
        },
    }
