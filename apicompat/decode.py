"""Decode msgpack/JSON metadata payloads into validated records."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import msgpack
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from apicompat.errors import SnapshotDecodeError
from apicompat.model import Function, Metadata, Parameter, UIEvent, VersionBlock
from apicompat.schema import metadata_schema

MSGPACK_SUFFIXES = frozenset({".mpack", ".msgpack"})
JSON_SUFFIXES = frozenset({".json"})

_VALIDATORS: dict[tuple[bool, bool], Draft202012Validator] = {}


def _validator(*, legacy: bool, require_version: bool) -> Draft202012Validator:
    key = (legacy, require_version)
    validator = _VALIDATORS.get(key)
    if validator is None:
        schema = metadata_schema(legacy=legacy, require_version=require_version)
        Draft202012Validator.check_schema(schema)
        validator = Draft202012Validator(schema)
        _VALIDATORS[key] = validator
    return validator


def unpack_msgpack(data: bytes, *, source: str) -> object:
    # unhashable map keys (arrays, maps) surface as TypeError
    try:
        return msgpack.unpackb(data, raw=False, strict_map_key=False)
    except (msgpack.UnpackException, ValueError, TypeError) as exc:
        reason = str(exc) or type(exc).__name__
        raise SnapshotDecodeError(f"{source} is not valid msgpack: {reason}") from exc


def parse_json(data: bytes, *, source: str) -> object:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SnapshotDecodeError(f"{source} is not valid UTF-8") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise SnapshotDecodeError(
            f"{source} is not valid JSON (line {exc.lineno} column {exc.colno}: {exc.msg})"
        ) from exc


def read_payload(path: Path, *, source: str | None = None) -> object:
    label = source or path.as_posix()
    suffix = path.suffix.lower()
    if suffix not in MSGPACK_SUFFIXES and suffix not in JSON_SUFFIXES:
        raise SnapshotDecodeError(f"{label} has an unsupported suffix {suffix!r}")
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise SnapshotDecodeError(f"unable to read {label}: {exc}") from exc
    if suffix in MSGPACK_SUFFIXES:
        return unpack_msgpack(data, source=label)
    return parse_json(data, source=label)


def _parameters(raw: list[list[str]]) -> tuple[Parameter, ...]:
    return tuple((ptype, pname) for ptype, pname in raw)


def _check_unique(names: list[str], *, kind: str, source: str) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise SnapshotDecodeError(f"{source}: duplicate {kind} name {name!r}")
        seen.add(name)


def _function(entry: dict[str, Any]) -> Function:
    return Function(
        name=entry["name"],
        # level 0 predates `since`; the store forces it afterwards
        since=entry.get("since", 0),
        return_type=entry["return_type"],
        parameters=_parameters(entry["parameters"]),
        method=entry.get("method"),
        deprecated_since=entry.get("deprecated_since"),
        can_fail=entry.get("can_fail"),
        async_=entry.get("async"),
        fast=entry.get("fast"),
        receives_channel_id=entry.get("receives_channel_id"),
    )


def _version(entry: dict[str, Any]) -> VersionBlock:
    return VersionBlock(
        api_level=entry["api_level"],
        api_compatible=entry["api_compatible"],
        api_prerelease=entry["api_prerelease"],
        major=entry.get("major"),
        minor=entry.get("minor"),
        patch=entry.get("patch"),
        prerelease=entry.get("prerelease"),
        build=entry.get("build"),
    )


def decode_metadata(
    payload: object,
    *,
    source: str,
    legacy: bool = False,
    require_version: bool = False,
) -> Metadata:
    try:
        _validator(legacy=legacy, require_version=require_version).validate(payload)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path) or "<root>"
        raise SnapshotDecodeError(
            f"{source}: schema validation failed at {path}: {exc.message}"
        ) from exc
    if not isinstance(payload, dict):
        raise SnapshotDecodeError(f"{source}: metadata root is not a map")

    raw_functions = payload["functions"]
    raw_events = payload.get("ui_events", [])
    _check_unique([entry["name"] for entry in raw_functions], kind="function", source=source)
    _check_unique([entry["name"] for entry in raw_events], kind="UI event", source=source)

    version = payload.get("version")
    return Metadata(
        functions=tuple(_function(entry) for entry in raw_functions),
        ui_events=tuple(
            UIEvent(
                name=entry["name"],
                since=entry["since"],
                parameters=_parameters(entry["parameters"]),
            )
            for entry in raw_events
        ),
        ui_options=tuple(payload.get("ui_options", [])),
        version=_version(version) if version is not None else None,
    )
