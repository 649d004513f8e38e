"""Archived per-level metadata fixtures."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from apicompat.decode import decode_metadata, read_payload
from apicompat.errors import MissingSnapshot, SnapshotDecodeError
from apicompat.model import Metadata

DEFAULT_SUFFIXES: tuple[str, ...] = (".mpack", ".json")
LEGACY_LEVEL = 0


def fixture_stem(level: int) -> str:
    return f"api_level_{level}"


def clean_level_0(metadata: Metadata) -> Metadata:
    """Level 0 predates `since` tagging and the filtering of dispatch-only keys."""
    functions = tuple(
        replace(
            function,
            can_fail=None,
            # renamed to `fast` in later levels
            async_=None,
            receives_channel_id=None,
            since=0,
        )
        for function in metadata.functions
    )
    return replace(metadata, functions=functions)


class SnapshotStore:
    def __init__(self, root: Path, *, suffixes: Sequence[str] = DEFAULT_SUFFIXES) -> None:
        self.root = root
        self.suffixes = tuple(suffixes)

    def locate(self, level: int) -> Path | None:
        for suffix in self.suffixes:
            candidate = self.root / f"{fixture_stem(level)}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    def load(self, level: int) -> Metadata:
        path = self.locate(level)
        if path is None:
            raise MissingSnapshot(level)
        legacy = level == LEGACY_LEVEL
        try:
            payload = read_payload(path)
            metadata = decode_metadata(payload, source=path.name, legacy=legacy)
        except SnapshotDecodeError as exc:
            raise MissingSnapshot(level, reason=str(exc)) from exc
        if legacy:
            metadata = clean_level_0(metadata)
        return metadata

    def load_window(self, levels: Iterable[int]) -> Mapping[int, Metadata]:
        snapshots = {level: self.load(level) for level in levels}
        return MappingProxyType(snapshots)
