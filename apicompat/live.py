"""Sources for the metadata reported by the running API."""

from __future__ import annotations

import shlex
import subprocess
from pathlib import Path
from typing import Sequence

from apicompat.decode import decode_metadata, read_payload, unpack_msgpack
from apicompat.errors import LiveMetadataError, SnapshotDecodeError
from apicompat.model import Metadata

DEFAULT_LIVE_COMMAND: tuple[str, ...] = ("nvim", "--api-info")


class FileMetadataSource:
    """Live metadata previously dumped to a msgpack or JSON file."""

    def __init__(self, path: Path, *, label: str | None = None) -> None:
        self.path = path
        self.label = label

    def describe(self) -> str:
        return self.label or self.path.as_posix()

    def fetch(self) -> Metadata:
        if not self.path.is_file():
            raise LiveMetadataError(f"live metadata file does not exist: {self.path.as_posix()}")
        try:
            payload = read_payload(self.path, source="live metadata")
            return decode_metadata(payload, source="live metadata", require_version=True)
        except SnapshotDecodeError as exc:
            raise LiveMetadataError(str(exc)) from exc


class CommandMetadataSource:
    """Runs a program that writes its API metadata to stdout as msgpack."""

    def __init__(self, argv: Sequence[str] = DEFAULT_LIVE_COMMAND) -> None:
        if not argv:
            raise ValueError("live metadata command must not be empty")
        self.argv = tuple(argv)

    def describe(self) -> str:
        return shlex.join(self.argv)

    def fetch(self) -> Metadata:
        try:
            proc = subprocess.run(
                list(self.argv),
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            raise LiveMetadataError(f"unable to run {self.describe()}: {exc}") from exc
        if proc.returncode != 0:
            detail = proc.stderr.decode("utf-8", errors="replace").strip() or "unknown error"
            detail = " ".join(detail.split())
            raise LiveMetadataError(
                f"{self.describe()} failed (exit {proc.returncode}): {detail}"
            )
        try:
            payload = unpack_msgpack(proc.stdout, source="live metadata")
            return decode_metadata(payload, source="live metadata", require_version=True)
        except SnapshotDecodeError as exc:
            raise LiveMetadataError(str(exc)) from exc
