"""Fatal conditions that abort a verification run."""

from __future__ import annotations


class HardFailError(RuntimeError):
    """Raised when verification cannot continue safely."""


class SnapshotDecodeError(HardFailError):
    """Raised when a payload is not valid msgpack/JSON or fails the record schema."""


class LiveMetadataError(HardFailError):
    """Raised when the live metadata source cannot be read or decoded."""


class InvalidVersionBlock(HardFailError):
    """Raised when the live version block is missing or inconsistent."""


class MissingSnapshot(HardFailError):
    def __init__(self, level: int, reason: str | None = None, hint: str | None = None) -> None:
        self.level = level
        self.reason = reason
        self.hint = hint
        message = f"missing metadata fixture for stable level {level}"
        if reason:
            message += f" ({reason})"
        if hint:
            message += f". {hint}"
        super().__init__(message)
