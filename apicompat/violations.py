"""Recorded (non-fatal) compatibility violations."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterator

KIND_SIGNATURE_MISMATCH = "signature-mismatch"
KIND_MEMBER_REMOVED = "member-removed"
KIND_EVENT_PARAM_MISMATCH = "event-param-mismatch"
KIND_EVENT_PARAM_REMOVED = "event-param-removed"
KIND_OPTION_MISSING = "option-missing"
KIND_BAD_SINCE_VALUE = "bad-since-value"
KIND_INVALID_NAME = "invalid-name"

SCOPE_FUNCTION = "function"
SCOPE_UI_EVENT = "ui_event"
SCOPE_UI_OPTION = "ui_option"

SCOPE_LABELS = {
    SCOPE_FUNCTION: "function",
    SCOPE_UI_EVENT: "UI event",
    SCOPE_UI_OPTION: "UI option",
}


@dataclass(frozen=True)
class Violation:
    kind: str
    scope: str
    subject: str
    detail: str
    expected: str = ""
    actual: str = ""
    levels: tuple[int, ...] = ()

    def at_level(self, *levels: int) -> Violation:
        merged = list(self.levels)
        for level in levels:
            if level not in merged:
                merged.append(level)
        return replace(self, levels=tuple(sorted(merged)))

    def identity(self) -> tuple[str, str, str, str, str, str]:
        return (self.scope, self.subject, self.kind, self.detail, self.expected, self.actual)

    def to_record(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "scope": self.scope,
            "subject": self.subject,
            "levels": list(self.levels),
            "expected": self.expected,
            "actual": self.actual,
            "detail": self.detail,
        }


class ViolationLedger:
    """Ordered violation collection; repeated findings merge their levels."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str, str, str, str, str], Violation] = {}

    def add(self, violation: Violation) -> None:
        key = violation.identity()
        existing = self._entries.get(key)
        if existing is None:
            self._entries[key] = violation
        else:
            self._entries[key] = existing.at_level(*violation.levels)

    def extend(self, violations: list[Violation], *, level: int | None = None) -> None:
        for violation in violations:
            self.add(violation if level is None else violation.at_level(level))

    def __iter__(self) -> Iterator[Violation]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def as_tuple(self) -> tuple[Violation, ...]:
        return tuple(self)


def signature_mismatch(name: str, *, expected: str, actual: str, fields: tuple[str, ...]) -> Violation:
    return Violation(
        kind=KIND_SIGNATURE_MISMATCH,
        scope=SCOPE_FUNCTION,
        subject=name,
        detail=f'function "{name}" changed incompatibly ({", ".join(fields)})',
        expected=expected,
        actual=actual,
    )


def member_removed(scope: str, name: str, *, since: int) -> Violation:
    return Violation(
        kind=KIND_MEMBER_REMOVED,
        scope=scope,
        subject=name,
        detail=(
            f'{SCOPE_LABELS[scope]} "{name}" was removed but exists in level {since} '
            "which the API claims to be compatible with"
        ),
        expected="present",
        actual="missing",
    )


def event_param_mismatch(name: str, index: int, *, expected: str, actual: str) -> Violation:
    return Violation(
        kind=KIND_EVENT_PARAM_MISMATCH,
        scope=SCOPE_UI_EVENT,
        subject=name,
        detail=f'UI event "{name}" changed the type of parameter {index}',
        expected=expected,
        actual=actual,
    )


def event_param_removed(name: str, *, expected_count: int, actual_count: int) -> Violation:
    return Violation(
        kind=KIND_EVENT_PARAM_REMOVED,
        scope=SCOPE_UI_EVENT,
        subject=name,
        detail=f'UI event "{name}" dropped existing parameters',
        expected=f"at least {expected_count} parameter(s)",
        actual=f"{actual_count} parameter(s)",
    )


def option_missing(option: str) -> Violation:
    return Violation(
        kind=KIND_OPTION_MISSING,
        scope=SCOPE_UI_OPTION,
        subject=option,
        detail=f"UI option {option} from stable metadata is missing",
        expected="present",
        actual="missing",
    )


def bad_since_value(scope: str, name: str, reason: str, *, expected: str, actual: str) -> Violation:
    return Violation(
        kind=KIND_BAD_SINCE_VALUE,
        scope=scope,
        subject=name,
        detail=reason,
        expected=expected,
        actual=actual,
    )


def invalid_name(name: str, *, prefix: str) -> Violation:
    return Violation(
        kind=KIND_INVALID_NAME,
        scope=SCOPE_FUNCTION,
        subject=name,
        detail=f"function name '{name}' doesn't begin with '{prefix}'",
        expected=f"{prefix}*",
        actual=name,
    )
