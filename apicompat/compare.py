"""Structural comparators for functions, UI events and UI options."""

from __future__ import annotations

from dataclasses import fields, replace
from typing import Iterable

from apicompat.model import Function, UIEvent
from apicompat.normalize import NAMESPACE_PREFIX, normalize_function
from apicompat.violations import (
    SCOPE_UI_EVENT,
    Violation,
    bad_since_value,
    event_param_mismatch,
    event_param_removed,
    option_missing,
    signature_mismatch,
)

VOID_TYPE = "void"

_FLAG_FIELDS: tuple[tuple[str, str], ...] = (
    ("method", "method"),
    ("can_fail", "can_fail"),
    ("async_", "async"),
    ("fast", "fast"),
    ("receives_channel_id", "receives_channel_id"),
)


def format_signature(function: Function) -> str:
    parameters = ", ".join(ptype for ptype, _ in function.parameters)
    tags = [f"since={function.since}"]
    for attribute, label in _FLAG_FIELDS:
        value = getattr(function, attribute)
        if value is not None:
            tags.append(f"{label}={str(value).lower()}")
    return f"{function.return_type} {function.name}({parameters}) [{', '.join(tags)}]"


def differing_fields(old: Function, new: Function) -> tuple[str, ...]:
    return tuple(
        field.name.rstrip("_")
        for field in fields(Function)
        if getattr(old, field.name) != getattr(new, field.name)
    )


def check_function(
    old: Function,
    new: Function,
    *,
    namespace_prefix: str = NAMESPACE_PREFIX,
) -> Violation | None:
    old_normalized = normalize_function(old, namespace_prefix=namespace_prefix)
    new_normalized = normalize_function(new, namespace_prefix=namespace_prefix)
    # an unconstrained historical return type accepts any refinement
    if old_normalized.return_type == VOID_TYPE:
        old_normalized = replace(old_normalized, return_type=new_normalized.return_type)
    if old_normalized == new_normalized:
        return None
    return signature_mismatch(
        old.name,
        expected=format_signature(old_normalized),
        actual=format_signature(new_normalized),
        fields=differing_fields(old_normalized, new_normalized),
    )


def function_compatible(
    old: Function,
    new: Function,
    *,
    namespace_prefix: str = NAMESPACE_PREFIX,
) -> bool:
    return check_function(old, new, namespace_prefix=namespace_prefix) is None


def check_event(old: UIEvent, new: UIEvent) -> list[Violation]:
    violations: list[Violation] = []
    if old.since != new.since:
        violations.append(
            bad_since_value(
                SCOPE_UI_EVENT,
                old.name,
                f'UI event "{old.name}" changed its `since` value',
                expected=str(old.since),
                actual=str(new.since),
            )
        )
    for index, (ptype, _) in enumerate(old.parameters):
        if index >= len(new.parameters):
            violations.append(
                event_param_removed(
                    old.name,
                    expected_count=len(old.parameters),
                    actual_count=len(new.parameters),
                )
            )
            break
        new_type = new.parameters[index][0]
        if new_type != ptype:
            violations.append(event_param_mismatch(old.name, index, expected=ptype, actual=new_type))
    return violations


def event_compatible(old: UIEvent, new: UIEvent) -> bool:
    return not check_event(old, new)


def check_options(old_options: Iterable[str], new_options: Iterable[str]) -> list[Violation]:
    available = set(new_options)
    return [option_missing(option) for option in old_options if option not in available]


def options_compatible(old_options: Iterable[str], new_options: Iterable[str]) -> bool:
    return not check_options(old_options, new_options)
