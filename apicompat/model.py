"""Record types for decoded API metadata snapshots."""

from __future__ import annotations

from dataclasses import dataclass

# (type token, parameter name)
Parameter = tuple[str, str]


@dataclass(frozen=True)
class Function:
    name: str
    since: int
    return_type: str
    parameters: tuple[Parameter, ...] = ()
    method: bool | None = None
    deprecated_since: int | None = None
    can_fail: bool | None = None
    async_: bool | None = None
    fast: bool | None = None
    receives_channel_id: bool | None = None


@dataclass(frozen=True)
class UIEvent:
    name: str
    since: int
    parameters: tuple[Parameter, ...] = ()


@dataclass(frozen=True)
class VersionBlock:
    api_level: int
    api_compatible: int
    api_prerelease: bool
    major: int | None = None
    minor: int | None = None
    patch: int | None = None
    prerelease: bool | None = None
    build: str | None = None

    @property
    def api_stable(self) -> int:
        return self.api_level - 1 if self.api_prerelease else self.api_level


@dataclass(frozen=True)
class Metadata:
    """One API metadata snapshot; member names are unique per kind."""

    functions: tuple[Function, ...] = ()
    ui_events: tuple[UIEvent, ...] = ()
    ui_options: tuple[str, ...] = ()
    version: VersionBlock | None = None

    def function_table(self) -> dict[str, Function]:
        return {function.name: function for function in self.functions}

    def event_table(self) -> dict[str, UIEvent]:
        return {event.name: event for event in self.ui_events}
