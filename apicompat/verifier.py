"""Cross-level compatibility policy for API metadata.

A run fetches the live metadata, derives the level window from its version
block, loads one archived snapshot per level in ``[compatible, stable]`` and
checks functions, UI events and UI options against the history. A missing
snapshot aborts the run; every other finding is recorded and the traversal
continues.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

from apicompat.compare import check_event, check_function, check_options
from apicompat.errors import InvalidVersionBlock, MissingSnapshot
from apicompat.model import Metadata, VersionBlock
from apicompat.normalize import NAMESPACE_PREFIX
from apicompat.snapshot import SnapshotStore
from apicompat.violations import (
    SCOPE_FUNCTION,
    SCOPE_LABELS,
    SCOPE_UI_EVENT,
    Violation,
    ViolationLedger,
    bad_since_value,
    invalid_name,
    member_removed,
)

PHASE_FUNCTIONS = "functions"
PHASE_UI_EVENTS = "ui_events"
PHASE_UI_OPTIONS = "ui_options"

BUMP_HINT = "bump the current API level and mark it as prerelease"
MISSING_FIXTURE_HINT = (
    "If the current API level was bumped, don't forget to mark it as prerelease."
)


class MetadataSource(Protocol):
    def describe(self) -> str: ...

    def fetch(self) -> Metadata: ...


@dataclass(frozen=True)
class VerifierConfig:
    namespace_prefix: str = NAMESPACE_PREFIX
    events_since_level: int = 3
    options_since_level: int = 4
    fail_fast: bool = False


@dataclass(frozen=True)
class LevelWindow:
    compatible: int
    stable: int
    current: int
    prerelease: bool

    @classmethod
    def from_version(cls, version: VersionBlock) -> LevelWindow:
        if version.api_compatible > version.api_level:
            raise InvalidVersionBlock(
                f"api_compatible ({version.api_compatible}) is greater than "
                f"api_level ({version.api_level})"
            )
        stable = version.api_stable
        if version.api_compatible > stable:
            raise InvalidVersionBlock(
                f"api_compatible ({version.api_compatible}) is greater than the stable "
                f"level ({stable}); a prerelease level cannot be the oldest compatible level"
            )
        return cls(
            compatible=version.api_compatible,
            stable=stable,
            current=version.api_level,
            prerelease=version.api_prerelease,
        )

    def levels(self) -> range:
        return range(self.compatible, self.stable + 1)

    def levels_from(self, first: int) -> range:
        return range(max(first, self.compatible), self.stable + 1)

    @property
    def next_level(self) -> int:
        return self.stable + 1


@dataclass(frozen=True)
class VerificationReport:
    window: LevelWindow
    levels_checked: tuple[int, ...]
    phases: tuple[str, ...]
    violations: tuple[Violation, ...]

    @property
    def ok(self) -> bool:
        return not self.violations

    def to_record(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "api_compatible": self.window.compatible,
            "api_stable": self.window.stable,
            "api_level": self.window.current,
            "api_prerelease": self.window.prerelease,
            "levels_checked": list(self.levels_checked),
            "phases": list(self.phases),
            "violations": [violation.to_record() for violation in self.violations],
        }


_Phase = Callable[[LevelWindow, Mapping[int, Metadata], Metadata, ViolationLedger], None]


class Verifier:
    def __init__(self, store: SnapshotStore, config: VerifierConfig | None = None) -> None:
        self.store = store
        self.config = config or VerifierConfig()

    def run(self, source: MetadataSource) -> VerificationReport:
        return self.verify(source.fetch())

    def verify(self, live: Metadata) -> VerificationReport:
        if live.version is None:
            raise InvalidVersionBlock("live metadata has no version block")
        window = LevelWindow.from_version(live.version)
        history = self._load_history(window)

        phases: list[tuple[str, _Phase]] = [
            (PHASE_FUNCTIONS, self._check_functions),
            (PHASE_UI_EVENTS, self._check_events),
            (PHASE_UI_OPTIONS, self._check_options),
        ]
        ledger = ViolationLedger()
        phases_run: list[str] = []
        for name, phase in phases:
            phase(window, history, live, ledger)
            phases_run.append(name)
            if self.config.fail_fast and len(ledger):
                break

        return VerificationReport(
            window=window,
            levels_checked=tuple(history.keys()),
            phases=tuple(phases_run),
            violations=ledger.as_tuple(),
        )

    def _load_history(self, window: LevelWindow) -> Mapping[int, Metadata]:
        try:
            return self.store.load_window(window.levels())
        except MissingSnapshot as exc:
            if exc.level == window.current and not window.prerelease and exc.hint is None:
                raise MissingSnapshot(exc.level, reason=exc.reason, hint=MISSING_FIXTURE_HINT) from exc
            raise

    def _check_functions(
        self,
        window: LevelWindow,
        history: Mapping[int, Metadata],
        live: Metadata,
        ledger: ViolationLedger,
    ) -> None:
        prefix = self.config.namespace_prefix
        live_functions = live.function_table()
        for level in window.levels():
            for old in history[level].functions:
                new = live_functions.get(old.name)
                if new is None:
                    if old.since >= window.compatible:
                        ledger.add(member_removed(SCOPE_FUNCTION, old.name, since=old.since).at_level(level))
                    continue
                violation = check_function(old, new, namespace_prefix=prefix)
                if violation is not None:
                    ledger.add(violation.at_level(level))

        tables = {level: history[level].function_table() for level in window.levels()}
        for function in live.functions:
            if self._introduced_too_low(function.name, function.since, window, tables):
                if function.name.startswith(prefix):
                    ledger.add(self._since_too_low(SCOPE_FUNCTION, function.name, function.since, window))
                else:
                    ledger.add(invalid_name(function.name, prefix=prefix).at_level(function.since))
            elif function.since > window.current:
                ledger.add(self._since_above_current(SCOPE_FUNCTION, function.name, function.since, window))

    def _check_events(
        self,
        window: LevelWindow,
        history: Mapping[int, Metadata],
        live: Metadata,
        ledger: ViolationLedger,
    ) -> None:
        live_events = live.event_table()
        versioned_levels = window.levels_from(self.config.events_since_level)
        for level in versioned_levels:
            for old in history[level].ui_events:
                new = live_events.get(old.name)
                if new is not None:
                    ledger.extend(check_event(old, new), level=level)

        # levels before events were versioned have no events to match
        tables = {
            level: history[level].event_table() if level in versioned_levels else {}
            for level in window.levels()
        }
        for event in live.ui_events:
            if self._introduced_too_low(event.name, event.since, window, tables):
                ledger.add(self._since_too_low(SCOPE_UI_EVENT, event.name, event.since, window))
            elif event.since > window.current:
                ledger.add(self._since_above_current(SCOPE_UI_EVENT, event.name, event.since, window))

    def _check_options(
        self,
        window: LevelWindow,
        history: Mapping[int, Metadata],
        live: Metadata,
        ledger: ViolationLedger,
    ) -> None:
        for level in window.levels_from(self.config.options_since_level):
            ledger.extend(check_options(history[level].ui_options, live.ui_options), level=level)

    @staticmethod
    def _introduced_too_low(
        name: str,
        since: int,
        window: LevelWindow,
        tables: Mapping[int, Mapping[str, object]],
    ) -> bool:
        if since > window.stable:
            return False
        table = tables.get(since)
        # below the compatibility window there is no snapshot to check against
        if table is None:
            return False
        return name not in table

    @staticmethod
    def _since_too_low(scope: str, name: str, since: int, window: LevelWindow) -> Violation:
        label = SCOPE_LABELS[scope]
        noun = "functions" if scope == SCOPE_FUNCTION else "events"
        reason = (
            f'{label} "{name}" has too low `since` value; '
            f"for new {noun} set it to {window.next_level}"
        )
        if not window.prerelease:
            reason += f"; also {BUMP_HINT}"
        return bad_since_value(
            scope,
            name,
            reason,
            expected=str(window.next_level),
            actual=str(since),
        ).at_level(since)

    @staticmethod
    def _since_above_current(scope: str, name: str, since: int, window: LevelWindow) -> Violation:
        label = SCOPE_LABELS[scope]
        if window.prerelease:
            reason = f'new {label} "{name}" should use since value {window.current}'
            expected = str(window.current)
        else:
            reason = f'{label} "{name}" has since value > api_level; {BUMP_HINT}'
            expected = f"<= {window.current}"
        return bad_since_value(scope, name, reason, expected=expected, actual=str(since)).at_level(since)
