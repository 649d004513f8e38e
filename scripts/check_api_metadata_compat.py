#!/usr/bin/env python3
"""Verify that live API metadata stays backward-compatible with archived API levels."""

from __future__ import annotations

import argparse
import json
import shlex
import sys
from pathlib import Path
from typing import Sequence

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from apicompat.errors import HardFailError
from apicompat.live import DEFAULT_LIVE_COMMAND, CommandMetadataSource, FileMetadataSource
from apicompat.normalize import NAMESPACE_PREFIX
from apicompat.snapshot import SnapshotStore
from apicompat.verifier import MetadataSource, VerificationReport, Verifier, VerifierConfig

MODE = "api-metadata-compat-v1"
PREFIX = "api-metadata-compat"
DEFAULT_FIXTURES_PATH = Path("fixtures") / "api_metadata"


def display_path(path: Path) -> str:
    resolved = path.resolve()
    try:
        return resolved.relative_to(ROOT).as_posix()
    except ValueError:
        return resolved.as_posix()


def resolve_input_path(raw_path: Path) -> Path:
    if raw_path.is_absolute():
        return raw_path
    return ROOT / raw_path


def shell_quote(token: str) -> str:
    if any(character.isspace() for character in token):
        return f'"{token}"'
    return token


def render_command(tokens: list[str]) -> str:
    return " ".join(shell_quote(token) for token in tokens)


def build_rerun_command(args: argparse.Namespace) -> str:
    tokens = [
        "python",
        "scripts/check_api_metadata_compat.py",
        "--fixtures",
        display_path(resolve_input_path(args.fixtures)),
    ]
    if args.live is not None:
        tokens.extend(["--live", display_path(resolve_input_path(args.live))])
    elif args.live_command is not None:
        tokens.extend(["--live-command", args.live_command])
    if args.namespace_prefix != NAMESPACE_PREFIX:
        tokens.extend(["--namespace-prefix", args.namespace_prefix])
    if args.events_since_level != VerifierConfig.events_since_level:
        tokens.extend(["--events-since-level", str(args.events_since_level)])
    if args.options_since_level != VerifierConfig.options_since_level:
        tokens.extend(["--options-since-level", str(args.options_since_level)])
    if args.fail_fast:
        tokens.append("--fail-fast")
    return render_command(tokens)


def format_levels(levels: tuple[int, ...]) -> str:
    return ",".join(str(level) for level in levels) or "-"


def render_violation_report(report: VerificationReport, *, rerun_command: str) -> str:
    lines = [
        f"{PREFIX}: compatibility violations detected ({len(report.violations)} violation(s)).",
        "violations:",
    ]
    for violation in report.violations:
        lines.append(
            f"- {violation.scope}[{violation.subject}]:{violation.kind} "
            f"(levels {format_levels(violation.levels)})"
        )
        lines.append(f"  {violation.detail}")
        if violation.expected or violation.actual:
            lines.append(f"  expected: {violation.expected}")
            lines.append(f"  actual: {violation.actual}")
    lines.extend(
        [
            "remediation:",
            "1. Restore the removed or changed members, or correct their `since` values "
            "and the API version block.",
            "2. Re-run validator:",
            rerun_command,
        ]
    )
    return "\n".join(lines)


def render_success_report(
    report: VerificationReport,
    *,
    fixtures_path: Path,
    source: MetadataSource,
) -> str:
    window = report.window
    lines = [
        f"{PREFIX}: OK",
        f"- mode={MODE}",
        f"- fixtures={display_path(fixtures_path)}",
        f"- live={source.describe()}",
        f"- api_level={window.current}",
        f"- api_compatible={window.compatible}",
        f"- api_stable={window.stable}",
        f"- api_prerelease={str(window.prerelease).lower()}",
        f"- levels_checked={len(report.levels_checked)}",
        "- fail_closed=true",
    ]
    return "\n".join(lines)


def write_summary(path: Path, report: VerificationReport, *, source: MetadataSource) -> None:
    payload = {"mode": MODE, "live": source.describe(), **report.to_record()}
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def build_source(args: argparse.Namespace) -> MetadataSource:
    if args.live is not None:
        live_path = resolve_input_path(args.live)
        return FileMetadataSource(live_path, label=display_path(live_path))
    if args.live_command is not None:
        argv = shlex.split(args.live_command)
        if not argv:
            raise HardFailError("--live-command must not be empty")
        return CommandMetadataSource(argv)
    return CommandMetadataSource(DEFAULT_LIVE_COMMAND)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="check_api_metadata_compat.py",
        description=(
            "Fail-closed validator that compares the live API metadata against archived "
            "api_level_<N> fixtures for every level the API claims compatibility with."
        ),
    )
    parser.add_argument(
        "--fixtures",
        type=Path,
        default=DEFAULT_FIXTURES_PATH,
        help="Directory holding api_level_<N>.mpack / api_level_<N>.json fixtures.",
    )
    live = parser.add_mutually_exclusive_group()
    live.add_argument(
        "--live",
        type=Path,
        default=None,
        help="Path to a msgpack or JSON dump of the live API metadata.",
    )
    live.add_argument(
        "--live-command",
        default=None,
        help=(
            "Command that prints the live API metadata as msgpack on stdout "
            f"(default: {shlex.join(DEFAULT_LIVE_COMMAND)})."
        ),
    )
    parser.add_argument(
        "--namespace-prefix",
        default=NAMESPACE_PREFIX,
        help=f"Reserved function name prefix (default: {NAMESPACE_PREFIX}).",
    )
    parser.add_argument(
        "--events-since-level",
        type=int,
        default=VerifierConfig.events_since_level,
        help="First API level whose UI events are versioned.",
    )
    parser.add_argument(
        "--options-since-level",
        type=int,
        default=VerifierConfig.options_since_level,
        help="First API level whose UI options are versioned.",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop after the first check phase that records violations.",
    )
    parser.add_argument(
        "--summary-out",
        type=Path,
        default=None,
        help="Optional path for a JSON summary of the run.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    fixtures_path = resolve_input_path(args.fixtures)
    config = VerifierConfig(
        namespace_prefix=args.namespace_prefix,
        events_since_level=args.events_since_level,
        options_since_level=args.options_since_level,
        fail_fast=args.fail_fast,
    )

    try:
        source = build_source(args)
        report = Verifier(SnapshotStore(fixtures_path), config).run(source)
    except HardFailError as exc:
        print(f"{PREFIX}: error: {exc}", file=sys.stderr)
        return 2

    if args.summary_out is not None:
        write_summary(resolve_input_path(args.summary_out), report, source=source)

    if not report.ok:
        print(
            render_violation_report(report, rerun_command=build_rerun_command(args)),
            file=sys.stderr,
        )
        return 1

    print(render_success_report(report, fixtures_path=fixtures_path, source=source))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
