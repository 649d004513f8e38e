from __future__ import annotations

import importlib.util
import io
import json
import sys
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "check_api_metadata_compat.py"
SPEC = importlib.util.spec_from_file_location("check_api_metadata_compat", SCRIPT_PATH)
if SPEC is None or SPEC.loader is None:
    raise RuntimeError("Unable to load scripts/check_api_metadata_compat.py")
module = importlib.util.module_from_spec(SPEC)
sys.modules[SPEC.name] = module
SPEC.loader.exec_module(module)

FIXTURE_ROOT = Path(__file__).resolve().parent / "fixtures" / "api_metadata_compat"
HAPPY_ROOT = FIXTURE_ROOT / "happy"
DRIFT_LIVE_PATH = FIXTURE_ROOT / "drift" / "live.json"
MISSING_LEVEL_ROOT = FIXTURE_ROOT / "missing_level"

DRIFT_VIOLATIONS = (
    "- function[nvim_buf_get_lines]:signature-mismatch (levels 3,4)\n"
    '  function "nvim_buf_get_lines" changed incompatibly (parameters)\n'
    "  expected: Array nvim_buf_get_lines(Buffer, Integer, Integer, Boolean) [since=1, method=true]\n"
    "  actual: Array nvim_buf_get_lines(Buffer, Integer, Integer) [since=1, method=true]\n"
    "- function[nvim_list_uis]:member-removed (levels 4)\n"
    '  function "nvim_list_uis" was removed but exists in level 4 which the API claims to be '
    "compatible with\n"
    "  expected: present\n"
    "  actual: missing\n"
    "- function[nvim_late]:bad-since-value (levels 4)\n"
    '  function "nvim_late" has too low `since` value; for new functions set it to 5\n'
    "  expected: 5\n"
    "  actual: 4\n"
    "- function[legacy_helper]:invalid-name (levels 4)\n"
    "  function name 'legacy_helper' doesn't begin with 'nvim_'\n"
    "  expected: nvim_*\n"
    "  actual: legacy_helper\n"
    "- function[nvim_future]:bad-since-value (levels 6)\n"
    '  new function "nvim_future" should use since value 5\n'
    "  expected: 5\n"
    "  actual: 6\n"
)


def run_main(args: list[str]) -> tuple[int, str, str]:
    stdout = io.StringIO()
    stderr = io.StringIO()
    with redirect_stdout(stdout), redirect_stderr(stderr):
        code = module.main(args)
    return code, stdout.getvalue(), stderr.getvalue()


def test_happy_path_is_deterministic() -> None:
    args = ["--fixtures", str(HAPPY_ROOT), "--live", str(HAPPY_ROOT / "live.json")]
    first_code, first_stdout, first_stderr = run_main(args)
    second_code, second_stdout, second_stderr = run_main(args)

    assert first_code == 0
    assert second_code == 0
    assert first_stderr == second_stderr == ""
    assert first_stdout == second_stdout == (
        "api-metadata-compat: OK\n"
        "- mode=api-metadata-compat-v1\n"
        "- fixtures=tests/tooling/fixtures/api_metadata_compat/happy\n"
        "- live=tests/tooling/fixtures/api_metadata_compat/happy/live.json\n"
        "- api_level=5\n"
        "- api_compatible=3\n"
        "- api_stable=4\n"
        "- api_prerelease=true\n"
        "- levels_checked=2\n"
        "- fail_closed=true\n"
    )


def test_drift_path_reports_every_violation_in_discovery_order() -> None:
    code, stdout, stderr = run_main(
        ["--fixtures", str(HAPPY_ROOT), "--live", str(DRIFT_LIVE_PATH)]
    )

    assert code == 1
    assert stdout == ""
    assert stderr == (
        "api-metadata-compat: compatibility violations detected (8 violation(s)).\n"
        "violations:\n"
        + DRIFT_VIOLATIONS
        + "- ui_event[resize]:event-param-mismatch (levels 3,4)\n"
        '  UI event "resize" changed the type of parameter 1\n'
        "  expected: Integer\n"
        "  actual: String\n"
        "- ui_event[mode_change]:event-param-removed (levels 3,4)\n"
        '  UI event "mode_change" dropped existing parameters\n'
        "  expected: at least 1 parameter(s)\n"
        "  actual: 0 parameter(s)\n"
        "- ui_option[ext_popupmenu]:option-missing (levels 4)\n"
        "  UI option ext_popupmenu from stable metadata is missing\n"
        "  expected: present\n"
        "  actual: missing\n"
        "remediation:\n"
        "1. Restore the removed or changed members, or correct their `since` values and the "
        "API version block.\n"
        "2. Re-run validator:\n"
        "python scripts/check_api_metadata_compat.py --fixtures "
        "tests/tooling/fixtures/api_metadata_compat/happy --live "
        "tests/tooling/fixtures/api_metadata_compat/drift/live.json\n"
    )


def test_fail_fast_stops_after_function_phase() -> None:
    code, stdout, stderr = run_main(
        ["--fixtures", str(HAPPY_ROOT), "--live", str(DRIFT_LIVE_PATH), "--fail-fast"]
    )

    assert code == 1
    assert stdout == ""
    assert stderr.startswith(
        "api-metadata-compat: compatibility violations detected (5 violation(s)).\n"
        "violations:\n" + DRIFT_VIOLATIONS + "remediation:\n"
    )
    assert stderr.endswith("drift/live.json --fail-fast\n")


def test_missing_level_is_a_hard_fail() -> None:
    code, stdout, stderr = run_main(
        ["--fixtures", str(MISSING_LEVEL_ROOT), "--live", str(HAPPY_ROOT / "live.json")]
    )

    assert code == 2
    assert stdout == ""
    assert stderr == "api-metadata-compat: error: missing metadata fixture for stable level 4\n"


def test_missing_live_file_is_a_hard_fail(tmp_path: Path) -> None:
    code, stdout, stderr = run_main(
        ["--fixtures", str(HAPPY_ROOT), "--live", str(tmp_path / "absent.json")]
    )

    assert code == 2
    assert stdout == ""
    assert stderr.startswith("api-metadata-compat: error: live metadata file does not exist: ")


def test_live_command_failure_is_a_hard_fail() -> None:
    command = f'"{sys.executable}" -c "import sys; sys.exit(4)"'

    code, stdout, stderr = run_main(["--fixtures", str(HAPPY_ROOT), "--live-command", command])

    assert code == 2
    assert stdout == ""
    assert "failed (exit 4): unknown error" in stderr


def test_summary_out_records_violations(tmp_path: Path) -> None:
    summary_out = tmp_path / "reports" / "summary.json"

    code, _, _ = run_main(
        [
            "--fixtures",
            str(HAPPY_ROOT),
            "--live",
            str(DRIFT_LIVE_PATH),
            "--summary-out",
            str(summary_out),
        ]
    )

    assert code == 1
    payload = json.loads(summary_out.read_text(encoding="utf-8"))
    assert payload["mode"] == "api-metadata-compat-v1"
    assert payload["ok"] is False
    assert payload["live"] == "tests/tooling/fixtures/api_metadata_compat/drift/live.json"
    assert payload["levels_checked"] == [3, 4]
    assert payload["phases"] == ["functions", "ui_events", "ui_options"]
    assert [item["kind"] for item in payload["violations"]] == [
        "signature-mismatch",
        "member-removed",
        "bad-since-value",
        "invalid-name",
        "bad-since-value",
        "event-param-mismatch",
        "event-param-removed",
        "option-missing",
    ]
    assert payload["violations"][0] == {
        "kind": "signature-mismatch",
        "scope": "function",
        "subject": "nvim_buf_get_lines",
        "levels": [3, 4],
        "expected": "Array nvim_buf_get_lines(Buffer, Integer, Integer, Boolean) [since=1, method=true]",
        "actual": "Array nvim_buf_get_lines(Buffer, Integer, Integer) [since=1, method=true]",
        "detail": 'function "nvim_buf_get_lines" changed incompatibly (parameters)',
    }


def test_options_level_flag_widens_checked_levels(tmp_path: Path) -> None:
    summary_out = tmp_path / "summary.json"

    code, _, stderr = run_main(
        [
            "--fixtures",
            str(HAPPY_ROOT),
            "--live",
            str(DRIFT_LIVE_PATH),
            "--options-since-level",
            "3",
            "--events-since-level",
            "4",
            "--summary-out",
            str(summary_out),
        ]
    )

    assert code == 1
    payload = json.loads(summary_out.read_text(encoding="utf-8"))
    options = [item for item in payload["violations"] if item["kind"] == "option-missing"]
    assert [(item["subject"], item["levels"]) for item in options] == [("ext_popupmenu", [4])]
    assert stderr.splitlines()[-1] == (
        "python scripts/check_api_metadata_compat.py --fixtures "
        "tests/tooling/fixtures/api_metadata_compat/happy --live "
        "tests/tooling/fixtures/api_metadata_compat/drift/live.json "
        "--events-since-level 4 --options-since-level 3"
    )


def test_rerun_command_omits_default_levels() -> None:
    _, _, stderr = run_main(
        [
            "--fixtures",
            str(HAPPY_ROOT),
            "--live",
            str(DRIFT_LIVE_PATH),
            "--events-since-level",
            "3",
            "--options-since-level",
            "4",
        ]
    )

    assert stderr.splitlines()[-1].endswith("drift/live.json")


def test_malformed_msgpack_fixture_is_a_hard_fail(tmp_path: Path) -> None:
    (tmp_path / "api_level_3.mpack").write_bytes(b"\x81\x91\x01\x01")

    code, stdout, stderr = run_main(["--fixtures", str(tmp_path), "--live", str(HAPPY_ROOT / "live.json")])

    assert code == 2
    assert stdout == ""
    assert stderr.startswith("api-metadata-compat: error: missing metadata fixture for stable level 3 (")
    assert "is not valid msgpack" in stderr
