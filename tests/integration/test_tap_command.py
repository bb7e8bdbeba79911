"""Integration tests for running TAP producing commands."""

import pytest

from juxr.classification import ExitClassification
from juxr.errors import TapError
from juxr.process import shell_argv
from juxr.tap.runner import run_tap_command

TAP_SCRIPT = """
echo 'TAP version 13'
echo '1..3'
echo 'ok 1 - first'
echo 'not ok 2 - second'
echo 'ok 3 - third # SKIP not today'
"""


async def test_converts_live_output() -> None:
    """Results become cases with durations taken between result lines."""
    clock = iter([10.0, 12.5, 13.0, 13.0]).__next__

    suite = await run_tap_command(shell_argv(TAP_SCRIPT), "live", clock=clock)

    assert [case.name for case in suite.cases] == ["first", "second", "third"]
    assert [case.status for case in suite.cases] == ["passed", "failed", "skipped"]
    assert [case.duration for case in suite.cases] == [2.5, 0.5, 0.0]
    assert suite.outcome == "success"
    assert suite.process_exit_code == 0
    assert suite.as_exit_code() == 1


async def test_classifies_exit_code() -> None:
    """A nonzero exit is recorded on the suite with a diagnostic."""
    suite = await run_tap_command(shell_argv("echo '1..1'; echo 'ok 1'; exit 2"), "s")

    assert suite.outcome == "error"
    assert suite.process_exit_code == 2
    assert suite.diagnostics == ("Terminated with exit code 2, expected [0]",)


async def test_custom_classification() -> None:
    """Exit codes can be mapped to success."""
    classification = ExitClassification.from_codes(success=[0, 2])

    suite = await run_tap_command(
        shell_argv("echo '1..1'; echo 'ok 1'; exit 2"),
        "s",
        classification=classification,
    )

    assert suite.outcome == "success"
    assert suite.diagnostics == ()


async def test_plan_mismatch_is_a_diagnostic() -> None:
    """Missing results are reported rather than invented."""
    suite = await run_tap_command(shell_argv("echo '1..2'; echo 'ok 1'"), "s")

    assert len(suite.cases) == 1
    assert "TapPlanMismatch: planned 2 tests but 1 reported" in suite.diagnostics


async def test_invalid_tap_raises() -> None:
    """A result before the plan is rejected."""
    with pytest.raises(TapError):
        await run_tap_command(shell_argv("echo 'TAP version 13'; echo 'ok 1'"), "s")
