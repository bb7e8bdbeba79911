"""Execution of suite definitions, one command per test case."""

import logging
from datetime import UTC, datetime

from juxr.classification import ExitStatus
from juxr.models.report import TestCase, TestStatus, TestSuite
from juxr.models.suite import PlanTest, SuiteDefinition
from juxr.process import run_command

log = logging.getLogger(__name__)

STATUS_FOR_OUTCOME: dict[ExitStatus, TestStatus] = {
    "success": "passed",
    "failure": "failed",
    "skipped": "skipped",
    "error": "error",
}


async def run_plan_test(test: PlanTest, classname: str, name: str) -> TestCase:
    """Run one command and turn its exit code into a test case."""
    classification = test.exit_classification()
    log.info("Running %s.%s: %s", classname, name, test.display())

    try:
        completed = await run_command(test.argv())
    except OSError as e:
        log.error("The `%s` command failed to start: %s", test.display(), e)
        return TestCase(
            name=name,
            classname=classname,
            status="error",
            message=f"The `{test.display()}` command failed to start",
            details=str(e),
        )

    outcome = classification.classify(completed.exit_code)
    log.debug(
        "%s.%s exited with code %d (%s)", classname, name, completed.exit_code, outcome
    )
    return TestCase(
        name=name,
        classname=classname,
        status=STATUS_FOR_OUTCOME[outcome],
        duration=completed.duration,
        message=None
        if outcome == "success"
        else classification.describe(completed.exit_code),
        output=completed.stdout.decode("utf-8", errors="replace"),
        error_output=completed.stderr.decode("utf-8", errors="replace"),
    )


async def run_suite(definition: SuiteDefinition, name: str) -> TestSuite:
    """Run every test of a suite sequentially, in name order."""
    timestamp = datetime.now(UTC).replace(microsecond=0).isoformat()
    cases = [
        await run_plan_test(test, name, test_name)
        for test_name, test in definition.ordered()
    ]
    return TestSuite(name=name, cases=tuple(cases), timestamp=timestamp)
