"""Report model shared by the stream importer, the TAP converter and the runners."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from juxr.classification import ExitStatus

type TestStatus = Literal["passed", "failed", "skipped", "error"]

FAILURE_TYPES: dict[TestStatus, str] = {
    "failed": "assertion",
    "error": "error",
}


def format_seconds(seconds: float) -> str:
    """Format a duration in seconds with millisecond precision and no padding."""
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


@dataclass(frozen=True, kw_only=True)
class TestCase:
    """Outcome of a single test case."""

    __test__ = False

    name: str
    classname: str
    status: TestStatus = "passed"
    duration: float = 0.0
    message: str | None = None
    type: str | None = None
    details: str = ""
    output: str = ""
    error_output: str = ""

    @property
    def failure_type(self) -> str | None:
        """Type attribute reported for failures and errors."""
        if self.type is not None:
            return self.type
        return FAILURE_TYPES.get(self.status)


@dataclass(frozen=True, kw_only=True)
class TestSuite:
    """A named, ordered collection of test cases.

    ``outcome`` and ``process_exit_code`` are only set when the suite was
    produced by running a process; they describe the suite as a whole and
    never change the status of individual cases.
    """

    __test__ = False

    name: str
    cases: Sequence[TestCase] = ()
    properties: Sequence[tuple[str, str]] = ()
    diagnostics: Sequence[str] = ()
    output: str = ""
    error_output: str = ""
    time: float | None = None
    timestamp: str | None = None
    outcome: ExitStatus | None = None
    process_exit_code: int | None = None

    @property
    def tests(self) -> int:
        return len(self.cases)

    @property
    def failures(self) -> int:
        return sum(1 for case in self.cases if case.status == "failed")

    @property
    def errors(self) -> int:
        return sum(1 for case in self.cases if case.status == "error")

    @property
    def skipped(self) -> int:
        return sum(1 for case in self.cases if case.status == "skipped")

    @property
    def duration(self) -> float:
        """Declared suite time, or the sum of the case durations."""
        if self.time is not None:
            return self.time
        return sum(case.duration for case in self.cases)

    def as_exit_code(self) -> int:
        """Return 1 if any case failed or errored, or the process was not a success."""
        if self.outcome is not None and self.outcome != "success":
            return 1
        if any(case.status in {"failed", "error"} for case in self.cases):
            return 1
        return 0

    def summary_start(self) -> str:
        return f"Running {self.name}"

    def summary_end(self) -> str:
        """Summarize the suite in the style of the Maven Surefire console output."""
        if self.failures:
            marker = "<<< FAILURE"
        elif self.errors:
            marker = "<<< ERROR"
        else:
            marker = ""

        lines = [
            f"Tests run: {self.tests}, Failures: {self.failures}, "
            f"Errors: {self.errors}, Skipped: {self.skipped}, "
            f"Time elapsed: {format_seconds(self.duration)} sec {marker} "
            f"- in {self.name}"
        ]
        for case in self.cases:
            if case.status not in FAILURE_TYPES:
                continue
            label = "FAILURE" if case.status == "failed" else "ERROR"
            lines.append(
                f"{case.name}({case.classname}) "
                f"Time elapsed: {format_seconds(case.duration)} <<< {label}!\n"
                f"\t{case.failure_type}: {case.message or ''}"
            )
        return "\n".join(lines)


@dataclass(frozen=True, kw_only=True)
class TestSuites:
    """All suites read from one report document."""

    __test__ = False

    suites: Sequence[TestSuite] = ()
    name: str | None = None

    @property
    def tests(self) -> int:
        return sum(suite.tests for suite in self.suites)

    def as_exit_code(self) -> int:
        return max((suite.as_exit_code() for suite in self.suites), default=0)
