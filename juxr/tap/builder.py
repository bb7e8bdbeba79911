"""Assembly of TAP results into a test suite."""

import logging

from juxr.classification import DEFAULT_CLASSIFICATION, ExitClassification, ExitStatus
from juxr.models.report import TestCase, TestSuite
from juxr.tap.parser import TapResult

log = logging.getLogger(__name__)

DEFAULT_CLASSNAME = "tap"


class ReportBuilder:
    """Collects results for one suite and finalizes it exactly once.

    Durations are inferred from the gaps between the ``observed_at`` times of
    consecutive results, the first one measured from ``started_at``. Results
    without timing get a zero duration.
    """

    def __init__(
        self,
        name: str,
        *,
        classname: str = DEFAULT_CLASSNAME,
        started_at: float | None = None,
    ) -> None:
        self.name = name
        self.classname = classname
        self.started_at = started_at
        self._cases: list[TestCase] = []
        self._diagnostics: list[str] = []
        self._output: list[str] = []
        self._last_observed: float | None = started_at
        self._outcome: ExitStatus | None = None
        self._exit_code: int | None = None
        self._built = False

    def add(self, result: TapResult) -> TestCase:
        self._check_open()
        duration = 0.0
        if result.observed_at is not None:
            if self._last_observed is not None:
                duration = max(0.0, result.observed_at - self._last_observed)
            self._last_observed = result.observed_at

        case = TestCase(
            name=result.name,
            classname=self.classname,
            status=result.status,
            duration=duration,
            message=result.message,
            output=result.output,
        )
        self._cases.append(case)
        return case

    def diagnostic(self, message: str) -> None:
        self._check_open()
        log.warning("%s: %s", self.name, message)
        self._diagnostics.append(message)

    def output(self, text: str) -> None:
        self._check_open()
        self._output.append(text)

    def exit_status(
        self,
        code: int,
        classification: ExitClassification = DEFAULT_CLASSIFICATION,
    ) -> ExitStatus:
        """Record the exit code of the process that produced the results."""
        self._check_open()
        self._exit_code = code
        self._outcome = classification.classify(code)
        if self._outcome != "success":
            self.diagnostic(classification.describe(code))
        return self._outcome

    def build(self) -> TestSuite:
        self._check_open()
        self._built = True
        return TestSuite(
            name=self.name,
            cases=tuple(self._cases),
            diagnostics=tuple(self._diagnostics),
            output="\n".join(self._output),
            outcome=self._outcome,
            process_exit_code=self._exit_code,
        )

    def _check_open(self) -> None:
        if self._built:
            raise RuntimeError(f"Suite {self.name} has already been built")
