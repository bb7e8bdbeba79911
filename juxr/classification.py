"""Classification of process exit codes into test outcomes."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from juxr.errors import AmbiguousExitClassificationError

type ExitStatus = Literal["success", "failure", "skipped", "error"]

DEFAULT_SUCCESS_CODES = frozenset({0})
DEFAULT_FAILURE_CODES = frozenset({1})


@dataclass(frozen=True, kw_only=True)
class ExitClassification:
    """Exit codes that map to success, failure and skipped.

    A code that belongs to none of the sets is an error. The sets must be
    disjoint; an ambiguous configuration is rejected on construction so it
    fails before anything is executed.
    """

    success: frozenset[int] = field(default=DEFAULT_SUCCESS_CODES)
    failure: frozenset[int] = field(default=DEFAULT_FAILURE_CODES)
    skipped: frozenset[int] = field(default=frozenset())

    def __post_init__(self) -> None:
        for name in ("success", "failure", "skipped"):
            object.__setattr__(self, name, frozenset(getattr(self, name)))

        overlaps = {
            "success/failure": self.success & self.failure,
            "success/skipped": self.success & self.skipped,
            "failure/skipped": self.failure & self.skipped,
        }
        conflicts = {pair: codes for pair, codes in overlaps.items() if codes}
        if conflicts:
            details = ", ".join(
                f"{pair}: {sorted(codes)}" for pair, codes in conflicts.items()
            )
            raise AmbiguousExitClassificationError(
                f"Exit codes configured in more than one category ({details})"
            )

    @classmethod
    def from_codes(
        cls,
        success: Iterable[int] | None = None,
        failure: Iterable[int] | None = None,
        skipped: Iterable[int] | None = None,
    ) -> "ExitClassification":
        """Build a classification, using the defaults for sets left as None.

        A default set gives up the codes that another set claims explicitly,
        so ``success=[0, 1]`` alone means exit code 1 is no longer a failure.
        Explicitly configured sets must still be disjoint.
        """
        configured = {
            "success": None if success is None else frozenset(success),
            "failure": None if failure is None else frozenset(failure),
            "skipped": None if skipped is None else frozenset(skipped),
        }
        claimed: frozenset[int] = frozenset().union(
            *(codes for codes in configured.values() if codes is not None)
        )

        def resolve(name: str, default: frozenset[int]) -> frozenset[int]:
            codes = configured[name]
            return default - claimed if codes is None else codes

        return cls(
            success=resolve("success", DEFAULT_SUCCESS_CODES),
            failure=resolve("failure", DEFAULT_FAILURE_CODES),
            skipped=resolve("skipped", frozenset()),
        )

    def classify(self, code: int) -> ExitStatus:
        if code in self.skipped:
            return "skipped"
        if code in self.failure:
            return "failure"
        if code in self.success:
            return "success"
        return "error"

    def describe(self, code: int) -> str:
        """Human readable message for a terminated process."""
        return f"Terminated with exit code {code}, expected {sorted(self.success)}"


DEFAULT_CLASSIFICATION = ExitClassification()


def classify(
    code: int, classification: ExitClassification = DEFAULT_CLASSIFICATION
) -> ExitStatus:
    """Classify a process exit code.

    Skipped codes are checked first, then failure codes, then success codes.
    Anything else is an error, never an implicit success.
    """
    return classification.classify(code)
