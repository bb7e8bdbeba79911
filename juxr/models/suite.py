"""Models for suite definitions loaded from YAML files."""

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from juxr.classification import ExitClassification
from juxr.models.base import Model
from juxr.process import shell_argv

type ExitCodes = int | Sequence[int]


def _codes(value: ExitCodes | None) -> Sequence[int] | None:
    if value is None or isinstance(value, int):
        return None if value is None else [value]
    return list(value)


class PlanTest(Model):
    """A single command executed as a test."""

    __test__ = False

    command: str | Sequence[str] = Field(
        ...,
        validation_alias=AliasChoices("command", "cmd"),
        description="Shell command line, or program and arguments to exec",
    )
    success: ExitCodes | None = Field(
        default=None, description="Exit codes meaning success (default 0)"
    )
    failure: ExitCodes | None = Field(
        default=None, description="Exit codes meaning failure (default 1)"
    )
    skipped: ExitCodes | None = Field(
        default=None, description="Exit codes meaning skipped (default none)"
    )

    @field_validator("command")
    @classmethod
    def _require_command(cls, value: str | Sequence[str]) -> str | Sequence[str]:
        if isinstance(value, str):
            if not value.strip():
                raise ValueError("command must not be empty")
            return value
        if not value:
            raise ValueError("command must name a program to execute")
        return list(value)

    def argv(self) -> Sequence[str]:
        if isinstance(self.command, str):
            return shell_argv(self.command)
        return list(self.command)

    def display(self) -> str:
        if isinstance(self.command, str):
            return f"sh -c '{self.command}'"
        return " ".join(self.command)

    def exit_classification(self) -> ExitClassification:
        """Exit code mapping for this test.

        Raises:
            AmbiguousExitClassificationError: If the configured sets overlap.

        """
        return ExitClassification.from_codes(
            success=_codes(self.success),
            failure=_codes(self.failure),
            skipped=_codes(self.skipped),
        )


class SuiteDefinition(Model):
    """Tests of one suite, keyed by test name.

    In YAML each test is either a shell command string, a list of program
    arguments, or a mapping with ``command`` and optional exit codes.
    """

    tests: Mapping[str, PlanTest] = Field(default_factory=dict)

    @field_validator("tests", mode="before")
    @classmethod
    def _expand_short_forms(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        return {
            name: {"command": test} if isinstance(test, str | list) else test
            for name, test in value.items()
        }

    def ordered(self) -> Sequence[tuple[str, PlanTest]]:
        """Tests in name order, the order in which they run."""
        return sorted(self.tests.items())
