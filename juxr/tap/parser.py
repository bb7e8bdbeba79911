"""Single pass parser for the Test Anything Protocol (versions 12 and 13)."""

import logging
import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Literal

from juxr.errors import TapError
from juxr.models.report import TestStatus

log = logging.getLogger(__name__)

type TapState = Literal["await_version", "await_plan", "collecting", "done"]

SUPPORTED_VERSIONS = frozenset({12, 13})
DEFAULT_VERSION = 12

VERSION_LINE = re.compile(r"^TAP version (?P<version>\d+)\s*$")
PLAN_LINE = re.compile(r"^1\.\.(?P<count>\d+)\s*(?:#\s*(?P<comment>.*))?$")
RESULT_LINE = re.compile(
    r"^(?P<result>not ok|ok)(?=\s|$)"
    r"(?:\s+(?P<number>\d+)(?=\s|$))?"
    r"(?:\s+-(?=\s|$))?"
    r"(?:\s+(?P<description>.*))?$"
)
DIRECTIVE = re.compile(r"^(?P<directive>skip|todo)\S*(?:\s+(?P<reason>.*?))?\s*$", re.I)
# an unescaped "#" followed by SKIP or TODO ends the description
RESULT_DIRECTIVE = re.compile(
    r"(?<!\\)#\s*(?P<directive>skip|todo)\S*(?:\s+(?P<reason>.*?))?\s*$", re.I
)
BAIL_LINE = re.compile(r"^Bail out!\s*(?P<reason>.*?)\s*$")
DIAGNOSTIC_LINE = re.compile(r"^#\s?(?P<text>.*)$")
YAML_START = re.compile(r"^(?P<indent>\s+)---\s*$")
YAML_END = re.compile(r"^(?P<indent>\s+)\.\.\.\s*$")


@dataclass(frozen=True, kw_only=True)
class TapPlan:
    count: int
    skip_reason: str | None = None

    @property
    def skip_all(self) -> bool:
        return self.skip_reason is not None


@dataclass(frozen=True, kw_only=True)
class TapResult:
    """One test point, with any diagnostics that followed it."""

    number: int
    name: str
    status: TestStatus
    message: str | None = None
    output: str = ""
    observed_at: float | None = None


@dataclass(kw_only=True)
class _OpenResult:
    number: int
    name: str
    status: TestStatus
    message: str | None
    observed_at: float | None
    output: list[str] = field(default_factory=list)

    def close(self) -> TapResult:
        return TapResult(
            number=self.number,
            name=self.name,
            status=self.status,
            message=self.message,
            output="\n".join(self.output),
            observed_at=self.observed_at,
        )


def _status(result: str, directive: str | None) -> TestStatus:
    if directive == "SKIP":
        return "skipped"
    if result == "ok":
        return "passed"
    # a failing TODO test is an expected failure
    return "skipped" if directive == "TODO" else "failed"


class TapParser:
    """Converts TAP lines into :class:`TapResult` values.

    A result is complete once the next result, a bail out, or the end of the
    input is seen, because diagnostics after a result belong to it. Feeding
    is therefore one result behind the input; :meth:`finish` flushes.

    When a ``clock`` is supplied every result records the time its line was
    fed, which lets the report builder infer durations for live commands.
    """

    def __init__(self, *, clock: Callable[[], float] | None = None) -> None:
        self.clock = clock
        self.state: TapState = "await_version"
        self.version: int | None = None
        self.plan: TapPlan | None = None
        self.diagnostics: list[str] = []
        self.output: list[str] = []
        self.bail_reason: str | None = None
        self.observed = 0
        self._last_number = 0
        self._open: _OpenResult | None = None
        self._yaml_indent: str | None = None

    def feed_line(self, line: str) -> list[TapResult]:
        """Consume one line and return the results it completed."""
        line = line.rstrip("\r\n")
        if self.state == "done":
            return []

        if self.state == "await_version":
            self.state = "await_plan"
            if match := VERSION_LINE.match(line):
                version = int(match["version"])
                if version not in SUPPORTED_VERSIONS:
                    raise TapError(f"Unsupported TAP version {version}")
                self.version = version
                return []
            self.version = DEFAULT_VERSION

        if self._yaml_indent is not None:
            if self._in_yaml_block(line):
                return []

        if match := PLAN_LINE.match(line):
            return self._on_plan(match)
        if match := RESULT_LINE.match(line):
            return self._on_result(match)
        if match := BAIL_LINE.match(line):
            return self._on_bail(match["reason"])
        if match := DIAGNOSTIC_LINE.match(line):
            if self._open is not None:
                self._open.output.append(match["text"])
            else:
                self.output.append(match["text"])
            return []
        if (match := YAML_START.match(line)) and self._open is not None:
            self._yaml_indent = match["indent"]
            self._open.output.append("---")
            return []

        if line.strip():
            log.debug("Ignoring unrecognised TAP line: %s", line)
        return []

    def finish(self) -> list[TapResult]:
        """Signal the end of the input and return the last result, if any."""
        completed = self._close_open()
        if self.state == "done":
            return completed

        if self.plan is None:
            if self.observed == 0:
                self.diagnostics.append("No TAP plan or test results found")
        elif self.plan.count != self.observed:
            self.diagnostics.append(
                f"TapPlanMismatch: planned {self.plan.count} tests "
                f"but {self.observed} reported"
            )
        self.state = "done"
        return completed

    def results(self, lines: Iterable[str]) -> Iterator[TapResult]:
        """Lazily parse a whole stream; the parser cannot be reused afterwards."""
        for line in lines:
            yield from self.feed_line(line)
        yield from self.finish()

    def _now(self) -> float | None:
        return self.clock() if self.clock is not None else None

    def _in_yaml_block(self, line: str) -> bool:
        indent = self._yaml_indent
        assert indent is not None
        if (end := YAML_END.match(line)) and end["indent"] == indent:
            self._yaml_indent = None
            return True
        if line.startswith(indent) and self._open is not None:
            self._open.output.append(line[len(indent) :])
            return True
        self._yaml_indent = None
        return False

    def _close_open(self) -> list[TapResult]:
        if self._open is None:
            return []
        result = self._open.close()
        self._open = None
        self._yaml_indent = None
        return [result]

    def _on_plan(self, match: re.Match[str]) -> list[TapResult]:
        if self.plan is not None:
            raise TapError("More than one test plan in the supplied input")

        skip_reason = None
        if match["comment"] is not None:
            directive = DIRECTIVE.match(match["comment"].strip())
            if directive and directive["directive"].upper() == "SKIP":
                skip_reason = directive["reason"] or ""

        self.plan = TapPlan(count=int(match["count"]), skip_reason=skip_reason)
        self.state = "collecting"
        log.debug("TAP plan declares %d test(s)", self.plan.count)

        if not self.plan.skip_all:
            return []

        observed_at = self._now()
        skipped = [
            TapResult(
                number=number,
                name=f"test {number}",
                status="skipped",
                message=skip_reason,
                observed_at=observed_at,
            )
            for number in range(1, self.plan.count + 1)
        ]
        self.observed = self.plan.count
        self.state = "done"
        return skipped

    def _on_result(self, match: re.Match[str]) -> list[TapResult]:
        if self.plan is None:
            raise TapError("Test result found before the test plan")

        completed = self._close_open()
        self.observed += 1
        expected = self._last_number + 1
        number = int(match["number"]) if match["number"] else expected
        if number != expected:
            self.diagnostics.append(
                f"Test number {number} out of sequence, expected {expected}"
            )
        self._last_number = number

        description = match["description"] or ""
        directive = reason = None
        if found := RESULT_DIRECTIVE.search(description):
            directive = found["directive"].upper()
            reason = found["reason"] or ""
            description = description[: found.start()]
        name = description.strip().replace("\\#", "#")

        self._open = _OpenResult(
            number=number,
            name=name or f"test {number}",
            status=_status(match["result"], directive),
            message=reason,
            observed_at=self._now(),
        )
        return completed

    def _on_bail(self, reason: str) -> list[TapResult]:
        completed = self._close_open()
        self.bail_reason = reason
        self.diagnostics.append(f"Bail out! {reason}".rstrip())
        log.warning("TAP producer bailed out: %s", reason or "no reason given")

        remaining: list[TapResult] = []
        if self.plan is not None:
            observed_at = self._now()
            for number in range(self.observed + 1, self.plan.count + 1):
                remaining.append(
                    TapResult(
                        number=number,
                        name=f"test {number}",
                        status="error",
                        message=f"Bail out! {reason}".rstrip(),
                        observed_at=observed_at,
                    )
                )
            self.observed += len(remaining)
        self.state = "done"
        return completed + remaining
