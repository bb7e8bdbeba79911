"""Conversion of captured or live TAP output into a test suite."""

import logging
import time
from collections.abc import Callable, Iterable, Sequence

from juxr.classification import DEFAULT_CLASSIFICATION, ExitClassification
from juxr.models.report import TestSuite
from juxr.process import stream_command
from juxr.tap.builder import ReportBuilder
from juxr.tap.parser import TapParser

log = logging.getLogger(__name__)


def _finalize(parser: TapParser, builder: ReportBuilder) -> None:
    for result in parser.finish():
        builder.add(result)
    if parser.output:
        builder.output("\n".join(parser.output))
    for message in parser.diagnostics:
        builder.diagnostic(message)


def parse_tap_stream(lines: Iterable[str], name: str) -> TestSuite:
    """Convert pre-captured TAP output; no timing is available."""
    parser = TapParser()
    builder = ReportBuilder(name)
    for line in lines:
        for result in parser.feed_line(line):
            builder.add(result)
    _finalize(parser, builder)
    return builder.build()


async def run_tap_command(
    argv: Sequence[str],
    name: str,
    *,
    classification: ExitClassification = DEFAULT_CLASSIFICATION,
    clock: Callable[[], float] = time.monotonic,
) -> TestSuite:
    """Run a command and convert the TAP it prints while it runs.

    Test durations are the wall-clock gaps between result lines. The exit
    code is classified for the suite as a whole and kept on the suite.

    Raises:
        OSError: If the command cannot be started.
        TapError: If the output is not valid TAP.

    """
    parser = TapParser(clock=clock)
    builder = ReportBuilder(name, started_at=clock())

    def on_line(line: bytes) -> None:
        for result in parser.feed_line(line.decode("utf-8", errors="replace")):
            builder.add(result)

    code = await stream_command(argv, on_line)
    _finalize(parser, builder)
    outcome = builder.exit_status(code, classification)
    log.info("TAP command exited with code %d (%s)", code, outcome)
    return builder.build()
