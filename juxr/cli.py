"""CLI entry point for juxr."""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import BinaryIO

from juxr.definition_loader import load_suite_definition
from juxr.errors import (
    AmbiguousExitClassificationError,
    OutputDirectoryError,
    TapError,
)
from juxr.exporter import Exporter, ExportSettings
from juxr.importer import Importer
from juxr.models.report import TestSuite
from juxr.models.suite import PlanTest, SuiteDefinition
from juxr.process import display, line_writer, stream_command
from juxr.reports.junit import serialize
from juxr.reports.processor import ProcessorSettings
from juxr.streams.encoder import Encoder
from juxr.suite_runner import run_plan_test, run_suite
from juxr.tap.runner import parse_tap_stream, run_tap_command

log = logging.getLogger("juxr")

ENV_PREFIX = "JUXR_"
TRUTHY = frozenset({"true", "skip", "1", "y", "yes", "t"})
LAUNCH_FAILURE_EXIT_CODE = 11


def is_truthy(value: str | None) -> bool:
    return value is not None and value.strip().lower() in TRUTHY


def split_list(value: str | None) -> Sequence[str]:
    """Parse a comma-separated list, ignoring blanks."""
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def parse_codes(value: str) -> Sequence[int]:
    try:
        return tuple(int(code) for code in split_list(value))
    except ValueError as e:
        raise argparse.ArgumentTypeError(
            f"expected a comma separated list of exit codes, got {value!r}"
        ) from e


def read_secrets(
    names: Sequence[str], environ: Mapping[str, str] = os.environ
) -> Sequence[str]:
    """Values of the named environment variables; unset names are ignored."""
    secrets: list[str] = []
    for name in names:
        if value := environ.get(name):
            log.debug("Redacting value of environment variable %s", name)
            secrets.append(value)
    return secrets


def processor_settings(
    args: argparse.Namespace, environ: Mapping[str, str] = os.environ
) -> ProcessorSettings:
    """Report rewriting options, falling back to ``JUXR_*`` variables."""

    def option(name: str, env: str) -> str:
        value = getattr(args, name, None)
        if value is None:
            value = environ.get(ENV_PREFIX + env, "")
        return value

    secret_names = [
        *(getattr(args, "secret", None) or ()),
        *split_list(
            args.secrets
            if getattr(args, "secrets", None) is not None
            else environ.get(ENV_PREFIX + "SECRETS")
        ),
    ]
    return ProcessorSettings(
        suite_prefix=option("test_suite_prefix", "SUITE_PREFIX"),
        suite_suffix=option("test_suite_suffix", "SUITE_SUFFIX"),
        name_prefix=option("test_name_prefix", "NAME_PREFIX"),
        name_suffix=option("test_name_suffix", "NAME_SUFFIX"),
        class_prefix=option("test_class_prefix", "CLASS_PREFIX"),
        class_suffix=option("test_class_suffix", "CLASS_SUFFIX"),
        secrets=read_secrets(secret_names, environ),
    )


def export_settings(
    args: argparse.Namespace, environ: Mapping[str, str] = os.environ
) -> ExportSettings:
    skip = args.skip_export
    if skip is None:
        skip = environ.get(ENV_PREFIX + "SKIP_EXPORT")
    return ExportSettings(
        reports=args.reports or split_list(environ.get(ENV_PREFIX + "REPORTS")),
        files=args.files or split_list(environ.get(ENV_PREFIX + "FILES")),
        processor=processor_settings(args, environ),
        skip=is_truthy(skip),
    )


def echo(out: BinaryIO, text: str) -> None:
    out.write(text.encode("utf-8") + b"\n")
    out.flush()


def prepare_output_dir(path: Path) -> Path:
    """Create the report directory.

    Raises:
        OutputDirectoryError: If it cannot be created

    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputDirectoryError(
            f"Could not create output directory {path}: {e}"
        ) from e
    return path


def write_report(suite: TestSuite, output_dir: Path) -> Path:
    """Write ``suite`` as ``TEST-<name>.xml``.

    Raises:
        OSError: If the file cannot be written

    """
    path = output_dir / f"TEST-{suite.name}.xml"
    path.write_bytes(serialize(suite))
    log.debug("Wrote %s", path)
    return path


def import_stream(
    args: argparse.Namespace, stdin: BinaryIO, stdout: BinaryIO
) -> int:
    """Decode ``stdin``, forwarding everything outside frames to ``stdout``."""
    try:
        importer = Importer(args.output)
    except OutputDirectoryError as e:
        log.error("%s", e)
        return 1

    result = importer.run(stdin, stdout)
    if result.failed:
        log.error("%d artifact(s) could not be imported", result.errors)
        return 1
    return 0


def export_artifacts(args: argparse.Namespace, stdout: BinaryIO) -> int:
    settings = export_settings(args)
    try:
        Exporter(Encoder(stdout), settings).export()
    except OSError as e:
        log.error("Could not export: %s", e)
        return 1
    return 0


async def exec_command(
    args: argparse.Namespace, stdout: BinaryIO, stderr: BinaryIO
) -> int:
    """Run a command, relaying its output line by line, then export."""
    argv: Sequence[str] = args.command
    on_stderr = line_writer(stdout if args.redirect_err_to_out else stderr)
    try:
        code = await stream_command(argv, line_writer(stdout), on_stderr)
    except OSError as e:
        log.error("The `%s` command failed to start: %s", display(argv), e)
        return LAUNCH_FAILURE_EXIT_CODE

    log.debug("%s finished with exit code %d", display(argv), code)
    if export_artifacts(args, stdout):
        return 1
    return code


async def run_suites(args: argparse.Namespace, stdout: BinaryIO) -> int:
    """Load every suite file, then run the suites in the order given."""
    try:
        output_dir = prepare_output_dir(args.output)
    except OutputDirectoryError as e:
        log.error("%s", e)
        return 1

    definitions: list[tuple[str, SuiteDefinition]] = []
    for path in args.suites:
        try:
            definitions.append((path.stem, await load_suite_definition(path)))
        except (FileNotFoundError, ValueError) as e:
            log.error("Could not read tests from %s: %s", path, e)
    if len(definitions) < len(args.suites):
        log.error(
            "No tests were run: %d suite file(s) could not be loaded",
            len(args.suites) - len(definitions),
        )
        return 1

    exit_code = 0
    for name, definition in definitions:
        echo(stdout, TestSuite(name=name).summary_start())
        suite = await run_suite(definition, name)
        echo(stdout, suite.summary_end())
        try:
            write_report(suite, output_dir)
        except OSError as e:
            log.error("Could not write test results for %s: %s", name, e)
            exit_code = 1
        if suite.as_exit_code():
            exit_code = 1

    return 0 if args.ignore_failures else exit_code


async def run_test(args: argparse.Namespace, stdout: BinaryIO) -> int:
    """Run a single command as a test case of a one-test suite."""
    try:
        output_dir = prepare_output_dir(args.output)
        test = PlanTest(
            command=args.command,
            success=args.success,
            failure=args.failure,
            skipped=args.skipped,
        )
        test.exit_classification()
    except (OutputDirectoryError, AmbiguousExitClassificationError) as e:
        log.error("%s", e)
        return 1

    echo(stdout, TestSuite(name=args.name).summary_start())
    case = await run_plan_test(test, args.name, args.test)
    suite = TestSuite(name=args.name, cases=(case,))
    echo(stdout, suite.summary_end())
    try:
        write_report(suite, output_dir)
    except OSError as e:
        log.error("Could not write test results for %s: %s", args.name, e)
        return 1
    return 0 if args.ignore_failures else suite.as_exit_code()


async def run_tap(args: argparse.Namespace, stdin: BinaryIO, stdout: BinaryIO) -> int:
    """Convert TAP from a command, or from ``stdin`` when no command is given."""
    try:
        output_dir = prepare_output_dir(args.output)
    except OutputDirectoryError as e:
        log.error("%s", e)
        return 1

    echo(stdout, TestSuite(name=args.name).summary_start())
    try:
        if args.command:
            suite = await run_tap_command(args.command, args.name)
        else:
            lines = (line.decode("utf-8", errors="replace") for line in stdin)
            suite = parse_tap_stream(lines, args.name)
    except OSError as e:
        log.error("The `%s` command failed to start: %s", display(args.command), e)
        return LAUNCH_FAILURE_EXIT_CODE
    except TapError as e:
        log.error("Could not parse TAP results: %s", e)
        return LAUNCH_FAILURE_EXIT_CODE

    echo(stdout, suite.summary_end())
    try:
        write_report(suite, output_dir)
    except OSError as e:
        log.error("Could not write test results: %s", e)
        return LAUNCH_FAILURE_EXIT_CODE

    status = suite.process_exit_code or 0
    if args.ignore_failures:
        return 0
    if status > 0:
        return status
    return suite.as_exit_code()


async def run(
    args: argparse.Namespace,
    stdin: BinaryIO | None = None,
    stdout: BinaryIO | None = None,
    stderr: BinaryIO | None = None,
) -> int:
    """Run the selected subcommand and return its exit code."""
    stdin = stdin or sys.stdin.buffer
    stdout = stdout or sys.stdout.buffer
    stderr = stderr or sys.stderr.buffer

    match args.subcommand:
        case "import":
            return import_stream(args, stdin, stdout)
        case "export":
            return export_artifacts(args, stdout)
        case "exec":
            return await exec_command(args, stdout, stderr)
        case "run":
            return await run_suites(args, stdout)
        case "test":
            return await run_test(args, stdout)
        case "tap":
            return await run_tap(args, stdin, stdout)
    raise ValueError(f"Unknown subcommand {args.subcommand}")


def add_output_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("."),
        help="Directory in which to write the results (default: .)",
    )


def add_ignore_failures_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--ignore-failures",
        action="store_true",
        help="Test failures and errors do not affect the exit code",
    )


def add_export_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-r",
        "--reports",
        action="extend",
        nargs="+",
        metavar="GLOB",
        help="JUnit XML reports to export, supports * and ** globs "
        "(env: JUXR_REPORTS, comma separated)",
    )
    parser.add_argument(
        "--files",
        action="extend",
        nargs="+",
        metavar="GLOB",
        help="Additional files to export, supports * and ** globs "
        "(env: JUXR_FILES, comma separated)",
    )
    for option, env, what in (
        ("--test-suite-prefix", "SUITE_PREFIX", "prepend to each test suite name"),
        ("--test-suite-suffix", "SUITE_SUFFIX", "append to each test suite name"),
        ("--test-name-prefix", "NAME_PREFIX", "prepend to each test case name"),
        ("--test-name-suffix", "NAME_SUFFIX", "append to each test case name"),
        ("--test-class-prefix", "CLASS_PREFIX", "prepend to each class name"),
        ("--test-class-suffix", "CLASS_SUFFIX", "append to each class name"),
    ):
        parser.add_argument(option, help=f"A string to {what} (env: JUXR_{env})")
    parser.add_argument(
        "-s",
        "--secret",
        action="append",
        metavar="VAR",
        help="Environment variable whose value is redacted from the reports",
    )
    parser.add_argument(
        "--secrets",
        metavar="VARS",
        help="Comma separated environment variable names whose values are "
        "redacted from the reports (env: JUXR_SECRETS)",
    )
    parser.add_argument(
        "--skip-export",
        metavar="FLAG",
        help="Set to `true` to export nothing (env: JUXR_SKIP_EXPORT)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="juxr",
        description="Carry JUnit XML reports and attachments through log streams",
    )
    parser.add_argument(
        "-d", "--debug", action="store_true", help="Turn on debug logging"
    )
    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    import_parser = subparsers.add_parser(
        "import", help="Import reports and attachments from STDIN"
    )
    add_output_arg(import_parser)

    export_parser = subparsers.add_parser(
        "export", help="Export reports and referenced attachments to STDOUT"
    )
    add_export_args(export_parser)

    exec_parser = subparsers.add_parser(
        "exec",
        help="Run a command, then export its reports and propagate its exit code",
    )
    add_export_args(exec_parser)
    exec_parser.add_argument(
        "--redirect-err-to-out",
        action="store_true",
        help="Relay the command's STDERR to STDOUT",
    )
    exec_parser.add_argument("command", nargs="+", help="The command to execute")

    run_parser = subparsers.add_parser(
        "run", help="Run YAML test suites and write JUnit XML reports"
    )
    add_output_arg(run_parser)
    add_ignore_failures_arg(run_parser)
    run_parser.add_argument("suites", nargs="+", type=Path, help="YAML suite files")

    test_parser = subparsers.add_parser(
        "test", help="Run a single command as a test and write a JUnit XML report"
    )
    test_parser.add_argument("-n", "--name", required=True, help="Test suite name")
    test_parser.add_argument("-t", "--test", required=True, help="Test case name")
    for option, help_text in (
        ("--success", "Exit codes meaning success (default: 0)"),
        ("--failure", "Exit codes meaning failure (default: 1)"),
        ("--skipped", "Exit codes meaning skipped (default: none)"),
    ):
        test_parser.add_argument(
            option, type=parse_codes, metavar="CODE[,CODE...]", help=help_text
        )
    add_output_arg(test_parser)
    add_ignore_failures_arg(test_parser)
    test_parser.add_argument("command", nargs="+", help="The command to execute")

    tap_parser = subparsers.add_parser(
        "tap",
        help="Convert TAP from a command, or from STDIN, into a JUnit XML report",
    )
    tap_parser.add_argument("-n", "--name", required=True, help="Test suite name")
    add_output_arg(tap_parser)
    add_ignore_failures_arg(tap_parser)
    tap_parser.add_argument(
        "command", nargs="*", help="The command to execute, otherwise STDIN is read"
    )

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(run(args))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
