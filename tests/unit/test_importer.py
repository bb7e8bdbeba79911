"""Tests for the importer."""

import io
import logging
from pathlib import Path

import pytest

from juxr.errors import OutputDirectoryError
from juxr.importer import Importer, resolve_destination
from juxr.models.report import TestCase, TestSuite
from juxr.reports.junit import deserialize, serialize
from juxr.reports.processor import ProcessorSettings, ReportProcessor
from juxr.streams.encoder import Encoder


def encode(*frames: tuple[str, str, bytes], before: bytes = b"") -> list[bytes]:
    stream = io.BytesIO(before)
    stream.seek(0, io.SEEK_END)
    encoder = Encoder(stream)
    for kind, name, payload in frames:
        with encoder.frame(kind, name) as writer:
            writer.write(payload)
    return io.BytesIO(stream.getvalue()).readlines()


@pytest.fixture
def report() -> bytes:
    """Serialized report referencing one attachment."""
    suite = TestSuite(
        name="suite",
        cases=[
            TestCase(name="ok", classname="c", output="[[ATTACHMENT|logs/run.log]]"),
            TestCase(name="bad", classname="c", status="failed", message="boom"),
        ],
    )
    return serialize(suite)


def test_imports_reports_and_files(tmp_path: Path, report: bytes) -> None:
    """Writes artifacts below the output directory and returns the reports."""
    lines = encode(
        ("report", "target/TEST-suite.xml", report),
        ("attachment", "logs/run.log", b"log output\n"),
        before=b"build started\n",
    )
    passthrough = io.BytesIO()

    result = Importer(tmp_path).run(lines, passthrough)

    assert passthrough.getvalue() == b"build started\n"
    assert result.errors == 0
    assert not result.failed
    assert result.files == [
        tmp_path / "target" / "TEST-suite.xml",
        tmp_path / "logs" / "run.log",
    ]
    assert (tmp_path / "logs" / "run.log").read_bytes() == b"log output\n"
    [imported] = result.reports
    assert imported.as_exit_code() == 1
    written = deserialize((tmp_path / "target" / "TEST-suite.xml").read_bytes())
    assert written.suites[0].cases[0].output == (
        f"[[ATTACHMENT|{tmp_path.as_posix()}/logs/run.log]]"
    )


def test_applies_processor_settings(tmp_path: Path, report: bytes) -> None:
    """Reports are rewritten with the configured processor."""
    processor = ReportProcessor(ProcessorSettings(suite_prefix="ci."))

    result = Importer(tmp_path, processor).run(
        encode(("report", "TEST-suite.xml", report)), io.BytesIO()
    )

    assert result.reports[0].suites[0].name == "ci.suite"


def test_no_artifacts_is_success(tmp_path: Path) -> None:
    """Plain output imports nothing and succeeds."""
    passthrough = io.BytesIO()

    result = Importer(tmp_path).run([b"one\n", b"two\n"], passthrough)

    assert passthrough.getvalue() == b"one\ntwo\n"
    assert result.reports == []
    assert result.files == []
    assert not result.failed


def test_truncated_frame_counts_as_error(tmp_path: Path) -> None:
    """A truncated frame writes nothing and fails the import."""
    lines = encode(("attachment", "data.bin", b"payload"))[:-2]

    result = Importer(tmp_path).run(lines, io.BytesIO())

    assert result.errors == 1
    assert not (tmp_path / "data.bin").exists()


def test_unparseable_report_counts_as_error(tmp_path: Path) -> None:
    """A report that is not JUnit XML is kept but fails the import."""
    result = Importer(tmp_path).run(
        encode(("report", "TEST-x.xml", b"not xml")), io.BytesIO()
    )

    assert result.errors == 1
    assert result.reports == []
    assert (tmp_path / "TEST-x.xml").read_bytes() == b"not xml"


def test_unknown_kind_imported_as_file(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Artifacts of unregistered kinds are written verbatim with a warning."""
    with caplog.at_level(logging.WARNING):
        result = Importer(tmp_path).run(
            encode(("coverage", "cov.xml", b"<coverage/>")), io.BytesIO()
        )

    assert result.errors == 0
    assert (tmp_path / "cov.xml").read_bytes() == b"<coverage/>"
    assert "Unknown artifact kind 'coverage'" in caplog.text


def test_last_writer_wins(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """A repeated name overwrites the earlier artifact with a warning."""
    lines = encode(
        ("attachment", "same.txt", b"first"), ("attachment", "same.txt", b"second")
    )

    with caplog.at_level(logging.WARNING):
        result = Importer(tmp_path).run(lines, io.BytesIO())

    assert (tmp_path / "same.txt").read_bytes() == b"second"
    assert result.files == [tmp_path / "same.txt"]
    assert "imported more than once" in caplog.text


def test_repeated_report_keeps_only_the_last(tmp_path: Path) -> None:
    """Only the report that ends up on disk is returned."""
    lines = encode(
        ("report", "TEST-a.xml", serialize(TestSuite(name="first"))),
        ("report", "TEST-b.xml", serialize(TestSuite(name="other"))),
        ("report", "TEST-a.xml", serialize(TestSuite(name="second"))),
    )

    result = Importer(tmp_path).run(lines, io.BytesIO())

    assert [report.suites[0].name for report in result.reports] == [
        "other",
        "second",
    ]
    on_disk = deserialize((tmp_path / "TEST-a.xml").read_bytes())
    assert on_disk.suites[0].name == "second"


def test_unparseable_copy_replaces_earlier_report(tmp_path: Path) -> None:
    """A broken later copy leaves no stale report in the result."""
    lines = encode(
        ("report", "TEST-a.xml", serialize(TestSuite(name="first"))),
        ("report", "TEST-a.xml", b"<not xml"),
    )

    result = Importer(tmp_path).run(lines, io.BytesIO())

    assert result.reports == []
    assert result.errors == 1
    assert (tmp_path / "TEST-a.xml").read_bytes() == b"<not xml"


def test_escaping_name_is_dropped(tmp_path: Path) -> None:
    """Names that would leave the output directory are rejected."""
    out = tmp_path / "out"

    result = Importer(out).run(
        encode(("attachment", "../evil.txt", b"x")), io.BytesIO()
    )

    assert result.errors == 1
    assert not (tmp_path / "evil.txt").exists()


def test_unusable_output_directory(tmp_path: Path) -> None:
    """Raises OutputDirectoryError when the directory cannot be created."""
    blocker = tmp_path / "file"
    blocker.write_text("")

    with pytest.raises(OutputDirectoryError):
        Importer(blocker / "sub")


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("a.xml", ("a.xml",)),
        ("/abs/a.xml", ("abs", "a.xml")),
        ("dir\\a.xml", ("dir", "a.xml")),
        ("./dir/./a.xml", ("dir", "a.xml")),
    ],
)
def test_resolve_destination(
    tmp_path: Path, name: str, expected: tuple[str, ...]
) -> None:
    """Maps artifact names to paths inside the output directory."""
    assert resolve_destination(tmp_path, name) == tmp_path.joinpath(*expected)


@pytest.mark.parametrize("name", ["../a", "a/../../b", "/", "."])
def test_resolve_destination_rejects(tmp_path: Path, name: str) -> None:
    """Rejects names that do not name a file inside the output directory."""
    with pytest.raises(ValueError):
        resolve_destination(tmp_path, name)
