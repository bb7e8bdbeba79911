"""Tests for the exporter."""

import io
import logging
from pathlib import Path

import pytest

from juxr.exporter import ExportSettings, Exporter, artifact_name, expand_globs
from juxr.models.report import TestCase, TestSuite
from juxr.reports.junit import deserialize, serialize
from juxr.reports.processor import ProcessorSettings
from juxr.streams.decoder import Artifact, Decoder
from juxr.streams.encoder import Encoder


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Working directory with a report, its attachment and a log file."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "target" / "reports").mkdir(parents=True)
    suite = TestSuite(
        name="suite",
        cases=[
            TestCase(
                name="t",
                classname="c",
                output="token s3cr3t [[ATTACHMENT|target/shot.png]]",
            )
        ],
    )
    (tmp_path / "target" / "reports" / "TEST-suite.xml").write_bytes(serialize(suite))
    (tmp_path / "target" / "shot.png").write_bytes(b"\x89PNG")
    (tmp_path / "build.log").write_text("log\n")
    return tmp_path


def export(settings: ExportSettings) -> list[Artifact]:
    stream = io.BytesIO()
    Exporter(Encoder(stream), settings).export()
    lines = io.BytesIO(stream.getvalue()).readlines()
    return [event for event in Decoder().decode(lines) if isinstance(event, Artifact)]


def test_exports_report_attachments_and_files(workspace: Path) -> None:
    """Frames the report, then its attachments, then extra files."""
    artifacts = export(
        ExportSettings(reports=["target/**/TEST-*.xml"], files=["*.log"])
    )

    assert [(a.kind, a.name) for a in artifacts] == [
        ("report", "target/reports/TEST-suite.xml"),
        ("attachment", "target/shot.png"),
        ("attachment", "build.log"),
    ]
    assert artifacts[1].payload == b"\x89PNG"
    assert artifacts[2].payload == b"log\n"


def test_processes_reports_before_framing(workspace: Path) -> None:
    """Reports are renamed and redacted on the way out."""
    settings = ExportSettings(
        reports=["target/reports/*.xml"],
        processor=ProcessorSettings(suite_prefix="linux.", secrets=["s3cr3t"]),
    )

    [report, _] = export(settings)

    [suite] = deserialize(report.payload).suites
    assert suite.name == "linux.suite"
    assert "s3cr3t" not in suite.cases[0].output
    assert "token ****" in suite.cases[0].output


def test_skip_exports_nothing(workspace: Path) -> None:
    """The skip flag suppresses every frame."""
    stream = io.BytesIO()

    result = Exporter(
        Encoder(stream), ExportSettings(reports=["**/*.xml"], skip=True)
    ).export()

    assert stream.getvalue() == b""
    assert result.reports == ()


def test_invalid_report_is_skipped(
    workspace: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Reports that cannot be parsed are logged and not framed."""
    (workspace / "broken.xml").write_text("<testsuite")

    with caplog.at_level(logging.ERROR):
        artifacts = export(ExportSettings(reports=["broken.xml"]))

    assert artifacts == []
    assert "Could not export report broken.xml" in caplog.text


def test_missing_attachment_is_skipped(
    workspace: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """A reference to a file that does not exist is logged."""
    (workspace / "target" / "shot.png").unlink()

    with caplog.at_level(logging.WARNING):
        artifacts = export(ExportSettings(reports=["target/reports/*.xml"]))

    assert [a.kind for a in artifacts] == ["report"]
    assert "Could not export target/shot.png" in caplog.text


def test_expand_globs_deduplicates(workspace: Path) -> None:
    """Files matched by several patterns are exported once."""
    paths = expand_globs(["*.log", "build.*", "missing/*"])

    assert paths == [Path("build.log")]


def test_artifact_name_relative_to_base(tmp_path: Path) -> None:
    """Names are relative inside the base and absolute outside it."""
    inside = tmp_path / "a" / "b.txt"
    outside = tmp_path.parent / "elsewhere.txt"

    assert artifact_name(inside, tmp_path) == "a/b.txt"
    assert artifact_name(outside, tmp_path) == outside.resolve().as_posix()


def test_unframeable_file_name_is_skipped(
    workspace: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """A file whose name cannot be framed is skipped and the export goes on."""
    (workspace / "a::b.txt").write_text("bad\n")
    (workspace / "z.txt").write_text("good\n")
    stream = io.BytesIO()

    with caplog.at_level(logging.WARNING):
        result = Exporter(Encoder(stream), ExportSettings(files=["*.txt"])).export()

    assert list(result.files) == ["z.txt"]
    artifacts = [
        event
        for event in Decoder().decode(io.BytesIO(stream.getvalue()).readlines())
        if isinstance(event, Artifact)
    ]
    assert [(a.name, a.payload) for a in artifacts] == [("z.txt", b"good\n")]
    assert "Could not export a::b.txt" in caplog.text


def test_unframeable_report_name_is_skipped(
    workspace: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """A report whose name cannot be framed does not stop later reports."""
    suite = serialize(TestSuite(name="other"))
    (workspace / "reports::x").mkdir()
    (workspace / "reports::x" / "TEST-a.xml").write_bytes(suite)
    (workspace / "TEST-b.xml").write_bytes(suite)

    with caplog.at_level(logging.ERROR):
        artifacts = export(ExportSettings(reports=["reports::x/*.xml", "TEST-*.xml"]))

    assert [a.name for a in artifacts] == ["TEST-b.xml"]
    assert "Could not export report reports::x/TEST-a.xml" in caplog.text
