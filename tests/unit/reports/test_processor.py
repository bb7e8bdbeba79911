"""Tests for ReportProcessor."""

from juxr.models.report import TestCase, TestSuite, TestSuites
from juxr.reports.processor import ProcessorSettings, ReportProcessor


def report_with(case: TestCase, output: str = "") -> TestSuites:
    return TestSuites(suites=(TestSuite(name="suite", cases=(case,), output=output),))


def test_applies_prefixes_and_suffixes() -> None:
    """Renames suites, cases and classes."""
    processor = ReportProcessor(
        ProcessorSettings(
            suite_prefix="linux.",
            suite_suffix="-py312",
            name_prefix="[",
            name_suffix="]",
            class_prefix="ci.",
            class_suffix=".Test",
        )
    )

    processed = processor.process(
        report_with(TestCase(name="test_a", classname="mod"))
    )

    [suite] = processed.report.suites
    assert suite.name == "linux.suite-py312"
    assert suite.cases[0].name == "[test_a]"
    assert suite.cases[0].classname == "ci.mod.Test"


def test_redacts_secrets_longest_first() -> None:
    """Replaces secret values everywhere, overlapping secrets fully."""
    processor = ReportProcessor(ProcessorSettings(secrets=["abc", "abcdef", ""]))
    case = TestCase(
        name="t",
        classname="c",
        status="failed",
        message="token abcdef rejected",
        details="abc and abcdef",
        output="abcdefabc",
    )

    [suite] = processor.process(report_with(case, output="abc")).report.suites

    assert suite.cases[0].message == "token **** rejected"
    assert suite.cases[0].details == "**** and ****"
    assert suite.cases[0].output == "********"
    assert suite.output == "****"


def test_collects_attachments() -> None:
    """Finds attachment references in case and suite output."""
    case = TestCase(
        name="t",
        classname="c",
        output="see [[ATTACHMENT|shots/a.png]]\n[[ATTACHMENT|logs\\b.log]]",
        error_output="[[ATTACHMENT|shots/a.png]]",
    )

    processed = ReportProcessor().process(
        report_with(case, output="[[ATTACHMENT|/tmp/c.txt]]")
    )

    assert processed.attachments == ["/tmp/c.txt", "logs/b.log", "shots/a.png"]
    assert processed.report.suites[0].cases[0].output == (
        "see [[ATTACHMENT|shots/a.png]]\n[[ATTACHMENT|logs/b.log]]"
    )


def test_rebases_attachments_onto_root() -> None:
    """References point into the attachment root after processing."""
    processor = ReportProcessor().with_attachment_root("/out")
    case = TestCase(name="t", classname="c", output="[[ATTACHMENT|/shots/a.png]]")

    processed = processor.process(report_with(case))

    assert processed.report.suites[0].cases[0].output == (
        "[[ATTACHMENT|/out/shots/a.png]]"
    )
    assert processed.attachments == ["/shots/a.png"]


def test_default_settings_leave_report_unchanged() -> None:
    """Processing with no settings is the identity."""
    report = report_with(TestCase(name="t", classname="c", output="plain"))

    assert ReportProcessor().process(report).report == report
