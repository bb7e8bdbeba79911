"""JUnit XML serialization of the report model."""

import logging
import xml.etree.ElementTree as ET

from juxr.errors import ReportFormatError
from juxr.models.report import (
    TestCase,
    TestStatus,
    TestSuite,
    TestSuites,
    format_seconds,
)

log = logging.getLogger(__name__)

SCHEMA_LOCATION = (
    "https://maven.apache.org/surefire/maven-surefire-plugin/xsd/"
    "surefire-test-report.xsd"
)
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

DIAGNOSTIC_PROPERTY = "juxr.diagnostic"
OUTCOME_PROPERTY = "juxr.outcome"
EXIT_CODE_PROPERTY = "juxr.exit-code"
EXIT_STATUSES = frozenset({"success", "failure", "skipped", "error"})

_STATUS_ELEMENTS: dict[str, TestStatus] = {
    "failure": "failed",
    "error": "error",
    "skipped": "skipped",
}


def serialize(report: TestSuite | TestSuites) -> bytes:
    """Render a suite, or a document of suites, as indented JUnit XML."""
    if isinstance(report, TestSuite):
        root = _suite_element(report)
    else:
        root = ET.Element("testsuites")
        if report.name:
            root.set("name", report.name)
        root.set("tests", str(report.tests))
        for suite in report.suites:
            root.append(_suite_element(suite))

    tree = ET.ElementTree(root)
    ET.indent(tree)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True) + b"\n"


def deserialize(data: bytes) -> TestSuites:
    """Parse a JUnit XML document with either a testsuite or testsuites root."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise ReportFormatError(f"Invalid JUnit XML: {e}") from e

    if root.tag == "testsuite":
        return TestSuites(suites=[_parse_suite(root)])
    if root.tag == "testsuites":
        return TestSuites(
            name=root.get("name"),
            suites=[_parse_suite(element) for element in root.iter("testsuite")],
        )
    raise ReportFormatError(f"Unexpected root element <{root.tag}>")


def _suite_element(suite: TestSuite) -> ET.Element:
    element = ET.Element(
        "testsuite",
        {
            "xsi:noNamespaceSchemaLocation": SCHEMA_LOCATION,
            "xmlns:xsi": XSI_NAMESPACE,
            "name": suite.name,
            "tests": str(suite.tests),
            "failures": str(suite.failures),
            "skipped": str(suite.skipped),
            "errors": str(suite.errors),
            "time": format_seconds(suite.duration),
        },
    )
    if suite.timestamp:
        element.set("timestamp", suite.timestamp)

    properties = list(suite.properties)
    properties.extend((DIAGNOSTIC_PROPERTY, d) for d in suite.diagnostics)
    if suite.outcome is not None:
        properties.append((OUTCOME_PROPERTY, suite.outcome))
    if suite.process_exit_code is not None:
        properties.append((EXIT_CODE_PROPERTY, str(suite.process_exit_code)))
    if properties:
        container = ET.SubElement(element, "properties")
        for name, value in properties:
            ET.SubElement(container, "property", {"name": name, "value": value})

    for case in suite.cases:
        element.append(_case_element(case))

    _append_text(element, "system-out", suite.output)
    _append_text(element, "system-err", suite.error_output)
    return element


def _case_element(case: TestCase) -> ET.Element:
    element = ET.Element(
        "testcase",
        {
            "name": case.name,
            "classname": case.classname,
            "time": format_seconds(case.duration),
        },
    )
    if case.status in {"failed", "error"}:
        tag = "failure" if case.status == "failed" else "error"
        child = ET.SubElement(
            element,
            tag,
            {"message": case.message or "", "type": case.failure_type or ""},
        )
        child.text = case.details or None
    elif case.status == "skipped":
        child = ET.SubElement(element, "skipped", {"message": case.message or ""})
        child.text = case.details or None
    _append_text(element, "system-out", case.output)
    _append_text(element, "system-err", case.error_output)
    return element


def _append_text(parent: ET.Element, tag: str, text: str) -> None:
    if text:
        ET.SubElement(parent, tag).text = text


def _parse_seconds(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value.replace(",", ""))
    except ValueError:
        log.warning("Ignoring invalid time attribute %r", value)
        return None


def _parse_suite(element: ET.Element) -> TestSuite:
    properties: list[tuple[str, str]] = []
    diagnostics: list[str] = []
    outcome = None
    exit_code = None
    for prop in element.iterfind("properties/property"):
        name = prop.get("name", "")
        value = prop.get("value", prop.text or "")
        if name == DIAGNOSTIC_PROPERTY:
            diagnostics.append(value)
        elif name == OUTCOME_PROPERTY and value in EXIT_STATUSES:
            outcome = value
        elif name == EXIT_CODE_PROPERTY and value.lstrip("-").isdigit():
            exit_code = int(value)
        else:
            properties.append((name, value))

    return TestSuite(
        name=element.get("name", ""),
        cases=[_parse_case(case) for case in element.iterfind("testcase")],
        properties=properties,
        diagnostics=diagnostics,
        output=element.findtext("system-out") or "",
        error_output=element.findtext("system-err") or "",
        time=_parse_seconds(element.get("time")),
        timestamp=element.get("timestamp"),
        outcome=outcome,
        process_exit_code=exit_code,
    )


def _parse_case(element: ET.Element) -> TestCase:
    status: TestStatus = "passed"
    message = None
    failure_type = None
    details = ""
    for tag, candidate in _STATUS_ELEMENTS.items():
        child = element.find(tag)
        if child is not None:
            status = candidate
            message = child.get("message")
            failure_type = child.get("type")
            details = child.text or ""
            break

    return TestCase(
        name=element.get("name", ""),
        classname=element.get("classname", ""),
        status=status,
        duration=_parse_seconds(element.get("time")) or 0.0,
        message=message,
        type=failure_type,
        details=details,
        output=element.findtext("system-out") or "",
        error_output=element.findtext("system-err") or "",
    )
