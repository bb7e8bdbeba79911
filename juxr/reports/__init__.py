"""JUnit XML reports: serialization and rewriting."""

from juxr.reports.junit import deserialize, serialize
from juxr.reports.processor import ProcessedReport, ProcessorSettings, ReportProcessor

__all__ = [
    "ProcessedReport",
    "ProcessorSettings",
    "ReportProcessor",
    "deserialize",
    "serialize",
]
