"""JUnit XML reports, rewritten to point at the imported attachments."""

import logging
from dataclasses import dataclass
from pathlib import Path

from juxr.errors import ReportFormatError
from juxr.kinds.base import ArtifactHandler, Materialized, write_file
from juxr.kinds.manifest import KindManifest
from juxr.reports.junit import deserialize, serialize
from juxr.reports.processor import ReportProcessor

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ReportHandler(ArtifactHandler):
    """Parses, processes and writes a report.

    A payload that is not valid JUnit XML is still written verbatim so that
    nothing is lost, but it is reported as an error.
    """

    processor: ReportProcessor

    @classmethod
    def from_processor(cls, processor: ReportProcessor) -> "ReportHandler":
        return cls(processor=processor)

    def materialize(self, destination: Path, payload: bytes) -> Materialized:
        try:
            report = deserialize(payload)
        except ReportFormatError as e:
            log.error("Report %s could not be parsed: %s", destination, e)
            write_file(destination, payload)
            return Materialized(path=destination, error=str(e))

        processed = self.processor.process(report)
        write_file(destination, serialize(processed.report))
        return Materialized(path=destination, report=processed.report)


report_manifest = KindManifest(
    description="JUnit XML test report",
    handler_factory=ReportHandler.from_processor,
)
