"""Attachments: files written exactly as they were framed."""

from dataclasses import dataclass
from pathlib import Path

from juxr.kinds.base import ArtifactHandler, Materialized, write_file
from juxr.kinds.manifest import KindManifest
from juxr.reports.processor import ReportProcessor


@dataclass(frozen=True, kw_only=True)
class AttachmentHandler(ArtifactHandler):
    @classmethod
    def from_processor(cls, processor: ReportProcessor) -> "AttachmentHandler":
        return cls()

    def materialize(self, destination: Path, payload: bytes) -> Materialized:
        write_file(destination, payload)
        return Materialized(path=destination)


attachment_manifest = KindManifest(
    description="Arbitrary file, written verbatim",
    handler_factory=AttachmentHandler.from_processor,
)
