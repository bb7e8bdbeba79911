"""Encoding side: frame reports and files into an output stream."""

import glob
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from pydantic import Field

from juxr.errors import NeedleError, ReportFormatError
from juxr.models.base import Model
from juxr.reports.junit import deserialize, serialize
from juxr.reports.processor import ProcessorSettings, ReportProcessor
from juxr.streams.encoder import Encoder
from juxr.streams.needle import ATTACHMENT_KIND, REPORT_KIND

log = logging.getLogger(__name__)


class ExportSettings(Model):
    """What to export and how reports are rewritten on the way."""

    reports: Sequence[str] = Field(
        default_factory=tuple, description="Glob patterns matching JUnit XML reports"
    )
    files: Sequence[str] = Field(
        default_factory=tuple, description="Glob patterns matching extra files"
    )
    processor: ProcessorSettings = Field(default_factory=ProcessorSettings)
    skip: bool = Field(default=False, description="Export nothing at all")


@dataclass(frozen=True, kw_only=True)
class ExportResult:
    reports: Sequence[str]
    files: Sequence[str]


def expand_globs(patterns: Iterable[str]) -> Sequence[Path]:
    """Files matched by any of the patterns, in match order, without duplicates."""
    seen: dict[Path, None] = {}
    for pattern in patterns:
        matches = sorted(glob.glob(pattern, recursive=True))
        if not matches:
            log.debug("No files match %s", pattern)
        for match in matches:
            path = Path(match)
            if path.is_file():
                seen.setdefault(path, None)
    return list(seen)


def artifact_name(path: Path, base: Path | None = None) -> str:
    """Name of a file in the stream: relative to ``base`` when inside it."""
    base = (base or Path.cwd()).resolve()
    resolved = path.resolve()
    try:
        return resolved.relative_to(base).as_posix()
    except ValueError:
        return resolved.as_posix()


class Exporter:
    """Frames the reports and files selected by :class:`ExportSettings`.

    Reports are processed before they are framed, and every attachment they
    reference is framed right after the report. Missing or unparseable
    reports are logged and skipped; failures writing the stream propagate.
    """

    def __init__(self, encoder: Encoder, settings: ExportSettings) -> None:
        self.encoder = encoder
        self.settings = settings
        self.processor = ReportProcessor(settings.processor)

    def export(self) -> ExportResult:
        if self.settings.skip:
            log.info("Exporting skipped")
            return ExportResult(reports=(), files=())

        reports: list[str] = []
        files: list[str] = []
        for path in expand_globs(self.settings.reports):
            if (name := self.export_report(path, files)) is not None:
                reports.append(name)
        for path in expand_globs(self.settings.files):
            if (name := self.export_file(path)) is not None:
                files.append(name)

        log.info("Exported %d report(s) and %d file(s)", len(reports), len(files))
        return ExportResult(reports=reports, files=files)

    def export_report(self, path: Path, files: list[str] | None = None) -> str | None:
        """Frame one report followed by its attachments.

        Returns:
            The name the report was framed under, or None if it was skipped

        """
        name = artifact_name(path)
        log.debug("Exporting report: %s", name)
        try:
            report = deserialize(path.read_bytes())
        except (OSError, ReportFormatError) as e:
            log.error("Could not export report %s: %s", path, e)
            return None

        processed = self.processor.process(report)
        try:
            with self.encoder.frame(REPORT_KIND, name) as writer:
                writer.write(serialize(processed.report))
        except NeedleError as e:
            log.error("Could not export report %s: %s", path, e)
            return None

        for attachment in processed.attachments:
            if self._copy(attachment, Path(attachment)) and files is not None:
                files.append(attachment)
        return name

    def export_file(self, path: Path) -> str | None:
        name = artifact_name(path)
        log.debug("Exporting file: %s", name)
        return name if self._copy(name, path) else None

    def _copy(self, name: str, path: Path) -> bool:
        try:
            source = path.open("rb")
        except OSError as e:
            log.warning("Could not export %s: %s", name, e)
            return False
        with source:
            try:
                self.encoder.copy_stream(ATTACHMENT_KIND, name, source)
            except NeedleError as e:
                log.warning("Could not export %s: %s", name, e)
                return False
        return True
