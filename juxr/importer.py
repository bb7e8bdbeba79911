"""Decoding side: passthrough to a writer, artifacts to an output directory."""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from juxr.errors import OutputDirectoryError
from juxr.kinds.attachment import AttachmentHandler
from juxr.kinds.base import ArtifactHandler, Materialized
from juxr.kinds.loading import KindNotFoundError, load_kind_manifest
from juxr.models.report import TestSuites
from juxr.reports.processor import ReportProcessor
from juxr.streams.decoder import Artifact, Decoder, FrameFailed, Passthrough

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ImportResult:
    """Everything recovered from one input stream."""

    reports: Sequence[TestSuites]
    files: Sequence[Path]
    errors: int

    @property
    def failed(self) -> bool:
        return self.errors > 0


def resolve_destination(output_dir: Path, name: str) -> Path:
    """Map an artifact name to a file inside ``output_dir``.

    Leading slashes are dropped and backslashes are treated as separators.

    Raises:
        ValueError: If the name is empty or would escape ``output_dir``

    """
    relative = PurePosixPath(name.replace("\\", "/").lstrip("/"))
    parts = [part for part in relative.parts if part != "."]
    if not parts:
        raise ValueError(f"Artifact name {name!r} does not name a file")
    if ".." in parts:
        raise ValueError(f"Artifact name {name!r} escapes the output directory")
    return output_dir.joinpath(*parts)


class Importer:
    """Writes the artifacts found in a stream below ``output_dir``.

    A later artifact with the same destination overwrites the earlier one.
    """

    def __init__(
        self, output_dir: Path, processor: ReportProcessor | None = None
    ) -> None:
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputDirectoryError(
                f"Could not create output directory {output_dir}: {e}"
            ) from e
        if not output_dir.is_dir():
            raise OutputDirectoryError(f"{output_dir} is not a directory")

        self.output_dir = output_dir
        self.processor = (processor or ReportProcessor()).with_attachment_root(
            str(output_dir)
        )
        self._handlers: dict[str, ArtifactHandler] = {}

    def run(self, lines: Iterable[bytes], passthrough: BinaryIO) -> ImportResult:
        """Decode ``lines``, copying everything outside frames to ``passthrough``."""
        reports: dict[Path, TestSuites] = {}
        files: list[Path] = []
        errors = 0

        for event in Decoder().decode(lines):
            match event:
                case Passthrough(data=data):
                    passthrough.write(data)
                    passthrough.flush()
                case FrameFailed():
                    errors += 1
                case Artifact() as artifact:
                    written = self._store(artifact, files)
                    if written is not None:
                        # a later copy replaces the earlier report on disk
                        reports.pop(written.path, None)
                    if written is None or written.error is not None:
                        errors += 1
                    elif written.report is not None:
                        reports[written.path] = written.report

        log.info(
            "Imported %d report(s) and %d file(s) into %s",
            len(reports),
            len(files),
            self.output_dir,
        )
        return ImportResult(reports=list(reports.values()), files=files, errors=errors)

    def _store(self, artifact: Artifact, files: list[Path]) -> Materialized | None:
        try:
            destination = resolve_destination(self.output_dir, artifact.name)
        except ValueError as e:
            log.error("Dropping %s artifact: %s", artifact.kind, e)
            return None

        if destination in files:
            log.warning(
                "%s was imported more than once, keeping the last copy", destination
            )
            files.remove(destination)

        try:
            written = self._handler(artifact.kind).materialize(
                destination, artifact.payload
            )
        except OSError as e:
            log.error("Could not write %s: %s", destination, e)
            return None

        log.debug("Decoded %s %s", artifact.kind, written.path)
        files.append(written.path)
        return written

    def _handler(self, kind: str) -> ArtifactHandler:
        if (handler := self._handlers.get(kind)) is not None:
            return handler

        try:
            handler = load_kind_manifest(kind).handler_factory(self.processor)
        except KindNotFoundError:
            log.warning("Unknown artifact kind %r, importing as a plain file", kind)
            handler = AttachmentHandler()
        self._handlers[kind] = handler
        return handler
