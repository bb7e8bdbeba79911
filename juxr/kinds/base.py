"""Abstract base class for artifact kind handlers."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from juxr.models.report import TestSuites

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class Materialized:
    """What a handler wrote for one decoded artifact."""

    path: Path
    report: TestSuites | None = None
    error: str | None = None


@dataclass(frozen=True, kw_only=True)
class ArtifactHandler(ABC):
    """Writes the payload of one kind of decoded artifact to disk."""

    @abstractmethod
    def materialize(self, destination: Path, payload: bytes) -> Materialized:
        """Write an artifact.

        Args:
            destination: File to write, already checked to lie inside the
                output directory
            payload: Decoded artifact content

        Returns:
            The written file, and the report it contained for report kinds

        Raises:
            OSError: If the file cannot be written

        """


def write_file(destination: Path, payload: bytes) -> None:
    """Write ``payload``, creating parent directories as needed."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(payload)
    log.debug("Wrote %d bytes to %s", len(payload), destination)
