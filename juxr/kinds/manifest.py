"""Artifact kind manifest definition for the plugin system."""

from collections.abc import Callable
from dataclasses import dataclass

from juxr.kinds.base import ArtifactHandler
from juxr.reports.processor import ReportProcessor


@dataclass(frozen=True, kw_only=True)
class KindManifest:
    """Manifest describing an artifact kind plugin.

    The handler factory receives the report processor configured for the
    import so that handlers which rewrite reports share its settings.
    """

    description: str
    handler_factory: Callable[[ReportProcessor], ArtifactHandler]
