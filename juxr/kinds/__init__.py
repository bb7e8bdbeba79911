"""Handlers that materialize decoded artifacts, one per artifact kind."""

from juxr.kinds.base import ArtifactHandler, Materialized
from juxr.kinds.loading import KindNotFoundError, load_kind_manifest
from juxr.kinds.manifest import KindManifest

__all__ = [
    "ArtifactHandler",
    "KindManifest",
    "KindNotFoundError",
    "Materialized",
    "load_kind_manifest",
]
