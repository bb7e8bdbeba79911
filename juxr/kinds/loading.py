"""Loading of artifact kinds from entry points."""

from importlib.metadata import entry_points

from juxr.kinds.manifest import KindManifest

ENTRY_POINT_GROUP = "juxr.artifact_kinds"


class KindNotFoundError(Exception):
    """Raised when no handler is registered for an artifact kind."""


def load_kind_manifest(kind: str) -> KindManifest:
    """Load an artifact kind manifest by name.

    Args:
        kind: The kind as written in the needle and registered in
              pyproject.toml (e.g., "report", "attachment")

    Returns:
        The kind manifest instance

    Raises:
        KindNotFoundError: If no kind with the given name is registered

    """
    entries = entry_points(group=ENTRY_POINT_GROUP)

    for entry in entries:
        if entry.name == kind:
            manifest: KindManifest = entry.load()
            return manifest

    available = [e.name for e in entries]
    raise KindNotFoundError(
        f"Artifact kind '{kind}' not found. Available kinds: {available}"
    )
