"""Marker lines that bound a framed artifact inside a text stream."""

import re
import uuid
from dataclasses import dataclass

from juxr.errors import NeedleError

NEEDLE_PREFIX = "[[juxr::stream::"
NEEDLE_SEPARATOR = "::"
NEEDLE_SUFFIX = "]]"

REPORT_KIND = "report"
ATTACHMENT_KIND = "attachment"

_TOKEN = r"[^\s:\]]+"
_NAME = r"(?:(?!::|\]\]|[\r\n]).)+"

NEEDLE_PATTERN = re.compile(
    rf"\[\[juxr::stream::(?P<session>{_TOKEN})::(?P<kind>{_TOKEN})"
    rf"::(?P<name>{_NAME})\]\]"
)
_TOKEN_PATTERN = re.compile(_TOKEN)
_NAME_PATTERN = re.compile(_NAME)


def new_session() -> str:
    """Generate a session identifier for one encoder run."""
    return str(uuid.uuid4())


@dataclass(frozen=True, kw_only=True)
class Needle:
    """Identity of one frame: the encoder session, the artifact kind and its name."""

    session: str
    kind: str
    name: str

    def __post_init__(self) -> None:
        if not _TOKEN_PATTERN.fullmatch(self.session):
            raise NeedleError(f"Invalid session identifier: {self.session!r}")
        if not _TOKEN_PATTERN.fullmatch(self.kind):
            raise NeedleError(f"Invalid artifact kind: {self.kind!r}")
        if not _NAME_PATTERN.fullmatch(self.name) or self.name.endswith("]"):
            raise NeedleError(
                f"Invalid artifact name {self.name!r}: "
                "names must not contain '::', ']]' or line breaks, nor end with ']'"
            )

    def __str__(self) -> str:
        return (
            f"{NEEDLE_PREFIX}{self.session}{NEEDLE_SEPARATOR}{self.kind}"
            f"{NEEDLE_SEPARATOR}{self.name}{NEEDLE_SUFFIX}"
        )

    def as_bytes(self) -> bytes:
        return str(self).encode("utf-8")

    @classmethod
    def parse(cls, line: str | bytes) -> "Needle | None":
        """Parse a line that consists of nothing but a needle.

        Surrounding whitespace (including the line terminator) is ignored.
        Returns None when the line is not a needle.
        """
        if isinstance(line, bytes):
            if NEEDLE_PREFIX.encode() not in line:
                return None
            text = line.decode("utf-8", errors="replace")
        else:
            text = line
        match = NEEDLE_PATTERN.fullmatch(text.strip())
        if match is None:
            return None
        return cls(
            session=match["session"], kind=match["kind"], name=match["name"]
        )
