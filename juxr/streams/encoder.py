"""Frame binary artifacts into a line-oriented output stream."""

import base64
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

from juxr.errors import EncoderError
from juxr.streams.needle import Needle, new_session

log = logging.getLogger(__name__)

DEFAULT_LINE_WIDTH = 76
COPY_CHUNK_SIZE = 64 * 1024

# "!" is outside the base64 alphabet, so a frame carrying this line can never
# decode successfully.
ABORTED_PAYLOAD = b"!aborted\n"


class FrameWriter:
    """Handle for the payload of one open frame."""

    def __init__(self, encoder: "Encoder", needle: Needle) -> None:
        self.encoder = encoder
        self.needle = needle
        self.size = 0
        self._pending = b""
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        """Base64-encode data into the stream, one wrapped line at a time."""
        if self._closed:
            raise EncoderError(f"Frame for {self.needle.name} is already closed")
        self.size += len(data)
        buffered = self._pending + data
        chunk = self.encoder.chunk_size
        complete = len(buffered) - len(buffered) % chunk
        for offset in range(0, complete, chunk):
            self.encoder.write_line(
                base64.b64encode(buffered[offset : offset + chunk])
            )
        self._pending = buffered[complete:]
        return len(data)

    def end(self) -> None:
        """Flush the payload and write the closing needle."""
        if self._closed:
            return
        if self._pending:
            self.encoder.write_line(base64.b64encode(self._pending))
            self._pending = b""
        self.encoder.close_frame(self)
        self._closed = True

    def abort(self) -> None:
        """Close the frame so that the decoder rejects its payload."""
        if self._closed:
            return
        self._pending = b""
        self.encoder.write_raw(ABORTED_PAYLOAD)
        self.encoder.close_frame(self)
        self._closed = True


class Encoder:
    """Writes framed artifacts to a binary stream shared with ordinary output.

    Every frame is written as a blank separator line, the opening needle,
    the base64 payload wrapped at ``line_width`` characters, the identical
    closing needle and a trailing blank line. Frames are sequential, never
    nested.
    """

    def __init__(
        self,
        stream: BinaryIO,
        *,
        session: str | None = None,
        session_factory: Callable[[], str] = new_session,
        line_width: int = DEFAULT_LINE_WIDTH,
    ) -> None:
        if line_width < 4 or line_width % 4:
            raise ValueError("line_width must be a positive multiple of 4")
        self.stream = stream
        self.session = session if session is not None else session_factory()
        self.line_width = line_width
        self.chunk_size = line_width // 4 * 3
        self._current: FrameWriter | None = None

    @property
    def current(self) -> FrameWriter | None:
        return self._current

    def begin(self, kind: str, name: str) -> FrameWriter:
        """Open a frame and return the writer for its payload."""
        if self._current is not None:
            raise EncoderError(
                f"Cannot begin {name}: "
                f"frame for {self._current.needle.name} is still open"
            )
        needle = Needle(session=self.session, kind=kind, name=name)
        log.debug("Opening frame %s", needle)
        self.write_raw(b"\n")
        self.write_line(needle.as_bytes())
        self._current = FrameWriter(self, needle)
        return self._current

    def write(self, data: bytes) -> int:
        if self._current is None:
            raise EncoderError("No frame is open")
        return self._current.write(data)

    def end(self) -> None:
        if self._current is None:
            raise EncoderError("No frame is open")
        self._current.end()

    @contextmanager
    def frame(self, kind: str, name: str) -> Iterator[FrameWriter]:
        """Open a frame for the duration of the block.

        If the block raises, the frame is still closed, with a payload the
        decoder will reject, and the error propagates to the caller.
        """
        writer = self.begin(kind, name)
        try:
            yield writer
        except BaseException:
            log.error("Export of %s failed, closing frame as corrupt", name)
            writer.abort()
            raise
        writer.end()

    def copy_file(self, kind: str, name: str, path: Path) -> int:
        """Frame the contents of a file and return the number of bytes exported."""
        with path.open("rb") as source:
            return self.copy_stream(kind, name, source)

    def copy_stream(self, kind: str, name: str, source: BinaryIO) -> int:
        with self.frame(kind, name) as writer:
            while chunk := source.read(COPY_CHUNK_SIZE):
                writer.write(chunk)
        log.debug("Exported %s (%d bytes)", name, writer.size)
        return writer.size

    def write_line(self, data: bytes) -> None:
        self.stream.write(data)
        self.stream.write(b"\n")

    def write_raw(self, data: bytes) -> None:
        self.stream.write(data)

    def close_frame(self, writer: FrameWriter) -> None:
        if writer is not self._current:
            raise EncoderError(f"Frame for {writer.needle.name} is not the open frame")
        self.write_line(writer.needle.as_bytes())
        self.write_raw(b"\n")
        self.stream.flush()
        self._current = None
