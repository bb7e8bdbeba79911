"""Recover framed artifacts from a line-oriented input stream.

The decoder is an explicit state machine. :func:`advance` is a pure function
of the current state and one input line; :class:`Decoder` holds the state for
a single input stream and logs the recoverable errors it reports.
"""

import base64
import binascii
import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from juxr.errors import (
    FrameError,
    MalformedPayloadError,
    ProtocolViolationError,
    TruncatedFrameError,
)
from juxr.streams.needle import Needle

log = logging.getLogger(__name__)

# whitespace, ASCII control characters and anything outside strict US-ASCII
_PAYLOAD_NOISE = bytes(range(0, 33)) + bytes(range(128, 256))


@dataclass(frozen=True, kw_only=True)
class Idle:
    """Scanning for an opening needle.

    ``held_blank`` is a blank line waiting to find out whether it is the
    separator written before an opening needle. ``after_frame`` is set right
    after a closing needle, when the next blank line is the trailing separator.
    """

    held_blank: bytes | None = None
    after_frame: bool = False


@dataclass(kw_only=True)
class InFrame:
    """Accumulating the base64 payload of the frame opened by ``needle``."""

    needle: Needle
    payload: bytearray = field(default_factory=bytearray)


type DecoderState = Idle | InFrame


@dataclass(frozen=True, kw_only=True)
class Passthrough:
    """Content outside any frame, forwarded unchanged."""

    data: bytes


@dataclass(frozen=True, kw_only=True)
class Artifact:
    """A completely received and decoded frame."""

    needle: Needle
    payload: bytes

    @property
    def kind(self) -> str:
        return self.needle.kind

    @property
    def name(self) -> str:
        return self.needle.name


@dataclass(frozen=True, kw_only=True)
class FrameFailed:
    """A frame that could not be recovered."""

    error: FrameError


type DecoderEvent = Passthrough | Artifact | FrameFailed


def decode_payload(needle: Needle, payload: bytes | bytearray) -> DecoderEvent:
    """Decode the accumulated payload of a closed frame."""
    cleaned = bytes(payload).translate(None, _PAYLOAD_NOISE)
    try:
        data = base64.b64decode(cleaned, validate=True)
    except binascii.Error as e:
        return FrameFailed(
            error=MalformedPayloadError(
                f"Payload of {needle.name} is not valid base64: {e}", name=needle.name
            )
        )
    return Artifact(needle=needle, payload=data)


def _release(held: bytes | None, *lines: bytes) -> list[DecoderEvent]:
    pending = [held] if held is not None else []
    return [Passthrough(data=line) for line in (*pending, *lines)]


def advance(
    state: DecoderState, line: bytes
) -> tuple[DecoderState, Sequence[DecoderEvent]]:
    """Feed one line, including its terminator, to the state machine."""
    needle = Needle.parse(line)

    match state:
        case Idle(held_blank=held, after_frame=after_frame):
            if needle is not None:
                # a held blank line directly before a needle is its separator
                return InFrame(needle=needle), []
            if not line.strip():
                if after_frame:
                    return Idle(), []
                return Idle(held_blank=line), _release(held)
            return Idle(), _release(held, line)

        case InFrame(needle=current, payload=payload):
            if needle is None:
                payload.extend(line)
                return state, []
            if needle == current:
                return Idle(after_frame=True), [decode_payload(current, payload)]
            violation = ProtocolViolationError(
                f"Frame {current.name} (session {current.session}) interrupted by "
                f"{needle.name} (session {needle.session})",
                name=current.name,
            )
            return InFrame(needle=needle), [FrameFailed(error=violation)]

    raise TypeError(f"Unknown decoder state: {state!r}")


def finish(state: DecoderState) -> Sequence[DecoderEvent]:
    """Flush the state machine at the end of the input."""
    match state:
        case InFrame(needle=needle):
            return [
                FrameFailed(
                    error=TruncatedFrameError(
                        f"Stream ended before the end of {needle.name}",
                        name=needle.name,
                    )
                )
            ]
        case Idle(held_blank=held):
            return _release(held)
    raise TypeError(f"Unknown decoder state: {state!r}")


class Decoder:
    """Splits one input stream into passthrough content and artifacts."""

    def __init__(self) -> None:
        self.state: DecoderState = Idle()

    def process_line(self, line: bytes) -> Sequence[DecoderEvent]:
        previous = self.state
        self.state, events = advance(self.state, line)
        if isinstance(self.state, InFrame) and self.state is not previous:
            log.debug("Decoding %s", self.state.needle.name)
        self._log(events)
        return events

    def finish(self) -> Sequence[DecoderEvent]:
        events = finish(self.state)
        self.state = Idle()
        self._log(events)
        return events

    def decode(self, lines: Iterable[bytes]) -> Iterator[DecoderEvent]:
        """Decode a whole stream, yielding events in input order."""
        for line in lines:
            yield from self.process_line(line)
        yield from self.finish()

    @staticmethod
    def _log(events: Iterable[DecoderEvent]) -> None:
        for event in events:
            if isinstance(event, FrameFailed):
                log.error("%s", event.error)
