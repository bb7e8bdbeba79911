"""Multiplexing of binary artifacts through a line-oriented text stream."""

from juxr.streams.decoder import (
    Artifact,
    Decoder,
    DecoderEvent,
    FrameFailed,
    Idle,
    InFrame,
    Passthrough,
)
from juxr.streams.encoder import Encoder, FrameWriter
from juxr.streams.needle import ATTACHMENT_KIND, REPORT_KIND, Needle, new_session

__all__ = [
    "ATTACHMENT_KIND",
    "REPORT_KIND",
    "Artifact",
    "Decoder",
    "DecoderEvent",
    "Encoder",
    "FrameFailed",
    "FrameWriter",
    "Idle",
    "InFrame",
    "Needle",
    "Passthrough",
    "new_session",
]
