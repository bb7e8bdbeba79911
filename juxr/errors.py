"""Exceptions raised while framing, decoding and converting test results."""


class JuxrError(Exception):
    """Base class for all juxr errors."""


class NeedleError(JuxrError, ValueError):
    """Raised when a needle cannot be built or parsed."""


class EncoderError(JuxrError):
    """Raised when the encoder is used out of order."""


class FrameError(JuxrError):
    """A framed artifact could not be recovered.

    Frame errors are recoverable: the decoder reports them as events and
    keeps scanning the rest of the stream.
    """

    def __init__(self, message: str, *, name: str | None = None) -> None:
        super().__init__(message)
        self.name = name


class TruncatedFrameError(FrameError):
    """The stream ended before the closing needle of a frame."""


class MalformedPayloadError(FrameError):
    """A frame was closed but its payload is not valid base64."""


class ProtocolViolationError(FrameError):
    """A different needle appeared while a frame was still open."""


class TapError(JuxrError):
    """Raised when TAP input cannot be parsed."""


class AmbiguousExitClassificationError(JuxrError, ValueError):
    """Raised when an exit code is configured in more than one category."""


class OutputDirectoryError(JuxrError):
    """Raised when the output directory cannot be created or used."""


class ReportFormatError(JuxrError):
    """Raised when a JUnit XML report cannot be parsed."""
