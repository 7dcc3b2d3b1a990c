"""
Defines custom exception types for the Cover Encoder application.

These exceptions allow specific and expressive error handling throughout the
conversion workflow. Instead of catching a generic `Exception`, callers can catch
`InvalidFormatException` or `MissingOutputException` and react accordingly.

All custom exceptions inherit from the base `CoverEncoderException`.
"""


class CoverEncoderException(Exception):
    """Base class for all custom exceptions in the Cover Encoder application."""

    pass


# --- Picture / Binary Codec Exceptions ---
class PictureException(CoverEncoderException):
    """Base class for exceptions raised while building a picture block."""

    pass


class InvalidFormatException(PictureException):
    """
    Raised when an image bitstream is malformed or uses an unsupported variant.

    Covers a missing Start-Of-Image marker, an unknown marker segment, a bad
    segment length, a sample precision other than 8, and truncated input.
    """

    pass


class UnderrunException(InvalidFormatException):
    """
    Raised when a reader is asked for more bytes than remain in its buffer.

    A read never returns a short result; it fails with this exception instead.
    """

    pass


class SizeLimitExceededException(PictureException):
    """
    Raised when a picture block would reach or exceed the 2^24 byte tag limit.

    The check happens before any buffer is allocated.
    """

    pass


# --- Worker Channel Exceptions ---
class WorkerChannelException(CoverEncoderException):
    """
    Base class for failures while executing a request against the engine.

    By the time one of these is observable the execution context has already
    been torn down.
    """

    pass


class EngineStartException(WorkerChannelException):
    """Raised when the engine cannot be located or its process cannot be launched."""

    pass


class MissingOutputException(WorkerChannelException):
    """
    Raised when a declared output path is absent after the engine has finished.

    The call fails outright rather than returning a partial result.
    """

    def __init__(self, path: str, exit_code: int | None = None):
        self.path = path
        self.exit_code = exit_code
        message = f"Engine did not produce declared output '{path}'"
        if exit_code is not None:
            message += f" (exit code {exit_code})"
        super().__init__(message)


class ConversionCancelledException(WorkerChannelException):
    """Raised by a job whose execution context was forcibly torn down by the caller."""

    pass


class EngineTimeoutException(WorkerChannelException):
    """Raised when the engine runs longer than the caller's timeout."""

    pass


# --- Conversion Workflow Exceptions ---
class ConversionFailedException(CoverEncoderException):
    """
    Raised by the conversion service when the engine exits with a non-zero code.

    The worker channel reports exit codes as data; this is the caller-level
    policy applied on top of it.

    Attributes:
        exit_code (int): The engine's exit code.
        stderr_tail (list[str]): The last lines the engine wrote to stderr.
    """

    def __init__(self, exit_code: int, stderr_tail: list[str] | None = None):
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail or []
        super().__init__(f"Engine exited with code {exit_code}")


class MediaProbeException(CoverEncoderException):
    """Raised when ffprobe cannot read a media file's format information."""

    pass


class InvalidOutputFormatException(CoverEncoderException, ValueError):
    """Raised when an output format name is empty or not purely alphanumeric."""

    pass
