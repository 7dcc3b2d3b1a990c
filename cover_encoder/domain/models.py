"""
Value objects exchanged between the components of the Cover Encoder.

Everything here is immutable once constructed. Requests and results are built
fresh for every conversion and are the only data that crosses the boundary of an
execution context, apart from the streamed text lines.
"""

from dataclasses import dataclass, field
from enum import Enum, unique
from types import MappingProxyType
from typing import Callable, Mapping, Optional


@dataclass(frozen=True)
class ImageInfo:
    """
    Minimal structural metadata of an image, as stored in a picture block.

    Produced by the JPEG header decoder. `colors` is the palette size and is 0
    for non-indexed images.
    """

    mime_type: str
    width: int
    height: int
    depth: int
    colors: int = 0


@dataclass(frozen=True)
class PictureBlock:
    """The fields of a decoded METADATA_BLOCK_PICTURE record."""

    picture_type: int
    mime_type: str
    description: str
    width: int
    height: int
    depth: int
    colors: int
    data: bytes


@dataclass(frozen=True)
class TagFields:
    """Free-form tag values; empty or missing values are never written."""

    artist: Optional[str] = None
    title: Optional[str] = None
    album: Optional[str] = None

    def get(self, name: str) -> str:
        return getattr(self, name) or ""


@dataclass(frozen=True)
class TimeRange:
    """An optional trim window in seconds. Either end may be left open."""

    start_seconds: Optional[float] = None
    end_seconds: Optional[float] = None

    def __post_init__(self):
        if self.start_seconds is not None and self.start_seconds < 0:
            raise ValueError(f"Start time cannot be negative: {self.start_seconds}")
        if self.end_seconds is not None and self.end_seconds < 0:
            raise ValueError(f"End time cannot be negative: {self.end_seconds}")
        if (
            self.start_seconds is not None
            and self.end_seconds is not None
            and self.start_seconds > self.end_seconds
        ):
            raise ValueError(
                f"Start time ({self.start_seconds}) must not be after end time ({self.end_seconds})"
            )

    @property
    def is_open(self) -> bool:
        return self.start_seconds is None and self.end_seconds is None


@dataclass(frozen=True)
class InputFile:
    """A file staged into an execution context before the engine runs."""

    path: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class ConversionRequest:
    """
    One engine invocation: its argument list, staged inputs and expected outputs.

    Attributes:
        arguments: Command-line-like tokens passed to the engine, in order.
        input_files: Files written into the context's virtual filesystem first.
        output_files: Virtual paths read back after the engine finishes. Every
                      one of them must exist or the call fails.
    """

    arguments: tuple[str, ...]
    input_files: tuple[InputFile, ...] = ()
    output_files: tuple[str, ...] = ()

    def __post_init__(self):
        # Accept any sequence from callers but store tuples.
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "input_files", tuple(self.input_files))
        object.__setattr__(self, "output_files", tuple(self.output_files))


@dataclass(frozen=True)
class ConversionResult:
    """
    The outcome of one engine invocation.

    A non-zero `exit_code` is data, not an error; callers decide what it means.
    """

    exit_code: int
    output_files: Mapping[str, bytes] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        object.__setattr__(
            self, "output_files", MappingProxyType(dict(self.output_files))
        )

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@unique
class StreamName(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True)
class StreamMessage:
    """A single line of engine output, tagged with the stream it came from."""

    stream: StreamName
    line: str


# Receives engine output lines as they arrive.
StreamSink = Callable[[StreamMessage], None]
