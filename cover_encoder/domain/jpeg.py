"""
JPEG header decoder.

Extracts the dimensions and colour depth of a JPEG image by walking its marker
segments up to the first frame header. No entropy-coded data is read, so this is
a metadata extractor only; it supports the 8-bit baseline, extended-sequential
and progressive frame types, which is what cover art in practice uses.

References:
- stb_image.h, stbi__decode_jpeg_header / stbi__process_frame_header
- libopusenc src/picture.c
"""

from loguru import logger

from ..config.audio import JPEG_MIME_TYPE
from ..utils.byte_cursor import BytesReader
from .exceptions import InvalidFormatException
from .models import ImageInfo

# Marker codes (the byte following the 0xFF prefix).
MARKER_NONE = 0xFF
MARKER_SOI = 0xD8
MARKER_DHT = 0xC4
MARKER_DQT = 0xDB
MARKER_DRI = 0xDD
MARKER_COM = 0xFE

SOF_MARKERS = range(0xC0, 0xC3)  # baseline, extended sequential, progressive
RESTART_MARKERS = range(0xD0, 0xD8)
APP_MARKERS = range(0xE0, 0xF0)

SUPPORTED_PRECISION = 8
MIN_FRAME_HEADER_LENGTH = 11


def _next_marker(reader: BytesReader) -> int:
    """
    Reads the next marker code, skipping any 0xFF fill bytes before it.

    Returns MARKER_NONE when the byte at the current position is not a marker
    prefix.
    """
    m = reader.read_u8()
    if m != MARKER_NONE:
        return MARKER_NONE
    while m == MARKER_NONE:
        m = reader.read_u8()
    return m


def _is_skippable_segment(marker: int) -> bool:
    return (
        marker in APP_MARKERS
        or marker in (MARKER_COM, MARKER_DHT, MARKER_DQT, MARKER_DRI)
    )


def decode_jpeg(data: bytes) -> ImageInfo:
    """
    Decodes the frame header of a JPEG image.

    Args:
        data: The raw file contents, starting with the Start-Of-Image marker.

    Returns:
        An `ImageInfo` with the image's width, height and depth
        (components × precision). `colors` is always 0.

    Raises:
        InvalidFormatException: If the stream is not a JPEG, is truncated, uses
                                an unsupported marker, or has a precision other
                                than 8 bits.
    """
    reader = BytesReader(data)

    if _next_marker(reader) != MARKER_SOI:
        raise InvalidFormatException("Missing JPEG Start-Of-Image marker")

    while True:
        marker = _next_marker(reader)
        if marker in SOF_MARKERS:
            break
        if marker in RESTART_MARKERS:
            continue
        if not _is_skippable_segment(marker):
            raise InvalidFormatException(
                f"Unexpected JPEG marker 0x{marker:02X} at offset {reader.offset - 1}"
            )
        length = reader.read_u16_be()
        if length < 2:
            raise InvalidFormatException(
                f"Invalid length {length} for JPEG segment 0x{marker:02X}"
            )
        reader.read(length - 2)

    frame_length = reader.read_u16_be()
    if frame_length < MIN_FRAME_HEADER_LENGTH:
        raise InvalidFormatException(f"JPEG frame header too short: {frame_length}")
    precision = reader.read_u8()
    if precision != SUPPORTED_PRECISION:
        raise InvalidFormatException(f"Unsupported JPEG sample precision: {precision}")
    height = reader.read_u16_be()
    width = reader.read_u16_be()
    components = reader.read_u8()

    info = ImageInfo(
        mime_type=JPEG_MIME_TYPE,
        width=width,
        height=height,
        depth=components * precision,
        colors=0,
    )
    logger.debug(f"Decoded JPEG header (SOF 0x{marker:02X}): {info}")
    return info
