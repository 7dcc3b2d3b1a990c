"""
Xiph picture block codec.

Serializes cover art into the METADATA_BLOCK_PICTURE layout shared by FLAC and
Vorbis comments (Opus, Ogg Vorbis). All integers are unsigned 32-bit big-endian
and every variable-length field is prefixed by its length in bytes:

    picture type | mime length, mime | description length, description |
    width | height | depth | colors | data length, data

References:
- https://wiki.xiph.org/VorbisComment#Cover_art
- https://xiph.org/flac/format.html#metadata_block_picture
"""

import base64

from loguru import logger

from ..config.audio import MAX_PICTURE_BLOCK_SIZE, PICTURE_TYPE_FRONT_COVER
from ..utils.byte_cursor import BytesReader, BytesWriter, u32_be
from .exceptions import InvalidFormatException, SizeLimitExceededException
from .jpeg import decode_jpeg
from .models import ImageInfo, PictureBlock


def picture_block_size(mime_type: bytes, description: bytes, data_length: int) -> int:
    return (
        4  # picture type
        + 4 + len(mime_type)
        + 4 + len(description)
        + 4 * 4  # width, height, depth, colors
        + 4 + data_length
    )


def encode_picture_block(
    data: bytes, info: ImageInfo, picture_type: int, description: str
) -> bytes:
    """
    Builds a picture block for `data` described by `info`.

    Extracting `info` from the image and base64-encoding the result are left to
    the caller (see `encode_picture_tag`).

    Raises:
        SizeLimitExceededException: If the block would be 2^24 bytes or larger.
    """
    mime_bytes = info.mime_type.encode("utf-8")
    description_bytes = description.encode("utf-8")
    num_bytes = picture_block_size(mime_bytes, description_bytes, len(data))
    if num_bytes >= MAX_PICTURE_BLOCK_SIZE:
        raise SizeLimitExceededException(
            f"Picture block of {num_bytes} bytes exceeds the {MAX_PICTURE_BLOCK_SIZE} byte limit"
        )

    writer = BytesWriter(num_bytes)
    writer.write(u32_be(picture_type))

    writer.write(u32_be(len(mime_bytes)))
    writer.write(mime_bytes)

    writer.write(u32_be(len(description_bytes)))
    writer.write(description_bytes)

    writer.write(u32_be(info.width))
    writer.write(u32_be(info.height))
    writer.write(u32_be(info.depth))
    writer.write(u32_be(info.colors))

    writer.write(u32_be(len(data)))
    writer.write(data)

    return writer.data


def decode_picture_block(block: bytes) -> PictureBlock:
    """
    Reads a picture block back into its fields.

    Raises:
        InvalidFormatException: If a length field points past the end of the
                                block, text is not UTF-8, or bytes are left over.
    """
    reader = BytesReader(block)
    picture_type = reader.read_u32_be()
    mime_type = reader.read(reader.read_u32_be())
    description = reader.read(reader.read_u32_be())
    width = reader.read_u32_be()
    height = reader.read_u32_be()
    depth = reader.read_u32_be()
    colors = reader.read_u32_be()
    data = reader.read(reader.read_u32_be())
    if reader.remaining:
        raise InvalidFormatException(
            f"{reader.remaining} trailing bytes after picture data"
        )
    try:
        return PictureBlock(
            picture_type=picture_type,
            mime_type=mime_type.decode("utf-8"),
            description=description.decode("utf-8"),
            width=width,
            height=height,
            depth=depth,
            colors=colors,
            data=data,
        )
    except UnicodeDecodeError as e:
        raise InvalidFormatException(f"Picture block text is not UTF-8: {e}") from e


def encode_picture_tag(
    image_data: bytes,
    picture_type: int = PICTURE_TYPE_FRONT_COVER,
    description: str = "",
) -> str:
    """Decodes a JPEG's header and returns its picture block as base64 text."""
    info = decode_jpeg(image_data)
    block = encode_picture_block(image_data, info, picture_type, description)
    logger.debug(
        f"Encoded {info.width}x{info.height} picture into a {len(block)} byte block"
    )
    return base64.b64encode(block).decode("ascii")


def decode_picture_tag(tag_value: str) -> PictureBlock:
    """Inverse of `encode_picture_tag` for a base64 tag value."""
    try:
        block = base64.b64decode(tag_value, validate=True)
    except ValueError as e:
        raise InvalidFormatException(f"Picture tag is not valid base64: {e}") from e
    return decode_picture_block(block)
