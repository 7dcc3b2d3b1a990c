"""
Builds engine requests from user-level conversion parameters.

Everything here is pure: no I/O, no engine access. The argument list mimics an
FFmpeg command line that remuxes the input with stream copy and writes the given
tags, with the optional cover art passed as an already base64-encoded picture
block.
"""

import re
from typing import Optional

from ..config.audio import (
    ENGINE_COPY_ARGS,
    ENGINE_PREFIX_ARGS,
    METADATA_BLOCK_PICTURE,
    OUTPUT_NAME_FALLBACK,
    OUTPUT_NAME_FIELD_ORDER,
    OUTPUT_NAME_SEPARATOR,
    TAG_FIELD_ORDER,
    VIRTUAL_INPUT_PATH,
    VIRTUAL_OUTPUT_STEM,
)
from ..config.common import DEFAULT_OUTPUT_FORMAT
from ..domain.exceptions import InvalidOutputFormatException
from ..domain.models import ConversionRequest, InputFile, TagFields, TimeRange

_FORMAT_PATTERN = re.compile(r"[A-Za-z0-9]+")
_PATH_UNSAFE_PATTERN = re.compile(r"[\\/]")


def validate_output_format(output_format: str) -> str:
    """
    Checks that an output format name is usable as a file extension.

    Args:
        output_format: A container name such as "opus" or "ogg".

    Returns:
        str: The lowercased format name.

    Raises:
        InvalidOutputFormatException: If the name is empty or not alphanumeric.
    """
    if not output_format or not _FORMAT_PATTERN.fullmatch(output_format):
        raise InvalidOutputFormatException(f"Invalid output format: {output_format!r}")
    return output_format.lower()


def output_path_for(output_format: str) -> str:
    """Returns the virtual output path for `output_format`, e.g. "/out.opus"."""
    return f"{VIRTUAL_OUTPUT_STEM}.{validate_output_format(output_format)}"


def _format_seconds(seconds: float) -> str:
    # FFmpeg accepts plain decimal seconds; drop a trailing ".0" for readability.
    return f"{seconds:.6f}".rstrip("0").rstrip(".")


def build_metadata_args(
    tags: TagFields, picture_tag: Optional[str] = None
) -> list[str]:
    """
    Returns the "-metadata key=value" pairs for every non-empty field.

    Fields are emitted in TAG_FIELD_ORDER followed by the picture tag.
    """
    pairs = [(name, tags.get(name)) for name in TAG_FIELD_ORDER]
    pairs.append((METADATA_BLOCK_PICTURE, picture_tag or ""))

    args: list[str] = []
    for key, value in pairs:
        if value:
            args.extend(["-metadata", f"{key}={value}"])
    return args


def build_trim_args(time_range: Optional[TimeRange]) -> list[str]:
    if time_range is None:
        return []
    args: list[str] = []
    if time_range.start_seconds is not None:
        args.extend(["-ss", _format_seconds(time_range.start_seconds)])
    if time_range.end_seconds is not None:
        args.extend(["-to", _format_seconds(time_range.end_seconds)])
    return args


def build_conversion_request(
    audio_data: bytes,
    output_format: str = DEFAULT_OUTPUT_FORMAT,
    tags: Optional[TagFields] = None,
    picture_tag: Optional[str] = None,
    time_range: Optional[TimeRange] = None,
    input_path: str = VIRTUAL_INPUT_PATH,
    output_path: Optional[str] = None,
) -> ConversionRequest:
    """
    Turns conversion parameters into a `ConversionRequest`.

    Args:
        audio_data: The source media bytes, staged at `input_path`.
        output_format: Target container; selects the output extension.
        tags: Optional artist/title/album values. Empty values are omitted.
        picture_tag: Base64 METADATA_BLOCK_PICTURE value, or None.
        time_range: Optional trim window applied while copying.
        input_path: Virtual path of the staged input.
        output_path: Virtual path of the output. Defaults to "/out.<format>".

    Returns:
        A request with one input file and one declared output.
    """
    if output_path is None:
        output_path = output_path_for(output_format)
    else:
        validate_output_format(output_format)

    arguments = [*ENGINE_PREFIX_ARGS, "-i", input_path, *ENGINE_COPY_ARGS]
    arguments.extend(build_trim_args(time_range))
    arguments.extend(build_metadata_args(tags or TagFields(), picture_tag))
    arguments.append(output_path)

    return ConversionRequest(
        arguments=tuple(arguments),
        input_files=(InputFile(path=input_path, data=audio_data),),
        output_files=(output_path,),
    )


def build_output_name(
    tags: Optional[TagFields], output_format: str = DEFAULT_OUTPUT_FORMAT
) -> str:
    """
    Returns a human readable file name such as "Artist - Album - Title.opus".

    Non-empty fields are joined in OUTPUT_NAME_FIELD_ORDER; path separators in
    the values are replaced so the result is always a single file name.
    """
    tags = tags or TagFields()
    parts = [
        _PATH_UNSAFE_PATTERN.sub("_", tags.get(name).strip())
        for name in OUTPUT_NAME_FIELD_ORDER
    ]
    stem = OUTPUT_NAME_SEPARATOR.join(p for p in parts if p) or OUTPUT_NAME_FALLBACK
    return f"{stem}.{validate_output_format(output_format)}"
