"""
Main entry point for the Cover Encoder application.

This script configures logging, parses command-line arguments and runs the
requested mode: encode a picture tag, inspect one, probe a file's tags, or run a
full conversion through FFmpeg.
"""

import sys
from pathlib import Path

from loguru import logger

from cover_encoder.cli import get_args
from cover_encoder.config.common import LOGGER_FORMAT
from cover_encoder.domain.exceptions import CoverEncoderException
from cover_encoder.domain.models import TagFields, TimeRange
from cover_encoder.domain.picture import decode_picture_tag, encode_picture_tag
from cover_encoder.services.conversion_service import ConversionService
from cover_encoder.services.request_builder import build_output_name
from cover_encoder.services.worker_channel import WorkerChannel
from cover_encoder.utils.ffmpeg_utils import probe_format_tags


def configure_logger(level: str):
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOGGER_FORMAT)


def run_picture_only(args) -> int:
    print(encode_picture_tag(args.picture.read_bytes(), args.picture_type, args.description))
    return 0


def run_show_picture(args) -> int:
    block = decode_picture_tag(args.show_picture.read_text(encoding="utf-8").strip())
    print(f"picture_type: {block.picture_type}")
    print(f"mime_type: {block.mime_type}")
    print(f"description: {block.description}")
    print(f"size: {block.width}x{block.height}, depth {block.depth}, colors {block.colors}")
    print(f"data: {len(block.data)} bytes")
    return 0


def run_probe(args) -> int:
    for key, value in probe_format_tags(args.in_file).items():
        print(f"{key}={value}")
    return 0


def run_conversion(args) -> int:
    tags = TagFields(artist=args.artist, title=args.title, album=args.album)
    output_path: Path = args.out_file or (
        args.in_file.parent / build_output_name(tags, args.output_format)
    )
    # The application owns the engine client for its whole lifetime.
    channel = WorkerChannel()
    service = ConversionService(channel, log_dir=args.log_dir, timeout=args.timeout)
    service.convert_file(
        args.in_file,
        output_path,
        tags=tags,
        picture_path=args.picture,
        output_format=args.output_format,
        time_range=TimeRange(args.start_time, args.end_time),
        picture_type=args.picture_type,
        description=args.description,
    )
    return 0


def main(argv=None) -> int:
    """
    Runs the Cover Encoder and returns the process exit status.

    Any `CoverEncoderException` is reported as a failed conversion (status 1);
    no partial output file is left behind in that case.
    """
    args = get_args(argv)

    effective_log_level = args.log_level or ("DEBUG" if __debug__ else "INFO")
    configure_logger(effective_log_level)
    logger.debug(f"Parsed arguments: {args}")

    try:
        if args.picture_only:
            return run_picture_only(args)
        if args.show_picture is not None:
            return run_show_picture(args)
        if args.probe:
            return run_probe(args)
        return run_conversion(args)
    except (CoverEncoderException, OSError) as e:
        logger.error(f"Conversion failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
