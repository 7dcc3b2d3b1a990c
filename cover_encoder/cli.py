"""
Command-Line Interface (CLI) setup for the Cover Encoder.

This module uses Python's `argparse` to define and parse the command-line
arguments that control the application's behavior.
"""
import argparse
from pathlib import Path
from typing import Optional, Sequence

from .config.audio import PICTURE_TYPE_FRONT_COVER
from .config.common import DEFAULT_OUTPUT_FORMAT
from .domain.exceptions import InvalidOutputFormatException
from .services.request_builder import validate_output_format


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Embed cover art and tags into an audio file with FFmpeg."
    )
    parser.add_argument(
        "--in", dest="in_file", type=Path, help="Source media file (e.g. a .webm)."
    )
    parser.add_argument(
        "--out", dest="out_file", type=Path, default=None,
        help="Output file. Defaults to 'Artist - Album - Title.<format>' beside the input."
    )
    parser.add_argument(
        "--picture", type=Path, default=None, help="JPEG cover art to embed."
    )
    parser.add_argument("--artist", default="", help="Artist tag.")
    parser.add_argument("--title", default="", help="Title tag.")
    parser.add_argument("--album", default="", help="Album tag.")
    parser.add_argument(
        "--format", dest="output_format", default=DEFAULT_OUTPUT_FORMAT,
        help="Output container format."
    )
    parser.add_argument(
        "--start-time", type=float, default=None, help="Trim start, in seconds."
    )
    parser.add_argument(
        "--end-time", type=float, default=None, help="Trim end, in seconds."
    )
    parser.add_argument(
        "--description", default="", help="Description stored in the picture block."
    )
    parser.add_argument(
        "--picture-type", type=int, default=PICTURE_TYPE_FRONT_COVER,
        help="Picture type code (3 = front cover)."
    )
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Abort the conversion if FFmpeg runs longer than this many seconds."
    )
    parser.add_argument(
        "--log-dir", type=Path, default=None,
        help="Directory for YAML success records and text error records."
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging level."
    )

    modes = parser.add_mutually_exclusive_group()
    modes.add_argument(
        "--picture-only", action="store_true",
        help="Print the base64 METADATA_BLOCK_PICTURE value for --picture and exit."
    )
    modes.add_argument(
        "--show-picture", type=Path, default=None,
        help="Decode a base64 picture tag stored in the given file and print its fields."
    )
    modes.add_argument(
        "--probe", action="store_true", help="Print the tags of --in and exit."
    )
    return parser


def get_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments for the Cover Encoder.

    Args:
        argv: Arguments to parse. Defaults to `sys.argv[1:]`.

    Returns:
        argparse.Namespace: The parsed arguments.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.picture_only:
        if args.picture is None:
            parser.error("--picture-only requires --picture.")
    elif args.show_picture is None and args.in_file is None:
        parser.error("--in is required.")

    try:
        args.output_format = validate_output_format(args.output_format)
    except InvalidOutputFormatException as e:
        parser.error(f"--format: {e}")

    if args.start_time is not None and args.start_time < 0:
        parser.error("--start-time must not be negative.")
    if args.end_time is not None and args.end_time < 0:
        parser.error("--end-time must not be negative.")
    if (
        args.start_time is not None
        and args.end_time is not None
        and args.start_time > args.end_time
    ):
        parser.error("--start-time must not be after --end-time.")

    return args
