"""
This module defines the ConversionService, the caller-side conversion workflow.

It combines the picture codec, the request builder and the worker channel into
one operation: take a media file, optional JPEG cover art and tag values, and
produce a retagged output file. It also owns the policy the channel leaves to
callers: a non-zero engine exit is a failed conversion, and a failed conversion
never leaves a partially written output file behind.
"""

import os
import tempfile
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Deque, Optional

from loguru import logger

from ..config.audio import PICTURE_TYPE_FRONT_COVER
from ..config.common import DEFAULT_OUTPUT_FORMAT, STDERR_TAIL_LINES
from ..domain.exceptions import (
    ConversionFailedException,
    CoverEncoderException,
    MissingOutputException,
)
from ..domain.models import StreamMessage, StreamName, TagFields, TimeRange
from ..domain.picture import encode_picture_tag
from ..utils.format_utils import format_timedelta, formatted_size
from .logging_service import ErrorLog, SuccessLog
from .request_builder import build_conversion_request
from .worker_channel import WorkerChannel


@dataclass(frozen=True)
class ConversionSummary:
    """What a successful `convert_file` call produced."""

    output_path: Path
    output_size: int
    exit_code: int
    elapsed_seconds: float
    has_picture: bool


class _EngineOutputLog:
    """Sink that forwards engine output to loguru and keeps the stderr tail."""

    def __init__(self, tail_lines: int = STDERR_TAIL_LINES):
        self.stderr_tail: Deque[str] = deque(maxlen=tail_lines)

    def __call__(self, message: StreamMessage):
        if message.stream is StreamName.STDERR:
            self.stderr_tail.append(message.line)
            logger.trace(f"[engine] {message.line}")
        else:
            logger.debug(f"[engine] {message.line}")


def write_atomically(path: Path, data: bytes):
    """Writes `data` to `path` through a temporary file and a rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".part", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class ConversionService:
    """
    Converts media files with cover art and tags through a `WorkerChannel`.

    Attributes:
        channel (WorkerChannel): The engine client, owned by the caller.
        log_dir (Path | None): When set, success and error records are written here.
        timeout (float | None): Per-conversion engine timeout in seconds.
    """

    def __init__(
        self,
        channel: WorkerChannel,
        log_dir: Optional[Path] = None,
        timeout: Optional[float] = None,
    ):
        self.channel = channel
        self.log_dir = log_dir
        self.timeout = timeout

    def convert_bytes(
        self,
        audio_data: bytes,
        tags: Optional[TagFields] = None,
        picture_data: Optional[bytes] = None,
        output_format: str = DEFAULT_OUTPUT_FORMAT,
        time_range: Optional[TimeRange] = None,
        picture_type: int = PICTURE_TYPE_FRONT_COVER,
        description: str = "",
    ) -> bytes:
        """
        Runs one conversion in memory and returns the output bytes.

        Raises:
            InvalidFormatException: If `picture_data` is not a supported JPEG.
            SizeLimitExceededException: If the picture is too large to embed.
            ConversionFailedException: If the engine exits with a non-zero code.
            WorkerChannelException: For engine start, missing output, timeout or cancel.
        """
        picture_tag = None
        if picture_data is not None:
            picture_tag = encode_picture_tag(picture_data, picture_type, description)

        request = build_conversion_request(
            audio_data,
            output_format=output_format,
            tags=tags,
            picture_tag=picture_tag,
            time_range=time_range,
        )
        output_log = _EngineOutputLog()
        try:
            result = self.channel.run(request, sink=output_log, timeout=self.timeout)
        except MissingOutputException as e:
            # A failing engine usually writes nothing; report the exit code instead.
            if not e.exit_code:
                raise
            self._log_stderr_tail(output_log)
            raise ConversionFailedException(e.exit_code, list(output_log.stderr_tail)) from e
        if not result.succeeded:
            self._log_stderr_tail(output_log)
            raise ConversionFailedException(result.exit_code, list(output_log.stderr_tail))
        return result.output_files[request.output_files[0]]

    @staticmethod
    def _log_stderr_tail(output_log: _EngineOutputLog):
        for line in output_log.stderr_tail:
            logger.error(f"[engine] {line}")

    def convert_file(
        self,
        audio_path: Path,
        output_path: Path,
        tags: Optional[TagFields] = None,
        picture_path: Optional[Path] = None,
        output_format: str = DEFAULT_OUTPUT_FORMAT,
        time_range: Optional[TimeRange] = None,
        picture_type: int = PICTURE_TYPE_FRONT_COVER,
        description: str = "",
    ) -> ConversionSummary:
        """
        Converts `audio_path` into `output_path`.

        The output file is only created once the conversion has fully succeeded.
        """
        started = datetime.now()
        logger.info(f"Converting {audio_path.name} -> {output_path.name}")
        try:
            audio_data = audio_path.read_bytes()
            picture_data = picture_path.read_bytes() if picture_path else None
            output = self.convert_bytes(
                audio_data,
                tags=tags,
                picture_data=picture_data,
                output_format=output_format,
                time_range=time_range,
                picture_type=picture_type,
                description=description,
            )
            write_atomically(output_path, output)
        except (CoverEncoderException, OSError) as e:
            logger.error(f"Conversion failed for {audio_path.name}: {e}")
            self._write_error_log(audio_path, output_path, picture_path, e)
            raise

        elapsed = datetime.now() - started
        summary = ConversionSummary(
            output_path=output_path,
            output_size=len(output),
            exit_code=0,
            elapsed_seconds=elapsed.total_seconds(),
            has_picture=picture_data is not None,
        )
        logger.success(
            f"Created {output_path.name} ({formatted_size(summary.output_size)}) in {format_timedelta(elapsed)}"
        )
        self._write_success_log(audio_path, picture_path, tags, summary, started)
        return summary

    def _write_success_log(
        self,
        audio_path: Path,
        picture_path: Optional[Path],
        tags: Optional[TagFields],
        summary: ConversionSummary,
        started: datetime,
    ):
        if self.log_dir is None:
            return
        tags = tags or TagFields()
        SuccessLog(self.log_dir).write(
            {
                "input_file": str(audio_path),
                "output_file": str(summary.output_path),
                "picture_file": str(picture_path) if picture_path else None,
                "tags": {k: v for k, v in vars(tags).items() if v},
                "output_size": formatted_size(summary.output_size),
                "elapsed": format_timedelta(datetime.now() - started),
                "started_datetime": started.isoformat(),
                "ended_datetime": datetime.now().isoformat(),
            }
        )

    def _write_error_log(
        self,
        audio_path: Path,
        output_path: Path,
        picture_path: Optional[Path],
        error: Exception,
    ):
        if self.log_dir is None:
            return
        messages = [
            f"Input file: {audio_path}",
            f"Output file: {output_path}",
            f"Picture file: {picture_path or 'N/A'}",
            f"Error: {type(error).__name__} - {error}",
        ]
        if isinstance(error, ConversionFailedException) and error.stderr_tail:
            messages.append("Engine stderr (tail):")
            messages.extend(f"  {line}" for line in error.stderr_tail)
        ErrorLog(self.log_dir).write(*messages)
