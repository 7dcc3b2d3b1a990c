"""
This module provides utility functions related to FFmpeg.

It locates the engine executable, formats command lines for logging, and probes
media files for their container-level tags.
"""

import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import ffmpeg
from loguru import logger

from ..config.common import ENGINE_EXECUTABLE, MODULE_PATH
from ..domain.exceptions import EngineStartException, MediaProbeException

# Arguments longer than this are shortened in log output (base64 pictures).
MAX_DISPLAY_TOKEN_LENGTH = 120


def default_engine_command() -> List[str]:
    """
    Returns the engine command configured for this installation.

    Uses the executable inside MODULE_PATH when `config.user.yaml` sets one,
    otherwise the bare executable name, to be looked up on PATH.
    """
    if MODULE_PATH:
        return [str(MODULE_PATH / ENGINE_EXECUTABLE)]
    return [ENGINE_EXECUTABLE]


def resolve_engine_command(engine_command: Sequence[str]) -> List[str]:
    """
    Resolves the executable of `engine_command` to an absolute path.

    Raises:
        EngineStartException: If the command is empty or the executable cannot be found.
    """
    if not engine_command:
        raise EngineStartException("Engine command is empty.")
    executable = str(engine_command[0])
    resolved = shutil.which(executable)
    if resolved is None:
        raise EngineStartException(
            f"Engine executable '{executable}' not found. Ensure it's in your system's PATH "
            f"or set paths.ffmpeg_dir in config.user.yaml."
        )
    return [resolved, *map(str, engine_command[1:])]


def _shorten(token: str) -> str:
    if len(token) <= MAX_DISPLAY_TOKEN_LENGTH:
        return token
    return f"{token[:MAX_DISPLAY_TOKEN_LENGTH]}...(+{len(token) - MAX_DISPLAY_TOKEN_LENGTH} chars)"


def display_command(cmd_list: Sequence[str]) -> str:
    """Formats a command list as a single, quoted, log-friendly string."""
    tokens = [_shorten(str(s)) for s in cmd_list]
    if os.name == "nt":
        return subprocess.list2cmdline(tokens)
    return shlex.join(tokens)


def probe_format_tags(path: Path, probe_cmd: Optional[str] = None) -> Dict[str, str]:
    """
    Returns the container-level tags of a media file using ffprobe.

    Args:
        path: The media file to inspect.
        probe_cmd: ffprobe executable. Defaults to the one beside the configured FFmpeg.

    Raises:
        MediaProbeException: If ffprobe fails or the file does not exist.
    """
    if not path.is_file():
        raise MediaProbeException(f"Media file not found: {path}")
    if probe_cmd is None:
        probe_cmd = str(MODULE_PATH / "ffprobe") if MODULE_PATH else "ffprobe"
    try:
        probe = ffmpeg.probe(str(path), cmd=probe_cmd)
    except ffmpeg.Error as e:
        stderr = e.stderr.decode("utf-8", errors="replace") if e.stderr else str(e)
        logger.error(f"ffmpeg.probe failed for {path}: {stderr}")
        raise MediaProbeException(f"Failed to probe media file {path}: {stderr}") from e
    except FileNotFoundError as e:
        raise MediaProbeException(f"ffprobe executable '{probe_cmd}' not found") from e

    tags = dict(probe.get("format", {}).get("tags", {}))
    # Ogg/Opus keep Vorbis comments on the audio stream rather than the container.
    for stream in probe.get("streams", []):
        for key, value in stream.get("tags", {}).items():
            tags.setdefault(key, value)
    logger.debug(f"Probed {len(tags)} tags from {path.name}")
    return tags
