"""
Common configuration settings used throughout the application.

This module contains globally shared configuration settings and constants used
across the Cover Encoder. It centralizes parameters for logging, the engine
location and the lifecycle of execution contexts. It also loads user-specific
configuration from an external YAML file, so the FFmpeg location can be changed
without modifying the source code.
"""
from pathlib import Path

import yaml
from loguru import logger

# --- User-Defined Configuration ---
# Values in 'config.user.yaml' at the project root override the defaults below.

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
USER_CONFIG_PATH = PROJECT_ROOT / "config.user.yaml"

# The directory containing the FFmpeg executable. If None, the executable is
# looked up on the system's PATH.
MODULE_PATH: Path | None = None

# Name of the engine executable inside MODULE_PATH (or on PATH).
ENGINE_EXECUTABLE = "ffmpeg"

# Seconds to wait after asking the engine to terminate before killing it.
TERMINATE_GRACE_SECONDS = 5.0

# Seconds to wait for a stream reader thread to drain after the engine exits.
READER_JOIN_TIMEOUT = 10.0

# Prefix for the temporary directory that backs each execution context.
CONTEXT_DIR_PREFIX = "cover_encoder_ctx_"

# Output container used when the caller does not ask for one.
DEFAULT_OUTPUT_FORMAT = "opus"


def _load_user_config(config_path: Path) -> dict:
    if not config_path.is_file():
        logger.debug(f"User config '{config_path}' not found. Using defaults.")
        return {}
    try:
        with config_path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load or parse '{config_path}': {e}")
        return {}


_user_config = _load_user_config(USER_CONFIG_PATH)

_paths_config = _user_config.get("paths") or {}
if _paths_config.get("ffmpeg_dir"):
    MODULE_PATH = Path(_paths_config["ffmpeg_dir"])

_conversion_config = _user_config.get("conversion") or {}
if _conversion_config.get("default_format"):
    DEFAULT_OUTPUT_FORMAT = str(_conversion_config["default_format"])
if _conversion_config.get("terminate_grace_seconds") is not None:
    TERMINATE_GRACE_SECONDS = float(_conversion_config["terminate_grace_seconds"])


# --- Logging Configuration ---

# The format string for the Loguru logger.
LOGGER_FORMAT = (
    "<green>{time:MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{thread.name} - <level>{message}</level>"
)

# The length of the random string appended to dated success log files, so that
# concurrent runs writing logs into the same directory do not collide.
SUCCESS_LOG_RANDOM_LENGTH = 10

# Number of trailing stderr lines kept for error reports when the engine fails.
STDERR_TAIL_LINES = 20
