"""
This module provides file-based conversion logs.

Successful conversions are recorded in a machine-readable YAML list (SuccessLog)
and failures in a human-readable text file (ErrorLog). These records complement
the real-time console logging done through loguru.
"""

import random
import string
from datetime import datetime
from pathlib import Path
from typing import Dict, List

import yaml
from loguru import logger

from ..config.common import SUCCESS_LOG_RANDOM_LENGTH


class Log:
    """Common setup for log files stored in a directory."""

    # Separator between entries in text logs.
    linesep_marker: str = "=" * 50

    def __init__(self, log_dir: Path):
        self.log_file_path: Path
        self.log_dir: Path = log_dir.resolve()
        self.log_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def generate_random_string(length: int = SUCCESS_LOG_RANDOM_LENGTH) -> str:
        return "".join(random.choices(string.ascii_uppercase + string.digits, k=length))


class ErrorLog(Log):
    """Appends failure reports to a plain text file."""

    DEFAULT_ERROR_FILENAME = "error.txt"

    def __init__(self, error_log_dir: Path, filename: str = DEFAULT_ERROR_FILENAME):
        super().__init__(error_log_dir)
        self.log_file_path = self.log_dir / filename

    def write(self, *error_messages: str):
        """
        Appends the messages, one per line, followed by a separator line.

        If the file cannot be written the messages are sent to the console
        logger instead so they are not lost.
        """
        if not error_messages:
            return

        content_to_write = "\n".join(error_messages) + "\n" + self.linesep_marker + "\n"
        try:
            with self.log_file_path.open("a", encoding="utf-8") as f:
                f.write(content_to_write)
        except OSError as e:
            logger.error(f"Failed to write to error log {self.log_file_path}: {e}")
            for msg in error_messages:
                logger.error(f"  - {msg}")


class SuccessLog(Log):
    """
    Records successful conversions as a YAML list.

    Each instance writes to its own dated file with a random suffix
    (`log_YYYYMMDD_XXXXXXXXXX.yaml`) so concurrent runs never share a file.
    """

    def __init__(self, success_log_dir: Path):
        super().__init__(success_log_dir)
        date_str = datetime.now().strftime("%Y%m%d")
        self.log_file_path = (
            self.log_dir / f"log_{date_str}_{self.generate_random_string()}.yaml"
        )
        self.log_entries: List[Dict] = []

    def write(self, new_log_entry: dict):
        """Appends `new_log_entry` with a sequential index and rewrites the file."""
        if self.log_file_path.is_file():
            try:
                with self.log_file_path.open("r", encoding="utf-8") as f:
                    loaded_entries = yaml.safe_load(f)
                self.log_entries = loaded_entries if isinstance(loaded_entries, list) else []
            except (OSError, yaml.YAMLError) as e:
                logger.error(
                    f"Error reading success log {self.log_file_path}: {e}. Starting a new log."
                )
                self.log_entries = []

        entry = dict(new_log_entry)
        entry["index"] = len(self.log_entries) + 1
        self.log_entries.append(entry)

        try:
            with self.log_file_path.open("w", encoding="utf-8") as f:
                yaml.dump(
                    self.log_entries,
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    allow_unicode=True,
                    indent=4,
                    width=220,
                )
        except OSError as e:
            logger.error(f"Failed to write to success log {self.log_file_path}: {e}")
