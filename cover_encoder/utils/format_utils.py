"""
Helper functions for formatting values into human-readable strings, mainly for
log messages and conversion records.
"""

from datetime import timedelta


def format_timedelta(td_object: timedelta) -> str:
    """
    Formats a timedelta as "HH:MM:SS.mmm".

    Returns "00:00:00.000" if the input is not a timedelta.
    """
    if not isinstance(td_object, timedelta):
        return "00:00:00.000"

    total_ms = td_object // timedelta(milliseconds=1)
    total_seconds, milliseconds = divmod(total_ms, 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}.{milliseconds:03}"


def formatted_size(size_bytes: int) -> str:
    """
    Converts a size in bytes to a human-readable string.

    For example, 1536 becomes "1.50 KB" and 2097152 becomes "2 MB".
    """
    if size_bytes < 0:
        size_bytes = 0

    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    factor = 1024.0

    if size_bytes == 0:
        return "0 B"

    for unit in units:
        if size_bytes < factor:
            if unit == "B":
                return f"{size_bytes} {unit}"
            return f"{size_bytes:.2f} {unit}".replace(".00", "")
        size_bytes /= factor

    return f"{size_bytes:.2f} {units[-1]}".replace(".00", "")
