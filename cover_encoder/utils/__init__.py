"""
Utilities Package for the Cover Encoder Application.

Modules:
    - byte_cursor.py: Bounds-checked byte readers and writers and big-endian
      integer helpers used by the picture codec.
    - ffmpeg_utils.py: Locates the FFmpeg executable, formats command lines for
      logging, and probes media tags through ffmpeg-python.
    - format_utils.py: Formats durations and file sizes for display.
"""
