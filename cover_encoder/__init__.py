"""
The Cover Encoder package.

Turns a media file, optional JPEG cover art and tag values into a single output
file with the artwork embedded as a METADATA_BLOCK_PICTURE tag, by driving FFmpeg
inside an isolated, single-use execution context.
"""

__version__ = "0.1.0"
