"""
Configuration settings related to audio conversion and tagging.

This module defines the virtual file names used inside an execution context, the
order in which tag fields are written, and the constants of the Xiph picture
block used to embed cover art in Opus/FLAC-family tags.
"""

# ======================================================================================
# Virtual Filesystem Layout
# ======================================================================================

# Path of the staged source audio inside an execution context.
VIRTUAL_INPUT_PATH = "/in.webm"

# Stem of the engine output inside an execution context. The extension is the
# requested output format, e.g. "/out.opus".
VIRTUAL_OUTPUT_STEM = "/out"


# ======================================================================================
# Engine Arguments
# ======================================================================================

# Arguments that precede the input path. Suppresses the FFmpeg banner.
ENGINE_PREFIX_ARGS = ("-hide_banner",)

# Stream-copy options; the conversion only remuxes and retags.
ENGINE_COPY_ARGS = ("-c", "copy")


# ======================================================================================
# Tags
# ======================================================================================

# The Vorbis comment field holding a base64 picture block.
# cf. https://wiki.xiph.org/VorbisComment#Cover_art
METADATA_BLOCK_PICTURE = "METADATA_BLOCK_PICTURE"

# Order in which "-metadata" pairs are emitted. The picture tag is always last.
TAG_FIELD_ORDER = ("artist", "title", "album")

# Order of the fields joined into a human readable output file name.
OUTPUT_NAME_FIELD_ORDER = ("artist", "album", "title")
OUTPUT_NAME_SEPARATOR = " - "
OUTPUT_NAME_FALLBACK = "download"


# ======================================================================================
# Picture Block
# ======================================================================================

# Picture type "Cover (front)" from the FLAC/ID3v2 APIC table.
PICTURE_TYPE_FRONT_COVER = 3

# A picture block must stay strictly below this many bytes (24-bit tag size).
MAX_PICTURE_BLOCK_SIZE = 2**24

JPEG_MIME_TYPE = "image/jpeg"
