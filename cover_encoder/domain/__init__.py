"""
This package contains the core domain models and the binary picture codec.

The domain layer is independent of the engine and of the filesystem: it only
deals with bytes and values.

Modules:
    exceptions.py: The exception hierarchy rooted at `CoverEncoderException`.
    models.py: Immutable value objects such as `ImageInfo`, `ConversionRequest`
               and `ConversionResult`.
    jpeg.py: Extracts width, height and depth from a JPEG frame header.
    picture.py: Serializes cover art into the Xiph picture block layout and
                reads it back.
"""
