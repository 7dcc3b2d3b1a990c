"""
Bounds-checked sequential access over fixed byte buffers.

`BytesReader` walks an immutable buffer and refuses to short-read; `BytesWriter`
fills a pre-allocated buffer and never grows it. Both are single-owner helpers
and are not meant to be shared between threads.
"""

from ..domain.exceptions import UnderrunException

U32_MAX = 0xFFFFFFFF


class BytesReader:
    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def read(self, size: int) -> bytes:
        """
        Returns the next `size` bytes and advances the offset.

        Raises:
            UnderrunException: If fewer than `size` bytes remain, or `size` is negative.
        """
        if size < 0:
            raise UnderrunException(f"Negative read size: {size}")
        next_offset = self._offset + size
        if next_offset > len(self._data):
            raise UnderrunException(
                f"Read of {size} bytes at offset {self._offset} exceeds buffer length {len(self._data)}"
            )
        result = self._data[self._offset:next_offset]
        self._offset = next_offset
        return result

    def read_u8(self) -> int:
        return self.read(1)[0]

    def read_u16_be(self) -> int:
        return u16_from_be(self.read(2))

    def read_u32_be(self) -> int:
        return u32_from_be(self.read(4))


class BytesWriter:
    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError(f"Negative capacity: {capacity}")
        self._buffer = bytearray(capacity)
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def capacity(self) -> int:
        return len(self._buffer)

    def write(self, data: bytes):
        next_offset = self._offset + len(data)
        if next_offset > len(self._buffer):
            raise OverflowError(
                f"Write of {len(data)} bytes at offset {self._offset} exceeds capacity {len(self._buffer)}"
            )
        self._buffer[self._offset:next_offset] = data
        self._offset = next_offset

    @property
    def data(self) -> bytes:
        """The filled buffer. Only valid once every byte has been written."""
        if self._offset != len(self._buffer):
            raise ValueError(
                f"Buffer not filled: wrote {self._offset} of {len(self._buffer)} bytes"
            )
        return bytes(self._buffer)


def u32_be(value: int) -> bytes:
    if not 0 <= value <= U32_MAX:
        raise ValueError(f"Value does not fit in u32: {value}")
    return value.to_bytes(4, "big")


def u16_from_be(data: bytes) -> int:
    if len(data) != 2:
        raise ValueError(f"Expected 2 bytes, got {len(data)}")
    return int.from_bytes(data, "big")


def u32_from_be(data: bytes) -> int:
    if len(data) != 4:
        raise ValueError(f"Expected 4 bytes, got {len(data)}")
    return int.from_bytes(data, "big")
