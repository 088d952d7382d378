"""Random access little-endian reader over an in-memory buffer."""
from __future__ import annotations

import struct
from typing import Tuple, Union

from ..errors import InvalidFormatError

Buffer = Union[bytes, bytearray, memoryview]


class BinaryReader:
    """Seekable cursor over ``data``.

    ``base`` is the absolute offset of ``data[0]`` inside the file the buffer
    was cut from, so sub-readers created by :meth:`read_stream` can still
    report file addresses through :meth:`absolute_tell`.
    """

    def __init__(self, data: Buffer, base: int = 0):
        self._raw = bytes(data)
        self.data = memoryview(self._raw)
        self.base = base
        self.offset = 0

    def __len__(self) -> int:
        return len(self.data)

    def read(self, fmt: str) -> Tuple:
        size = struct.calcsize("<" + fmt)
        try:
            values = struct.unpack_from("<" + fmt, self.data, self.offset)
        except struct.error as exc:
            raise InvalidFormatError(
                f"Unexpected end of data at 0x{self.absolute_tell():X}, need {size} bytes"
            ) from exc
        self.offset += size
        return values

    def read_bytes(self, size: int) -> bytes:
        if size < 0 or self.offset < 0 or self.offset + size > len(self.data):
            raise InvalidFormatError(
                f"Unexpected end of data at 0x{self.absolute_tell():X}, need {size} bytes"
            )
        chunk = self.data[self.offset : self.offset + size]
        self.offset += size
        return bytes(chunk)

    def read_string(self, size: int) -> str:
        raw = self.read_bytes(size)
        end = raw.find(b"\0")
        if end != -1:
            raw = raw[:end]
        return raw.decode("ascii", errors="ignore")

    def read_cstring(self) -> str:
        """Read up to the next NUL (or the end of the buffer) and step over it."""
        if self.offset < 0 or self.offset > len(self.data):
            raise InvalidFormatError(f"String offset 0x{self.absolute_tell():X} out of range")
        end = self._raw.find(b"\0", self.offset)
        if end == -1:
            end = len(self._raw)
        raw = self._raw[self.offset : end]
        self.offset = min(end + 1, len(self._raw))
        return raw.decode("ascii", errors="ignore")

    # Scalar helpers --------------------------------------------------
    def u8(self) -> int:
        return self.read("B")[0]

    def u16(self) -> int:
        return self.read("H")[0]

    def u32(self) -> int:
        return self.read("I")[0]

    def u64(self) -> int:
        return self.read("Q")[0]

    def f32(self) -> float:
        return self.read("f")[0]

    # Cursor ----------------------------------------------------------
    def tell(self) -> int:
        return self.offset

    def absolute_tell(self) -> int:
        return self.base + self.offset

    def seek(self, offset: int, whence: int = 0) -> None:
        if whence == 0:
            self.offset = offset
        elif whence == 1:
            self.offset += offset
        elif whence == 2:
            self.offset = len(self.data) + offset

    def seek_absolute(self, address: int) -> None:
        self.offset = address - self.base

    def skip(self, size: int) -> None:
        self.offset += size

    def remaining(self) -> int:
        return max(0, len(self.data) - self.offset)

    def eos(self) -> bool:
        return self.offset >= len(self.data)

    def align(self, start: int, alignment: int = 4) -> None:
        """Pad the cursor to ``alignment`` counted from ``start``."""
        remainder = (self.offset - start) % alignment
        if remainder:
            self.offset += alignment - remainder

    def read_stream(self, size: int) -> "BinaryReader":
        """Cut ``size`` bytes at the cursor into an independent reader."""
        start = self.offset
        chunk = self.read_bytes(size)
        return BinaryReader(chunk, base=self.base + start)
