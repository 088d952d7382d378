"""State shared by the class decoders while one packfile is decoded."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List

from ..config import DecoderOptions
from ..errors import InvalidFormatError
from .binary_parser import SENTINEL, FixupTable, HkArray, hkxHeader
from .binary_reader import BinaryReader
from .objects import AnimationContainer, Skeleton


@dataclass(frozen=True)
class VersionLayouts:
    """Per-version field layouts, picked once from the header."""

    skeleton: Callable[["DecodeContext"], Skeleton]
    animation_container: Callable[["DecodeContext"], AnimationContainer]


@dataclass
class DecodeContext:
    reader: BinaryReader
    content: BinaryReader
    header: hkxHeader
    fixups: FixupTable
    options: DecoderOptions
    layouts: VersionLayouts
    section: int

    # Pointer helpers -------------------------------------------------
    def read_fixup(self) -> int:
        return self.fixups.read_fixup(self.reader, self.section)

    def read_hkarray(self) -> HkArray:
        return self.fixups.read_hkarray(self.reader, self.section)

    def read_pointer_and_count(self) -> HkArray:
        """Pre-hkArray layout: a pointer followed by a bare 32 bit count."""
        offset = self.read_fixup()
        return HkArray(offset, self.reader.u32())

    def read_string_at(self, address: int) -> str:
        if address == SENTINEL:
            return ""
        self.reader.seek_absolute(address)
        return self.reader.read_cstring()

    # Array helpers ---------------------------------------------------
    def check_count(self, count: int, item_size: int, what: str) -> None:
        if count > self.options.max_array_count:
            raise InvalidFormatError(
                f"{what}: {count} items exceeds limit of {self.options.max_array_count}"
            )
        if count * item_size > self.reader.remaining():
            raise InvalidFormatError(
                f"{what}: {count} items at 0x{self.reader.absolute_tell():X} run past end of data"
            )

    def _seek_array(self, array: HkArray, item_size: int, what: str) -> bool:
        if array.is_empty or array.count == 0:
            return False
        self.reader.seek_absolute(array.offset)
        self.check_count(array.count, item_size, what)
        return True

    def read_u32_array(self, array: HkArray, what: str = "uint32 array") -> List[int]:
        if not self._seek_array(array, 4, what):
            return []
        return list(self.reader.read(f"{array.count}I"))

    def read_s16_array(self, array: HkArray, what: str = "int16 array") -> List[int]:
        if not self._seek_array(array, 2, what):
            return []
        return list(self.reader.read(f"{array.count}h"))

    def read_fixup_array(self, array: HkArray, what: str = "pointer array") -> List[int]:
        if not self._seek_array(array, 4, what):
            return []
        return [self.read_fixup() for _ in range(array.count)]

    def read_string_array(self, array: HkArray, what: str = "string array") -> List[str]:
        return [self.read_string_at(address) for address in self.read_fixup_array(array, what)]
