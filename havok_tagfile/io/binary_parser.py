"""Havok packfile header, class name table and fixup parsing.

A packfile is a relocatable blob: objects live in the ``__data__`` (contents)
section and every pointer-like field is described by a fixup record instead of
holding a real address. Three fixup tables trail the contents data:

* local fixups point inside the same section,
* global fixups may point into another section,
* virtual fixups name the class of every serialized object and double as the
  list of objects to decode.

Class names live in the ``__classnames__`` section as tagged, NUL terminated
strings keyed by their offset inside that section.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from ..errors import InvalidFixupError, InvalidFormatError, UnsupportedVersionError
from .binary_reader import BinaryReader

logger = logging.getLogger("havok_tagfile").getChild("io.binary_parser")

HK_MAGIC1 = 0x57E0E057
HK_MAGIC2 = 0x10C0C010
SENTINEL = 0xFFFFFFFF

_SECTION_HEADER_SIZE = 48


class HavokVersion(Enum):
    HAVOK_550_R1 = "Havok-5.5.0-r1"
    HK_2010_2_0_R1 = "hk_2010.2.0-r1"

    @classmethod
    def from_string(cls, name: str) -> "HavokVersion":
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedVersionError(name) from None


@dataclass(frozen=True)
class HkxLayout:
    bytes_in_pointer: int
    little_endian: bool
    reuse_padding: bool
    empty_base_class: bool


@dataclass(frozen=True)
class Section:
    tag: str
    absolute_data_start: int
    local_fixups_offset: int
    global_fixups_offset: int
    virtual_fixups_offset: int
    exports_offset: int
    imports_offset: int
    end_offset: int


@dataclass(frozen=True)
class Fixup:
    target: int
    # None for local fixups: the target lives in the section being read.
    section: Optional[int] = None


@dataclass(frozen=True)
class VirtualFixup:
    source_offset: int
    section_index: int
    class_name_offset: int


@dataclass(frozen=True)
class HkArray:
    offset: int
    count: int
    capacity_and_flags: int = 0

    @property
    def is_empty(self) -> bool:
        return self.offset == SENTINEL


class hkxHeader:
    def __init__(self) -> None:
        self.user_tag = 0
        self.file_version = 0
        self.layout: Optional[HkxLayout] = None
        self.sections: List[Section] = []
        self.contents_section_index = 0
        self.contents_section_offset = 0
        self.contents_class_name_section_index = 0
        self.contents_class_name_section_offset = 0
        self.contents_version = ""
        self._version: Optional[HavokVersion] = None
        self.flags = 0

    # Header parsing --------------------------------------------------
    def load(self, reader: BinaryReader) -> None:
        magic1, magic2 = reader.read("II")
        if magic1 != HK_MAGIC1 or magic2 != HK_MAGIC2:
            raise InvalidFormatError(
                f"Invalid magic id 0x{magic1:08X} 0x{magic2:08X}"
            )
        self.user_tag, self.file_version = reader.read("II")
        bytes_in_pointer, little_endian, reuse_padding, empty_base = reader.read("BBBB")
        self.layout = HkxLayout(
            bytes_in_pointer=bytes_in_pointer,
            little_endian=bool(little_endian),
            reuse_padding=bool(reuse_padding),
            empty_base_class=bool(empty_base),
        )
        # Recorded only; every field is read little-endian regardless.

        (
            num_sections,
            self.contents_section_index,
            self.contents_section_offset,
            self.contents_class_name_section_index,
            self.contents_class_name_section_offset,
        ) = reader.read("iiiii")
        self.contents_version = reader.read_string(15)
        reader.skip(1)
        # Rejected here, before any section header is touched.
        self._version = HavokVersion.from_string(self.contents_version)

        self.flags = reader.u32()
        reader.skip(4)

        if num_sections < 0 or num_sections * _SECTION_HEADER_SIZE > reader.remaining():
            raise InvalidFormatError(f"Invalid section count {num_sections}")

        self.sections = []
        for _ in range(num_sections):
            tag = reader.read_string(19)
            reader.skip(1)
            (
                absolute_data_start,
                local_fixups_offset,
                global_fixups_offset,
                virtual_fixups_offset,
                exports_offset,
                imports_offset,
                end_offset,
            ) = reader.read("IIIIIII")
            self.sections.append(
                Section(
                    tag=tag,
                    absolute_data_start=absolute_data_start,
                    local_fixups_offset=local_fixups_offset,
                    global_fixups_offset=global_fixups_offset,
                    virtual_fixups_offset=virtual_fixups_offset,
                    exports_offset=exports_offset,
                    imports_offset=imports_offset,
                    end_offset=end_offset,
                )
            )

        self.section(self.contents_section_index)
        self.section(self.contents_class_name_section_index)
        logger.debug(
            "Header: version=%s sections=%s contents=%d classnames=%d",
            self.contents_version,
            [section.tag for section in self.sections],
            self.contents_section_index,
            self.contents_class_name_section_index,
        )

    @property
    def version(self) -> HavokVersion:
        if self._version is None:
            raise InvalidFormatError("Header has not been loaded")
        return self._version

    # Section helpers -------------------------------------------------
    def section(self, index: int) -> Section:
        if 0 <= index < len(self.sections):
            return self.sections[index]
        raise InvalidFormatError(f"Section index {index} out of range")

    def section_base(self, index: int) -> int:
        return self.section(index).absolute_data_start

    @property
    def contents_section(self) -> Section:
        return self.section(self.contents_section_index)

    @property
    def class_name_section(self) -> Section:
        return self.section(self.contents_class_name_section_index)


def read_class_names(reader: BinaryReader, header: hkxHeader) -> Dict[int, str]:
    section = header.class_name_section
    start = section.absolute_data_start
    reader.seek_absolute(start)

    class_names: Dict[int, str] = {}
    while True:
        if reader.remaining() < 4:
            raise InvalidFormatError("Class name table is not terminated")
        tag = reader.u32()
        if tag & 0xFF == 0xFF:
            break
        reader.skip(1)
        position = reader.absolute_tell() - start
        class_names[position] = reader.read_cstring()
    return class_names


class FixupTable:
    """Relocations of the contents section plus its virtual fixup work-queue."""

    def __init__(self, header: hkxHeader) -> None:
        self.header = header
        self.fixups: Dict[int, Fixup] = {}
        self.virtual_fixups: List[VirtualFixup] = []

    @classmethod
    def load(cls, reader: BinaryReader, header: hkxHeader) -> "FixupTable":
        table = cls(header)
        table._load_local(reader)
        table._load_global(reader)
        table._load_virtual(reader)
        logger.debug(
            "Fixups: %d relocations, %d objects",
            len(table.fixups),
            len(table.virtual_fixups),
        )
        return table

    def _load_local(self, reader: BinaryReader) -> None:
        contents = self.header.contents_section
        start = contents.absolute_data_start
        reader.seek_absolute(start + contents.local_fixups_offset)
        while reader.remaining() >= 8:
            source, target = reader.read("II")
            if target == SENTINEL or reader.absolute_tell() - start > contents.global_fixups_offset:
                break
            self.fixups[source] = Fixup(target)

    def _load_global(self, reader: BinaryReader) -> None:
        contents = self.header.contents_section
        start = contents.absolute_data_start
        reader.seek_absolute(start + contents.global_fixups_offset)
        while reader.remaining() >= 4:
            source = reader.u32()
            if source == SENTINEL or reader.absolute_tell() - start > contents.virtual_fixups_offset:
                break
            section, target = reader.read("II")
            self.fixups[source] = Fixup(target, section)

    def _load_virtual(self, reader: BinaryReader) -> None:
        contents = self.header.contents_section
        start = contents.absolute_data_start
        end = contents.exports_offset
        if end == SENTINEL:
            end = contents.imports_offset
        reader.seek_absolute(start + contents.virtual_fixups_offset)
        while reader.remaining() >= 4:
            if end != SENTINEL and reader.absolute_tell() - start >= end:
                break
            source = reader.u32()
            if source == SENTINEL:
                break
            section, class_name_offset = reader.read("II")
            self.virtual_fixups.append(VirtualFixup(source, section, class_name_offset))

    # Resolution ------------------------------------------------------
    def read_fixup(self, reader: BinaryReader, section: int) -> int:
        """Resolve the pointer field at the cursor and step over it.

        Returns :data:`SENTINEL` when no relocation is recorded for the field.
        """
        key = reader.absolute_tell() - self.header.section_base(section)
        fixup = self.fixups.get(key)
        if fixup is None:
            reader.skip(4)
            return SENTINEL
        if fixup.target == 0:
            raise InvalidFixupError(key)
        reader.skip(4)
        target_section = section if fixup.section is None else fixup.section
        return fixup.target + self.header.section_base(target_section)

    def read_hkarray(self, reader: BinaryReader, section: int) -> HkArray:
        offset = self.read_fixup(reader, section)
        count, capacity_and_flags = reader.read("II")
        return HkArray(offset, count, capacity_and_flags)
