import struct

import pytest

from havok_tagfile.errors import InvalidFixupError, InvalidFormatError, UnsupportedVersionError
from havok_tagfile.io.binary_parser import (
    SENTINEL,
    FixupTable,
    HavokVersion,
    hkxHeader,
    read_class_names,
)
from havok_tagfile.io.binary_reader import BinaryReader

from tagfile_builder import CONTENTS_INDEX, HK_550, HK_2010, TagfileBuilder


def _load(data: bytes):
    reader = BinaryReader(data)
    hk = hkxHeader()
    hk.load(reader)
    return reader, hk


def test_header_parses_basic_layout():
    builder = TagfileBuilder()
    builder.add_object("hkaSkeleton", 96)
    data = builder.build()

    _, hk = _load(data)
    assert hk.layout.bytes_in_pointer == 4
    assert hk.layout.little_endian is True
    assert hk.file_version == 8
    assert hk.version is HavokVersion.HK_2010_2_0_R1
    assert [section.tag for section in hk.sections] == ["__classnames__", "__data__"]
    assert hk.contents_section.absolute_data_start == builder.contents_start
    assert hk.class_name_section.absolute_data_start == builder.section_starts[0]


def test_header_accepts_havok_550():
    _, hk = _load(TagfileBuilder(HK_550).build())
    assert hk.version is HavokVersion.HAVOK_550_R1
    assert hk.contents_version == HK_550


def test_bad_magic_is_rejected():
    data = bytearray(TagfileBuilder().build())
    data[4:8] = b"\0\0\0\0"
    with pytest.raises(InvalidFormatError):
        _load(bytes(data))


def test_unsupported_version_is_rejected_before_sections():
    data = TagfileBuilder("hk_2014.1.0-r1").build()
    # Cut right after the header so any section read would fail differently.
    with pytest.raises(UnsupportedVersionError) as excinfo:
        _load(data[:64])
    assert excinfo.value.version == "hk_2014.1.0-r1"


def test_truncated_section_table_is_rejected():
    data = TagfileBuilder(HK_2010).build()
    with pytest.raises(InvalidFormatError):
        _load(data[:64 + 48])


def test_contents_index_out_of_range_is_rejected():
    data = bytearray(TagfileBuilder().build())
    struct.pack_into("<i", data, 24, 7)
    with pytest.raises(InvalidFormatError):
        _load(bytes(data))


def test_class_name_table_keys_are_section_offsets():
    builder = TagfileBuilder()
    builder.add_object("hkaSkeleton", 96)
    builder.add_object("hkpBoxShape", 48)
    builder.add_object("hkaSkeleton", 96)
    reader, hk = _load(builder.build())

    names = read_class_names(reader, hk)
    assert names == {
        builder.class_name_offsets["hkaSkeleton"]: "hkaSkeleton",
        builder.class_name_offsets["hkpBoxShape"]: "hkpBoxShape",
    }
    # tag (4) + skipped byte (1) before the first name
    assert builder.class_name_offsets["hkaSkeleton"] == 5


def test_class_name_table_without_terminator_fails():
    builder = TagfileBuilder()
    builder.add_object("hkaSkeleton", 96)
    data = bytearray(builder.build())
    end = builder.section_starts[1]
    # Overwrite the terminal tag so the table runs into the end of the file.
    terminator = builder.section_starts[0] + 5 + len("hkaSkeleton\0")
    data[terminator:end] = b"\x01" * (end - terminator)
    reader, hk = _load(bytes(data[:end]))
    with pytest.raises(InvalidFormatError):
        read_class_names(reader, hk)


def _fixup_fixture():
    builder = TagfileBuilder()
    extra = builder.add_section("__types__", b"\0" * 32)
    local_field = builder.reserve(4)
    global_field = builder.reserve(4)
    plain_field = builder.reserve(4)
    zero_field = builder.reserve(4)
    target = builder.add_string("target")
    builder.point(local_field, target)
    builder.point_global(global_field, extra, 16)
    builder.point(zero_field, 0)
    first = builder.add_object("hkaSkeleton", 96)
    second = builder.add_object("hkpRigidBody", 32)
    data = builder.build()
    reader, hk = _load(data)
    table = FixupTable.load(reader, hk)
    fields = {
        "local": local_field,
        "global": global_field,
        "plain": plain_field,
        "zero": zero_field,
        "target": target,
        "objects": (first, second),
        "extra": extra,
    }
    return builder, reader, table, fields


def test_local_and_global_fixups_resolve_to_absolute_addresses():
    builder, reader, table, fields = _fixup_fixture()

    reader.seek_absolute(builder.address(fields["local"]))
    assert table.read_fixup(reader, CONTENTS_INDEX) == builder.address(fields["target"])
    assert reader.absolute_tell() == builder.address(fields["local"]) + 4

    reader.seek_absolute(builder.address(fields["global"]))
    assert table.read_fixup(reader, CONTENTS_INDEX) == builder.section_starts[fields["extra"]] + 16


def test_field_without_fixup_reads_as_sentinel():
    builder, reader, table, fields = _fixup_fixture()
    reader.seek_absolute(builder.address(fields["plain"]))
    assert table.read_fixup(reader, CONTENTS_INDEX) == SENTINEL
    assert reader.absolute_tell() == builder.address(fields["plain"]) + 4


def test_fixup_with_zero_target_is_invalid():
    builder, reader, table, fields = _fixup_fixture()
    reader.seek_absolute(builder.address(fields["zero"]))
    with pytest.raises(InvalidFixupError) as excinfo:
        table.read_fixup(reader, CONTENTS_INDEX)
    assert excinfo.value.source_offset == fields["zero"]


def test_virtual_fixups_keep_file_order_and_stay_out_of_relocations():
    builder, _, table, fields = _fixup_fixture()
    first, second = fields["objects"]
    assert [entry.source_offset for entry in table.virtual_fixups] == [first, second]
    assert [entry.class_name_offset for entry in table.virtual_fixups] == [
        builder.class_name_offsets["hkaSkeleton"],
        builder.class_name_offsets["hkpRigidBody"],
    ]
    assert first not in table.fixups
    assert second not in table.fixups
    assert len(table.fixups) == 3


def test_empty_hkarray_reports_sentinel_offset():
    builder = TagfileBuilder()
    field = builder.reserve(12)
    builder.put(field + 4, "II", 5, 5)
    reader, hk = _load(builder.build())
    table = FixupTable.load(reader, hk)

    reader.seek_absolute(builder.address(field))
    array = table.read_hkarray(reader, CONTENTS_INDEX)
    assert array.is_empty
    assert array.count == 5
    assert reader.absolute_tell() == builder.address(field) + 12


def test_version_requires_a_loaded_header():
    with pytest.raises(InvalidFormatError):
        hkxHeader().version
