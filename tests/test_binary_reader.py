import struct
import time

import pytest

from havok_tagfile.errors import InvalidFormatError
from havok_tagfile.io.binary_reader import BinaryReader


def test_strings_stop_at_nul():
    reader = BinaryReader(b"abc\0\0\0xyz\0tail")
    assert reader.read_string(6) == "abc"
    assert reader.read_cstring() == "xyz"
    assert reader.read_cstring() == "tail"
    assert reader.eos()


def test_align_counts_from_start_offset():
    reader = BinaryReader(bytes(32))
    reader.seek(6)
    reader.align(2)
    assert reader.tell() == 6
    reader.seek(7)
    reader.align(2)
    assert reader.tell() == 10


def test_sub_stream_reports_file_addresses():
    data = bytes(8) + struct.pack("<If", 0xDEADBEEF, 1.5) + bytes(4)
    reader = BinaryReader(data)
    reader.seek(8)
    stream = reader.read_stream(8)

    assert reader.tell() == 16
    assert len(stream) == 8
    assert stream.absolute_tell() == 8
    assert stream.u32() == 0xDEADBEEF
    assert stream.f32() == 1.5
    stream.seek_absolute(12)
    assert stream.tell() == 4


def test_short_reads_raise_invalid_format():
    reader = BinaryReader(b"\x01\x02")
    with pytest.raises(InvalidFormatError):
        reader.u32()
    with pytest.raises(InvalidFormatError):
        reader.read_bytes(3)
    with pytest.raises(InvalidFormatError):
        reader.read_stream(4)


def test_cstring_reads_do_not_scale_with_buffer_size():
    names = b"".join(f"bone_{index:04d}\0".encode("ascii") for index in range(2000))
    reader = BinaryReader(names + bytes(8 * 1024 * 1024))

    start = time.perf_counter()
    decoded = [reader.read_cstring() for _ in range(2000)]
    elapsed = time.perf_counter() - start

    assert decoded[0] == "bone_0000"
    assert decoded[-1] == "bone_1999"
    assert reader.tell() == len(names)
    assert elapsed < 0.5
