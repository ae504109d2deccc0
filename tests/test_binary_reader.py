from __future__ import annotations

import io

import pytest

from fpkgi_server.application.codecs.binary_reader import BinaryReader, extract_string
from fpkgi_server.domain.errors import ShortReadError


def test_binary_reader_given_bytes_when_reading_mixed_endianness_then_decodes_each_width():
    reader = BinaryReader(
        b"\x01\x02" + b"\x01\x02\x03\x04" + b"\x01\x02" + b"\x01\x02\x03\x04" + bytes(range(8))
    )

    assert reader.read_u16_le() == 0x0201
    assert reader.read_u32_le() == 0x04030201
    assert reader.read_u16_be() == 0x0102
    assert reader.read_u32_be() == 0x01020304
    assert reader.read_u64_be() == 0x0001020304050607
    assert reader.tell() == 20


def test_binary_reader_given_stream_when_seeking_then_reads_from_offset():
    reader = BinaryReader(io.BytesIO(b"\x00\x00\x00\x00\x7f\x43\x4e\x54"))

    _ = reader.seek(4)

    assert reader.read_u32_be() == 0x7F434E54


def test_binary_reader_given_truncated_source_when_reading_u32_then_raises_short_read():
    reader = BinaryReader(b"\x01\x02")

    with pytest.raises(ShortReadError, match="short read: expected 4 bytes, got 2"):
        _ = reader.read_u32_le()


def test_extract_string_given_nul_terminated_text_then_stops_at_nul():
    assert extract_string(b"abc\x00def", 0) == "abc"
    assert extract_string(b"abc\x00def", 4) == "def"


def test_extract_string_given_out_of_range_start_then_returns_empty():
    assert extract_string(b"abc", 3) == ""
    assert extract_string(b"abc", -1) == ""


def test_extract_string_given_invalid_utf8_then_replaces_bytes():
    assert extract_string(b"a\xffb\x00", 0) == "a\ufffdb"
    assert BinaryReader.extract_string(b"name", 0) == "name"
