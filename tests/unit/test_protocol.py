"""Unit tests for line and command record encoding."""

from __future__ import annotations

import numpy as np
import pytest

from sensor_link.errors import ProtocolError
from sensor_link.protocol import (
    COMMAND_RECORD_SIZE,
    Command,
    CommandTag,
    decode_command,
    encode_command,
    line_record_size,
    pack_line_record,
    reduce_bit_depth,
    unpack_line_record,
)


class TestLineRecords:

    def test_record_layout(self):
        record = pack_line_record(0x0102, [0, 1, 255])

        assert record == b"\x01\x02\x00\x01\xff"
        assert len(record) == line_record_size(3)

    def test_unpack(self):
        index, pixels = unpack_line_record(b"\x00\x07\x0a\x0b", 2)

        assert index == 7
        assert pixels.tolist() == [10, 11]
        assert pixels.dtype == np.uint8

    def test_unpack_wrong_length(self):
        with pytest.raises(ProtocolError):
            unpack_line_record(b"\x00\x07\x0a", 2)

    def test_index_must_fit_in_16_bits(self):
        with pytest.raises(ProtocolError):
            pack_line_record(0x10000, [1])

    def test_ten_bit_samples_keep_upper_bits(self):
        record = pack_line_record(0, [0x3FF, 0x200, 0x003], bit_depth=10)

        assert record[2:] == bytes([0xFF, 0x80, 0x00])

    def test_quantization_is_idempotent(self):
        samples = np.arange(0, 1024, 7, dtype=np.uint16)
        once = reduce_bit_depth(samples, 10)

        _, pixels = unpack_line_record(pack_line_record(3, once, bit_depth=8), len(samples))

        assert np.array_equal(pixels, once)
        assert np.array_equal(reduce_bit_depth(pixels, 8), once)


class TestCommandRecords:

    @pytest.mark.parametrize(
        "tag,value,wire",
        [
            (CommandTag.EXPOSURE, 0x1234, b"E\x12\x34"),
            (CommandTag.LINE_COUNT, 480, b"N\x01\xe0"),
            (CommandTag.ANALOG_GAIN, 32, b"A\x00\x20"),
            (CommandTag.DIGITAL_GAIN, 4, b"D\x00\x04"),
            (CommandTag.STREAMING, 0, b"P\x00\x00"),
            (CommandTag.STREAMING, 1, b"P\x00\x01"),
        ],
    )
    def test_encode(self, tag, value, wire):
        assert encode_command(tag, value) == wire
        assert len(wire) == COMMAND_RECORD_SIZE

    def test_decode_known_tags(self):
        assert decode_command(b"E\x27\x10") == Command(CommandTag.EXPOSURE, 10000)
        assert decode_command(b"N\x00\xf0") == Command(CommandTag.LINE_COUNT, 240)
        assert decode_command(b"A\xff\x10") == Command(CommandTag.ANALOG_GAIN, 16)

    def test_streaming_uses_low_bit_only(self):
        assert decode_command(b"P\x00\x03").value == 1
        assert decode_command(b"P\x00\x02").value == 0

    def test_unknown_tag_decodes_to_none(self):
        assert decode_command(b"Z\x00\x01") is None

    def test_wrong_length(self):
        with pytest.raises(ProtocolError):
            decode_command(b"P\x00")

    def test_value_range_checked(self):
        with pytest.raises(ProtocolError):
            encode_command(CommandTag.EXPOSURE, 70000)
        with pytest.raises(ProtocolError):
            encode_command(CommandTag.ANALOG_GAIN, 300)
