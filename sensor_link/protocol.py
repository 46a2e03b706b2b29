"""
Wire protocol for the sensor link.

Two record types share one duplex byte stream:

- Line records (device -> host): ``[u16 BE row index][width x u8 pixels]``,
  exactly ``width + 2`` bytes, one transport write per line.
- Command records (host -> device): ``[u8 tag][u8 p0][u8 p1]``, exactly
  3 bytes, consumed by the device between frames.

The stream carries no delimiters; both sides frame by fixed record size.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from .errors import ProtocolError

# =============================================================================
# Line records
# =============================================================================

LINE_HEADER = struct.Struct(">H")
LINE_HEADER_SIZE = LINE_HEADER.size

# Pixels travel as one byte each; deeper samples are right-shifted first.
WIRE_BIT_DEPTH = 8
MAX_LINE_INDEX = 0xFFFF


def line_record_size(width: int) -> int:
    return width + LINE_HEADER_SIZE


def reduce_bit_depth(samples, bit_depth: int) -> np.ndarray:
    """Quantize samples to the wire depth by dropping low-order bits."""
    values = np.asarray(samples, dtype=np.uint16)
    shift = bit_depth - WIRE_BIT_DEPTH
    if shift > 0:
        values = values >> shift
    return (values & 0xFF).astype(np.uint8)


def pack_line_record(index: int, samples, bit_depth: int = WIRE_BIT_DEPTH) -> bytes:
    """Build one line record from a row index and its pixel samples."""
    if not 0 <= index <= MAX_LINE_INDEX:
        raise ProtocolError(f"line index {index} does not fit in 16 bits")
    pixels = reduce_bit_depth(samples, bit_depth)
    return LINE_HEADER.pack(index) + pixels.tobytes()


def unpack_line_record(record: bytes, width: int) -> tuple[int, np.ndarray]:
    """Split a line record into ``(index, pixels)``."""
    expected = line_record_size(width)
    if len(record) != expected:
        raise ProtocolError(f"line record is {len(record)} bytes, expected {expected}")
    (index,) = LINE_HEADER.unpack_from(record)
    pixels = np.frombuffer(record, dtype=np.uint8, offset=LINE_HEADER_SIZE, count=width)
    return index, pixels


# =============================================================================
# Command records
# =============================================================================

COMMAND_RECORD_SIZE = 3


class CommandTag(Enum):
    """Recognized command tags. Anything else is ignored by the device."""
    EXPOSURE = b"E"        # u16 BE exposure time in microseconds
    ANALOG_GAIN = b"A"     # p1 = analog gain code
    DIGITAL_GAIN = b"D"    # p1 = digital gain code
    LINE_COUNT = b"N"      # u16 BE active line count
    STREAMING = b"P"       # p1 bit 0 = streaming enable


_TAGS_BY_BYTE = {tag.value[0]: tag for tag in CommandTag}

# Tags whose payload is a full big-endian u16; the rest use only the low byte.
WIDE_PAYLOAD_TAGS = frozenset({CommandTag.EXPOSURE, CommandTag.LINE_COUNT})


@dataclass(frozen=True, slots=True)
class Command:
    tag: CommandTag
    value: int


def encode_command(tag: CommandTag, value: int) -> bytes:
    """Encode one 3-byte command record."""
    if tag in WIDE_PAYLOAD_TAGS:
        if not 0 <= value <= 0xFFFF:
            raise ProtocolError(f"{tag.name} value {value} does not fit in 16 bits")
        return tag.value + struct.pack(">H", value)
    if tag is CommandTag.STREAMING:
        value = 1 if value else 0
    if not 0 <= value <= 0xFF:
        raise ProtocolError(f"{tag.name} value {value} does not fit in 8 bits")
    return tag.value + bytes((0, value))


def decode_command(record: Sequence[int]) -> Optional[Command]:
    """Decode a 3-byte command record; unknown tags decode to ``None``."""
    if len(record) != COMMAND_RECORD_SIZE:
        raise ProtocolError(f"command record is {len(record)} bytes, expected {COMMAND_RECORD_SIZE}")
    tag = _TAGS_BY_BYTE.get(record[0])
    if tag is None:
        return None
    if tag in WIDE_PAYLOAD_TAGS:
        value = (record[1] << 8) | record[2]
    elif tag is CommandTag.STREAMING:
        value = record[2] & 0x01
    else:
        value = record[2]
    return Command(tag, value)


__all__ = [
    "COMMAND_RECORD_SIZE",
    "Command",
    "CommandTag",
    "LINE_HEADER_SIZE",
    "WIRE_BIT_DEPTH",
    "decode_command",
    "encode_command",
    "line_record_size",
    "pack_line_record",
    "reduce_bit_depth",
    "unpack_line_record",
]
