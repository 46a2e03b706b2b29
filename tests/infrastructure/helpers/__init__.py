"""Test helpers for the sensor-link test suite.

Data Generators:
    ScriptedPinSource - replay a pin-snapshot script
    clock_cycles, blank_cycles, line_trace, frame_trace - pin traces
    make_frame_pixels, frame_records - line-record streams
    split_stream, random_partition - cut a byte stream into reads

Assertion Helpers:
    assert_read_only - array handed off cannot be written
    assert_frame_pixels - compare a frame against expected pixels
"""

from pathlib import Path

from tests.infrastructure.helpers.assertions import (
    FrameMismatchError,
    assert_frame_pixels,
    assert_read_only,
)
from tests.infrastructure.helpers.generators import (
    ScriptedPinSource,
    blank_cycles,
    clock_cycles,
    frame_records,
    frame_trace,
    line_trace,
    make_frame_pixels,
    random_partition,
    split_stream,
)

HELPERS_DIR = Path(__file__).parent

__all__ = [
    "FrameMismatchError",
    "HELPERS_DIR",
    "ScriptedPinSource",
    "assert_frame_pixels",
    "assert_read_only",
    "blank_cycles",
    "clock_cycles",
    "frame_records",
    "frame_trace",
    "line_trace",
    "make_frame_pixels",
    "random_partition",
    "split_stream",
]
