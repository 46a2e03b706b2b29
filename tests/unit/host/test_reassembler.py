"""Unit tests for the host frame reassembler."""

from __future__ import annotations

import numpy as np
import pytest

from sensor_link.errors import ConfigError
from sensor_link.host.reassembler import FrameReassembler, ReassemblerState
from sensor_link.protocol import pack_line_record
from tests.infrastructure.helpers import (
    assert_frame_pixels,
    assert_read_only,
    frame_records,
    make_frame_pixels,
    random_partition,
    split_stream,
)

WIDTH = 6
ROWS = 4


def feed_all(reassembler, chunks):
    frames = []
    for chunk in chunks:
        frames.extend(reassembler.feed(chunk))
    return frames


@pytest.fixture
def reassembler():
    return FrameReassembler(WIDTH, ROWS)


@pytest.fixture
def pixels():
    return make_frame_pixels(ROWS, WIDTH, seed=3)


class TestReassembly:

    def test_complete_frame(self, reassembler, pixels):
        frames = reassembler.feed(b"".join(frame_records(pixels)))

        assert len(frames) == 1
        assert_frame_pixels(frames[0], pixels, complete=True)
        assert frames[0].rows_received == ROWS
        assert frames[0].frame_id == 0
        assert reassembler.state is ReassemblerState.AWAITING_FIRST_BYTE

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_partition_does_not_matter(self, pixels, seed):
        stream = b"".join(frame_records(pixels)) * 2
        reassembler = FrameReassembler(WIDTH, ROWS)

        frames = feed_all(reassembler, random_partition(stream, seed, max_chunk=11))

        assert [f.complete for f in frames] == [True, True]
        for frame in frames:
            assert_frame_pixels(frame, pixels)

    def test_one_byte_then_rest_of_record(self, reassembler, pixels):
        stream = b"".join(frame_records(pixels))
        record = reassembler.record_size

        chunks = split_stream(stream, [1, record + 1])
        assert reassembler.feed(chunks[0]) == []
        assert reassembler.state is ReassemblerState.ACCUMULATING_PARTIAL_RECORD
        assert reassembler.pending_bytes == 1

        assert reassembler.feed(chunks[1]) == []
        assert reassembler.rows_pending == 1
        assert reassembler.pending_bytes == 1

        frames = reassembler.feed(chunks[2])
        assert_frame_pixels(frames[0], pixels, complete=True)

    def test_rows_in_any_order(self, reassembler, pixels):
        frames = reassembler.feed(b"".join(frame_records(pixels, order=[2, 0, 3, 1])))

        assert_frame_pixels(frames[0], pixels, complete=True)

    def test_out_of_range_index_dropped(self, reassembler, pixels):
        bogus = pack_line_record(ROWS, pixels[0])

        frames = reassembler.feed(bogus + b"".join(frame_records(pixels)))

        assert reassembler.stats.records_out_of_range == 1
        assert_frame_pixels(frames[0], pixels, complete=True)

    def test_emitted_frame_is_read_only_copy(self, reassembler, pixels):
        (first,) = reassembler.feed(b"".join(frame_records(pixels)))
        other = make_frame_pixels(ROWS, WIDTH, seed=9)

        (second,) = reassembler.feed(b"".join(frame_records(other)))

        assert_read_only(first.pixels)
        assert_frame_pixels(first, pixels)
        assert_frame_pixels(second, other)
        assert second.frame_id == 1


class TestFrameBoundaries:

    def test_repeated_row_starts_new_frame(self, reassembler, pixels):
        partial = frame_records(pixels, order=[0, 1])
        frames = reassembler.feed(b"".join(partial + frame_records(pixels)))

        assert [f.complete for f in frames] == [False, True]
        assert frames[0].rows_received == 2
        assert reassembler.stats.frame_restarts == 1

    def test_missing_row_keeps_previous_pixels(self, reassembler, pixels):
        reassembler.feed(b"".join(frame_records(pixels)))
        newer = make_frame_pixels(ROWS, WIDTH, seed=4)

        frames = reassembler.feed(
            b"".join(frame_records(newer, order=[0, 1, 2]) + frame_records(newer, order=[0]))
        )

        expected = newer.copy()
        expected[3] = pixels[3]
        assert_frame_pixels(frames[0], expected, complete=False)

    def test_flush_partial(self, reassembler, pixels):
        assert reassembler.flush_partial() is None
        reassembler.feed(frame_records(pixels)[0])

        frame = reassembler.flush_partial()

        assert frame.complete is False
        assert frame.rows_received == 1
        assert reassembler.rows_pending == 0


class TestResync:

    def test_partial_record_dropped_after_two_timeouts(self, reassembler, pixels):
        records = frame_records(pixels)
        reassembler.feed(records[0][:3])

        assert reassembler.note_timeout() is False
        assert reassembler.pending_bytes == 3
        assert reassembler.note_timeout() is True
        assert reassembler.pending_bytes == 0
        assert reassembler.stats.partial_records_discarded == 1

        frames = reassembler.feed(b"".join(records))
        assert_frame_pixels(frames[0], pixels, complete=True)

    def test_data_between_timeouts_resets_streak(self, reassembler, pixels):
        record = frame_records(pixels)[0]
        reassembler.feed(record[:2])
        reassembler.note_timeout()
        reassembler.feed(record[2:4])

        assert reassembler.note_timeout() is False
        assert reassembler.pending_bytes == 4

    def test_timeout_without_partial_is_harmless(self, reassembler):
        assert reassembler.note_timeout() is False
        assert reassembler.note_timeout() is False
        assert reassembler.stats.stalls == 2


class TestSessionControl:

    def test_set_active_line_count_flushes_and_resizes(self, reassembler, pixels):
        reassembler.feed(frame_records(pixels)[0])

        flushed = reassembler.set_active_line_count(2)

        assert flushed.complete is False
        assert flushed.height == ROWS
        small = make_frame_pixels(2, WIDTH, seed=5)
        (frame,) = reassembler.feed(b"".join(frame_records(small)))
        assert frame.height == 2
        assert_frame_pixels(frame, small, complete=True)

    def test_set_same_line_count_is_noop(self, reassembler):
        assert reassembler.set_active_line_count(ROWS) is None

    def test_reset_session(self, reassembler, pixels):
        reassembler.feed(b"".join(frame_records(pixels)))
        reassembler.feed(frame_records(pixels)[1][:5])

        reassembler.reset_session()

        assert reassembler.session_id == 2
        assert reassembler.frame_id == 0
        assert reassembler.pending_bytes == 0
        assert reassembler.rows_pending == 0
        (frame,) = reassembler.feed(b"".join(frame_records(pixels)))
        assert frame.session_id == 2

    def test_invalid_dimensions(self):
        with pytest.raises(ConfigError):
            FrameReassembler(0, 4)
        reassembler = FrameReassembler(4, 4)
        with pytest.raises(ConfigError):
            reassembler.set_active_line_count(0)

    def test_pixels_dtype(self, reassembler, pixels):
        (frame,) = reassembler.feed(b"".join(frame_records(pixels)))
        assert frame.pixels.dtype == np.uint8
        assert frame.width == WIDTH
