"""
Host frame reassembler.

Byte-fed state machine that cuts the incoming stream into fixed-size line
records and writes each record's pixels into the frame buffer at the row
named by its index. It does no I/O: the receiver feeds it whatever the
transport returned and reports read timeouts.

Frame boundaries are inferred from the indices alone:

- all ``active_line_count`` rows written once -> complete frame
- a row arrives that was already written since the last emission -> the
  current frame is emitted incomplete and the record starts a new frame

Rows never written in a frame keep the previous frame's pixels.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import List, Optional

import numpy as np

from sensor_link.core.logging_utils import get_module_logger
from sensor_link.errors import ConfigError
from sensor_link.protocol import LINE_HEADER, LINE_HEADER_SIZE, line_record_size

logger = get_module_logger(__name__)

# Consecutive zero-byte reads after which a pending partial record is dropped.
RESYNC_TIMEOUTS = 2


class ReassemblerState(Enum):
    AWAITING_FIRST_BYTE = "awaiting_first_byte"
    ACCUMULATING_PARTIAL_RECORD = "accumulating_partial_record"
    RECORD_COMPLETE = "record_complete"


@dataclass(frozen=True)
class Frame:
    """One reassembled frame; ``pixels`` is a read-only ``(rows, width)`` array."""
    session_id: int
    frame_id: int
    pixels: np.ndarray
    complete: bool
    rows_received: int

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def width(self) -> int:
        return self.pixels.shape[1]


@dataclass
class ReassemblyStats:
    records_accepted: int = 0
    records_out_of_range: int = 0
    frame_restarts: int = 0
    partial_records_discarded: int = 0
    frames_complete: int = 0
    frames_incomplete: int = 0
    stalls: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class FrameReassembler:
    """Rebuilds frames from a byte stream of line records."""

    def __init__(self, width: int, active_line_count: int, *, session_id: int = 1):
        if width <= 0 or active_line_count <= 0:
            raise ConfigError("frame dimensions must be positive")
        self.width = width
        self.record_size = line_record_size(width)
        self.session_id = session_id
        self.stats = ReassemblyStats()

        self._record = bytearray()
        self._state = ReassemblerState.AWAITING_FIRST_BYTE
        self._timeout_streak = 0
        self._frame_id = 0
        self._allocate(active_line_count)

    def _allocate(self, active_line_count: int) -> None:
        self.active_line_count = active_line_count
        self._pixels = np.zeros((active_line_count, self.width), dtype=np.uint8)
        self._written = np.zeros(active_line_count, dtype=bool)
        self._rows_written = 0

    # ------------------------------------------------------------------
    # State

    @property
    def state(self) -> ReassemblerState:
        return self._state

    @property
    def pending_bytes(self) -> int:
        """Bytes of the record currently being accumulated."""
        return len(self._record)

    @property
    def rows_pending(self) -> int:
        """Rows written into the frame that has not been emitted yet."""
        return self._rows_written

    @property
    def frame_id(self) -> int:
        """Id the next emitted frame will carry."""
        return self._frame_id

    # ------------------------------------------------------------------
    # Input

    def feed(self, data: bytes) -> List[Frame]:
        """Consume received bytes; returns the frames they completed."""
        frames: List[Frame] = []
        if not data:
            return frames
        self._timeout_streak = 0

        view = memoryview(data)
        pos = 0
        total = len(view)
        record = self._record
        size = self.record_size
        while pos < total:
            take = min(size - len(record), total - pos)
            record += view[pos:pos + take]
            pos += take
            if len(record) == size:
                self._state = ReassemblerState.RECORD_COMPLETE
                frames.extend(self._handle_record(bytes(record)))
                record.clear()

        self._state = (
            ReassemblerState.ACCUMULATING_PARTIAL_RECORD
            if record else ReassemblerState.AWAITING_FIRST_BYTE
        )
        return frames

    def note_timeout(self) -> bool:
        """
        Record a read that returned nothing.

        Returns:
            True if a pending partial record was discarded to resynchronize
        """
        self.stats.stalls += 1
        if not self._record:
            self._timeout_streak = 0
            return False
        self._timeout_streak += 1
        if self._timeout_streak < RESYNC_TIMEOUTS:
            return False

        logger.warning(
            "Discarding %d-byte partial record after %d timeouts",
            len(self._record), self._timeout_streak,
        )
        self.stats.partial_records_discarded += 1
        self._record.clear()
        self._timeout_streak = 0
        self._state = ReassemblerState.AWAITING_FIRST_BYTE
        return True

    def _handle_record(self, record: bytes) -> List[Frame]:
        (index,) = LINE_HEADER.unpack_from(record)
        if index >= self.active_line_count:
            self.stats.records_out_of_range += 1
            logger.debug("Dropping record for row %d (active lines %d)", index, self.active_line_count)
            return []

        frames: List[Frame] = []
        if self._written[index]:
            self.stats.frame_restarts += 1
            frames.append(self._emit(complete=False))

        self._pixels[index] = np.frombuffer(record, dtype=np.uint8, offset=LINE_HEADER_SIZE, count=self.width)
        self._written[index] = True
        self._rows_written += 1
        self.stats.records_accepted += 1

        if self._rows_written == self.active_line_count:
            frames.append(self._emit(complete=True))
        return frames

    # ------------------------------------------------------------------
    # Output

    def _emit(self, complete: bool) -> Frame:
        pixels = self._pixels.copy()
        pixels.flags.writeable = False
        frame = Frame(
            session_id=self.session_id,
            frame_id=self._frame_id,
            pixels=pixels,
            complete=complete,
            rows_received=self._rows_written,
        )
        self._frame_id += 1
        self._written[:] = False
        self._rows_written = 0
        if complete:
            self.stats.frames_complete += 1
        else:
            self.stats.frames_incomplete += 1
            logger.debug("Frame %d emitted incomplete (%d rows)", frame.frame_id, frame.rows_received)
        return frame

    def flush_partial(self) -> Optional[Frame]:
        """Force out the frame under construction, if any rows were written."""
        if not self._rows_written:
            return None
        return self._emit(complete=False)

    # ------------------------------------------------------------------
    # Session control

    def set_active_line_count(self, active_line_count: int) -> Optional[Frame]:
        """Resize the frame; a partially assembled frame is flushed first."""
        if active_line_count <= 0:
            raise ConfigError("active line count must be positive")
        if active_line_count == self.active_line_count:
            return None
        flushed = self.flush_partial()
        self._allocate(active_line_count)
        logger.info("Active line count set to %d", active_line_count)
        return flushed

    def reset_session(self, session_id: Optional[int] = None) -> None:
        """Discard all partial state and start a new session."""
        self.session_id = self.session_id + 1 if session_id is None else session_id
        self._record.clear()
        self._state = ReassemblerState.AWAITING_FIRST_BYTE
        self._timeout_streak = 0
        self._frame_id = 0
        self._allocate(self.active_line_count)
        logger.info("Session %d started", self.session_id)


__all__ = ["Frame", "FrameReassembler", "ReassemblerState", "ReassemblyStats", "RESYNC_TIMEOUTS"]
