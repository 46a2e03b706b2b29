"""
Frame driver.

Waits for frame-valid, captures every line the sensor presents, counts
visible lines and forwards the ones inside the active window while
streaming is enabled. Runtime configuration is sampled once per frame, so
a streaming change takes effect at the next frame boundary.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Tuple

from sensor_link.core.logging_utils import get_module_logger

from .capture import LineCapture, LineStatus
from .packetizer import LinePacketizer
from .runtime_config import RuntimeConfig

logger = get_module_logger(__name__)


class FrameStatus(Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"              # some window lines never captured
    WAIT_TIMEOUT = "wait_timeout"          # frame-valid never rose
    BUDGET_EXCEEDED = "budget_exceeded"    # more lines than the budget allows


@dataclass(frozen=True)
class FrameReport:
    frame_number: int
    status: FrameStatus
    lines_captured: int = 0
    lines_missed: int = 0
    lines_sent: int = 0
    window: Tuple[int, int] = (0, 0)
    forwarded: bool = False
    skipped: bool = False

    @property
    def abandoned(self) -> bool:
        return self.status in (FrameStatus.WAIT_TIMEOUT, FrameStatus.BUDGET_EXCEEDED)


@dataclass
class CaptureStats:
    frames_started: int = 0
    frames_complete: int = 0
    frames_incomplete: int = 0
    frames_abandoned: int = 0
    frames_skipped: int = 0
    lines_captured: int = 0
    lines_missed: int = 0
    lines_sent: int = 0
    lines_outside_window: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def active_window(active_line_count: int, sensor_height: int) -> Tuple[int, int]:
    """Rows ``[H/2 - active/2, H/2 + active/2)`` of the visible frame."""
    active = max(1, min(sensor_height, active_line_count))
    start = sensor_height // 2 - active // 2
    return start, start + active


class FrameDriver:
    """Captures one frame at a time and forwards the active window to the link."""

    def __init__(
        self,
        capture: LineCapture,
        packetizer: LinePacketizer,
        config: RuntimeConfig,
        *,
        sensor_height: int,
        line_budget: int,
        frame_wait_budget: int,
        skip_alternate_frames: bool = False,
    ):
        self.capture = capture
        self.packetizer = packetizer
        self.config = config
        self.sensor_height = sensor_height
        self.line_budget = line_budget
        self.frame_wait_budget = frame_wait_budget
        self.skip_alternate_frames = skip_alternate_frames
        self.stats = CaptureStats()
        self._frame_number = 0
        self._send_next = True

    def _should_send(self) -> bool:
        if not self.skip_alternate_frames:
            return True
        send = self._send_next
        self._send_next = not send
        return send

    async def run_frame(self) -> FrameReport:
        """Capture one frame and forward its window lines."""
        snapshot = self.config.snapshot()
        start, end = active_window(snapshot.active_line_count, self.sensor_height)

        if not self.capture.wait_for_frame_start(self.frame_wait_budget):
            self.stats.frames_abandoned += 1
            logger.debug("No frame start within %d edges", self.frame_wait_budget)
            return FrameReport(-1, FrameStatus.WAIT_TIMEOUT, window=(start, end))

        frame_number = self._frame_number
        self._frame_number += 1
        self.stats.frames_started += 1

        send_frame = self._should_send()
        if not send_frame:
            self.stats.frames_skipped += 1
        forward = snapshot.streaming_enabled and send_frame

        visible = 0
        missed = 0
        sent = 0
        frame_ended = False
        for _ in range(self.line_budget):
            result = self.capture.capture_line()
            if result.status is LineStatus.FRAME_END:
                frame_ended = True
                break
            if not result.valid:
                missed += 1
                logger.debug("Frame %d: line after row %d missed (%s)", frame_number, visible, result.status.value)
                continue

            row = visible
            visible += 1
            if not start <= row < end:
                self.stats.lines_outside_window += 1
                continue
            if forward and await self.packetizer.send(row - start, result.samples):
                sent += 1

        self.stats.lines_captured += visible
        self.stats.lines_missed += missed
        self.stats.lines_sent += sent

        if not frame_ended:
            status = FrameStatus.BUDGET_EXCEEDED
            self.stats.frames_abandoned += 1
        elif missed or visible < end:
            status = FrameStatus.INCOMPLETE
            self.stats.frames_incomplete += 1
        else:
            status = FrameStatus.COMPLETE
            self.stats.frames_complete += 1

        report = FrameReport(
            frame_number=frame_number,
            status=status,
            lines_captured=visible,
            lines_missed=missed,
            lines_sent=sent,
            window=(start, end),
            forwarded=forward,
            skipped=not send_frame,
        )
        logger.debug(
            "Frame %d %s: %d captured, %d missed, %d sent",
            frame_number, status.value, visible, missed, sent,
        )
        return report


__all__ = ["CaptureStats", "FrameDriver", "FrameReport", "FrameStatus", "active_window"]
