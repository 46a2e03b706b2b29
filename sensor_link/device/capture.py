"""
Line capture state machine.

Samples one video line from the parallel bus, one sample per qualifying
pixel-clock edge, inside an interrupt-free critical section. Every wait is
bounded: the line-start wait by a budget of clock edges (one line period
under nominal timing) and every edge wait by a poll limit, so a stalled
clock can never hang the control loop.
"""

from __future__ import annotations

from array import array
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Protocol

import numpy as np

from sensor_link.core.logging_utils import get_module_logger
from sensor_link.errors import ConfigError

from .bus import BusSampler, ClockEdge, PinSource

logger = get_module_logger(__name__)

DEFAULT_MAX_POLLS_PER_EDGE = 64


class InterruptController(Protocol):
    """Global interrupt mask of the capture target."""

    def disable(self) -> None:
        ...

    def enable(self) -> None:
        ...


class NullInterruptController:
    """Interrupt controller for hosts without a real one; tracks nesting only."""

    def __init__(self) -> None:
        self.depth = 0
        self.sections = 0

    @property
    def disabled(self) -> bool:
        return self.depth > 0

    def disable(self) -> None:
        if self.depth == 0:
            self.sections += 1
        self.depth += 1

    def enable(self) -> None:
        if self.depth == 0:
            raise RuntimeError("interrupts enabled without a matching disable")
        self.depth -= 1


@contextmanager
def critical_section(controller: InterruptController) -> Iterator[None]:
    """Disable interrupts for the duration of the block, always re-enabling."""
    controller.disable()
    try:
        yield
    finally:
        controller.enable()


class LineStatus(Enum):
    CAPTURED = "captured"
    TIMEOUT = "timeout"        # line start or a clock edge never came
    TRUNCATED = "truncated"    # line-valid dropped before the line was full
    FRAME_END = "frame_end"    # frame-valid dropped while waiting for a line


@dataclass(frozen=True, slots=True)
class LineResult:
    status: LineStatus
    samples: Optional[np.ndarray] = None
    edges_waited: int = 0

    @property
    def valid(self) -> bool:
        return self.status is LineStatus.CAPTURED


class LineCapture:
    """Captures lines of ``width`` samples from a pin source.

    ``line_start_budget`` is the number of qualifying clock edges to wait
    for line-valid before declaring the line missed; set it to the sensor's
    line period (width + horizontal blanking) so that one missed line costs
    exactly one TIMEOUT.
    """

    def __init__(
        self,
        source: PinSource,
        sampler: BusSampler,
        width: int,
        *,
        edge: ClockEdge = ClockEdge.RISING,
        line_start_budget: int,
        max_polls_per_edge: int = DEFAULT_MAX_POLLS_PER_EDGE,
        interrupts: Optional[InterruptController] = None,
    ):
        if width <= 0:
            raise ConfigError(f"line width must be positive, got {width}")
        if line_start_budget <= 0 or max_polls_per_edge <= 0:
            raise ConfigError("capture budgets must be positive")
        self._source = source
        self._sampler = sampler
        self.width = width
        self.edge = edge
        self.line_start_budget = line_start_budget
        self.max_polls_per_edge = max_polls_per_edge
        self.interrupts = interrupts or NullInterruptController()
        # Session-lifetime scratch; nothing is allocated inside the critical section.
        self._scratch = array("H", bytes(2 * width))
        self._clk: Optional[int] = None

    def _sync_clock(self) -> int:
        if self._clk is None:
            self._clk = self._source.poll().pclk
        return self._clk

    def capture_line(self) -> LineResult:
        """Capture one line, or report why it could not be captured."""
        poll = self._source.poll
        read = self._sampler.read
        active = self.edge.active_level
        max_polls = self.max_polls_per_edge
        budget = self.line_start_budget
        scratch = self._scratch
        width = self.width

        clk = self._sync_clock()
        status = LineStatus.CAPTURED
        edges = 0

        with critical_section(self.interrupts):
            # Wait for line-valid, counting clock edges against the budget.
            polls = 0
            while True:
                pclk, lv, fv, port = poll()
                if not fv:
                    status = LineStatus.FRAME_END
                    clk = pclk
                    break
                if lv:
                    break
                if pclk == active and clk != active:
                    edges += 1
                    polls = 0
                    if edges >= budget:
                        status = LineStatus.TIMEOUT
                        clk = pclk
                        break
                else:
                    polls += 1
                    if polls >= max_polls:
                        status = LineStatus.TIMEOUT
                        clk = pclk
                        break
                clk = pclk

            if status is LineStatus.CAPTURED:
                clk = pclk
                index = 0
                polls = 0
                while index < width:
                    pclk, lv, fv, port = poll()
                    if pclk == active and clk != active:
                        if not lv:
                            status = LineStatus.TRUNCATED
                            clk = pclk
                            break
                        scratch[index] = read(port)
                        index += 1
                        polls = 0
                    else:
                        polls += 1
                        if polls >= max_polls:
                            status = LineStatus.TIMEOUT
                            clk = pclk
                            break
                    clk = pclk

        self._clk = clk
        if status is not LineStatus.CAPTURED:
            return LineResult(status, edges_waited=edges)

        samples = np.frombuffer(scratch, dtype=np.uint16).copy()
        samples.flags.writeable = False
        return LineResult(LineStatus.CAPTURED, samples, edges_waited=edges)

    def wait_for_frame_start(self, budget: int) -> bool:
        """Wait for a frame-valid rising transition.

        If frame-valid is already high we are mid-frame, so it must first be
        seen low. ``budget`` bounds the wait in clock edges.
        """
        poll = self._source.poll
        active = self.edge.active_level
        max_polls = self.max_polls_per_edge
        clk = self._sync_clock()
        seen_low = False
        edges = 0
        polls = 0
        while True:
            snapshot = poll()
            pclk, fv = snapshot.pclk, snapshot.frame_valid
            if not fv:
                seen_low = True
            elif seen_low:
                self._clk = pclk
                return True
            if pclk == active and clk != active:
                edges += 1
                polls = 0
                if edges >= budget:
                    break
            else:
                polls += 1
                if polls >= max_polls:
                    break
            clk = pclk
        self._clk = clk
        logger.debug("Frame-valid wait gave up after %d edges", edges)
        return False


__all__ = [
    "InterruptController",
    "LineCapture",
    "LineResult",
    "LineStatus",
    "NullInterruptController",
    "critical_section",
]
