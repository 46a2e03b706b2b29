"""
Simulated parallel-output image sensor.

Produces the pin snapshots a capture target would read from a real sensor:
a free-running pixel clock, frame-valid/line-valid framing with horizontal
and vertical blanking, and pixel data launched on the inactive clock phase
so it is stable at the sampling edge. Lines can be dropped on purpose to
exercise missed-line handling.
"""

from __future__ import annotations

import itertools
from typing import Callable, Iterable, Iterator, Optional, Sequence, Set, Tuple

import numpy as np

from .bus import BusSampler, ClockEdge, PinSnapshot
from .registers import SensorGeometry

PatternFn = Callable[[int, int, int, int], Sequence[int]]


def gradient_pattern(frame: int, row: int, width: int, max_value: int) -> np.ndarray:
    """Diagonal gradient that moves one step per frame."""
    cols = np.arange(width, dtype=np.int64)
    return ((cols + row + frame) % (max_value + 1)).astype(np.uint16)


class SimulatedSensor:
    """Pin source backed by a synthetic sensor timeline."""

    def __init__(
        self,
        geometry: SensorGeometry,
        sampler: BusSampler,
        *,
        edge: ClockEdge = ClockEdge.RISING,
        polls_per_phase: int = 1,
        pattern: Optional[PatternFn] = None,
        drop_lines: Iterable[Tuple[int, int]] = (),
        max_frames: Optional[int] = None,
    ):
        if polls_per_phase < 1:
            raise ValueError("polls_per_phase must be at least 1")
        self.geometry = geometry
        self.sampler = sampler
        self.edge = edge
        self.polls_per_phase = polls_per_phase
        self.pattern = pattern or gradient_pattern
        self.drop_lines: Set[Tuple[int, int]] = set(drop_lines)
        self.max_frames = max_frames
        self.frames_started = 0
        self.polls = 0
        self._timeline = self._run()

    def poll(self) -> PinSnapshot:
        self.polls += 1
        return next(self._timeline)

    def expected_line(self, frame: int, row: int) -> np.ndarray:
        """The samples the sensor emits for ``row`` of ``frame``."""
        values = self.pattern(frame, row, self.geometry.width, self.sampler.max_value)
        return np.asarray(values, dtype=np.uint16) & self.sampler.max_value

    # ------------------------------------------------------------------
    # Timeline generation

    def _cycle(self, lv: int, fv: int, port: int) -> Tuple[PinSnapshot, ...]:
        active = self.edge.active_level
        launch = PinSnapshot(1 - active, lv, fv, port)
        sample = PinSnapshot(active, lv, fv, port)
        k = self.polls_per_phase
        return (launch,) * k + (sample,) * k

    def _blank(self, cycles: int, lv: int, fv: int) -> Iterator[PinSnapshot]:
        return itertools.chain.from_iterable(itertools.repeat(self._cycle(lv, fv, 0), cycles))

    def _line(self, values: Sequence[int]) -> list:
        encode = self.sampler.encode
        out: list = []
        for value in values:
            out.extend(self._cycle(1, 1, encode(int(value))))
        return out

    def _run(self) -> Iterator[PinSnapshot]:
        geo = self.geometry
        period = geo.line_period_clocks
        while self.max_frames is None or self.frames_started < self.max_frames:
            frame = self.frames_started
            yield from self._blank(geo.vertical_blanking * period, 0, 0)
            self.frames_started += 1
            yield from self._blank(geo.horizontal_blanking, 0, 1)
            for row in range(geo.height):
                if (frame, row) in self.drop_lines:
                    yield from self._blank(geo.width, 0, 1)
                else:
                    yield from self._line(self.expected_line(frame, row))
                if row != geo.height - 1:
                    yield from self._blank(geo.horizontal_blanking, 0, 1)
        # Trailing blank so the last frame-valid fall is observable, then the clock stops.
        yield from self._blank(period, 0, 0)
        idle = PinSnapshot(0, 0, 0, 0)
        while True:
            yield idle


__all__ = ["SimulatedSensor", "gradient_pattern"]
