"""
Parallel bus sampling.

A :class:`PinSource` returns one :class:`PinSnapshot` per poll: the pixel
clock, the two framing signals and the raw value of the GPIO port that
carries the data pins. :class:`BusSampler` turns the port value into a
pixel sample using a pin map (bus bit ``i`` is read from port bit
``pins[i]``), so one capture engine serves every wiring variant.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, NamedTuple, Protocol, Sequence, Tuple

from sensor_link.errors import ConfigError


class PinSnapshot(NamedTuple):
    """Instantaneous state of the capture pins."""
    pclk: int
    line_valid: int
    frame_valid: int
    port: int


class PinSource(Protocol):
    """Anything that can read the capture pins once per call."""

    def poll(self) -> PinSnapshot:
        ...


class ClockEdge(Enum):
    """Pixel clock edge on which the bus is sampled.

    ``RISING``: sample on the first poll that reads PCLK high after a poll
    that read it low; the data in that same snapshot is the pixel.
    ``FALLING``: the mirror image. Fixed for a session; choosing the wrong
    edge shifts every sample by half a clock.
    """
    RISING = "rising"
    FALLING = "falling"

    @property
    def active_level(self) -> int:
        return 1 if self is ClockEdge.RISING else 0

    @classmethod
    def parse(cls, value: str) -> "ClockEdge":
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ConfigError(f"unknown clock edge '{value}'") from exc


# Bus bit i is wired to port bit PIN_MAPS[name][i].
PIN_MAPS: Dict[str, Tuple[int, ...]] = {
    # Full 10-bit bus, D0..D9 on port bits 0..9.
    "linear10": tuple(range(10)),
    # 8-bit bus on port bits 0..7.
    "linear8": tuple(range(8)),
    # Only D2..D9 wired: 8-bit companded output of a 10-bit sensor.
    "upper8": tuple(range(2, 10)),
    # 10-bit bus split across two port bytes (D0..D7 low byte, D8..D9 bits 12..13).
    "split10": (0, 1, 2, 3, 4, 5, 6, 7, 12, 13),
}


def resolve_pin_map(name_or_pins) -> Tuple[int, ...]:
    if isinstance(name_or_pins, str):
        key = name_or_pins.strip().lower()
        if key in PIN_MAPS:
            return PIN_MAPS[key]
        try:
            pins = tuple(int(part, 0) for part in key.split(",") if part.strip())
        except ValueError as exc:
            raise ConfigError(f"unknown pin map '{name_or_pins}'") from exc
    else:
        pins = tuple(int(p) for p in name_or_pins)
    if not pins:
        raise ConfigError("pin map must name at least one pin")
    if len(set(pins)) != len(pins) or min(pins) < 0:
        raise ConfigError(f"pin map {pins} has duplicate or negative pins")
    return pins


class BusSampler:
    """Reads the data bus out of a pin snapshot."""

    __slots__ = ("pins", "bus_width", "_shift", "_mask", "_contiguous")

    def __init__(self, pins: Sequence[int]):
        self.pins = resolve_pin_map(pins)
        self.bus_width = len(self.pins)
        self._shift = self.pins[0]
        self._mask = (1 << self.bus_width) - 1
        self._contiguous = self.pins == tuple(range(self._shift, self._shift + self.bus_width))

    @property
    def max_value(self) -> int:
        return self._mask

    def read(self, port: int) -> int:
        """Decode a raw port value into a sample, in bus-bit order."""
        if self._contiguous:
            return (port >> self._shift) & self._mask
        value = 0
        for bit, pin in enumerate(self.pins):
            value |= ((port >> pin) & 1) << bit
        return value

    def sample(self, snapshot: PinSnapshot) -> int:
        return self.read(snapshot.port)

    def encode(self, value: int) -> int:
        """Inverse of :meth:`read`: place a sample onto the port bits."""
        if self._contiguous:
            return (value & self._mask) << self._shift
        port = 0
        for bit, pin in enumerate(self.pins):
            port |= ((value >> bit) & 1) << pin
        return port


__all__ = [
    "BusSampler",
    "ClockEdge",
    "PIN_MAPS",
    "PinSnapshot",
    "PinSource",
    "resolve_pin_map",
]
