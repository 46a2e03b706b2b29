"""
Sensor register configuration.

The management bus itself (I2C/two-wire) is a collaborator behind
:class:`RegisterBus`. Sensor timing modes are a closed set of named
profiles, each an explicit table of register writes; runtime changes
(exposure, gains, AGC/companding) are fire-and-forget writes.

Register addresses follow the MT9V034-style map used by the supported
752x480 sensors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Protocol, Tuple

from sensor_link.core.logging_utils import get_module_logger

logger = get_module_logger(__name__)


# =============================================================================
# Register map
# =============================================================================

REG_WINDOW_HEIGHT = 0x03
REG_WINDOW_WIDTH = 0x04
REG_HORIZONTAL_BLANKING = 0x05
REG_VERTICAL_BLANKING = 0x06
REG_CHIP_CONTROL = 0x07
REG_TOTAL_SHUTTER_WIDTH = 0x0B
REG_ADC_MODE = 0x1C
REG_ANALOG_GAIN = 0x35
REG_AEC_AGC_ENABLE = 0xAF
REG_DIGITAL_GAIN_TILES = tuple(range(0x80, 0x99))  # 5x5 tile gains

CHIP_CONTROL_MASTER = 0x0388
CHIP_CONTROL_SLAVE = 0x0380
ADC_MODE_LINEAR = 0x0302
ADC_MODE_COMPANDING = 0x0303
AEC_ENABLE_BIT = 0x0001
AGC_ENABLE_BIT = 0x0002

ANALOG_GAIN_MIN = 16   # 1x
ANALOG_GAIN_MAX = 64   # 4x
DIGITAL_GAIN_MASK = 0x0F
SHUTTER_WIDTH_MAX = 0x7FFF


class RegisterBus(Protocol):
    """Management bus able to write one 16-bit sensor register."""

    def write_register(self, address: int, value: int) -> None:
        ...


class RecordingRegisterBus:
    """Register bus that keeps the last written values (simulation and tests)."""

    def __init__(self) -> None:
        self.registers: Dict[int, int] = {}
        self.writes: List[Tuple[int, int]] = []

    def write_register(self, address: int, value: int) -> None:
        value &= 0xFFFF
        self.registers[address] = value
        self.writes.append((address, value))


class SensorMode(Enum):
    """Sensor timing profiles."""
    MASTER = "master"   # sensor free-runs and drives frame timing
    SLAVE = "slave"     # exposure/readout triggered externally

    @classmethod
    def parse(cls, value: str) -> "SensorMode":
        return cls(str(value).strip().lower())


@dataclass(frozen=True)
class SensorGeometry:
    width: int = 752
    height: int = 480
    horizontal_blanking: int = 94
    vertical_blanking: int = 45
    pixel_clock_hz: float = 26.6e6

    @property
    def line_period_clocks(self) -> int:
        return self.width + self.horizontal_blanking

    @property
    def row_time_us(self) -> float:
        return self.line_period_clocks / self.pixel_clock_hz * 1e6


def profile_registers(mode: SensorMode, geometry: SensorGeometry) -> List[Tuple[int, int]]:
    """Register table for a timing profile."""
    common = [
        (REG_WINDOW_HEIGHT, geometry.height),
        (REG_WINDOW_WIDTH, geometry.width),
        (REG_HORIZONTAL_BLANKING, geometry.horizontal_blanking),
        (REG_VERTICAL_BLANKING, geometry.vertical_blanking),
        (REG_ADC_MODE, ADC_MODE_LINEAR),
        (REG_AEC_AGC_ENABLE, 0x0000),
    ]
    if mode is SensorMode.MASTER:
        return [(REG_CHIP_CONTROL, CHIP_CONTROL_MASTER)] + common
    return [(REG_CHIP_CONTROL, CHIP_CONTROL_SLAVE)] + common


@dataclass
class RegisterConfigurator:
    """Applies runtime settings to the sensor; nothing is read back."""

    bus: RegisterBus
    geometry: SensorGeometry = field(default_factory=SensorGeometry)

    def apply_profile(self, mode: SensorMode) -> None:
        for address, value in profile_registers(mode, self.geometry):
            self.bus.write_register(address, value)
        logger.info("Applied %s sensor profile", mode.value)

    def apply_exposure(self, exposure_us: int) -> None:
        rows = round(exposure_us / self.geometry.row_time_us)
        rows = max(1, min(SHUTTER_WIDTH_MAX, rows))
        self.bus.write_register(REG_TOTAL_SHUTTER_WIDTH, rows)
        logger.debug("Exposure %d us -> %d rows", exposure_us, rows)

    def apply_analog_gain(self, code: int) -> None:
        gain = max(ANALOG_GAIN_MIN, min(ANALOG_GAIN_MAX, code))
        self.bus.write_register(REG_ANALOG_GAIN, gain)

    def apply_digital_gain(self, code: int) -> None:
        value = code & DIGITAL_GAIN_MASK
        for address in REG_DIGITAL_GAIN_TILES:
            self.bus.write_register(address, value)

    def apply_mode(self, agc_enabled: bool, companding_enabled: bool) -> None:
        aec_agc = (AEC_ENABLE_BIT | AGC_ENABLE_BIT) if agc_enabled else 0
        self.bus.write_register(REG_AEC_AGC_ENABLE, aec_agc)
        self.bus.write_register(REG_ADC_MODE, ADC_MODE_COMPANDING if companding_enabled else ADC_MODE_LINEAR)


__all__ = [
    "RecordingRegisterBus",
    "RegisterBus",
    "RegisterConfigurator",
    "SensorGeometry",
    "SensorMode",
    "profile_registers",
]
