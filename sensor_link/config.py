"""Typed session configuration shared by the device and host sides."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from sensor_link.core.config_manager import get_config_manager
from sensor_link.core.typed_config import (
    get_config_bool,
    get_config_float,
    get_config_int,
    get_config_path,
    get_config_str,
)
from sensor_link.device.bus import ClockEdge, resolve_pin_map
from sensor_link.device.registers import SensorGeometry, SensorMode
from sensor_link.errors import ConfigError


@dataclass(slots=True)
class SessionConfig:
    """Out-of-band session parameters, agreed by both ends before streaming."""

    # Sensor geometry
    width: int = 752
    sensor_height: int = 480
    active_line_count: int = 480
    horizontal_blanking: int = 94
    vertical_blanking: int = 45
    pixel_clock_hz: float = 26.6e6

    # Bus and capture
    pin_map: str = "linear10"
    bit_depth: int = 0                  # 0 = bus width
    clock_edge: str = "rising"
    line_start_budget: int = 0          # clock edges; 0 = one line period
    frame_wait_budget: int = 0          # clock edges; 0 = two frame periods
    line_budget_margin: int = 8
    max_polls_per_edge: int = 64
    skip_alternate_frames: bool = False
    max_commands_per_drain: int = 32

    # Sensor settings
    sensor_mode: str = "master"
    exposure_time_us: int = 10000
    analog_gain: int = 16
    digital_gain: int = 4
    agc_enabled: bool = False
    companding_enabled: bool = False

    # Link
    port: str = ""
    baudrate: int = 921600
    read_timeout: float = 0.5
    frame_timeout: float = 2.0
    max_stalls: int = 10
    reconnect: bool = True

    # Output
    output_dir: Path = field(default_factory=lambda: Path("frames"))
    log_level: str = "info"

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any], args: Any = None) -> "SessionConfig":
        """Build config from a ``key = value`` map with optional CLI overrides."""
        defaults = cls()

        session = cls(
            # Sensor geometry
            width=get_config_int(config, "width", defaults.width),
            sensor_height=get_config_int(config, "sensor_height", defaults.sensor_height),
            active_line_count=get_config_int(config, "active_line_count", defaults.active_line_count),
            horizontal_blanking=get_config_int(config, "horizontal_blanking", defaults.horizontal_blanking),
            vertical_blanking=get_config_int(config, "vertical_blanking", defaults.vertical_blanking),
            pixel_clock_hz=get_config_float(config, "pixel_clock_hz", defaults.pixel_clock_hz),
            # Bus and capture
            pin_map=get_config_str(config, "pin_map", defaults.pin_map),
            bit_depth=get_config_int(config, "bit_depth", defaults.bit_depth),
            clock_edge=get_config_str(config, "clock_edge", defaults.clock_edge),
            line_start_budget=get_config_int(config, "line_start_budget", defaults.line_start_budget),
            frame_wait_budget=get_config_int(config, "frame_wait_budget", defaults.frame_wait_budget),
            line_budget_margin=get_config_int(config, "line_budget_margin", defaults.line_budget_margin),
            max_polls_per_edge=get_config_int(config, "max_polls_per_edge", defaults.max_polls_per_edge),
            skip_alternate_frames=get_config_bool(config, "skip_alternate_frames", defaults.skip_alternate_frames),
            max_commands_per_drain=get_config_int(config, "max_commands_per_drain", defaults.max_commands_per_drain),
            # Sensor settings
            sensor_mode=get_config_str(config, "sensor_mode", defaults.sensor_mode),
            exposure_time_us=get_config_int(config, "exposure_time_us", defaults.exposure_time_us),
            analog_gain=get_config_int(config, "analog_gain", defaults.analog_gain),
            digital_gain=get_config_int(config, "digital_gain", defaults.digital_gain),
            agc_enabled=get_config_bool(config, "agc_enabled", defaults.agc_enabled),
            companding_enabled=get_config_bool(config, "companding_enabled", defaults.companding_enabled),
            # Link
            port=get_config_str(config, "port", defaults.port),
            baudrate=get_config_int(config, "baudrate", defaults.baudrate),
            read_timeout=get_config_float(config, "read_timeout", defaults.read_timeout),
            frame_timeout=get_config_float(config, "frame_timeout", defaults.frame_timeout),
            max_stalls=get_config_int(config, "max_stalls", defaults.max_stalls),
            reconnect=get_config_bool(config, "reconnect", defaults.reconnect),
            # Output
            output_dir=get_config_path(config, "output_dir", defaults.output_dir),
            log_level=get_config_str(config, "log_level", defaults.log_level),
        )

        if args is not None:
            session = session._apply_args_override(args)

        return session

    @classmethod
    def load(cls, path: Optional[Path], args: Any = None) -> "SessionConfig":
        raw = get_config_manager().read_config(path) if path else {}
        return cls.from_mapping(raw, args)

    @classmethod
    async def load_async(cls, path: Optional[Path], args: Any = None) -> "SessionConfig":
        raw = await get_config_manager().read_config_async(path) if path else {}
        return cls.from_mapping(raw, args)

    def _apply_args_override(self, args: Any) -> "SessionConfig":
        """Apply CLI argument overrides to config values."""
        values = asdict(self)

        arg_mappings = {
            "width": "width",
            "height": "sensor_height",
            "active_lines": "active_line_count",
            "pin_map": "pin_map",
            "bit_depth": "bit_depth",
            "clock_edge": "clock_edge",
            "sensor_mode": "sensor_mode",
            "port": "port",
            "baudrate": "baudrate",
            "frame_timeout": "frame_timeout",
            "max_stalls": "max_stalls",
            "output_dir": "output_dir",
            "log_level": "log_level",
            "skip_alternate_frames": "skip_alternate_frames",
        }

        for arg_name, config_key in arg_mappings.items():
            if hasattr(args, arg_name):
                val = getattr(args, arg_name)
                if val is not None:
                    values[config_key] = val

        return SessionConfig(**values)

    def to_dict(self) -> dict[str, Any]:
        """Export config values as dictionary."""
        return asdict(self)

    # ------------------------------------------------------------------
    # Derived values

    @property
    def geometry(self) -> SensorGeometry:
        return SensorGeometry(
            width=self.width,
            height=self.sensor_height,
            horizontal_blanking=self.horizontal_blanking,
            vertical_blanking=self.vertical_blanking,
            pixel_clock_hz=self.pixel_clock_hz,
        )

    @property
    def edge(self) -> ClockEdge:
        return ClockEdge.parse(self.clock_edge)

    @property
    def mode(self) -> SensorMode:
        try:
            return SensorMode.parse(self.sensor_mode)
        except ValueError as exc:
            raise ConfigError(f"unknown sensor mode '{self.sensor_mode}'") from exc

    @property
    def pins(self) -> tuple[int, ...]:
        return resolve_pin_map(self.pin_map)

    @property
    def effective_bit_depth(self) -> int:
        return self.bit_depth or len(self.pins)

    @property
    def line_period(self) -> int:
        return self.width + self.horizontal_blanking

    @property
    def effective_line_start_budget(self) -> int:
        return self.line_start_budget or self.line_period

    @property
    def effective_frame_wait_budget(self) -> int:
        if self.frame_wait_budget:
            return self.frame_wait_budget
        return 2 * (self.sensor_height + self.vertical_blanking) * self.line_period

    @property
    def line_budget(self) -> int:
        return self.sensor_height + self.line_budget_margin

    def validate(self) -> "SessionConfig":
        """Check invariants; returns self so calls can be chained."""
        for name in ("width", "sensor_height", "max_polls_per_edge", "baudrate",
                     "max_commands_per_drain", "max_stalls"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("horizontal_blanking", "vertical_blanking", "line_start_budget",
                     "frame_wait_budget", "line_budget_margin"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative, got {getattr(self, name)}")
        if not 1 <= self.active_line_count <= self.sensor_height:
            raise ConfigError(
                f"active_line_count {self.active_line_count} outside 1..{self.sensor_height}"
            )
        if self.width > 0xFFFF or self.sensor_height > 0xFFFF:
            raise ConfigError("frame dimensions must fit in 16 bits")
        bus_width = len(self.pins)
        if bus_width not in (8, 10):
            raise ConfigError(f"bus width must be 8 or 10 bits, pin map gives {bus_width}")
        if not 8 <= self.effective_bit_depth <= 16:
            raise ConfigError(f"bit depth {self.effective_bit_depth} outside 8..16")
        if self.read_timeout <= 0 or self.frame_timeout <= 0:
            raise ConfigError("timeouts must be positive")
        # Parsing raises ConfigError for unknown names.
        _ = (self.edge, self.mode)
        return self


__all__ = ["SessionConfig"]
