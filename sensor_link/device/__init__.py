"""Capture-target side: bus sampling, line capture, framing and commands."""

from .bus import BusSampler, ClockEdge, PinSnapshot, PinSource
from .capture import LineCapture, LineResult, LineStatus, NullInterruptController, critical_section
from .commands import CommandDecoder
from .controller import DeviceController, build_device
from .frame_driver import FrameDriver, FrameReport, FrameStatus, active_window
from .packetizer import LinePacketizer
from .registers import RecordingRegisterBus, RegisterConfigurator, SensorGeometry, SensorMode
from .runtime_config import RuntimeConfig
from .simulated_sensor import SimulatedSensor

__all__ = [
    "BusSampler",
    "ClockEdge",
    "CommandDecoder",
    "DeviceController",
    "FrameDriver",
    "FrameReport",
    "FrameStatus",
    "LineCapture",
    "LinePacketizer",
    "LineResult",
    "LineStatus",
    "NullInterruptController",
    "PinSnapshot",
    "PinSource",
    "RecordingRegisterBus",
    "RegisterConfigurator",
    "RuntimeConfig",
    "SensorGeometry",
    "SensorMode",
    "SimulatedSensor",
    "active_window",
    "build_device",
    "critical_section",
]
