"""
Device controller.

The cooperative control loop of the capture target: capture a frame, then
drain pending commands, then capture the next frame. Commands therefore
only ever take effect between frames.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional

from sensor_link.core.logging_utils import get_module_logger

from .bus import BusSampler, PinSource
from .capture import InterruptController, LineCapture
from .commands import CommandDecoder
from .frame_driver import FrameDriver, FrameReport, FrameStatus
from .packetizer import LinePacketizer
from .registers import RecordingRegisterBus, RegisterBus, RegisterConfigurator
from .runtime_config import RuntimeConfig
from .simulated_sensor import SimulatedSensor

if TYPE_CHECKING:
    from sensor_link.config import SessionConfig
    from sensor_link.transport.base_transport import BaseTransport

logger = get_module_logger(__name__)


class DeviceController:
    """Device control loop alternating command drains and frame captures."""

    def __init__(
        self,
        driver: FrameDriver,
        decoder: CommandDecoder,
        *,
        max_idle_waits: Optional[int] = None,
    ):
        """
        Args:
            driver: Frame driver owning capture and packetizing
            decoder: Command decoder for the same link
            max_idle_waits: Stop after this many consecutive frame-start
                timeouts (None waits forever)
        """
        self.driver = driver
        self.decoder = decoder
        self.max_idle_waits = max_idle_waits
        self.frames_run = 0
        self.last_report: Optional[FrameReport] = None

        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def config(self) -> RuntimeConfig:
        return self.driver.config

    @property
    def is_running(self) -> bool:
        return self._running

    async def step(self) -> FrameReport:
        """One iteration: a frame, then a command drain."""
        report = await self.driver.run_frame()
        await self.decoder.drain()
        self.last_report = report
        return report

    async def run(self, max_frames: Optional[int] = None) -> int:
        """
        Run the control loop until stopped, idle, or ``max_frames`` frames.

        Returns:
            Number of frames captured
        """
        self._running = True
        idle_waits = 0
        captured = 0
        # Apply commands that arrived before the first frame.
        await self.decoder.drain()
        try:
            while self._running:
                if max_frames is not None and captured >= max_frames:
                    break
                report = await self.step()
                if report.status is FrameStatus.WAIT_TIMEOUT:
                    idle_waits += 1
                    if self.max_idle_waits is not None and idle_waits >= self.max_idle_waits:
                        logger.info("No frames for %d waits; stopping", idle_waits)
                        break
                else:
                    idle_waits = 0
                    captured += 1
                    self.frames_run += 1
                # Let the link and host tasks run between frames.
                await asyncio.sleep(0)
        finally:
            self._running = False
        logger.info("Control loop finished after %d frames", captured)
        logger.debug("Capture stats: %s", self.driver.stats.to_dict())
        return captured

    async def start(self, max_frames: Optional[int] = None) -> None:
        if self._running:
            logger.warning("Device controller already running")
            return
        self._task = asyncio.create_task(self.run(max_frames))
        logger.info("Device controller started")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Device controller stopped")

    async def wait(self) -> int:
        if self._task is None:
            return 0
        return await self._task


def build_device(
    config: "SessionConfig",
    transport: "BaseTransport",
    *,
    source: Optional[PinSource] = None,
    register_bus: Optional[RegisterBus] = None,
    interrupts: Optional[InterruptController] = None,
    max_sim_frames: Optional[int] = None,
    drop_lines=(),
    max_idle_waits: Optional[int] = 1,
) -> DeviceController:
    """Wire a device controller from session parameters.

    Without a ``source`` a :class:`SimulatedSensor` with the session's
    geometry is used.
    """
    config.validate()
    sampler = BusSampler(config.pins)
    if source is None:
        source = SimulatedSensor(
            config.geometry,
            sampler,
            edge=config.edge,
            drop_lines=drop_lines,
            max_frames=max_sim_frames,
        )

    registers = RegisterConfigurator(register_bus or RecordingRegisterBus(), config.geometry)
    registers.apply_profile(config.mode)
    registers.apply_mode(config.agc_enabled, config.companding_enabled)
    registers.apply_exposure(config.exposure_time_us)
    registers.apply_analog_gain(config.analog_gain)
    registers.apply_digital_gain(config.digital_gain)

    runtime = RuntimeConfig(
        exposure_time_us=config.exposure_time_us,
        analog_gain=config.analog_gain,
        digital_gain=config.digital_gain,
        active_line_count=config.active_line_count,
    )
    capture = LineCapture(
        source,
        sampler,
        config.width,
        edge=config.edge,
        line_start_budget=config.effective_line_start_budget,
        max_polls_per_edge=config.max_polls_per_edge,
        interrupts=interrupts,
    )
    packetizer = LinePacketizer(transport, config.width, config.effective_bit_depth)
    driver = FrameDriver(
        capture,
        packetizer,
        runtime,
        sensor_height=config.sensor_height,
        line_budget=config.line_budget,
        frame_wait_budget=config.effective_frame_wait_budget,
        skip_alternate_frames=config.skip_alternate_frames,
    )
    decoder = CommandDecoder(
        transport,
        runtime,
        sensor_height=config.sensor_height,
        registers=registers,
        max_commands_per_drain=config.max_commands_per_drain,
    )
    return DeviceController(driver, decoder, max_idle_waits=max_idle_waits)


__all__ = ["DeviceController", "build_device"]
