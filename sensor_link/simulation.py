"""
In-process simulation of a full link session.

A simulated sensor feeds the device controller, which streams over a
loopback link to a host receiver in the same event loop. Host commands
can be scheduled before any frame; they are applied by the device at the
start of that frame, exactly as a real device applies commands between
frames.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sensor_link.core.logging_utils import get_module_logger
from sensor_link.device.controller import DeviceController, build_device
from sensor_link.device.frame_driver import FrameReport
from sensor_link.host.commander import HostCommander
from sensor_link.host.display import FrameSink
from sensor_link.host.reassembler import Frame, FrameReassembler
from sensor_link.host.receiver import HostReceiver
from sensor_link.protocol import CommandTag
from sensor_link.transport.loopback_transport import LoopbackLink

from .config import SessionConfig

logger = get_module_logger(__name__)

CommandSchedule = Mapping[int, Sequence[Tuple[CommandTag, int]]]


@dataclass
class SimulationResult:
    reports: List[FrameReport] = field(default_factory=list)
    frames: List[Frame] = field(default_factory=list)
    controller: Optional[DeviceController] = None
    receiver: Optional[HostReceiver] = None


def parse_schedule(entries: Iterable[str]) -> Dict[int, List[Tuple[CommandTag, int]]]:
    """Parse ``TAG=VALUE@FRAME`` entries, e.g. ``P=0@1``."""
    schedule: Dict[int, List[Tuple[CommandTag, int]]] = {}
    for entry in entries:
        try:
            command, _, frame_text = entry.partition("@")
            tag_text, _, value_text = command.partition("=")
            tag = CommandTag(tag_text.strip().upper().encode("ascii"))
            value = int(value_text, 0)
            frame = int(frame_text) if frame_text else 0
        except (ValueError, UnicodeEncodeError) as exc:
            raise ValueError(f"bad command entry '{entry}' (expected TAG=VALUE@FRAME)") from exc
        schedule.setdefault(frame, []).append((tag, value))
    return schedule


async def _drain_host(receiver: HostReceiver) -> List[Frame]:
    frames: List[Frame] = []
    while receiver.transport.bytes_available:
        result = await receiver.receive_once()
        frames.extend(result.frames)
    return frames


async def run_simulation(
    config: SessionConfig,
    *,
    frames: int,
    schedule: Optional[CommandSchedule] = None,
    drop_lines: Iterable[Tuple[int, int]] = (),
    sink: Optional[FrameSink] = None,
    max_read_chunk: Optional[int] = None,
) -> SimulationResult:
    """Capture ``frames`` sensor frames and return what the host assembled."""
    schedule = schedule or {}
    link = LoopbackLink(max_read_chunk=max_read_chunk)
    await link.open()

    controller = build_device(config, link.device, max_sim_frames=frames, drop_lines=drop_lines)
    reassembler = FrameReassembler(config.width, config.active_line_count)
    receiver = HostReceiver(
        link.host,
        reassembler,
        sink=sink,
        read_timeout=config.read_timeout,
        frame_timeout=None,
        reconnect=False,
    )
    commander = HostCommander(link.host, reassembler, sensor_height=config.sensor_height)
    result = SimulationResult(controller=controller, receiver=receiver)

    try:
        for index in range(frames):
            for tag, value in schedule.get(index, ()):
                if tag is CommandTag.LINE_COUNT:
                    await commander.set_active_lines(value)
                else:
                    await commander.send(tag, value)
            await controller.decoder.drain()
            report = await controller.driver.run_frame()
            result.reports.append(report)
            emitted = await _drain_host(receiver)
            await receiver.deliver(emitted)
            result.frames.extend(emitted)

        leftover = reassembler.flush_partial()
        if leftover is not None:
            await receiver.deliver([leftover])
            result.frames.append(leftover)
    finally:
        await link.close()

    logger.info(
        "Simulated %d frames: host assembled %d (%d complete)",
        frames, len(result.frames), sum(1 for f in result.frames if f.complete),
    )
    return result


__all__ = ["SimulationResult", "parse_schedule", "run_simulation"]
