"""Host side of the command channel."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sensor_link.core.logging_utils import get_module_logger
from sensor_link.protocol import CommandTag, encode_command

if TYPE_CHECKING:
    from sensor_link.transport.base_transport import BaseTransport

    from .reassembler import FrameReassembler

logger = get_module_logger(__name__)


class HostCommander:
    """
    Sends command records to the device.

    Commands are applied by the device between frames, and nothing is
    acknowledged; the only observable effect is on later frames.
    """

    def __init__(
        self,
        transport: "BaseTransport",
        reassembler: Optional["FrameReassembler"] = None,
        sensor_height: Optional[int] = None,
    ):
        self.transport = transport
        self.reassembler = reassembler
        self.sensor_height = sensor_height

    async def send(self, tag: CommandTag, value: int) -> bool:
        record = encode_command(tag, value)
        ok = await self.transport.write(record)
        if ok:
            logger.debug("Sent %s=%d", tag.name, value)
        else:
            logger.warning("Failed to send %s=%d", tag.name, value)
        return ok

    async def set_exposure(self, exposure_us: int) -> bool:
        return await self.send(CommandTag.EXPOSURE, exposure_us)

    async def set_analog_gain(self, code: int) -> bool:
        return await self.send(CommandTag.ANALOG_GAIN, code)

    async def set_digital_gain(self, code: int) -> bool:
        return await self.send(CommandTag.DIGITAL_GAIN, code)

    async def set_active_lines(self, count: int) -> bool:
        """Change the window height on both ends.

        The count is clamped to 1..sensor height, the range the device accepts.
        """
        upper = self.sensor_height if self.sensor_height is not None else count
        clamped = max(1, min(upper, count))
        if clamped != count:
            logger.info("Active line count %d clamped to %d", count, clamped)
            count = clamped
        ok = await self.send(CommandTag.LINE_COUNT, count)
        if ok and self.reassembler is not None:
            self.reassembler.set_active_line_count(count)
        return ok

    async def set_streaming(self, enabled: bool) -> bool:
        return await self.send(CommandTag.STREAMING, 1 if enabled else 0)


__all__ = ["HostCommander"]
