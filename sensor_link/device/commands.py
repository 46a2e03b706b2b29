"""
Command decoder.

Consumes 3-byte command records from the link between frames and applies
them to the runtime configuration. Gains and exposure are also forwarded
to the register configurator. Unknown tags are skipped without reply.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Optional

from sensor_link.core.logging_utils import get_module_logger
from sensor_link.errors import TransportDisconnected
from sensor_link.protocol import COMMAND_RECORD_SIZE, Command, CommandTag, decode_command

from .registers import RegisterConfigurator
from .runtime_config import RuntimeConfig

if TYPE_CHECKING:
    from sensor_link.transport.base_transport import BaseTransport

logger = get_module_logger(__name__)

DEFAULT_MAX_COMMANDS_PER_DRAIN = 32


@dataclass
class CommandStats:
    commands_applied: int = 0
    unknown_commands: int = 0
    presence_lost: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class CommandDecoder:
    """Drains 3-byte command records between frames and applies them."""

    def __init__(
        self,
        transport: "BaseTransport",
        config: RuntimeConfig,
        *,
        sensor_height: int,
        registers: Optional[RegisterConfigurator] = None,
        max_commands_per_drain: int = DEFAULT_MAX_COMMANDS_PER_DRAIN,
    ):
        self.transport = transport
        self.config = config
        self.sensor_height = sensor_height
        self.registers = registers
        self.max_commands_per_drain = max_commands_per_drain
        self.stats = CommandStats()
        self._peer_was_present = True
        self._pending = bytearray()

    def _check_presence(self) -> bool:
        present = self.transport.peer_present
        if not present:
            with self.config.locked() as cfg:
                cfg.streaming_enabled = False
            if self._peer_was_present:
                self.stats.presence_lost += 1
                logger.info("Host not present; streaming disabled")
        elif not self._peer_was_present:
            logger.info("Host present again; streaming stays off until enabled")
        self._peer_was_present = present
        return present

    async def drain(self) -> int:
        """
        Apply all complete command records currently buffered.

        Returns:
            Number of records consumed (including unknown ones)
        """
        self._check_presence()

        consumed = 0
        while consumed < self.max_commands_per_drain:
            record = await self._read_record()
            if record is None:
                break
            consumed += 1
            command = decode_command(record)
            if command is None:
                self.stats.unknown_commands += 1
                logger.debug("Ignoring unknown command tag 0x%02X", record[0])
                continue
            self.apply(command)
        return consumed

    async def _read_record(self) -> Optional[bytes]:
        """Read one whole record without blocking; partial bytes stay pending."""
        pending = self._pending
        while len(pending) < COMMAND_RECORD_SIZE:
            needed = COMMAND_RECORD_SIZE - len(pending)
            if self.transport.bytes_available == 0:
                return None
            try:
                chunk = await self.transport.read_bytes(needed, timeout=0)
            except TransportDisconnected:
                logger.warning("Link closed while reading commands")
                pending.clear()
                return None
            if not chunk:
                return None
            pending.extend(chunk)
        record = bytes(pending[:COMMAND_RECORD_SIZE])
        del pending[:COMMAND_RECORD_SIZE]
        return record

    def apply(self, command: Command) -> None:
        tag, value = command.tag, command.value
        with self.config.locked() as cfg:
            if tag is CommandTag.EXPOSURE:
                cfg.exposure_time_us = value
            elif tag is CommandTag.ANALOG_GAIN:
                cfg.analog_gain = value
            elif tag is CommandTag.DIGITAL_GAIN:
                cfg.digital_gain = value
            elif tag is CommandTag.LINE_COUNT:
                cfg.active_line_count = max(1, min(self.sensor_height, value))
            elif tag is CommandTag.STREAMING:
                cfg.streaming_enabled = bool(value) and self.transport.peer_present

        if self.registers is not None:
            if tag is CommandTag.EXPOSURE:
                self.registers.apply_exposure(value)
            elif tag is CommandTag.ANALOG_GAIN:
                self.registers.apply_analog_gain(value)
            elif tag is CommandTag.DIGITAL_GAIN:
                self.registers.apply_digital_gain(value)

        self.stats.commands_applied += 1
        logger.debug("Applied %s=%d", tag.name, value)


__all__ = ["CommandDecoder", "CommandStats"]
