"""
Serial Transport

Link transport over a (USB) serial port. Wraps pyserial with an async
interface compatible with BaseTransport. The presence signal is the DSR
modem line: each side asserts DTR while it is listening.
"""

import asyncio
from typing import Optional

import serial

from sensor_link.core.logging_utils import get_module_logger
from sensor_link.errors import TransportDisconnected

from .base_transport import BaseTransport

logger = get_module_logger(__name__)

DEFAULT_BAUDRATE = 921600
DEFAULT_READ_TIMEOUT = 0.5
DEFAULT_WRITE_TIMEOUT = 0.5


class SerialTransport(BaseTransport):

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
    ):
        """
        Args:
            port: Serial port path (e.g., '/dev/ttyACM0' or 'COM3')
            baudrate: Link byte rate, agreed out of band with the device
            read_timeout: Default read timeout in seconds
            write_timeout: Write timeout in seconds
        """
        super().__init__()
        self.port = port
        self.baudrate = baudrate
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self._serial: Optional[serial.Serial] = None

    @property
    def is_connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def peer_present(self) -> bool:
        if not self.is_connected:
            return False
        try:
            return bool(self._serial.dsr)
        except (serial.SerialException, OSError):
            return False

    @property
    def bytes_available(self) -> int:
        if not self.is_connected:
            return 0
        try:
            return self._serial.in_waiting
        except (serial.SerialException, OSError):
            return 0

    async def connect(self) -> bool:
        if self.is_connected:
            logger.warning("Already connected to %s", self.port)
            return True

        try:
            self._serial = await asyncio.to_thread(
                serial.Serial,
                port=self.port,
                baudrate=self.baudrate,
                timeout=self.read_timeout,
                write_timeout=self.write_timeout,
            )
            await asyncio.to_thread(self._serial.reset_input_buffer)
            await asyncio.to_thread(self._serial.reset_output_buffer)
            self._serial.dtr = True
            self._connected = True
            logger.info("Connected to %s at %d baud", self.port, self.baudrate)
            return True

        except (serial.SerialException, OSError) as e:
            logger.error("Failed to connect to %s: %s", self.port, e)
            self._serial = None
            self._connected = False
            return False

    async def disconnect(self) -> None:
        if self._serial:
            try:
                await asyncio.to_thread(self._serial.close)
                logger.info("Disconnected from %s", self.port)
            except (serial.SerialException, OSError) as e:
                logger.error("Error disconnecting from %s: %s", self.port, e)
            finally:
                self._serial = None
                self._connected = False

    async def write(self, data: bytes) -> bool:
        if not self.is_connected:
            logger.error("Cannot write to %s: not connected", self.port)
            return False

        try:
            await asyncio.to_thread(self._serial.write, data)
            return True
        except serial.SerialTimeoutException as e:
            logger.warning("Write timeout on %s: %s", self.port, e)
            return False
        except (serial.SerialException, OSError) as e:
            logger.error("Write error on %s: %s", self.port, e)
            return False

    def _read_blocking(self, size: int, timeout: Optional[float]) -> bytes:
        ser = self._serial
        if timeout is None:
            timeout = self.read_timeout
        if ser.timeout != timeout:
            ser.timeout = timeout
        # Block for the first byte only, then take whatever else is buffered.
        first = ser.read(1)
        if not first or size <= 1:
            return first
        waiting = min(size - 1, ser.in_waiting)
        return first + ser.read(waiting) if waiting else first

    async def read_bytes(self, size: int, timeout: Optional[float] = None) -> bytes:
        if not self.is_connected:
            raise TransportDisconnected(f"{self.port} is not open")
        try:
            return await asyncio.to_thread(self._read_blocking, size, timeout)
        except (serial.SerialException, OSError) as e:
            logger.error("Read error on %s: %s", self.port, e)
            raise TransportDisconnected(str(e)) from e


__all__ = ["SerialTransport", "DEFAULT_BAUDRATE"]
