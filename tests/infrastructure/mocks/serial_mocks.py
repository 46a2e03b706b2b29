"""Mock serial devices for link transport testing.

Provides a byte-level stand-in for ``serial.Serial`` so the serial
transport can be exercised without a port.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import List, Optional

import serial


@dataclass
class MockSerialConfig:
    """Configuration for mock serial device."""
    port: str = "/dev/ttyMOCK0"
    baudrate: int = 921600
    timeout: float = 0.05


class MockSerialDevice:
    """Mock serial port.

    Provides the subset of the serial.Serial interface the transport uses:
    ``read``, ``write``, ``in_waiting``, ``dtr``/``dsr`` and buffer resets.
    """

    def __init__(self, config: Optional[MockSerialConfig] = None):
        self.config = config or MockSerialConfig()
        self.timeout = self.config.timeout
        self.write_timeout = self.config.timeout
        self.dtr = False
        self.dsr = True
        self._is_open = True
        self._rx = bytearray()
        self._rx_lock = threading.Lock()
        self._write_log: List[bytes] = []
        self.fail_reads = False
        self.fail_writes = False

    # =========================================================================
    # Serial-compatible interface
    # =========================================================================

    @property
    def port(self) -> str:
        return self.config.port

    @property
    def baudrate(self) -> int:
        return self.config.baudrate

    @property
    def is_open(self) -> bool:
        return self._is_open

    def close(self) -> None:
        self._is_open = False

    def read(self, size: int = 1) -> bytes:
        """Return up to ``size`` bytes, waiting at most ``timeout`` for the first."""
        if not self._is_open:
            raise serial.PortNotOpenError()
        if self.fail_reads:
            raise serial.SerialException("device reports readiness to read but returned no data")

        deadline = time.monotonic() + (self.timeout or 0)
        while True:
            with self._rx_lock:
                if self._rx:
                    data = bytes(self._rx[:size])
                    del self._rx[:size]
                    return data
            if time.monotonic() >= deadline:
                return b""
            time.sleep(0.001)

    def write(self, data: bytes) -> int:
        if not self._is_open:
            raise serial.PortNotOpenError()
        if self.fail_writes:
            raise serial.SerialTimeoutException("Write timeout")
        self._write_log.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def reset_input_buffer(self) -> None:
        with self._rx_lock:
            self._rx.clear()

    def reset_output_buffer(self) -> None:
        pass

    @property
    def in_waiting(self) -> int:
        if not self._is_open:
            raise serial.PortNotOpenError()
        with self._rx_lock:
            return len(self._rx)

    # =========================================================================
    # Mock control methods
    # =========================================================================

    def queue_bytes(self, data: bytes) -> None:
        """Make ``data`` readable, as if the peer had sent it."""
        with self._rx_lock:
            self._rx.extend(data)

    def get_write_log(self) -> List[bytes]:
        return self._write_log.copy()

    def clear_write_log(self) -> None:
        self._write_log.clear()


__all__ = ["MockSerialConfig", "MockSerialDevice"]
