"""
Base Transport

Abstract byte-stream transport shared by the device and host sides. The
stream has no message boundaries; callers frame fixed-size records
themselves. There is no retransmission: losing the link ends the session.
"""

from abc import ABC, abstractmethod
from typing import Optional


class BaseTransport(ABC):
    """
    Ordered, duplex byte channel.

    ``read_bytes`` returns whatever arrived up to ``size`` bytes, ``b""`` when
    the timeout expires with nothing received, and raises
    ``TransportDisconnected`` once the link is gone.
    """

    def __init__(self):
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    @abstractmethod
    def peer_present(self) -> bool:
        """Presence signal: True while a consumer is attached on the far side."""
        ...

    @property
    @abstractmethod
    def bytes_available(self) -> int:
        """Number of bytes readable without blocking."""
        ...

    @abstractmethod
    async def connect(self) -> bool:
        """
        Establish the link.

        Returns:
            True if the connection was established
        """
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...

    @abstractmethod
    async def write(self, data: bytes) -> bool:
        """
        Write ``data`` as one uninterrupted unit.

        Returns:
            True if the write was accepted
        """
        ...

    @abstractmethod
    async def read_bytes(self, size: int, timeout: Optional[float] = None) -> bytes:
        ...

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
        return False
