"""
In-process loopback link.

Two connected :class:`LoopbackTransport` endpoints sharing byte buffers,
used to run the device and host halves in one event loop (the ``simulate``
command) and in tests. ``max_read_chunk`` caps how many bytes one read may
return so partial reads happen the way they do on a real serial port.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Tuple

from sensor_link.core.logging_utils import get_module_logger
from sensor_link.errors import TransportDisconnected

from .base_transport import BaseTransport

logger = get_module_logger(__name__)


class LoopbackTransport(BaseTransport):

    def __init__(self, name: str, *, max_read_chunk: Optional[int] = None):
        super().__init__()
        self.name = name
        self.max_read_chunk = max_read_chunk
        self.presence_asserted = True
        self.bytes_written = 0
        self._peer: Optional["LoopbackTransport"] = None
        self._rx = bytearray()
        self._rx_event = asyncio.Event()
        self._peer_gone = False

    def _attach(self, peer: "LoopbackTransport") -> None:
        self._peer = peer

    @property
    def peer_present(self) -> bool:
        peer = self._peer
        return bool(peer and peer.is_connected and peer.presence_asserted)

    @property
    def bytes_available(self) -> int:
        return len(self._rx)

    def set_presence(self, asserted: bool) -> None:
        """Drive this end's presence line (the DTR equivalent)."""
        self.presence_asserted = asserted

    def detach(self) -> None:
        """Stop listening without closing; the peer sees presence drop."""
        self.set_presence(False)

    def attach(self) -> None:
        self.set_presence(True)

    async def connect(self) -> bool:
        self._rx.clear()
        self._rx_event.clear()
        self._peer_gone = False
        self._connected = True
        if self._peer is not None:
            self._peer._peer_gone = False
        logger.info("Loopback %s connected", self.name)
        return True

    async def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        self._rx_event.set()
        if self._peer is not None:
            self._peer._on_peer_disconnect()
        logger.info("Loopback %s disconnected", self.name)

    def _on_peer_disconnect(self) -> None:
        self._peer_gone = True
        self._rx_event.set()

    def _deliver(self, data: bytes) -> None:
        self._rx.extend(data)
        self._rx_event.set()

    async def write(self, data: bytes) -> bool:
        peer = self._peer
        if not self._connected or peer is None or not peer.is_connected:
            return False
        peer._deliver(bytes(data))
        self.bytes_written += len(data)
        return True

    async def read_bytes(self, size: int, timeout: Optional[float] = None) -> bytes:
        if not self._connected:
            raise TransportDisconnected(f"loopback {self.name} is closed")

        if not self._rx:
            if self._peer_gone:
                raise TransportDisconnected(f"loopback {self.name}: peer disconnected")
            self._rx_event.clear()
            try:
                await asyncio.wait_for(self._rx_event.wait(), timeout)
            except asyncio.TimeoutError:
                return b""
            if not self._connected:
                raise TransportDisconnected(f"loopback {self.name} is closed")
            if not self._rx:
                raise TransportDisconnected(f"loopback {self.name}: peer disconnected")

        count = min(size, len(self._rx))
        if self.max_read_chunk:
            count = min(count, self.max_read_chunk)
        data = bytes(self._rx[:count])
        del self._rx[:count]
        return data


class LoopbackLink:
    """Factory for a connected device/host endpoint pair."""

    def __init__(self, *, max_read_chunk: Optional[int] = None):
        self.device = LoopbackTransport("device", max_read_chunk=max_read_chunk)
        self.host = LoopbackTransport("host", max_read_chunk=max_read_chunk)
        self.device._attach(self.host)
        self.host._attach(self.device)

    @property
    def endpoints(self) -> Tuple[LoopbackTransport, LoopbackTransport]:
        return self.device, self.host

    async def open(self) -> None:
        await self.device.connect()
        await self.host.connect()

    async def close(self) -> None:
        await self.host.disconnect()
        await self.device.disconnect()


__all__ = ["LoopbackLink", "LoopbackTransport"]
