"""Line packetizer: turns captured lines into line records on the link."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from sensor_link.core.logging_utils import get_module_logger
from sensor_link.errors import TransportError
from sensor_link.protocol import WIRE_BIT_DEPTH, line_record_size, pack_line_record

if TYPE_CHECKING:
    from sensor_link.transport.base_transport import BaseTransport

logger = get_module_logger(__name__)


class LinePacketizer:
    """Serializes ``(index, line)`` pairs and writes each as one record.

    Samples deeper than the wire's 8 bits are right-shifted by
    ``bit_depth - 8``; that quantization is fixed for the session. Sends are
    fire-and-forget: a failed write is counted, never retried.
    """

    def __init__(self, transport: "BaseTransport", width: int, bit_depth: int = WIRE_BIT_DEPTH):
        self.transport = transport
        self.width = width
        self.bit_depth = bit_depth
        self.record_size = line_record_size(width)
        self.records_sent = 0
        self.send_failures = 0

    def pack(self, index: int, samples: np.ndarray) -> bytes:
        return pack_line_record(index, samples, self.bit_depth)

    async def send(self, index: int, samples: np.ndarray) -> bool:
        record = self.pack(index, samples)
        try:
            ok = await self.transport.write(record)
        except TransportError as exc:
            logger.warning("Line %d not sent: %s", index, exc)
            ok = False
        if ok:
            self.records_sent += 1
        else:
            self.send_failures += 1
        return ok


__all__ = ["LinePacketizer"]
