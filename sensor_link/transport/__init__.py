"""
Link transports.

- BaseTransport: abstract ordered byte stream with a presence signal
- SerialTransport: pyserial-backed link to a capture device
- LoopbackLink: connected in-process endpoint pair
"""

from .base_transport import BaseTransport
from .loopback_transport import LoopbackLink, LoopbackTransport
from .serial_transport import SerialTransport

__all__ = [
    'BaseTransport',
    'LoopbackLink',
    'LoopbackTransport',
    'SerialTransport',
]
