"""
sensor-link: stream raster lines from a parallel-output image sensor.

The device side samples the sensor's parallel bus line by line and sends
each line as a fixed-size record over a byte link; the host side rebuilds
frames from those records and can adjust exposure, gain, window height and
streaming through a 3-byte command channel on the same link.
"""

from .config import SessionConfig
from .errors import (
    ConfigError,
    LinkStalledError,
    ProtocolError,
    SensorLinkError,
    TransportDisconnected,
    TransportError,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "LinkStalledError",
    "ProtocolError",
    "SensorLinkError",
    "SessionConfig",
    "TransportDisconnected",
    "TransportError",
    "__version__",
]
