"""Exception hierarchy shared by the device and host sides."""


class SensorLinkError(Exception):
    """Base class for all sensor-link errors."""


class ConfigError(SensorLinkError):
    """Session parameters are invalid or inconsistent."""


class ProtocolError(SensorLinkError):
    """A wire record could not be built or parsed."""


class TransportError(SensorLinkError):
    """The link transport failed."""


class TransportDisconnected(TransportError):
    """The link went away; the current session is over."""


class LinkStalledError(SensorLinkError):
    """The host gave up waiting for data on a stalled link."""

    def __init__(self, stalls: int):
        super().__init__(f"link stalled for {stalls} consecutive reads")
        self.stalls = stalls
