"""Unit test fixtures for isolated, fast test execution.

This conftest provides fixtures specifically for unit tests that:
- Run in complete isolation (no serial ports, no real sensor)
- Execute quickly (< 1s per test)
- Use mocks or in-process loopback links for all I/O

The root conftest provides:
- project_root, small_session
- mock_serial_device

This file provides:
- Bus sampler and runtime configuration fixtures
- Loopback link fixtures
- Serial patching fixtures
- Controllable clock fixtures
"""

from __future__ import annotations

from typing import Callable, Generator
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio


# =============================================================================
# Device Fixtures
# =============================================================================

@pytest.fixture
def sampler10():
    """10-bit bus on port bits 0..9."""
    from sensor_link.device.bus import BusSampler
    return BusSampler("linear10")


@pytest.fixture
def runtime_config():
    from sensor_link.device.runtime_config import RuntimeConfig
    return RuntimeConfig(active_line_count=8)


@pytest.fixture
def register_bus():
    from sensor_link.device.registers import RecordingRegisterBus
    return RecordingRegisterBus()


# =============================================================================
# Transport Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def loopback_link():
    """Connected device/host loopback pair, closed after the test."""
    from sensor_link.transport.loopback_transport import LoopbackLink

    link = LoopbackLink()
    await link.open()
    yield link
    await link.close()


@pytest.fixture
def patch_serial(mock_serial_device) -> Generator[MagicMock, None, None]:
    """Patch serial.Serial so the transport opens ``mock_serial_device``.

    Scope: function

    Yields:
        The patched Serial class

    Example:
        def test_connect(patch_serial, mock_serial_device):
            mock_serial_device.queue_bytes(b"E\\x00\\x10")
    """
    with patch("serial.Serial") as mock_serial:
        mock_serial.return_value = mock_serial_device
        yield mock_serial


# =============================================================================
# Time Fixtures
# =============================================================================

@pytest.fixture
def fake_clock() -> Callable[[], float]:
    """Monotonic clock that only moves when told to.

    Example:
        def test_timeout(fake_clock):
            fake_clock.advance(2.5)
    """

    class FakeClock:
        def __init__(self) -> None:
            self.now = 100.0

        def __call__(self) -> float:
            return self.now

        def advance(self, seconds: float) -> None:
            self.now += seconds

    return FakeClock()
