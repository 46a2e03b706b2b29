"""Shared pytest configuration and fixtures for the sensor-link test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "hardware: mark test as requiring a capture device on a serial port"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that require physical hardware",
    )


def pytest_collection_modifyitems(config, items):
    """Skip hardware tests unless --run-hardware is specified."""
    if config.getoption("--run-hardware"):
        return

    skip_hardware = pytest.mark.skip(reason="Need --run-hardware option to run")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def small_session():
    """A small sensor geometry that simulates in milliseconds."""
    from sensor_link.config import SessionConfig

    return SessionConfig(
        width=16,
        sensor_height=12,
        active_line_count=8,
        horizontal_blanking=4,
        vertical_blanking=3,
        pin_map="linear10",
        read_timeout=0.01,
    )


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_serial_device():
    """Create a mock serial device for testing."""
    from tests.infrastructure.mocks.serial_mocks import MockSerialDevice
    return MockSerialDevice()
