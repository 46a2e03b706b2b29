"""Integration test fixtures for full link sessions.

This conftest provides fixtures specifically for integration tests that:
- Run the simulated sensor, device loop and host receiver together
- Compare what the host assembled against what the sensor emitted

The root conftest provides:
- project_root, small_session
- mock_serial_device

This file provides:
- Expected-frame builders derived from the simulated sensor pattern
"""

from __future__ import annotations

from typing import Callable, Sequence

import numpy as np
import pytest

from sensor_link.device.simulated_sensor import gradient_pattern
from sensor_link.protocol import reduce_bit_depth


@pytest.fixture
def expected_frame() -> Callable[..., np.ndarray]:
    """Build the pixels the host should see for one sensor frame.

    Example:
        def test_rows(expected_frame):
            pixels = expected_frame(0, range(2, 10), width=16)
    """

    def build(frame: int, sensor_rows: Sequence[int], *, width: int, bit_depth: int = 10) -> np.ndarray:
        max_value = (1 << bit_depth) - 1
        rows = [
            reduce_bit_depth(gradient_pattern(frame, row, width, max_value), bit_depth)
            for row in sensor_rows
        ]
        return np.vstack(rows)

    return build
