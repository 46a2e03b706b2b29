from unittest.mock import AsyncMock

import pytest

from sensor_link.core.connection import RetryOutcome, RetryPolicy


class TestRetryPolicy:

    def test_delay_grows_and_caps(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=3.0, backoff_factor=2.0, jitter=0.0)

        assert [policy.get_delay(n) for n in range(1, 6)] == [0.0, 1.0, 2.0, 3.0, 3.0]

    def test_jitter_stays_in_range(self):
        policy = RetryPolicy(base_delay=1.0, jitter=0.1)

        for _ in range(50):
            assert 0.9 <= policy.get_delay(2) <= 1.1

    @pytest.mark.asyncio
    async def test_success_after_failures(self):
        operation = AsyncMock(side_effect=[False, OSError("busy"), True])
        retries = []
        policy = RetryPolicy(max_attempts=5, base_delay=0.0, jitter=0.0)

        result = await policy.execute(operation, on_retry=lambda n, err: retries.append((n, err)))

        assert result.success
        assert result.attempt_count == 3
        assert retries == [(2, "operation returned False"), (3, "busy")]

    @pytest.mark.asyncio
    async def test_exhausted(self):
        policy = RetryPolicy(max_attempts=2, base_delay=0.0, jitter=0.0)

        result = await policy.execute(AsyncMock(return_value=False))

        assert result.outcome is RetryOutcome.EXHAUSTED
        assert result.final_error == "operation returned False"

    @pytest.mark.asyncio
    async def test_abort(self):
        policy = RetryPolicy(max_attempts=3, base_delay=0.0, jitter=0.0)

        async def operation():
            policy.abort()
            return False

        result = await policy.execute(operation)

        assert result.outcome is RetryOutcome.ABORTED
        assert result.attempt_count == 1
