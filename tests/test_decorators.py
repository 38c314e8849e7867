"""
Retry decorator tests
"""
import pytest

import config.decorators
from config.decorators import retry_on_ssl_error


@pytest.fixture
def sleeps(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(config.decorators.asyncio, "sleep", fake_sleep)
    return delays


class TestRetryOnSslError:
    async def test_retries_after_ssl_error_without_blocking(self, sleeps):
        attempts = []

        @retry_on_ssl_error
        async def read():
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("[SSL: DECRYPTION_FAILED_OR_BAD_RECORD_MAC] decryption failed")
            return "row"

        assert await read() == "row"
        assert len(attempts) == 2
        assert sleeps == [0.5]

    async def test_gives_up_after_three_attempts(self, sleeps):
        @retry_on_ssl_error
        async def read():
            raise ConnectionError("DECRYPTION_FAILED_OR_BAD_RECORD_MAC")

        with pytest.raises(ConnectionError):
            await read()
        assert sleeps == [0.5, 0.5]

    async def test_other_errors_are_not_retried(self, sleeps):
        attempts = []

        @retry_on_ssl_error
        async def read():
            attempts.append(1)
            raise RuntimeError("timeout")

        with pytest.raises(RuntimeError):
            await read()
        assert len(attempts) == 1
        assert sleeps == []
