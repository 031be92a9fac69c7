"""Tests for the bounded polling primitive."""

import asyncio

import pytest

from zkpool.exceptions import PollingTimeout
from zkpool.utils.polling import poll


def counter(values):
    calls = []

    async def fetch():
        calls.append(None)
        return values[min(len(calls), len(values)) - 1]

    return fetch, calls


class TestPoll:
    """Tests for poll()."""

    def test_returns_first_accepted_value(self):
        fetch, calls = counter([None, None, "receipt"])
        assert asyncio.run(poll(fetch, lambda v: v is not None, interval=0)) == "receipt"
        assert len(calls) == 3

    def test_done_on_first_attempt(self):
        fetch, calls = counter(["done"])
        asyncio.run(poll(fetch, lambda v: True, interval=10))
        assert len(calls) == 1

    def test_max_attempts(self):
        fetch, calls = counter([None])
        with pytest.raises(PollingTimeout) as exc_info:
            asyncio.run(poll(fetch, lambda v: v is not None, interval=0, max_attempts=3))
        assert exc_info.value.attempts == 3
        assert len(calls) == 3

    def test_timeout(self):
        fetch, _ = counter([None])
        with pytest.raises(PollingTimeout) as exc_info:
            asyncio.run(poll(fetch, lambda v: v is not None, interval=0.01, timeout=0.03))
        assert exc_info.value.elapsed > 0.03

    def test_fetch_errors_propagate(self):
        async def fetch():
            raise RuntimeError("node down")

        with pytest.raises(RuntimeError):
            asyncio.run(poll(fetch, lambda v: True, interval=0))
