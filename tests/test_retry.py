#!filepath: tests/test_retry.py
import asyncio

import pytest

from otcfeed import async_retry


def test_async_retry_success_without_retry():
    """first call succeeds, no retry"""
    call_count = {"n": 0}

    async def func():
        call_count["n"] += 1
        return "ok"

    assert asyncio.run(async_retry.run(func, max_attempts=3)) == "ok"
    assert call_count["n"] == 1


def test_async_retry_success_after_failures():
    call_count = {"n": 0}

    async def func():
        call_count["n"] += 1
        if call_count["n"] < 3:
            raise ValueError("fail")
        return "success"

    assert asyncio.run(async_retry.run(func, max_attempts=5, delay=0.0, backoff=1)) == "success"
    assert call_count["n"] == 3


def test_async_retry_raises_after_max_attempts():
    call_count = {"n": 0}

    async def func():
        call_count["n"] += 1
        raise ValueError("fail")

    with pytest.raises(ValueError):
        asyncio.run(async_retry.run(func, max_attempts=3, delay=0.0))

    assert call_count["n"] == 3


def test_async_retry_catches_specific_exception():
    """non-matching exceptions propagate immediately"""
    call_count = {"n": 0}

    async def func():
        call_count["n"] += 1
        raise ValueError("this is not KeyError")

    with pytest.raises(ValueError):
        asyncio.run(async_retry.run(func, exceptions=(KeyError,), max_attempts=3, delay=0.0))

    assert call_count["n"] == 1


def test_async_exponential_backoff(monkeypatch):
    sleep_calls = []

    async def fake_sleep(t):
        sleep_calls.append(t)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)

    async def func():
        raise ValueError("fail")

    with pytest.raises(ValueError):
        asyncio.run(async_retry.run(func, max_attempts=4, delay=1, backoff=2, jitter=False))

    # max_attempts=4 → 3 waits: 1, 2, 4
    assert sleep_calls == [1, 2, 4]


def test_async_retry_passes_arguments():
    async def fetch(symbol, scale=1.0):
        return {"EUR/USD": 1.085}[symbol] * scale

    assert asyncio.run(async_retry.run(fetch, "EUR/USD", scale=2.0)) == pytest.approx(2.17)


def test_async_retry_attempt_timeout_counts_as_failure():
    call_count = {"n": 0}
    retried = []

    async def hung_then_ok():
        call_count["n"] += 1
        if call_count["n"] == 1:
            await asyncio.sleep(10)
        return 1.0851

    result = asyncio.run(
        async_retry.run(
            hung_then_ok,
            max_attempts=2,
            delay=0.0,
            attempt_timeout=0.01,
            on_retry=lambda attempt, exc: retried.append(attempt),
        )
    )

    assert result == 1.0851
    assert retried == [1]


def test_async_retry_rejects_zero_attempts():
    async def func():
        return 1

    with pytest.raises(ValueError):
        asyncio.run(async_retry.run(func, max_attempts=0))
