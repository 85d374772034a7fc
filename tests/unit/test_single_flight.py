"""Unit tests for SingleFlight (in-process deduplication of concurrent operations)."""

import asyncio

import pytest

from app.application.services.single_flight import SingleFlight


async def test_concurrent_callers_share_one_operation() -> None:
    """Ten callers for one key run the operation once and all get its result."""
    flight = SingleFlight()
    gate = asyncio.Event()
    calls = 0

    async def operation() -> str:
        nonlocal calls
        calls += 1
        await gate.wait()
        return "payload"

    waiters = [asyncio.create_task(flight.run("k", operation)) for _ in range(10)]
    await asyncio.sleep(0)
    assert flight.in_flight("k")
    gate.set()
    results = await asyncio.gather(*waiters)

    assert calls == 1
    assert results == ["payload"] * 10


async def test_different_keys_run_independently() -> None:
    flight = SingleFlight()
    calls: list[str] = []

    async def operation(key: str) -> str:
        calls.append(key)
        await asyncio.sleep(0)
        return key

    a, b = await asyncio.gather(
        flight.run("a", lambda: operation("a")),
        flight.run("b", lambda: operation("b")),
    )
    assert (a, b) == ("a", "b")
    assert sorted(calls) == ["a", "b"]


async def test_exception_is_shared_by_all_waiters() -> None:
    flight = SingleFlight()
    calls = 0

    async def operation() -> None:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0)
        raise RuntimeError("boom")

    results = await asyncio.gather(
        *(flight.run("k", operation) for _ in range(3)), return_exceptions=True
    )
    assert calls == 1
    assert all(isinstance(r, RuntimeError) for r in results)


async def test_key_is_released_after_completion() -> None:
    """A call after the previous one finished starts a new operation."""
    flight = SingleFlight()
    calls = 0

    async def operation() -> int:
        nonlocal calls
        calls += 1
        return calls

    assert await flight.run("k", operation) == 1
    await asyncio.sleep(0)
    assert not flight.in_flight("k")
    assert len(flight) == 0
    assert await flight.run("k", operation) == 2


async def test_key_is_released_after_failure() -> None:
    flight = SingleFlight()

    async def failing() -> None:
        raise ValueError("nope")

    with pytest.raises(ValueError):
        await flight.run("k", failing)
    await asyncio.sleep(0)
    assert not flight.in_flight("k")


async def test_cancelling_one_waiter_does_not_cancel_shared_operation() -> None:
    flight = SingleFlight()
    gate = asyncio.Event()

    async def operation() -> str:
        await gate.wait()
        return "done"

    first = asyncio.create_task(flight.run("k", operation))
    second = asyncio.create_task(flight.run("k", operation))
    await asyncio.sleep(0)
    first.cancel()
    await asyncio.sleep(0)
    gate.set()

    assert await second == "done"
    assert first.cancelled()
