from __future__ import annotations

import asyncio

import pytest

from consult_booking.application.resource_cache import ResourceCache


def test_set_and_get_value():
    """A stored value is returned with has_value set."""
    cache = ResourceCache()
    cache.set("services", ("a", "b"))

    entry = cache.get("services")
    assert entry is not None
    assert entry.has_value
    assert entry.value == ("a", "b")
    assert not entry.in_flight


def test_invalidate_prefix_only_touches_matching_keys():
    """Prefix invalidation drops time slots of one service and leaves the rest."""
    cache = ResourceCache()
    cache.set("timeSlots:svc-1:2030-01-07", ())
    cache.set("timeSlots:svc-1:2030-01-08", ())
    cache.set("timeSlots:svc-2:2030-01-07", ())
    cache.set("dates:svc-1", ())

    dropped = cache.invalidate_prefix("timeSlots:svc-1:")

    assert sorted(dropped) == ["timeSlots:svc-1:2030-01-07", "timeSlots:svc-1:2030-01-08"]
    assert sorted(cache.keys()) == ["dates:svc-1", "timeSlots:svc-2:2030-01-07"]


def test_generations_are_per_kind_and_monotonic():
    """Only the most recently issued generation of a kind is latest."""
    cache = ResourceCache()
    first = cache.issue("dates")
    other = cache.issue("timeSlots")
    second = cache.issue("dates")

    assert second > first
    assert not cache.is_latest("dates", first)
    assert cache.is_latest("dates", second)
    assert cache.is_latest("timeSlots", other)


def test_clear_bumps_epoch_and_forgets_generations():
    """Clearing never lets an older generation become latest again."""
    cache = ResourceCache()
    generation = cache.issue("services")
    cache.set("services", ("x",))
    epoch = cache.epoch

    cache.clear()

    assert cache.keys() == []
    assert cache.epoch == epoch + 1
    assert not cache.is_latest("services", generation)
    assert cache.issue("services") > generation


@pytest.mark.asyncio
async def test_invalidate_detaches_in_flight_request():
    """After invalidation the pending task no longer owns the key."""
    cache = ResourceCache()
    gate = asyncio.Event()

    async def slow():
        await gate.wait()
        return ("fresh",)

    task = asyncio.create_task(slow())
    cache.set("services", ("stale",))
    cache.set_pending("services", task)

    cache.invalidate("services")

    assert cache.get("services") is None
    gate.set()
    await task
    assert cache.clear_pending("services", task) is False


@pytest.mark.asyncio
async def test_clear_pending_ignores_other_tasks():
    """A finished task only clears the pending slot it still owns."""
    cache = ResourceCache()
    first = asyncio.create_task(asyncio.sleep(0))
    second = asyncio.create_task(asyncio.sleep(0))
    cache.set_pending("dates:svc-1", second)

    assert cache.clear_pending("dates:svc-1", first) is False

    assert cache.get("dates:svc-1").pending is second
    await asyncio.gather(first, second)
