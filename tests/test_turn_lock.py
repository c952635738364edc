from __future__ import annotations

import asyncio

import pytest

from conftest import run
from triage_assistant.engine.errors import ConversationBusy
from triage_assistant.services.turn_lock import TurnLockRegistry


def test_lock_is_dropped_after_use():
    registry = TurnLockRegistry(timeout=1)

    async def scenario():
        async with registry.hold("u1"):
            assert registry.is_held("u1")
            assert len(registry) == 1

    run(scenario())

    assert len(registry) == 0
    assert not registry.is_held("u1")


def test_busy_after_timeout():
    registry = TurnLockRegistry(timeout=0.05)

    async def scenario():
        async with registry.hold("u1"):
            async with registry.hold("u1"):
                pass

    with pytest.raises(ConversationBusy):
        run(scenario())
    assert len(registry) == 0


def test_different_keys_do_not_block():
    registry = TurnLockRegistry(timeout=0.05)

    async def scenario():
        async with registry.hold("u1"):
            async with registry.hold("u2"):
                return len(registry)

    assert run(scenario()) == 2


def test_waiter_runs_after_holder_releases():
    registry = TurnLockRegistry(timeout=1)
    order = []

    async def turn(name, delay):
        async with registry.hold("u1"):
            order.append(f"{name}-start")
            await asyncio.sleep(delay)
            order.append(f"{name}-end")

    async def scenario():
        await asyncio.gather(turn("a", 0.02), turn("b", 0))

    run(scenario())

    assert order == ["a-start", "a-end", "b-start", "b-end"]
