"""Tests for the in-flight generation registry.

Tests cover:
- register / lookup
- superseding a handle cancels the previous one
- another user's in-flight chat id is refused, not superseded
- revoke_and_remove with and without an owner check
- discard only removes the caller's own handle
"""

import asyncio
from uuid import uuid4

import pytest

from termsmith.services.controller_registry import CancellationHandle, ControllerRegistry


@pytest.fixture
def registry() -> ControllerRegistry:
    return ControllerRegistry()


@pytest.fixture
def owner():
    return uuid4()


class TestCancellationHandle:
    def test_starts_uncancelled(self, owner):
        assert not CancellationHandle(owner).cancelled

    def test_cancel_is_idempotent(self, owner):
        handle = CancellationHandle(owner)
        handle.cancel()
        handle.cancel()
        assert handle.cancelled

    @pytest.mark.asyncio
    async def test_wait_returns_after_cancel(self, owner):
        handle = CancellationHandle(owner)
        waiter = asyncio.create_task(handle.wait())
        await asyncio.sleep(0)
        assert not waiter.done()

        handle.cancel()
        await asyncio.wait_for(waiter, timeout=1)


class TestControllerRegistry:
    def test_register_and_lookup(self, registry, owner):
        handle = CancellationHandle(owner)
        registry.register("chat-1", handle)

        assert registry.lookup("chat-1") is handle
        assert registry.lookup("chat-2") is None
        assert len(registry) == 1

    def test_register_supersedes_and_cancels_previous(self, registry, owner):
        first = CancellationHandle(owner)
        second = CancellationHandle(owner)

        registry.register("chat-1", first)
        assert registry.register("chat-1", second) is True

        assert first.cancelled
        assert not second.cancelled
        assert registry.lookup("chat-1") is second
        assert len(registry) == 1

    def test_register_refuses_chat_in_flight_for_other_user(self, registry, owner):
        handle = CancellationHandle(owner)
        intruder = CancellationHandle(uuid4())
        registry.register("chat-1", handle)

        assert registry.register("chat-1", intruder) is False

        assert not handle.cancelled
        assert not intruder.cancelled
        assert registry.lookup("chat-1") is handle
        assert len(registry) == 1

    def test_register_after_other_user_finished(self, registry, owner):
        handle = CancellationHandle(owner)
        registry.register("chat-1", handle)
        registry.discard("chat-1", handle)

        assert registry.register("chat-1", CancellationHandle(uuid4())) is True

    def test_reregistering_same_handle_does_not_cancel_it(self, registry, owner):
        handle = CancellationHandle(owner)
        registry.register("chat-1", handle)
        registry.register("chat-1", handle)

        assert not handle.cancelled

    def test_revoke_and_remove(self, registry, owner):
        handle = CancellationHandle(owner)
        registry.register("chat-1", handle)

        assert registry.revoke_and_remove("chat-1") is True
        assert handle.cancelled
        assert registry.lookup("chat-1") is None

    def test_revoke_missing_returns_false(self, registry):
        assert registry.revoke_and_remove("nope") is False

    def test_revoke_twice_second_is_false(self, registry, owner):
        registry.register("chat-1", CancellationHandle(owner))

        assert registry.revoke_and_remove("chat-1") is True
        assert registry.revoke_and_remove("chat-1") is False

    def test_revoke_with_owner_check(self, registry, owner):
        handle = CancellationHandle(owner)
        registry.register("chat-1", handle)

        assert registry.revoke_and_remove("chat-1", owner_user_id=uuid4()) is False
        assert not handle.cancelled
        assert registry.lookup("chat-1") is handle

        assert registry.revoke_and_remove("chat-1", owner_user_id=owner) is True
        assert handle.cancelled

    def test_discard_removes_own_handle(self, registry, owner):
        handle = CancellationHandle(owner)
        registry.register("chat-1", handle)

        registry.discard("chat-1", handle)

        assert registry.lookup("chat-1") is None
        assert not handle.cancelled

    def test_discard_keeps_newer_handle(self, registry, owner):
        old = CancellationHandle(owner)
        new = CancellationHandle(owner)
        registry.register("chat-1", old)
        registry.register("chat-1", new)

        registry.discard("chat-1", old)

        assert registry.lookup("chat-1") is new

    def test_discard_missing_is_noop(self, registry, owner):
        registry.discard("chat-1", CancellationHandle(owner))
        assert len(registry) == 0
