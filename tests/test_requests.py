import asyncio

import pytest

from hanna_irc.errors import NetworkError, RequestTimeoutError
from hanna_irc.irc.requests import RequestTracker


@pytest.mark.asyncio
async def test_entries_are_matched_by_kind_and_target():
    tracker = RequestTracker()
    alice = tracker.create("whois", "alice")
    bob = tracker.create("whois", "bob")
    assert tracker.add_entry("whois", {"type": "user", "nick": "Alice"}, target="ALICE")
    assert tracker.add_entry("whois", {"type": "user", "nick": "bob"}, target="bob")
    assert tracker.complete("whois", target="Alice")
    assert await tracker.wait(alice, 1) == [{"type": "user", "nick": "Alice"}]
    assert not bob.complete
    assert len(tracker) == 1


@pytest.mark.asyncio
async def test_replies_without_request_are_ignored():
    tracker = RequestTracker()
    assert not tracker.add_entry("list", {"channel": "#x"})
    assert not tracker.complete("list")


@pytest.mark.asyncio
async def test_wait_times_out_and_discards_request():
    tracker = RequestTracker()
    request = tracker.create("list")
    with pytest.raises(RequestTimeoutError):
        await tracker.wait(request, 0.01)
    assert len(tracker) == 0
    assert request.future.cancelled()


@pytest.mark.asyncio
async def test_expire_drops_stale_requests():
    tracker = RequestTracker(expiry=30)
    request = tracker.create("list")
    assert tracker.expire(now=request.started + 10) == 0
    assert tracker.expire(now=request.started + 31) == 1
    assert request.future.cancelled()
    assert len(tracker) == 0


@pytest.mark.asyncio
async def test_fail_all_raises_network_error_for_waiters():
    tracker = RequestTracker()
    request = tracker.create("whois", "alice")
    waiter = asyncio.create_task(tracker.wait(request, 1))
    await asyncio.sleep(0)
    tracker.fail_all("connection lost")
    with pytest.raises(NetworkError):
        await waiter
    assert len(tracker) == 0


@pytest.mark.asyncio
async def test_request_ids_are_unique():
    tracker = RequestTracker()
    first = tracker.create("list")
    second = tracker.create("list")
    assert first.id != second.id
    assert first.id.startswith("list_")
