from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from momantza.core.context import RequestContext
from momantza.core.errors import ErrorKind
from momantza.services.registry import Services


def _expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=7)


@pytest.mark.asyncio
async def test_store_keeps_single_active_session(services: Services) -> None:
    store = services.sessions
    assert (await store.store("u-1", "org-1", "access-1", "refresh-1", _expiry())).value is True
    assert (await store.store("u-1", "org-1", "access-2", "refresh-2", _expiry())).value is True

    sessions = (await store.sessions_for_user("u-1")).value
    assert len(sessions) == 2
    assert [row.access_token for row in sessions if row.is_active] == ["access-2"]

    assert (await store.find_by_access_token("access-1")).error is ErrorKind.NOT_FOUND
    current = await store.find_by_access_token("access-2")
    assert current.value.user_id == "u-1"
    assert current.value.organization_id == "org-1"
    assert current.value.expires_at.tzinfo is not None


@pytest.mark.asyncio
async def test_concurrent_stores_leave_one_active(services: Services) -> None:
    store = services.sessions
    results = await asyncio.gather(
        *(store.store("u-race", "org-1", f"access-{n}", f"refresh-{n}", _expiry()) for n in range(5))
    )
    assert any(outcome.ok for outcome in results)
    sessions = (await store.sessions_for_user("u-race")).value
    assert sum(1 for row in sessions if row.is_active) == 1


@pytest.mark.asyncio
async def test_sessions_of_other_users_untouched(services: Services) -> None:
    store = services.sessions
    await store.store("u-1", "org-1", "a-1", "r-1", _expiry())
    await store.store("u-2", "org-1", "a-2", "r-2", _expiry())
    assert (await store.find_by_access_token("a-1")).ok
    assert (await store.find_by_access_token("a-2")).ok


@pytest.mark.asyncio
async def test_lookup_by_refresh_and_invalidate(services: Services) -> None:
    store = services.sessions
    await store.store("u-3", "org-1", "a-3", "r-3", _expiry())
    assert (await store.find_by_refresh_token("r-3")).value.access_token == "a-3"

    assert (await store.invalidate("a-3")).value is True
    assert (await store.find_by_refresh_token("r-3")).value is None
    assert (await store.find_by_access_token("a-3")).value is None

    missing = await store.invalidate("never-issued")
    assert missing.value is False
    assert missing.error is ErrorKind.NOT_FOUND
    assert (await store.find_by_access_token("")).error is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_second_invalidate_is_not_found(services: Services) -> None:
    store = services.sessions
    await store.store("u-4", "org-1", "a-4", "r-4", _expiry())
    assert (await store.invalidate("a-4")).value is True

    again = await store.invalidate("a-4")
    assert again.value is False
    assert again.error is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_concurrent_registrations_create_one_user(services: Services) -> None:
    context = RequestContext.for_tenant("org-race")
    results = await asyncio.gather(
        *(services.auth.register("dup@example.com", f"pw-{n}", "Dup", context) for n in range(4))
    )
    assert sum(1 for outcome in results if outcome.ok) == 1
    assert all(outcome.error is ErrorKind.CONFLICT for outcome in results if not outcome.ok)
    assert (await services.users.count_by_tenant("org-race")).value == 1
