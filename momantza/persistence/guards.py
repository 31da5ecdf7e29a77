from __future__ import annotations

import asyncio
from typing import Any, Awaitable, TypeVar

from sqlalchemy import Table

from momantza.core.errors import TenantUnresolvedError


T = TypeVar("T")

TENANT_COLUMN = "organizationid"


def require_tenant_id(tenant_id: str | None) -> str:
    # Reject empty tenant identifiers before any query is built.
    if not tenant_id or not str(tenant_id).strip():
        raise TenantUnresolvedError("Tenant predicate required but tenant id is missing")
    return str(tenant_id).strip()


def tenant_predicate(table: Table, tenant_id: str | None) -> Any:
    # Build tenant predicates through a single helper to guarantee guard coverage.
    resolved = require_tenant_id(tenant_id)
    return table.c[TENANT_COLUMN] == resolved


async def bounded(awaitable: Awaitable[T], timeout_s: float | None) -> T:
    # Apply the configured per-operation deadline; cancellation still propagates.
    if not timeout_s or timeout_s <= 0:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout_s)
