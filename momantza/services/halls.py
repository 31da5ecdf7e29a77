from __future__ import annotations

from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from momantza.core.context import RequestContext, resolve_tenant_id
from momantza.core.errors import ErrorKind, Outcome, TenantUnresolvedError
from momantza.domain.models import HALL_SCHEMA, Hall
from momantza.persistence.guards import tenant_predicate
from momantza.persistence.repos.halls import HallMapper
from momantza.persistence.repository import EntityRepository


_table = HALL_SCHEMA.table


class HallService:
    """Hall specialization: tenant listings show active halls ordered by name."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, timeout_s: float = 0) -> None:
        self.repository: EntityRepository[Hall] = EntityRepository(
            HALL_SCHEMA, HallMapper(), session_factory, timeout_s=timeout_s
        )

    async def ensure_table(self) -> Outcome[bool]:
        return await self.repository.ensure_table()

    async def list_for_tenant(self, context: RequestContext) -> Outcome[list[Hall]]:
        try:
            predicate = tenant_predicate(_table, resolve_tenant_id(context))
        except TenantUnresolvedError:
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, [])
        statement = (
            select(_table)
            .where(predicate, _table.c.isactive.is_(True))
            .order_by(_table.c.name, _table.c.id)
        )
        return await self.repository.fetch_many("list_for_tenant", statement)

    async def list_active(self) -> Outcome[list[Hall]]:
        # Public listing across every tenant.
        statement = select(_table).where(_table.c.isactive.is_(True)).order_by(_table.c.name, _table.c.id)
        return await self.repository.fetch_many("list_active", statement)

    async def get_for_tenant(self, hall_id: str, context: RequestContext) -> Outcome[Hall | None]:
        try:
            predicate = tenant_predicate(_table, resolve_tenant_id(context))
        except TenantUnresolvedError:
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, None)
        statement = select(_table).where(_table.c.id == hall_id, predicate)
        return await self.repository.fetch_one("get_for_tenant", statement)

    async def create(self, hall: Hall, context: RequestContext) -> Outcome[bool]:
        if not hall.id:
            hall.id = uuid4().hex
        return await self.repository.create(hall, context)

    async def update(self, hall: Hall, context: RequestContext) -> Outcome[bool]:
        return await self.repository.update(hall, context)

    async def delete(self, hall_id: str) -> Outcome[bool]:
        return await self.repository.delete(hall_id)
