from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

from sqlalchemy import Select, Table, bindparam, delete, exists, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import TextClause

from momantza.core.context import RequestContext, resolve_tenant_id
from momantza.core.errors import ErrorKind, Outcome, TenantUnresolvedError
from momantza.persistence.guards import bounded, tenant_predicate
from momantza.persistence.mapping import RecordMapper, RowStatement, encode_json
from momantza.persistence.schema import SchemaDescriptor, SchemaSynchronizer


logger = logging.getLogger(__name__)

T = TypeVar("T")
V = TypeVar("V")


def bind_statement(descriptor: SchemaDescriptor, statement: RowStatement) -> TextClause:
    """Turn a mapper statement into a bound text clause.

    JSON params are serialized here and sent untyped so the target column
    decides how to read them; every other param borrows its column's type.
    """
    table = descriptor.table
    params = []
    for name, value in statement.params.items():
        if name in statement.json_fields:
            params.append(bindparam(name, encode_json(value)))
        elif name in table.c:
            params.append(bindparam(name, value, type_=table.c[name].type))
        else:
            params.append(bindparam(name, value))
    return text(statement.sql).bindparams(*params)


class EntityRepository(Generic[T]):
    """Generic tenant-aware CRUD over one descriptor-backed table.

    Every operation opens its own session, returns an ``Outcome`` and never
    raises store errors to the caller. ``get_all`` has no implicit order;
    specializations that need one add it.
    """

    def __init__(
        self,
        descriptor: SchemaDescriptor,
        mapper: RecordMapper[T],
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout_s: float = 0,
    ) -> None:
        self.descriptor = descriptor
        self.mapper = mapper
        self._session_factory = session_factory
        self._timeout_s = timeout_s
        self._synchronizer = SchemaSynchronizer(session_factory, timeout_s=timeout_s)

    @property
    def table(self) -> Table:
        return self.descriptor.table

    async def ensure_table(self) -> Outcome[bool]:
        return await self._synchronizer.ensure_table(self.descriptor)

    async def get_by_id(self, entity_id: str) -> Outcome[T | None]:
        return await self.fetch_one("get_by_id", select(self.table).where(self.table.c.id == entity_id))

    async def get_all(self) -> Outcome[list[T]]:
        return await self.fetch_many("get_all", select(self.table))

    async def get_by_tenant(self, tenant_id: str) -> Outcome[list[T]]:
        try:
            predicate = tenant_predicate(self.table, tenant_id)
        except TenantUnresolvedError:
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, [])
        return await self.fetch_many("get_by_tenant", select(self.table).where(predicate))

    async def create(self, entity: T, context: RequestContext | None = None) -> Outcome[bool]:
        if not self.assign_tenant(entity, context):
            logger.warning("repository_tenant_unresolved table=%s operation=create", self.table.name)
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, False)
        return await self.execute_statement("create", self.mapper.to_insert(entity))

    async def update(self, entity: T, context: RequestContext | None = None) -> Outcome[bool]:
        if not self.assign_tenant(entity, context):
            logger.warning("repository_tenant_unresolved table=%s operation=update", self.table.name)
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, False)
        return await self.execute_statement("update", self.mapper.to_update(entity))

    async def delete(self, entity_id: str) -> Outcome[bool]:
        async def _delete(session: AsyncSession) -> int:
            result = await session.execute(delete(self.table).where(self.table.c.id == entity_id))
            return result.rowcount or 0

        outcome = await self.run("delete", _delete, 0)
        return self._affected(outcome)

    async def exists(self, entity_id: str) -> Outcome[bool]:
        async def _exists(session: AsyncSession) -> bool:
            result = await session.execute(select(exists().where(self.table.c.id == entity_id)))
            return bool(result.scalar())

        return await self.run("exists", _exists, False)

    def assign_tenant(self, entity: T, context: RequestContext | None) -> bool:
        """Fill an empty tenant field from the context; never overwrite one.

        Returns False when the field is empty and no tenant resolves.
        """
        tenant_field = self.descriptor.tenant_field
        if tenant_field is None:
            return True
        current = getattr(entity, tenant_field, None)
        if current is not None and str(current).strip():
            return True
        tenant_id = resolve_tenant_id(context)
        if not tenant_id:
            return False
        setattr(entity, tenant_field, tenant_id)
        return True

    async def fetch_one(self, operation: str, statement: Select) -> Outcome[T | None]:
        async def _fetch(session: AsyncSession) -> T | None:
            row = (await session.execute(statement)).mappings().first()
            return None if row is None else self.mapper.from_row(row)

        outcome = await self.run(operation, _fetch, None)
        if outcome.ok and outcome.value is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, None)
        return outcome

    async def fetch_many(self, operation: str, statement: Select) -> Outcome[list[T]]:
        async def _fetch(session: AsyncSession) -> list[T]:
            rows = (await session.execute(statement)).mappings().all()
            return [self.mapper.from_row(row) for row in rows]

        return await self.run(operation, _fetch, [])

    async def fetch_scalar(self, operation: str, statement: Select, default: V) -> Outcome[V]:
        async def _fetch(session: AsyncSession) -> V:
            value = (await session.execute(statement)).scalar()
            return default if value is None else value

        return await self.run(operation, _fetch, default)

    async def execute_statement(self, operation: str, statement: RowStatement) -> Outcome[bool]:
        clause = bind_statement(self.descriptor, statement)

        async def _execute(session: AsyncSession) -> int:
            result = await session.execute(clause)
            return result.rowcount or 0

        outcome = await self.run(operation, _execute, 0)
        return self._affected(outcome)

    async def run(
        self,
        operation: str,
        action: Callable[[AsyncSession], Awaitable[V]],
        default: V,
    ) -> Outcome[V]:
        # One session per operation; the context managers release it on every path.
        try:
            value = await bounded(self._in_transaction(action), self._timeout_s)
        except IntegrityError as exc:
            # A unique index rejected the write: another request got there first.
            logger.info(
                "repository_conflict table=%s operation=%s reason=%s",
                self.table.name,
                operation,
                type(exc.orig).__name__,
            )
            return Outcome.failure(ErrorKind.CONFLICT, default)
        except Exception as exc:  # noqa: BLE001 - store faults become a failed outcome
            logger.error(
                "repository_operation_failed table=%s operation=%s",
                self.table.name,
                operation,
                exc_info=exc,
            )
            return Outcome.failure(ErrorKind.STORE_FAILURE, default)
        return Outcome.success(value)

    async def _in_transaction(self, action: Callable[[AsyncSession], Awaitable[V]]) -> V:
        async with self._session_factory() as session:
            async with session.begin():
                return await action(session)

    @staticmethod
    def _affected(outcome: Outcome[Any]) -> Outcome[bool]:
        if not outcome.ok:
            return Outcome.failure(outcome.error or ErrorKind.STORE_FAILURE, False)
        if not outcome.value:
            return Outcome.failure(ErrorKind.NOT_FOUND, False)
        return Outcome.success(True)
