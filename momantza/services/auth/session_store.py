from __future__ import annotations

from datetime import datetime
import logging
from uuid import uuid4

from sqlalchemy import Index, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.schema import CreateIndex

from momantza.core.errors import ErrorKind, Outcome
from momantza.domain.models import USER_SESSION_SCHEMA, UserSession
from momantza.persistence.mapping import utc_now
from momantza.persistence.repos.sessions import SessionMapper
from momantza.persistence.repository import EntityRepository, bind_statement


logger = logging.getLogger(__name__)

_table = USER_SESSION_SCHEMA.table
# Backstop for the single-active-session invariant on every dialect.
ACTIVE_SESSION_INDEX = Index(
    "ux_usersession_active_user",
    _table.c.userid,
    unique=True,
    postgresql_where=text("isactive"),
    sqlite_where=text("isactive"),
)


class SessionStore:
    """One row per issued token pair; at most one active row per user."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, timeout_s: float = 0) -> None:
        self._repo: EntityRepository[UserSession] = EntityRepository(
            USER_SESSION_SCHEMA, SessionMapper(), session_factory, timeout_s=timeout_s
        )

    @property
    def repository(self) -> EntityRepository[UserSession]:
        return self._repo

    async def ensure_table(self) -> Outcome[bool]:
        created = await self._repo.ensure_table()
        if not created.ok:
            return created

        async def _create_index(session: AsyncSession) -> bool:
            await session.execute(CreateIndex(ACTIVE_SESSION_INDEX, if_not_exists=True))
            return True

        return await self._repo.run("ensure_active_index", _create_index, False)

    async def store(
        self,
        user_id: str,
        tenant_id: str,
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
    ) -> Outcome[bool]:
        """Deactivate the user's active sessions and insert a new active one.

        Both steps run in a single transaction. PostgreSQL additionally
        serializes concurrent logins of the same user with an advisory lock.
        """
        now = utc_now()
        row = UserSession(
            id=str(uuid4()),
            user_id=user_id,
            organization_id=tenant_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
            is_active=True,
        )
        insert_clause = bind_statement(USER_SESSION_SCHEMA, self._repo.mapper.to_insert(row))

        async def _store(session: AsyncSession) -> int:
            if session.get_bind().dialect.name == "postgresql":
                await session.execute(
                    text("SELECT pg_advisory_xact_lock(hashtext(:user_id))"), {"user_id": user_id}
                )
            await session.execute(
                update(_table)
                .where(_table.c.userid == user_id, _table.c.isactive.is_(True))
                .values(isactive=False, updatedat=now)
            )
            result = await session.execute(insert_clause)
            return result.rowcount or 0

        outcome = await self._repo.run("store", _store, 0)
        if not outcome.ok:
            return Outcome.failure(outcome.error or ErrorKind.STORE_FAILURE, False)
        return Outcome.success(outcome.value > 0)

    async def find_by_access_token(self, access_token: str) -> Outcome[UserSession | None]:
        if not access_token:
            return Outcome.failure(ErrorKind.NOT_FOUND, None)
        statement = select(_table).where(_table.c.accesstoken == access_token, _table.c.isactive.is_(True))
        return await self._repo.fetch_one("find_by_access_token", statement)

    async def find_by_refresh_token(self, refresh_token: str) -> Outcome[UserSession | None]:
        if not refresh_token:
            return Outcome.failure(ErrorKind.NOT_FOUND, None)
        statement = select(_table).where(_table.c.refreshtoken == refresh_token, _table.c.isactive.is_(True))
        return await self._repo.fetch_one("find_by_refresh_token", statement)

    async def invalidate(self, access_token: str) -> Outcome[bool]:
        if not access_token:
            return Outcome.failure(ErrorKind.NOT_FOUND, False)

        async def _invalidate(session: AsyncSession) -> int:
            result = await session.execute(
                update(_table)
                .where(_table.c.accesstoken == access_token, _table.c.isactive.is_(True))
                .values(isactive=False, updatedat=utc_now())
            )
            return result.rowcount or 0

        outcome = await self._repo.run("invalidate", _invalidate, 0)
        if not outcome.ok:
            return Outcome.failure(outcome.error or ErrorKind.STORE_FAILURE, False)
        if not outcome.value:
            return Outcome.failure(ErrorKind.NOT_FOUND, False)
        return Outcome.success(True)

    async def sessions_for_user(self, user_id: str) -> Outcome[list[UserSession]]:
        statement = select(_table).where(_table.c.userid == user_id).order_by(_table.c.createdat, _table.c.id)
        return await self._repo.fetch_many("sessions_for_user", statement)
