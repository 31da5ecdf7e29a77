from __future__ import annotations

import logging
from uuid import uuid4

from sqlalchemy import Index, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.schema import CreateIndex

from momantza.core.context import RequestContext, resolve_tenant_id
from momantza.core.errors import ErrorKind, Outcome, TenantUnresolvedError
from momantza.domain.models import USER_SCHEMA, User
from momantza.persistence.guards import tenant_predicate
from momantza.persistence.repos.users import UserMapper
from momantza.persistence.repository import EntityRepository
from momantza.services.auth.credentials import CredentialVerifier


logger = logging.getLogger(__name__)

_table = USER_SCHEMA.table
# One account per login per tenant, even when two registrations race.
USER_EMAIL_INDEX = Index("ux_users_email_organization", _table.c.email, _table.c.organizationid, unique=True)


class UserService:
    """User specialization of the generic repository.

    Passwords are hashed exactly once, in ``create_user``; callers always
    hand over the plain secret.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        verifier: CredentialVerifier,
        *,
        timeout_s: float = 0,
    ) -> None:
        self.repository: EntityRepository[User] = EntityRepository(
            USER_SCHEMA, UserMapper(), session_factory, timeout_s=timeout_s
        )
        self._mapper = UserMapper()
        self._verifier = verifier

    async def ensure_table(self) -> Outcome[bool]:
        created = await self.repository.ensure_table()
        if not created.ok:
            return created

        async def _create_index(session: AsyncSession) -> bool:
            await session.execute(CreateIndex(USER_EMAIL_INDEX, if_not_exists=True))
            return True

        return await self.repository.run("ensure_email_index", _create_index, False)

    async def get_by_id(self, user_id: str) -> Outcome[User | None]:
        return await self.repository.get_by_id(user_id)

    async def get_by_email_and_tenant(self, email: str, tenant_id: str) -> Outcome[User | None]:
        try:
            predicate = tenant_predicate(_table, tenant_id)
        except TenantUnresolvedError:
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, None)
        statement = select(_table).where(_table.c.email == email, predicate)
        return await self.repository.fetch_one("get_by_email_and_tenant", statement)

    async def get_by_id_and_tenant(self, user_id: str, tenant_id: str) -> Outcome[User | None]:
        try:
            predicate = tenant_predicate(_table, tenant_id)
        except TenantUnresolvedError:
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, None)
        statement = select(_table).where(_table.c.id == user_id, predicate)
        return await self.repository.fetch_one("get_by_id_and_tenant", statement)

    async def list_by_tenant(self, tenant_id: str) -> Outcome[list[User]]:
        # Oldest first, id as the tie-break.
        try:
            predicate = tenant_predicate(_table, tenant_id)
        except TenantUnresolvedError:
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, [])
        statement = select(_table).where(predicate).order_by(_table.c.createdat, _table.c.id)
        return await self.repository.fetch_many("list_by_tenant", statement)

    async def get_all(self, context: RequestContext) -> Outcome[list[User]]:
        return await self.list_by_tenant(resolve_tenant_id(context))

    async def count_by_tenant(self, tenant_id: str) -> Outcome[int]:
        try:
            predicate = tenant_predicate(_table, tenant_id)
        except TenantUnresolvedError:
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, 0)
        statement = select(func.count()).select_from(_table).where(predicate)
        return await self.repository.fetch_scalar("count_by_tenant", statement, 0)

    async def list_legacy_users(self) -> Outcome[list[User]]:
        # Across all tenants: used by the offline password migration.
        outcome = await self.repository.get_all()
        if not outcome.ok:
            return outcome
        return Outcome.success([user for user in outcome.value if CredentialVerifier.is_legacy(user.password_hash)])

    async def create_user(self, user: User, context: RequestContext | None = None) -> Outcome[User | None]:
        if not user.id:
            user.id = uuid4().hex
        try:
            # An empty secret stays empty: the never-logged-in seed state.
            if user.password_hash:
                user.password_hash = self._verifier.hash(user.password_hash)
        except ValueError as exc:
            # bcrypt rejects secrets it cannot hash (e.g. longer than 72 bytes).
            logger.warning("user_password_unhashable user_id=%s", user.id, exc_info=exc)
            return Outcome.failure(ErrorKind.INVALID_CREDENTIAL, None)
        created = await self.repository.create(user, context)
        if not created.ok:
            return Outcome.failure(created.error or ErrorKind.STORE_FAILURE, None)
        return Outcome.success(user)

    async def update_user(
        self,
        user_id: str,
        updates: User,
        context: RequestContext | None = None,
    ) -> Outcome[User | None]:
        # Merge only the non-empty fields of ``updates`` into the stored user.
        existing = await self.repository.get_by_id(user_id)
        if existing.value is None:
            return Outcome.failure(existing.error or ErrorKind.NOT_FOUND, None)
        user = existing.value
        if updates.name:
            user.name = updates.name
        if updates.email:
            user.email = updates.email
        if updates.organization_id:
            user.organization_id = updates.organization_id
        if updates.accessible_halls:
            user.accessible_halls = list(updates.accessible_halls)
        if updates.role:
            user.role = updates.role
        saved = await self.repository.update(user, context)
        if not saved.ok:
            return Outcome.failure(saved.error or ErrorKind.STORE_FAILURE, None)
        return Outcome.success(user)

    async def update_password(self, user_id: str, password_hash: str) -> Outcome[bool]:
        # Takes an already-hashed value; hashing belongs to the caller's flow.
        return await self.repository.execute_statement(
            "update_password", self._mapper.password_update(user_id, password_hash)
        )

    async def delete_user(self, user_id: str) -> Outcome[bool]:
        return await self.repository.delete(user_id)
