from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from momantza.core.config import Settings
from momantza.services.auth.credentials import CredentialVerifier
from momantza.services.auth.service import AuthService
from momantza.services.auth.session_store import SessionStore
from momantza.services.auth.tokens import TokenIssuer
from momantza.services.halls import HallService
from momantza.services.users import UserService


logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    verifier: CredentialVerifier
    tokens: TokenIssuer
    users: UserService
    halls: HallService
    sessions: SessionStore
    auth: AuthService

    async def ensure_tables(self) -> bool:
        # Additive schema sync for every table the core owns.
        results = [
            await self.users.ensure_table(),
            await self.halls.ensure_table(),
            await self.sessions.ensure_table(),
        ]
        failed = [outcome for outcome in results if not outcome.ok]
        if failed:
            logger.error("schema_bootstrap_incomplete failed=%d", len(failed))
        return not failed


def build_services(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> Services:
    timeout_s = settings.db_operation_timeout_s
    verifier = CredentialVerifier(rounds=settings.bcrypt_rounds)
    tokens = TokenIssuer.from_settings(settings)
    users = UserService(session_factory, verifier, timeout_s=timeout_s)
    sessions = SessionStore(session_factory, timeout_s=timeout_s)
    return Services(
        settings=settings,
        verifier=verifier,
        tokens=tokens,
        users=users,
        halls=HallService(session_factory, timeout_s=timeout_s),
        sessions=sessions,
        auth=AuthService(
            users=users,
            sessions=sessions,
            tokens=tokens,
            verifier=verifier,
            settings=settings,
        ),
    )
