from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Callable

from momantza.core.config import Settings
from momantza.core.context import RequestContext, resolve_tenant_id
from momantza.core.errors import ErrorKind, Outcome
from momantza.domain.models import User, UserSession
from momantza.services.auth.credentials import CredentialVerifier
from momantza.services.auth.session_store import SessionStore
from momantza.services.auth.tokens import TokenIssuer, strip_bearer
from momantza.services.users import UserService


logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
DEFAULT_ROLE = "user"
ADMIN_DISPLAY_NAME = "Administrator"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuthSession:
    user: User
    access_token: str
    refresh_token: str
    expires_at: datetime


class AuthService:
    """Login, logout, token refresh, registration and password changes.

    Every flow is tenant-scoped through the explicit request context and
    reports failures through ``Outcome`` rather than exceptions.
    """

    def __init__(
        self,
        *,
        users: UserService,
        sessions: SessionStore,
        tokens: TokenIssuer,
        verifier: CredentialVerifier,
        settings: Settings,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._tokens = tokens
        self._verifier = verifier
        self._settings = settings
        self._clock = clock

    async def login(self, email: str, secret: str, context: RequestContext) -> Outcome[AuthSession | None]:
        tenant_id = resolve_tenant_id(context)
        if not tenant_id:
            logger.warning("auth_login_tenant_unresolved")
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, None)

        found = await self._users.get_by_email_and_tenant(email, tenant_id)
        if found.error is ErrorKind.STORE_FAILURE:
            return Outcome.failure(ErrorKind.STORE_FAILURE, None)
        user = found.value
        if user is None:
            return await self._bootstrap_on_first_login(email, tenant_id)

        verified = self._verifier.verify(secret, user.password_hash)
        if (
            not verified
            and self._verifier.is_legacy(user.password_hash)
            and self._verifier.matches_legacy(secret, user.password_hash)
        ):
            verified = await self._migrate_legacy_secret(user, secret)

        if not verified:
            logger.info("auth_login_rejected tenant_id=%s user_id=%s", tenant_id, user.id)
            return Outcome.failure(ErrorKind.INVALID_CREDENTIAL, None)
        return await self._open_session(user, tenant_id)

    async def logout(self, token: str | None) -> Outcome[bool]:
        access_token = strip_bearer(token)
        if not access_token:
            return Outcome.failure(ErrorKind.INVALID_TOKEN, False)
        outcome = await self._sessions.invalidate(access_token)
        if outcome.ok:
            logger.info("auth.logout")
        return outcome

    async def get_current_user(self, token: str | None, context: RequestContext) -> Outcome[User | None]:
        access_token = strip_bearer(token)
        if not access_token:
            return Outcome.failure(ErrorKind.INVALID_TOKEN, None)

        found = await self._sessions.find_by_access_token(access_token)
        if found.error is ErrorKind.STORE_FAILURE:
            return Outcome.failure(ErrorKind.STORE_FAILURE, None)
        if not self._session_usable(found.value):
            return Outcome.failure(ErrorKind.INVALID_TOKEN, None)

        claims = self._tokens.decode(access_token)
        subject = (claims or {}).get("sub")
        if not subject:
            return Outcome.failure(ErrorKind.INVALID_TOKEN, None)

        tenant_id = resolve_tenant_id(context)
        if not tenant_id:
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, None)
        return await self._users.get_by_id_and_tenant(str(subject), tenant_id)

    async def is_authenticated(self, token: str | None, context: RequestContext) -> Outcome[bool]:
        current = await self.get_current_user(token, context)
        if current.value is None:
            return Outcome.failure(current.error or ErrorKind.INVALID_TOKEN, False)
        return Outcome.success(True)

    async def refresh(self, refresh_token: str | None) -> Outcome[AuthSession | None]:
        if not refresh_token:
            return Outcome.failure(ErrorKind.INVALID_TOKEN, None)
        found = await self._sessions.find_by_refresh_token(refresh_token)
        if found.error is ErrorKind.STORE_FAILURE:
            return Outcome.failure(ErrorKind.STORE_FAILURE, None)
        session = found.value
        if session is None or not self._session_usable(session):
            return Outcome.failure(ErrorKind.INVALID_TOKEN, None)

        loaded = await self._users.get_by_id_and_tenant(session.user_id, session.organization_id)
        if loaded.value is None:
            return Outcome.failure(loaded.error or ErrorKind.NOT_FOUND, None)
        # Storing the new pair deactivates the session being refreshed.
        return await self._open_session(loaded.value, session.organization_id)

    async def change_password(
        self,
        user_id: str,
        current_secret: str,
        new_secret: str,
        context: RequestContext,
    ) -> Outcome[bool]:
        tenant_id = resolve_tenant_id(context)
        if not tenant_id:
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, False)
        found = await self._users.get_by_id_and_tenant(user_id, tenant_id)
        if found.value is None:
            return Outcome.failure(found.error or ErrorKind.NOT_FOUND, False)
        if not self._verifier.verify(current_secret, found.value.password_hash):
            return Outcome.failure(ErrorKind.INVALID_CREDENTIAL, False)
        try:
            new_hash = self._verifier.hash(new_secret)
        except ValueError:
            return Outcome.failure(ErrorKind.INVALID_CREDENTIAL, False)
        return await self._users.update_password(user_id, new_hash)

    async def register(
        self,
        email: str,
        secret: str,
        name: str,
        context: RequestContext,
    ) -> Outcome[User | None]:
        tenant_id = resolve_tenant_id(context)
        if not tenant_id:
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, None)
        existing = await self._users.get_by_email_and_tenant(email, tenant_id)
        if existing.value is not None:
            return Outcome.failure(ErrorKind.CONFLICT, None)
        if existing.error is ErrorKind.STORE_FAILURE:
            return Outcome.failure(ErrorKind.STORE_FAILURE, None)
        # Tenant is assigned by the repository and the secret hashed by create_user.
        user = User(email=email, name=name, password_hash=secret, role=DEFAULT_ROLE)
        return await self._users.create_user(user, context)

    async def provision_admin(
        self,
        tenant_id: str,
        *,
        secret: str | None = None,
        email: str | None = None,
        actor: str = "system",
    ) -> Outcome[User | None]:
        """Create an administrator for a tenant.

        This is the explicit replacement for the implicit first-login admin.
        The secret defaults to the configured bootstrap secret; without one
        the call is refused.
        """
        if not tenant_id:
            return Outcome.failure(ErrorKind.TENANT_UNRESOLVED, None)
        seed_secret = secret or self._settings.auth_bootstrap_admin_secret
        admin_email = email or self._settings.auth_bootstrap_admin_email
        if not seed_secret:
            logger.warning("auth.admin.provision_refused tenant_id=%s reason=no_secret", tenant_id)
            return Outcome.failure(ErrorKind.INVALID_CREDENTIAL, None)

        existing = await self._users.get_by_email_and_tenant(admin_email, tenant_id)
        if existing.value is not None:
            return Outcome.failure(ErrorKind.CONFLICT, None)
        if existing.error is ErrorKind.STORE_FAILURE:
            return Outcome.failure(ErrorKind.STORE_FAILURE, None)

        admin = User(
            email=admin_email,
            name=ADMIN_DISPLAY_NAME,
            password_hash=seed_secret,
            organization_id=tenant_id,
            role=ADMIN_ROLE,
        )
        created = await self._users.create_user(admin)
        if created.value is not None:
            logger.info(
                "auth.admin.provisioned tenant_id=%s user_id=%s actor=%s",
                tenant_id,
                created.value.id,
                actor,
            )
        return created

    async def _bootstrap_on_first_login(self, email: str, tenant_id: str) -> Outcome[AuthSession | None]:
        # Only when enabled, for the configured admin login, on a tenant with no users at all.
        if not self._settings.auth_bootstrap_on_first_login or email != self._settings.auth_bootstrap_admin_email:
            return Outcome.failure(ErrorKind.INVALID_CREDENTIAL, None)
        count = await self._users.count_by_tenant(tenant_id)
        if not count.ok:
            return Outcome.failure(count.error or ErrorKind.STORE_FAILURE, None)
        if count.value > 0:
            return Outcome.failure(ErrorKind.INVALID_CREDENTIAL, None)

        provisioned = await self.provision_admin(tenant_id, actor="first_login")
        admin = provisioned.value
        if provisioned.error is ErrorKind.CONFLICT:
            # A concurrent first login created the administrator.
            return Outcome.failure(ErrorKind.INVALID_CREDENTIAL, None)
        if admin is None:
            return Outcome.failure(provisioned.error or ErrorKind.STORE_FAILURE, None)
        if not self._verifier.verify(self._settings.auth_bootstrap_admin_secret, admin.password_hash):
            return Outcome.failure(ErrorKind.INVALID_CREDENTIAL, None)
        return await self._open_session(admin, tenant_id)

    async def _migrate_legacy_secret(self, user: User, secret: str) -> bool:
        # One-time re-hash of a plaintext credential that just matched.
        try:
            new_hash = self._verifier.hash(secret)
        except ValueError as exc:
            logger.warning("auth.password.migration_failed user_id=%s", user.id, exc_info=exc)
            return False
        updated = await self._users.update_password(user.id, new_hash)
        if not updated.ok:
            logger.warning("auth.password.migration_failed user_id=%s error=%s", user.id, updated.error)
            return False
        user.password_hash = new_hash
        logger.info("auth.password.migrated user_id=%s", user.id)
        return True

    async def _open_session(self, user: User, tenant_id: str) -> Outcome[AuthSession | None]:
        issued = self._tokens.issue(user)
        stored = await self._sessions.store(
            user.id,
            user.organization_id or tenant_id,
            issued.access_token,
            issued.refresh_token,
            issued.expires_at,
        )
        if not stored.ok:
            return Outcome.failure(stored.error or ErrorKind.STORE_FAILURE, None)
        return Outcome.success(
            AuthSession(
                user=user,
                access_token=issued.access_token,
                refresh_token=issued.refresh_token,
                expires_at=issued.expires_at,
            )
        )

    def _session_usable(self, session: UserSession | None) -> bool:
        if session is None or not session.is_active:
            return False
        return session.expires_at >= self._clock()
