from __future__ import annotations

from dataclasses import dataclass, field
import logging

from momantza.core.errors import Outcome
from momantza.services.auth.credentials import CredentialVerifier
from momantza.services.users import UserService


logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    migrated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.migrated) + len(self.failed)


async def migrate_legacy_passwords(users: UserService, verifier: CredentialVerifier) -> Outcome[MigrationReport]:
    """Re-hash every stored plaintext credential in place.

    Empty values (never logged in) and values that already look like bcrypt
    hashes are left alone, so running this twice is a no-op the second time.
    """
    legacy = await users.list_legacy_users()
    if not legacy.ok:
        return Outcome.failure(legacy.error, MigrationReport())

    report = MigrationReport()
    for user in legacy.value:
        try:
            new_hash = verifier.hash(user.password_hash)
        except ValueError as exc:
            logger.warning("auth.password.migration_failed user_id=%s", user.id, exc_info=exc)
            report.failed.append(user.id)
            continue
        updated = await users.update_password(user.id, new_hash)
        if updated.ok:
            logger.info("auth.password.migrated user_id=%s actor=migration", user.id)
            report.migrated.append(user.id)
        else:
            logger.warning("auth.password.migration_failed user_id=%s error=%s", user.id, updated.error)
            report.failed.append(user.id)
    return Outcome.success(report)
