from __future__ import annotations

import argparse
import asyncio
import sys

from momantza.core.config import get_settings
from momantza.core.logging import configure_logging
from momantza.persistence.db import build_engine, build_session_factory
from momantza.services.auth.credentials import CredentialVerifier
from momantza.services.auth.migration import migrate_legacy_passwords
from momantza.services.users import UserService


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Re-hash legacy plaintext passwords with bcrypt")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL for this run")
    return parser


async def _migrate(args: argparse.Namespace) -> int:
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)
    engine = build_engine(settings)
    try:
        verifier = CredentialVerifier(rounds=settings.bcrypt_rounds)
        users = UserService(build_session_factory(engine), verifier, timeout_s=settings.db_operation_timeout_s)
        ensured = await users.ensure_table()
        if not ensured.ok:
            print("migrate_passwords failed: users table unavailable", file=sys.stderr)
            return 1
        outcome = await migrate_legacy_passwords(users, verifier)
    finally:
        await engine.dispose()

    if not outcome.ok:
        print(f"migrate_passwords failed: {outcome.error.value}", file=sys.stderr)
        return 1
    report = outcome.value
    print("Password migration finished:")
    print(f"  migrated: {len(report.migrated)}")
    print(f"  failed: {len(report.failed)}")
    return 0 if not report.failed else 2


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_migrate(args))
    except Exception as exc:  # noqa: BLE001 - surface migration failures clearly
        print(f"migrate_passwords failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
