from __future__ import annotations

import argparse
import asyncio
import getpass
import sys

from momantza.core.config import get_settings
from momantza.core.logging import configure_logging
from momantza.persistence.db import build_engine, build_session_factory
from momantza.services.registry import build_services


def _build_parser() -> argparse.ArgumentParser:
    # The secret is prompted for unless given; it never comes from a default.
    parser = argparse.ArgumentParser(description="Provision an administrator for an organization")
    parser.add_argument("--organization", required=True, help="Organization (tenant) identifier")
    parser.add_argument("--email", default=None, help="Admin login; defaults to AUTH_BOOTSTRAP_ADMIN_EMAIL")
    parser.add_argument("--password", default=None, help="Admin secret; prompted for when omitted")
    return parser


async def _provision(args: argparse.Namespace) -> int:
    settings = get_settings()
    configure_logging(settings.log_level)
    secret = args.password or getpass.getpass("Admin password: ")
    if not secret:
        print("provision_admin failed: a password is required", file=sys.stderr)
        return 1

    engine = build_engine(settings)
    try:
        services = build_services(settings, build_session_factory(engine))
        if not await services.ensure_tables():
            print("provision_admin failed: schema sync failed", file=sys.stderr)
            return 1
        outcome = await services.auth.provision_admin(
            args.organization,
            secret=secret,
            email=args.email,
            actor="provision_admin",
        )
    finally:
        await engine.dispose()

    if outcome.value is None:
        reason = outcome.error.value if outcome.error else "unknown"
        print(f"provision_admin failed: {reason}", file=sys.stderr)
        return 1
    print("Administrator provisioned:")
    print(f"  user_id: {outcome.value.id}")
    print(f"  email: {outcome.value.email}")
    print(f"  organization: {outcome.value.organization_id}")
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_provision(args))
    except Exception as exc:  # noqa: BLE001 - surface provisioning failures clearly
        print(f"provision_admin failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
