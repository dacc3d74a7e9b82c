#!/usr/bin/env python3
"""
LicenseGate activation code maintenance.

Issues, lists and force-resets activation codes in the store pointed at by
DATABASE_URL. License issuance is an operator task, so none of this is
exposed over HTTP.

Usage:
    # Issue five random codes for a customer, valid for a year
    python3 scripts/manage_codes.py issue --count 5 --entity "Cafe Aurora" --expires-in-days 365

    # Issue specific codes (already existing codes are skipped)
    python3 scripts/manage_codes.py issue --code X1-VALID --code X2-VALID

    # List the ledger with computed eligibility
    python3 scripts/manage_codes.py list

    # Show pending schema migrations, or apply them
    python3 scripts/manage_codes.py migrate --check
    python3 scripts/manage_codes.py migrate

    # Return a stuck code to ACTIVE (refused while a restaurant is bound to it)
    python3 scripts/manage_codes.py reset X1-VALID
"""

import argparse
import asyncio
import sys
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from licensegate.db.migration_runner import MigrationError, check_migrations_status, run_migrations
from licensegate.db.session import close_engines, create_schema, get_session_factory
from licensegate.exceptions import LicenseGateError
from licensegate.observability import get_logger, setup_logging
from licensegate.services.activation import ActivationService, generate_code

logger = get_logger(__name__)


async def issue(
    factory: async_sessionmaker[AsyncSession],
    codes: Sequence[str],
    count: int,
    entity_name: str | None,
    plan: str | None,
    expires_in_days: int | None,
) -> list[str]:
    """Issue the given codes plus `count` random ones; returns those created."""
    requested = list(codes) + [generate_code() for _ in range(count)]
    expires_at = (
        datetime.now(UTC) + timedelta(days=expires_in_days)
        if expires_in_days is not None
        else None
    )

    async with factory() as session:
        created = await ActivationService(session).issue_codes(
            requested, entity_name=entity_name, plan=plan, expires_at=expires_at
        )

    for code in created:
        print(code)
    return created


async def list_codes(factory: async_sessionmaker[AsyncSession]) -> int:
    """Print the ledger; returns the number of codes."""
    async with factory() as session:
        rows = await ActivationService(session).list_codes()

    print(f"{'CODE':<20} {'STATUS':<12} {'ELIGIBILITY':<12} {'EXPIRES':<26} ENTITY")
    for code, eligibility in rows:
        expires = code.expires_at.isoformat() if code.expires_at else "-"
        print(
            f"{code.code:<20} {code.status:<12} {eligibility.reason.value:<12} "
            f"{expires:<26} {code.entity_name or '-'}"
        )
    return len(rows)


async def reset(factory: async_sessionmaker[AsyncSession], code: str) -> None:
    """Force-reset one code."""
    async with factory() as session:
        row = await ActivationService(session).force_reset_code(code)
    print(f"{row.code} reset to {row.status}")


def migrate(check_only: bool) -> bool:
    """Report (and unless check_only, apply) pending migrations; True when up to date."""
    try:
        status = check_migrations_status()
        print(f"current: {status.current_revision}  head: {status.head_revision}")
        if not status.pending:
            return True
        if check_only:
            print("migrations pending")
            return False
        run_migrations()
    except MigrationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return False

    print("migrations applied")
    return True


async def run(args: argparse.Namespace) -> int:
    factory = get_session_factory()
    try:
        if args.init_db:
            await create_schema()

        if args.command == "issue":
            if not args.code and args.count < 1:
                logger.error("nothing_to_issue")
                return 1
            await issue(
                factory,
                args.code or [],
                args.count,
                args.entity,
                args.plan,
                args.expires_in_days,
            )
        elif args.command == "list":
            await list_codes(factory)
        elif args.command == "reset":
            await reset(factory, args.target)
        elif args.command == "migrate":
            return 0 if await asyncio.to_thread(migrate, args.check) else 1
        return 0

    except LicenseGateError as exc:
        logger.error("code_command_failed", command=args.command, error=str(exc))
        print(f"Error: {exc.detail}", file=sys.stderr)
        return 1
    finally:
        await close_engines()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage LicenseGate activation codes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--init-db", action="store_true", help="Create missing tables before running"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    issue_parser = subparsers.add_parser("issue", help="Issue new ACTIVE codes")
    issue_parser.add_argument(
        "--code", action="append", help="Code to issue (repeatable)"
    )
    issue_parser.add_argument(
        "--count", type=int, default=0, help="Number of random codes to generate"
    )
    issue_parser.add_argument("--entity", help="Licensee name, used as restaurant name")
    issue_parser.add_argument("--plan", help="License plan label")
    issue_parser.add_argument(
        "--expires-in-days", type=int, help="Expiry relative to now (default: never)"
    )

    subparsers.add_parser("list", help="List codes with computed eligibility")

    reset_parser = subparsers.add_parser("reset", help="Force a code back to ACTIVE")
    reset_parser.add_argument("target", help="Code to reset")

    migrate_parser = subparsers.add_parser("migrate", help="Apply pending schema migrations")
    migrate_parser.add_argument(
        "--check", action="store_true", help="Only report whether migrations are pending"
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
