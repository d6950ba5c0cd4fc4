"""
Command line tools for Dumpster Directory.

Batch jobs that run against the database directly, outside the web server:
importing and exporting businesses, consolidating duplicate listings,
creating administrator accounts, and serving the API.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dumpster_directory.core.database.entities.users import User
from dumpster_directory.core.database.repositories import build_repositories
from dumpster_directory.core.logging_config import get_logger, setup_logging
from dumpster_directory.core.models.domain import UserRole
from dumpster_directory.core.transfer import consolidate_duplicates, export_businesses, import_businesses, read_records
from dumpster_directory.server.core.config import settings

logger = get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]


def _default_session_factory() -> async_sessionmaker[AsyncSession]:
    from dumpster_directory.core.database.session import async_session_maker

    return async_session_maker


async def run_import(
    path: Path, *, clear: bool = False, limit: Optional[int] = None, session_factory: Optional[SessionFactory] = None
) -> int:
    records = read_records(path)
    print(f"Read {len(records)} records from {path}")
    async with (session_factory or _default_session_factory())() as session:
        report = await import_businesses(
            build_repositories(session),
            records,
            clear=clear,
            limit=limit,
            default_category=settings.marketplace.default_category,
        )
    if report.cleared:
        print(f"Cleared {report.cleared} existing businesses")
    print(report.message)
    for message in report.error_messages:
        print(f"  - {message}")
    return 0


async def run_export(path: Path, *, session_factory: Optional[SessionFactory] = None) -> int:
    async with (session_factory or _default_session_factory())() as session:
        with path.open("w", encoding="utf-8", newline="") as stream:
            count = await export_businesses(build_repositories(session), stream)
    print(f"Exported {count} businesses to {path}")
    return 0


async def run_dedupe(*, execute: bool = False, session_factory: Optional[SessionFactory] = None) -> int:
    async with (session_factory or _default_session_factory())() as session:
        report = await consolidate_duplicates(build_repositories(session), execute=execute)

    print(f"Found {len(report.groups)} groups of duplicates ({report.duplicates} duplicate listings)")
    for group in report.groups:
        print(f"  {group.name} in {group.city}, {group.state} {group.zipcode or ''}".rstrip())
        print(f"    keep {group.keeper_id}, remove {len(group.duplicate_ids)}: {', '.join(group.duplicate_ids)}")
    if not execute:
        print("Dry run; nothing was changed. Run with --execute to merge.")
        return 0
    print(f"Deleted {report.deleted} duplicates, moved {report.campaigns_moved} claim campaigns")
    print(f"Created {report.campaigns_created} claim campaigns for businesses without one")
    return 0


async def run_create_admin(
    email: str, password: str, *, name: Optional[str] = None, session_factory: Optional[SessionFactory] = None
) -> int:
    # Deferred: passlib is only needed here and in the server
    from dumpster_directory.server.services.auth import hash_password

    email = email.lower()
    async with (session_factory or _default_session_factory())() as session:
        repos = build_repositories(session)
        user = await repos.users.get_by_email(email)
        if user is None:
            user = User(email=email, name=name, email_verified=True, password_hash="")
            print(f"Creating administrator {email}")
        else:
            print(f"Promoting existing account {email} to administrator")
        user.password_hash = hash_password(password)
        user.role = UserRole.admin.value
        if name:
            user.name = name
        repos.users.add(user)
        await session.commit()
    logger.info(f"Administrator account ready: {email}")
    return 0


def run_serve(host: Optional[str], port: Optional[int], reload: bool) -> int:
    import uvicorn

    uvicorn.run(
        "dumpster_directory.server.main:app",
        host=host or settings.server_host,
        port=port or settings.server_port,
        reload=reload,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dumpster-directory",
        description="Dumpster Directory batch tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dumpster-directory import businesses.csv            # Add new listings, skip duplicates
  dumpster-directory import data.json --clear         # Replace every listing
  dumpster-directory export businesses.csv            # Write all listings as CSV
  dumpster-directory dedupe                           # Show duplicate groups
  dumpster-directory dedupe --execute                 # Merge duplicate groups
  dumpster-directory create-admin admin@example.com s3cretpass
  dumpster-directory serve --port 8000
        """,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    import_cmd = commands.add_parser("import", help="Import businesses from a CSV or JSON file")
    import_cmd.add_argument("file", type=Path, help="Path to a .csv or .json file")
    import_cmd.add_argument("--clear", action="store_true", help="Delete every existing business first")
    import_cmd.add_argument("--limit", type=int, default=None, help="Import at most this many records")

    export_cmd = commands.add_parser("export", help="Export every business to CSV")
    export_cmd.add_argument("file", type=Path, help="Output CSV path")

    dedupe_cmd = commands.add_parser("dedupe", help="Find and merge duplicate listings")
    dedupe_cmd.add_argument("--execute", action="store_true", help="Apply the merge (default is a dry run)")

    admin_cmd = commands.add_parser("create-admin", help="Create or promote an administrator account")
    admin_cmd.add_argument("email")
    admin_cmd.add_argument("password")
    admin_cmd.add_argument("--name", default=None)

    serve_cmd = commands.add_parser("serve", help="Run the API server with uvicorn")
    serve_cmd.add_argument("--host", default=None)
    serve_cmd.add_argument("--port", type=int, default=None)
    serve_cmd.add_argument("--reload", action="store_true", help="Reload on code changes")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.command == "serve":
        return run_serve(args.host, args.port, args.reload)

    if args.command == "import":
        if not args.file.exists():
            print(f"File not found: {args.file}")
            return 1
        return asyncio.run(run_import(args.file, clear=args.clear, limit=args.limit))
    if args.command == "export":
        return asyncio.run(run_export(args.file))
    if args.command == "dedupe":
        return asyncio.run(run_dedupe(execute=args.execute))
    if args.command == "create-admin":
        if len(args.password) < 8:
            print("Password must be at least 8 characters")
            return 1
        return asyncio.run(run_create_admin(args.email, args.password, name=args.name))
    return 1


if __name__ == "__main__":
    sys.exit(main())
