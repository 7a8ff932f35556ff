from __future__ import annotations

import argparse
import json
from pathlib import Path

from alembic import command
from alembic.config import Config


def get_alembic_config() -> Config:
    here = Path(__file__).resolve().parent
    return Config(str(here / "alembic.ini"))


def cmd_upgrade() -> None:
    command.upgrade(get_alembic_config(), "head")


def cmd_downgrade(revision: str) -> None:
    command.downgrade(get_alembic_config(), revision)


def cmd_repair(kind: str) -> None:
    # Migrations only need alembic; the app is imported for repairs alone.
    from app.core.repairs.services import fix_corrupted_subscription_ids, fix_stale_statuses
    from app.database.session import SessionLocal, is_configured

    if not is_configured():
        raise SystemExit("DATABASE_URL is not set")

    repair = fix_corrupted_subscription_ids if kind == "ids" else fix_stale_statuses
    db = SessionLocal()
    try:
        report = repair(db)
    finally:
        db.close()
    print(
        json.dumps(
            {
                "processed": report.processed,
                "changed": report.changed,
                "errors": report.errors,
                "details": report.details,
            },
            indent=2,
            default=str,
        )
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Migrations and maintenance for the mood board backend"
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("upgrade", help="Apply all migrations (upgrade head)")

    downgrade_parser = subparsers.add_parser(
        "downgrade", help="Downgrade to a specific revision"
    )
    downgrade_parser.add_argument("revision", help="Revision id or -1, -2, ...")

    revision_parser = subparsers.add_parser(
        "revision", help="Create new alembic revision"
    )
    revision_parser.add_argument(
        "-m",
        "--message",
        required=True,
        help="Revision message",
    )
    revision_parser.add_argument(
        "--autogenerate",
        action="store_true",
        help="Populate revision with schema diff from models",
    )

    repair_parser = subparsers.add_parser(
        "repair", help="Run a subscription repair once, in-process"
    )
    repair_parser.add_argument(
        "kind",
        choices=["ids", "statuses"],
        help="ids: serialized subscription ids; statuses: stale inactive rows",
    )

    args = parser.parse_args()

    if args.command == "upgrade" or args.command is None:
        cmd_upgrade()
    elif args.command == "downgrade":
        cmd_downgrade(args.revision)
    elif args.command == "revision":
        command.revision(
            get_alembic_config(),
            message=args.message,
            autogenerate=args.autogenerate,
        )
    elif args.command == "repair":
        cmd_repair(args.kind)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
