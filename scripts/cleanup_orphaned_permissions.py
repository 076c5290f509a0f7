"""
Run the orphaned permission sweep outside the API, e.g. from cron.

Usage:
    uv run python -m scripts.cleanup_orphaned_permissions [--dry-run] [--include-inactive-modules]

Exits with status 1 if any (company, module) group failed.
"""
import argparse
import asyncio
import sys

from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.modules.reconciliation import cleanup_orphaned_permissions
from app.utils import get_logger


log = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete employee module permissions their company no longer has")
    parser.add_argument("--dry-run", action="store_true", help="report without deleting")
    parser.add_argument(
        "--include-inactive-modules",
        action="store_true",
        default=None,
        help="also delete permissions on deactivated modules",
    )
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)
    await init_db()

    async with AsyncSessionLocal() as db:
        report = await cleanup_orphaned_permissions(
            db,
            dry_run=args.dry_run,
            include_inactive_modules=args.include_inactive_modules,
        )

    for entry in report.companies:
        log.info(
            "  %s / %s: %d (%s)",
            entry.company_name or entry.company_id or "<no company>",
            entry.module_name or entry.module_id,
            entry.deleted_permissions,
            entry.reason,
        )
    for failure in report.failures:
        log.error("  failed %s / %s: %s", failure.company_id, failure.module_id, failure.error)

    return 1 if report.failures else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
