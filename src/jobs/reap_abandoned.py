"""
On-demand abandoned signup sweep.

Usage:
    python -m src.jobs.reap_abandoned [--retention-minutes N]

Deletes incomplete registrations older than the retention window and
prints the number of accounts removed. Exit status is 1 on failure.
"""

import argparse
import logging
import sys

from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresAccountRepository
from src.config.settings import get_settings
from src.domain.reaper import AbandonmentReaper

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete abandoned incomplete signups.")
    parser.add_argument(
        "--retention-minutes",
        type=int,
        default=None,
        help="Override the configured retention window",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    args = parse_args(argv)
    settings = get_settings()
    retention_minutes = (
        args.retention_minutes if args.retention_minutes is not None else settings.retention_minutes
    )

    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=2, open=True)
    try:
        reaper = AbandonmentReaper(
            repository=PostgresAccountRepository(pool),
            retention_seconds=retention_minutes * 60,
        )
        removed = reaper.sweep()
    except Exception:
        logger.exception("Abandoned signup sweep failed")
        return 1
    finally:
        pool.close()

    print(f"cleanup finished: {removed} account(s) removed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
