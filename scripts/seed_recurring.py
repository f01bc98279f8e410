#!/usr/bin/env python3
"""
Seed demo recurring bills, subscriptions and paychecks for one user.

Usage:
    # Local development (uses DATABASE_URL from settings / .env)
    python scripts/seed_recurring.py --user-id 3f0c...-...

    # More history
    python scripts/seed_recurring.py --user-id 3f0c...-... --months 12

Running it twice does not duplicate anything.
"""

import argparse
import asyncio
import sys
from uuid import UUID

from billwatch.config import settings
from billwatch.database import async_session_maker, engine, init_db
from billwatch.logger import configure_logging, get_logger
from billwatch.repositories import SQLAlchemyStores
from billwatch.services import seed_demo_recurring

logger = get_logger(__name__)


async def seed(user_id: UUID, months: int) -> None:
    await init_db()
    async with async_session_maker() as session:
        stores = SQLAlchemyStores(session)
        try:
            summary = await seed_demo_recurring(stores, user_id, months=months)
            await stores.commit()
        except Exception:
            await stores.rollback()
            raise
    await engine.dispose()

    db_host = settings.database_url.split("@")[1] if "@" in settings.database_url else "local"
    print(f"Seeded {db_host} for user {user_id}")
    print(f"  series created:    {summary.series_created}")
    print(f"  bills created:     {summary.bills_created}")
    print(f"  paychecks created: {summary.paychecks_created}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo recurring data")
    parser.add_argument("--user-id", required=True, type=UUID, help="User UUID to seed for")
    parser.add_argument("--months", type=int, default=7, help="Months of paid history (default: 7)")
    args = parser.parse_args()

    if args.months < 1:
        print("--months must be at least 1", file=sys.stderr)
        return 1

    configure_logging()
    asyncio.run(seed(args.user_id, args.months))
    return 0


if __name__ == "__main__":
    sys.exit(main())
