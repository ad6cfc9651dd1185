"""Bring the session store schema up to date.

Usage:
    python db_migrate.py           # apply pending versions
    python db_migrate.py --dry     # list pending versions only
    python db_migrate.py --prod    # read sessionbot/.env.production
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from dotenv import load_dotenv  # noqa: E402

from sessionstore.database import DatabaseManager, PoolConfig  # noqa: E402
from sessionstore.migrations import MigrationRunner  # noqa: E402


def load_database_url(prod: bool) -> str:
    env_file = BACKEND_DIR / "sessionbot" / (".env.production" if prod else ".env")
    if env_file.exists():
        load_dotenv(dotenv_path=env_file, encoding="utf-8", override=True)
    url = os.getenv("DATABASE_URL")
    if not url:
        print(f"[ERROR] DATABASE_URL not set ({env_file.name} or environment)")
        sys.exit(1)
    return url


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--dry", action="store_true", help="Only list pending versions")
    parser.add_argument("--prod", action="store_true", help="Use .env.production")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    db = DatabaseManager(load_database_url(args.prod), PoolConfig(max_size=2))
    await db.connect()
    try:
        runner = MigrationRunner(db.pool)
        if args.dry:
            pending = await runner.pending()
            print(f"Pending: {len(pending)}")
            for version in pending:
                print(f"  -> {version}")
        else:
            applied = await runner.run_pending()
            print(f"Applied {len(applied)} migration(s).")
    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
