"""Create all tables for the accounts service.

Usage:
    python -m scripts.init_db

Requires: DATABASE_URL (Postgres) and SECRET_KEY, from the environment
or .env. Existing tables are left untouched.
"""

from __future__ import annotations

import asyncio
import logging

from app.infrastructure.persistence import database
from app.infrastructure.persistence import models  # noqa: F401  (registers tables on Base)
from app.shared.telemetry import setup_logging

logger = logging.getLogger(__name__)


async def main() -> None:
    setup_logging()
    database.get_session_factory()
    async with database.engine.begin() as conn:
        await conn.run_sync(database.Base.metadata.create_all)
    logger.info("Created tables: %s", ", ".join(sorted(database.Base.metadata.tables)))
    await database.dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
