"""Run SQL migrations from db/migrations/ in sorted order."""

import asyncio
import glob
import os

import asyncpg
import structlog

from serprank.config.settings import get_settings

log = structlog.get_logger()


async def run_migrations() -> None:
    pool = await asyncpg.create_pool(get_settings().database_url)
    assert pool is not None

    await pool.execute("""
        CREATE TABLE IF NOT EXISTS _migrations (
            name TEXT PRIMARY KEY,
            applied_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    migration_dir = os.path.join(os.path.dirname(__file__), "migrations")
    for path in sorted(glob.glob(f"{migration_dir}/*.sql")):
        name = os.path.basename(path)
        exists = await pool.fetchval("SELECT 1 FROM _migrations WHERE name = $1", name)
        if not exists:
            with open(path) as f:
                sql = f.read()
            await pool.execute(sql)
            await pool.execute("INSERT INTO _migrations (name) VALUES ($1)", name)
            log.info("migration_applied", name=name)
        else:
            log.info("migration_skipped", name=name)

    await pool.close()


if __name__ == "__main__":
    from serprank.utils.logger import setup_logging

    setup_logging()
    asyncio.run(run_migrations())
