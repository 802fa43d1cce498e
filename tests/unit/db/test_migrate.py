from unittest.mock import AsyncMock, MagicMock, patch

from serprank.db import migrate


def _pool(applied: bool) -> MagicMock:
    pool = MagicMock()
    pool.execute = AsyncMock()
    pool.fetchval = AsyncMock(return_value=1 if applied else None)
    pool.close = AsyncMock()
    return pool


async def test_applies_pending_migrations():
    pool = _pool(applied=False)
    with patch.object(migrate.asyncpg, "create_pool", new=AsyncMock(return_value=pool)):
        await migrate.run_migrations()

    statements = [c.args[0] for c in pool.execute.await_args_list]
    assert "CREATE TABLE IF NOT EXISTS _migrations" in statements[0]
    assert any("CREATE TABLE IF NOT EXISTS api_results" in s for s in statements)
    assert pool.execute.await_args_list[-1].args == (
        "INSERT INTO _migrations (name) VALUES ($1)",
        "001_api_results.sql",
    )
    pool.close.assert_awaited_once()


async def test_skips_applied_migrations():
    pool = _pool(applied=True)
    with patch.object(migrate.asyncpg, "create_pool", new=AsyncMock(return_value=pool)):
        await migrate.run_migrations()

    # only the bookkeeping table is touched
    assert pool.execute.await_count == 1
    pool.fetchval.assert_awaited_once_with(
        "SELECT 1 FROM _migrations WHERE name = $1", "001_api_results.sql"
    )
    pool.close.assert_awaited_once()
