import json

import asyncpg

from serprank.models.stored_result import StoredResult

_COLUMNS = (
    "id, url, owner_id, status, success, payload, error, proxy, "
    "duration_ms, search_volume, created_at"
)


def _parse_row(row: asyncpg.Record) -> StoredResult:
    data = dict(row)
    # asyncpg returns JSONB as a string unless a codec is registered
    if isinstance(data.get("payload"), str):
        data["payload"] = json.loads(data["payload"])
    return StoredResult(**data)


async def insert_result(pool: asyncpg.Pool, result: StoredResult) -> StoredResult:
    row = await pool.fetchrow(
        f"""
        INSERT INTO api_results ({_COLUMNS})
        VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7, $8, $9, $10, $11)
        RETURNING {_COLUMNS}
        """,
        result.id,
        result.url,
        result.owner_id,
        result.status,
        result.success,
        json.dumps(result.payload),
        result.error,
        result.proxy,
        result.duration_ms,
        result.search_volume,
        result.created_at,
    )
    assert row is not None
    return _parse_row(row)


async def get_latest_result(pool: asyncpg.Pool, url: str, owner_id: str) -> StoredResult | None:
    row = await pool.fetchrow(
        f"""
        SELECT {_COLUMNS} FROM api_results
        WHERE url = $1 AND owner_id = $2
        ORDER BY created_at DESC
        LIMIT 1
        """,
        url,
        owner_id,
    )
    if row is None:
        return None
    return _parse_row(row)


async def get_latest_results(
    pool: asyncpg.Pool,
    urls: list[str],
    owner_id: str,
) -> list[StoredResult]:
    """Most recent result per URL for one chunk of URLs."""
    if not urls:
        return []
    rows = await pool.fetch(
        f"""
        SELECT DISTINCT ON (url) {_COLUMNS} FROM api_results
        WHERE owner_id = $1 AND url = ANY($2::text[])
        ORDER BY url, created_at DESC
        """,
        owner_id,
        urls,
    )
    return [_parse_row(row) for row in rows]


async def update_search_volume(
    pool: asyncpg.Pool,
    url: str,
    owner_id: str,
    search_volume: int,
) -> None:
    """Set the search volume on the current (newest) record for (url, owner_id)."""
    await pool.execute(
        """
        UPDATE api_results SET search_volume = $3
        WHERE id = (
            SELECT id FROM api_results
            WHERE url = $1 AND owner_id = $2
            ORDER BY created_at DESC
            LIMIT 1
        )
        """,
        url,
        owner_id,
        search_volume,
    )
