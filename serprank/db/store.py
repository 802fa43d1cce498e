"""Result store contract and the reconciliation rule shared by every backend."""

from abc import ABC, abstractmethod
from enum import StrEnum

import asyncpg
import structlog

from serprank.config.settings import get_settings
from serprank.db.pool import get_pool
from serprank.db.queries import results as result_queries
from serprank.models.stored_result import StoredResult
from serprank.scraping.validator.result_validator import is_valid_stored_result
from serprank.utils.errors import PersistenceError

log = structlog.get_logger()


class ReconcileAction(StrEnum):
    INSERT = "insert"
    UPDATE_VOLUME = "update_volume"
    KEEP = "keep"


def reconcile(existing: StoredResult | None, incoming: StoredResult) -> ReconcileAction:
    """Decide how ``incoming`` is written given the current record for its (url, owner).

    Failed attempts and fresh payloads append a new record so history is kept.
    A current record that failed or whose payload is unusable is superseded by
    any new attempt, including a failed one. An empty incoming result never
    overwrites a usable record; at most it refreshes that record's search volume.
    """
    if existing is None or incoming.has_payload or not is_valid_stored_result(existing):
        return ReconcileAction.INSERT
    if existing.search_volume != incoming.search_volume:
        return ReconcileAction.UPDATE_VOLUME
    return ReconcileAction.KEEP


class ResultStore(ABC):
    """Persistence for StoredResult records, newest-first per (url, owner_id)."""

    @abstractmethod
    async def find_latest(self, url: str, owner_id: str) -> StoredResult | None: ...

    @abstractmethod
    async def find_latest_chunk(self, urls: list[str], owner_id: str) -> list[StoredResult]: ...

    @abstractmethod
    async def insert(self, result: StoredResult) -> StoredResult: ...

    @abstractmethod
    async def update_volume_only(self, url: str, owner_id: str, new_volume: int) -> None: ...

    async def find_latest_batch(
        self,
        urls: list[str],
        owner_id: str,
        chunk_size: int | None = None,
    ) -> list[StoredResult]:
        """Current record for each URL that has one, looked up in bounded chunks."""
        chunk_size = chunk_size or get_settings().lookup_chunk_size
        found: list[StoredResult] = []
        for i in range(0, len(urls), chunk_size):
            found.extend(await self.find_latest_chunk(urls[i : i + chunk_size], owner_id))
        return found

    async def upsert(self, incoming: StoredResult) -> StoredResult:
        existing = await self.find_latest(incoming.url, incoming.owner_id)
        action = reconcile(existing, incoming)
        log.debug("result_reconciled", url=incoming.url, action=action.value)

        if action == ReconcileAction.INSERT or existing is None:
            return await self.insert(incoming)
        if action == ReconcileAction.UPDATE_VOLUME:
            await self.update_volume_only(incoming.url, incoming.owner_id, incoming.search_volume)
            return existing.model_copy(update={"search_volume": incoming.search_volume})
        return existing


class PgResultStore(ResultStore):
    """asyncpg-backed store over the ``api_results`` table."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def find_latest(self, url: str, owner_id: str) -> StoredResult | None:
        try:
            return await result_queries.get_latest_result(self.pool, url, owner_id)
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"lookup failed: {e}", url=url) from e

    async def find_latest_chunk(self, urls: list[str], owner_id: str) -> list[StoredResult]:
        try:
            return await result_queries.get_latest_results(self.pool, urls, owner_id)
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"batch lookup failed: {e}") from e

    async def insert(self, result: StoredResult) -> StoredResult:
        try:
            return await result_queries.insert_result(self.pool, result)
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"insert failed: {e}", url=result.url) from e

    async def update_volume_only(self, url: str, owner_id: str, new_volume: int) -> None:
        try:
            await result_queries.update_search_volume(self.pool, url, owner_id, new_volume)
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"volume update failed: {e}", url=url) from e


async def create_pg_store() -> PgResultStore:
    """Postgres store on the shared process pool."""
    return PgResultStore(await get_pool())
