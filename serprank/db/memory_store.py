from collections import defaultdict

from serprank.db.store import ResultStore
from serprank.models.stored_result import StoredResult


class InMemoryResultStore(ResultStore):
    """Process-local store with the same semantics as the Postgres store."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], list[StoredResult]] = defaultdict(list)

    def history(self, url: str, owner_id: str) -> list[StoredResult]:
        """All records for (url, owner_id), newest first."""
        records = self._records.get((url, owner_id), [])
        # Ties on created_at resolve to the later insert
        return list(reversed(sorted(records, key=lambda r: r.created_at)))

    async def find_latest(self, url: str, owner_id: str) -> StoredResult | None:
        history = self.history(url, owner_id)
        return history[0] if history else None

    async def find_latest_chunk(self, urls: list[str], owner_id: str) -> list[StoredResult]:
        found = []
        for url in urls:
            latest = await self.find_latest(url, owner_id)
            if latest is not None:
                found.append(latest)
        return found

    async def insert(self, result: StoredResult) -> StoredResult:
        self._records[(result.url, result.owner_id)].append(result)
        return result

    async def update_volume_only(self, url: str, owner_id: str, new_volume: int) -> None:
        history = self.history(url, owner_id)
        if not history:
            return
        current = history[0]
        records = self._records[(url, owner_id)]
        index = next(i for i, r in enumerate(records) if r.id == current.id)
        records[index] = current.model_copy(update={"search_volume": new_volume})
