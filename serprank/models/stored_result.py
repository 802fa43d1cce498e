from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import Field

from serprank.models.fetch import FetchResult


class StoredResult(FetchResult):
    """A persisted fetch attempt. The newest record per (url, owner_id) is current."""

    id: UUID = Field(default_factory=uuid4)
    owner_id: str
    search_volume: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_fetch(cls, result: FetchResult, *, owner_id: str, search_volume: int) -> "StoredResult":
        return cls(
            **result.model_dump(),
            owner_id=owner_id,
            search_volume=search_volume,
        )
