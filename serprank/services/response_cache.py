import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from serprank.config.settings import get_settings
from serprank.models.fetch import FetchResult

log = structlog.get_logger()


@dataclass
class _Entry:
    result: FetchResult
    inserted_at: float


class ResponseCache:
    """Process-wide TTL cache of successful proxy fetches, keyed by URL."""

    def __init__(
        self,
        ttl_s: float | None = None,
        soft_capacity: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self._ttl = ttl_s if ttl_s is not None else settings.cache_ttl_s
        self._soft_capacity = (
            soft_capacity if soft_capacity is not None else settings.cache_soft_capacity
        )
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, url: str) -> FetchResult | None:
        entry = self._entries.get(url)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[url]
            return None
        return entry.result

    def put(self, url: str, result: FetchResult) -> None:
        """Store a result. Failed fetches are never cached."""
        if not result.success:
            return
        if len(self._entries) >= self._soft_capacity:
            self.sweep()
        self._entries[url] = _Entry(result=result, inserted_at=self._clock())

    def sweep(self) -> int:
        """Drop every expired entry and return how many were removed."""
        expired = [url for url, entry in self._entries.items() if self._expired(entry)]
        for url in expired:
            del self._entries[url]
        if expired:
            log.debug("response_cache_swept", removed=len(expired), remaining=len(self._entries))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def _expired(self, entry: _Entry) -> bool:
        return self._clock() - entry.inserted_at >= self._ttl
