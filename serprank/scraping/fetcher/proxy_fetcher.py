import asyncio
import time

import httpx
import structlog

from serprank.config.constants import DEFAULT_USER_AGENT
from serprank.config.settings import get_settings
from serprank.models.fetch import FetchResult
from serprank.scraping.fetcher.proxies import (
    ProxyBackend,
    build_backends,
    normalize_body,
    relayed_status,
)
from serprank.services.rate_limiter import AdaptiveScheduler
from serprank.services.response_cache import ResponseCache
from serprank.utils.errors import FetchError
from serprank.utils.retry import retry_async

log = structlog.get_logger()


class ProxyFetcher:
    """Fetches search-result URLs through an ordered list of proxy backends.

    Each round walks the proxy list until one answers with an OK status.
    When a whole round fails the fetcher backs off and starts over, up to
    ``max_rounds`` rounds. Failures are returned as ``FetchResult`` objects
    with ``success=False``; ``fetch`` never raises for network problems.
    """

    DEFAULT_HEADERS = {
        "User-Agent": DEFAULT_USER_AGENT,
        "Accept": "application/json,text/plain;q=0.9,*/*;q=0.8",
    }

    def __init__(
        self,
        cache: ResponseCache,
        *,
        scheduler: AdaptiveScheduler | None = None,
        backends: list[ProxyBackend] | None = None,
        client: httpx.AsyncClient | None = None,
        timeout_s: float | None = None,
        max_rounds: int | None = None,
        base_delay_s: float | None = None,
    ) -> None:
        settings = get_settings()
        self.cache = cache
        self.scheduler = scheduler
        self.backends = backends if backends is not None else build_backends()
        self.timeout_s = timeout_s if timeout_s is not None else settings.proxy_timeout_s
        self.max_rounds = max_rounds if max_rounds is not None else settings.proxy_max_rounds
        self.base_delay_s = (
            base_delay_s if base_delay_s is not None else settings.proxy_retry_base_delay_s
        )
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.timeout_s,
            headers=self.DEFAULT_HEADERS,
        )

    async def fetch(self, url: str) -> FetchResult:
        """Fetch one URL, serving cache hits without touching the scheduler."""
        cached = self.cache.get(url)
        if cached is not None:
            log.debug("proxy_cache_hit", url=url)
            return cached

        if self.scheduler is None:
            return await self._fetch_uncached(url)
        return await self.scheduler.schedule(
            lambda: self._fetch_uncached(url),
            is_success=lambda result: result.success,
        )

    async def fetch_batch(self, urls: list[str]) -> list[FetchResult]:
        """Fetch several URLs concurrently; results are in input order."""
        return list(await asyncio.gather(*(self.fetch(url) for url in urls)))

    async def close(self) -> None:
        await self._client.aclose()

    async def _fetch_uncached(self, url: str) -> FetchResult:
        start = time.time()
        try:
            result = await retry_async(
                self._fetch_round,
                url,
                max_retries=max(self.max_rounds - 1, 0),
                base_delay=self.base_delay_s,
                retry_on=(FetchError,),
            )
        except FetchError as e:
            log.warning("proxy_fetch_failed", url=url, status=e.status_code, error=str(e))
            return FetchResult(
                url=url,
                status=e.status_code,
                success=False,
                error=str(e),
                duration_ms=int((time.time() - start) * 1000),
            )

        result.duration_ms = int((time.time() - start) * 1000)
        self.cache.put(url, result)
        return result

    async def _fetch_round(self, url: str) -> FetchResult:
        """Try every proxy once, in order. Raises FetchError if none succeed."""
        last_error: FetchError | None = None
        last_status = 0

        for backend in self.backends:
            try:
                return await self._fetch_via(backend, url)
            except FetchError as e:
                last_error = e
                last_status = e.status_code or last_status
                log.info(
                    "proxy_attempt_failed",
                    url=url,
                    proxy=backend.name,
                    status=e.status_code,
                    error=str(e),
                )

        message = str(last_error) if last_error else "No proxy backends configured"
        raise FetchError(message, status_code=last_status, url=url)

    async def _fetch_via(self, backend: ProxyBackend, url: str) -> FetchResult:
        try:
            response = await self._client.get(backend.url_for(url), timeout=self.timeout_s)
        except httpx.TimeoutException as e:
            raise FetchError(
                f"Timed out after {self.timeout_s}s via {backend.name}",
                proxy=backend.name,
                url=url,
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(
                f"{type(e).__name__}: {e}", proxy=backend.name, url=url
            ) from e

        if not response.is_success:
            raise FetchError(
                f"HTTP {response.status_code} from {backend.name}",
                status_code=response.status_code,
                proxy=backend.name,
                url=url,
            )

        upstream_status = relayed_status(response.text)
        if upstream_status is not None and not 200 <= upstream_status < 300:
            raise FetchError(
                f"Upstream HTTP {upstream_status} relayed by {backend.name}",
                status_code=upstream_status,
                proxy=backend.name,
                url=url,
            )

        return FetchResult(
            url=url,
            status=upstream_status or response.status_code,
            success=True,
            payload=normalize_body(response.text),
            proxy=backend.name,
        )
