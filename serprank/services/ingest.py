"""Ingest runs: decide what needs fetching, fetch it, and persist every outcome."""

from collections.abc import AsyncIterator, Callable

import structlog

from serprank.config.settings import get_settings
from serprank.db.store import ResultStore
from serprank.models.fetch import FetchResult
from serprank.models.ingest import IngestEvent, IngestProgress, RunState
from serprank.models.stored_result import StoredResult
from serprank.models.url_entry import UrlEntry
from serprank.scraping.fetcher.proxy_fetcher import ProxyFetcher
from serprank.scraping.validator.result_validator import is_valid_stored_result
from serprank.utils.errors import PersistenceError, RunCancelledError

log = structlog.get_logger()

ProgressCallback = Callable[[IngestProgress], None]


class CancellationToken:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RunCancelledError("ingest run cancelled")


class IngestPipeline:
    """Runs ingests for many owners; at most one run is in flight per owner.

    Starting a new run, or calling ``reset_state``, cancels the owner's
    current run. A cancelled run stops dispatching batches and stops
    writing to the store; fetches already in flight are left to finish and
    their results are dropped.
    """

    def __init__(
        self,
        store: ResultStore,
        fetcher: ProxyFetcher,
        *,
        batch_size: int | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.batch_size = batch_size or get_settings().ingest_batch_size
        self._tokens: dict[str, CancellationToken] = {}
        self._states: dict[str, RunState] = {}

    def state(self, owner_id: str) -> RunState:
        return self._states.get(owner_id, RunState.IDLE)

    def reset_state(self, owner_id: str) -> None:
        """Cancel the owner's in-flight run, if any."""
        token = self._tokens.pop(owner_id, None)
        if token is not None:
            token.cancel()
            log.info("ingest_run_cancelled", owner_id=owner_id)
        self._states[owner_id] = RunState.IDLE

    async def run(
        self,
        entries: list[UrlEntry],
        owner_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> AsyncIterator[IngestEvent]:
        """Yield the current result for every entry, fetching only what needs it.

        Already-valid stored results are yielded first (with refreshed search
        volume), then fetched results in batch submission order.
        """
        self.reset_state(owner_id)
        token = CancellationToken()
        self._tokens[owner_id] = token
        run_log = log.bind(owner_id=owner_id, urls=len(entries))

        def report(phase: RunState, completed: int, total: int) -> None:
            if on_progress is not None and not token.cancelled:
                on_progress(IngestProgress(phase=phase, completed=completed, total=total))

        try:
            self._states[owner_id] = RunState.LOADING_EXISTING
            to_fetch: list[UrlEntry] = []
            async for event in self._load_existing(entries, owner_id, token, to_fetch, report):
                yield event
            run_log.info(
                "ingest_existing_loaded",
                reused=len(entries) - len(to_fetch),
                to_fetch=len(to_fetch),
            )

            self._states[owner_id] = RunState.PROCESSING
            async for event in self._process(to_fetch, owner_id, token, report):
                yield event
            run_log.info("ingest_run_complete", fetched=len(to_fetch))
        except RunCancelledError:
            run_log.info("ingest_run_stopped")
        finally:
            if self._tokens.get(owner_id) is token:
                del self._tokens[owner_id]
                self._states[owner_id] = RunState.IDLE

    async def run_all(
        self,
        entries: list[UrlEntry],
        owner_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> list[StoredResult]:
        """Drive ``run`` to completion and return the accumulated results."""
        results: list[StoredResult] = []
        async for event in self.run(entries, owner_id, on_progress):
            if event.result is not None:
                results.append(event.result)
        return results

    async def retry(self, entry: UrlEntry, owner_id: str) -> IngestEvent:
        """Fetch and persist a single URL, regardless of what is stored for it."""
        result = await self._fetch_one(entry.url)
        return await self._save(entry, result, owner_id)

    async def _load_existing(
        self,
        entries: list[UrlEntry],
        owner_id: str,
        token: CancellationToken,
        to_fetch: list[UrlEntry],
        report: Callable[[RunState, int, int], None],
    ) -> AsyncIterator[IngestEvent]:
        try:
            found = await self.store.find_latest_batch([e.url for e in entries], owner_id)
        except PersistenceError as e:
            # Unknown state is treated as "nothing stored" so nothing is silently skipped
            log.warning("ingest_lookup_failed", owner_id=owner_id, error=str(e))
            found = []
        existing = {r.url: r for r in found}

        for i, entry in enumerate(entries, start=1):
            token.raise_if_cancelled()
            current = existing.get(entry.url)

            if current is None or not is_valid_stored_result(current):
                to_fetch.append(entry)
            else:
                error = None
                if current.search_volume != entry.search_volume:
                    try:
                        await self.store.update_volume_only(
                            entry.url, owner_id, entry.search_volume
                        )
                    except PersistenceError as e:
                        log.error("ingest_volume_update_failed", url=entry.url, error=str(e))
                        error = str(e)
                    current = current.model_copy(update={"search_volume": entry.search_volume})
                yield IngestEvent(url=entry.url, result=current, error=error)

            report(RunState.LOADING_EXISTING, i, len(entries))

    async def _process(
        self,
        to_fetch: list[UrlEntry],
        owner_id: str,
        token: CancellationToken,
        report: Callable[[RunState, int, int], None],
    ) -> AsyncIterator[IngestEvent]:
        completed = 0
        total = len(to_fetch)

        for start in range(0, total, self.batch_size):
            token.raise_if_cancelled()
            batch = to_fetch[start : start + self.batch_size]

            try:
                results = await self.fetcher.fetch_batch([e.url for e in batch])
            except Exception as e:
                log.warning(
                    "ingest_batch_failed",
                    owner_id=owner_id,
                    batch_start=start,
                    error=str(e),
                )
                results = None

            if results is None:
                for entry in batch:
                    result = await self._fetch_one(entry.url)
                    token.raise_if_cancelled()
                    yield await self._save(entry, result, owner_id)
            else:
                token.raise_if_cancelled()
                for entry, result in zip(batch, results, strict=True):
                    token.raise_if_cancelled()
                    yield await self._save(entry, result, owner_id)

            completed += len(batch)
            log.info("ingest_batch_saved", owner_id=owner_id, completed=completed, total=total)
            report(RunState.PROCESSING, completed, total)

    async def _fetch_one(self, url: str) -> FetchResult:
        try:
            return await self.fetcher.fetch(url)
        except Exception as e:
            log.warning("ingest_fetch_failed", url=url, error=str(e))
            return FetchResult(url=url, status=0, success=False, error=str(e))

    async def _save(self, entry: UrlEntry, result: FetchResult, owner_id: str) -> IngestEvent:
        stored = StoredResult.from_fetch(
            result, owner_id=owner_id, search_volume=entry.search_volume
        )
        try:
            saved = await self.store.upsert(stored)
        except PersistenceError as e:
            log.error("ingest_save_failed", url=entry.url, owner_id=owner_id, error=str(e))
            return IngestEvent(url=entry.url, result=stored, fetched=True, error=str(e))

        # A failed fetch can leave an older usable record current; keep the failure visible
        error = None
        if not result.success:
            error = result.error or f"fetch failed with status {result.status}"
        return IngestEvent(url=entry.url, result=saved, fetched=True, error=error)
