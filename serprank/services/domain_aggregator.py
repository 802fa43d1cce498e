"""Per-domain ranking statistics over stored search-result pages."""

import asyncio
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field

import structlog

from serprank.config.settings import get_settings
from serprank.models.domain_stats import DomainStats, RankingEntry, UrlRanking
from serprank.models.stored_result import StoredResult
from serprank.scraping.parser.serp_parser import parse_payload
from serprank.services.traffic_share import estimated_traffic
from serprank.utils.errors import PayloadParseError
from serprank.utils.url import extract_domain

log = structlog.get_logger()


@dataclass
class _DomainAccumulator:
    position_sum: float = 0.0
    count: int = 0
    queries: set[str] = field(default_factory=set)
    # url -> rankings, in discovery order
    url_rankings: dict[str, list[RankingEntry]] = field(default_factory=dict)

    def add(self, url: str, entry: RankingEntry) -> None:
        self.position_sum += entry.position
        self.count += 1
        if entry.query:
            self.queries.add(entry.query)
        self.url_rankings.setdefault(url, []).append(entry)

    def finalize(self, domain: str) -> DomainStats:
        url_rankings = [
            UrlRanking(url=url, rankings=sorted(rankings, key=lambda r: r.position))
            for url, rankings in self.url_rankings.items()
        ]
        url_rankings.sort(key=lambda u: u.best_position)
        return DomainStats(
            domain=domain,
            average_position=round(self.position_sum / self.count, 2),
            occurrences=self.count,
            total_estimated_traffic=sum(
                r.estimated_traffic for u in url_rankings for r in u.rankings
            ),
            queries=set(self.queries),
            url_rankings=url_rankings,
        )


def _accumulate(
    results: Iterable[StoredResult],
    domains: dict[str, _DomainAccumulator],
) -> int:
    """Fold results into ``domains``; returns how many results were skipped."""
    skipped = 0
    for result in results:
        try:
            payload = parse_payload(result)
        except PayloadParseError as e:
            skipped += 1
            log.debug("aggregate_result_skipped", url=result.url, error=str(e))
            continue

        query = payload.query
        for item in payload.organic_results:
            domain = extract_domain(item.url)
            if not domain:
                continue
            entry = RankingEntry(
                query=query,
                position=item.position,
                search_volume=result.search_volume,
                estimated_traffic=estimated_traffic(item.position, result.search_volume),
            )
            domains.setdefault(domain, _DomainAccumulator()).add(item.url, entry)
    return skipped


def _finalize(domains: dict[str, _DomainAccumulator]) -> list[DomainStats]:
    stats = [acc.finalize(domain) for domain, acc in domains.items()]
    # sort() is stable, so ties keep domain discovery order
    stats.sort(key=lambda s: s.total_estimated_traffic, reverse=True)
    return stats


def iter_domain_stats(results: Iterable[StoredResult]) -> Iterator[DomainStats]:
    """Lazily yield domain statistics, highest estimated traffic first.

    Nothing is computed until the iterator is first advanced, and calling
    this again on the same input starts over with identical output.
    """
    domains: dict[str, _DomainAccumulator] = {}
    skipped = _accumulate(results, domains)
    if skipped:
        log.info("aggregate_results_skipped", skipped=skipped)
    yield from _finalize(domains)


def aggregate(results: Iterable[StoredResult]) -> list[DomainStats]:
    return list(iter_domain_stats(results))


async def aggregate_async(
    results: list[StoredResult],
    on_progress: Callable[[int], None] | None = None,
    chunk_size: int | None = None,
) -> list[DomainStats]:
    """Aggregate in a worker thread, reporting percent complete after each chunk.

    Produces exactly what ``aggregate`` returns for the same input.
    """
    chunk_size = chunk_size or get_settings().aggregation_chunk_size
    domains: dict[str, _DomainAccumulator] = {}
    total = len(results)
    skipped = 0

    for start in range(0, total, chunk_size):
        chunk = results[start : start + chunk_size]
        skipped += await asyncio.to_thread(_accumulate, chunk, domains)
        if on_progress is not None:
            on_progress(round(min(start + chunk_size, total) / total * 100))

    if on_progress is not None and total == 0:
        on_progress(100)
    if skipped:
        log.info("aggregate_results_skipped", skipped=skipped)
    return await asyncio.to_thread(_finalize, domains)
