import json

import httpx

from serprank.models.stored_result import StoredResult
from serprank.scraping.fetcher.proxies import ProxyBackend
from serprank.scraping.fetcher.proxy_fetcher import ProxyFetcher
from serprank.services.domain_aggregator import aggregate, aggregate_async, iter_domain_stats
from serprank.services.response_cache import ResponseCache


async def test_fetched_result_round_trips_into_domain_stats():
    body = {"organicResults": [{"position": 1, "url": "https://a.example.com/x"}]}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"contents": json.dumps(body)})

    fetcher = ProxyFetcher(
        ResponseCache(),
        backends=[ProxyBackend("wrap", lambda url: f"https://wrap.test/?u={url}")],
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    fetched = await fetcher.fetch("https://serp.test/search?q=x")
    await fetcher.close()

    stored = StoredResult.from_fetch(fetched, owner_id="owner-1", search_volume=1000)
    stats = aggregate([stored])

    assert len(stats) == 1
    assert stats[0].domain == "a.example.com"
    assert stats[0].occurrences == 1
    assert stats[0].average_position == 1.00
    assert stats[0].total_estimated_traffic == 300


def test_groups_by_normalized_domain(make_stored, sample_organic):
    results = [make_stored("u1", query="shoes", organic=sample_organic, search_volume=1000)]
    stats = {s.domain: s for s in aggregate(results)}

    assert set(stats) == {"example.com", "acme.io"}
    example = stats["example.com"]
    assert example.occurrences == 2
    assert example.average_position == 2.0
    # 300 at position 1 plus 90 at position 3
    assert example.total_estimated_traffic == 390
    assert example.queries == {"shoes"}
    assert [u.url for u in example.url_rankings] == [
        "https://www.example.com/a",
        "https://example.com/b",
    ]


def test_sorted_by_traffic_desc_with_stable_ties(make_stored):
    organic = [
        {"position": 2, "url": "https://second.com/"},
        {"position": 1, "url": "https://first.com/"},
        {"position": 40, "url": "https://zero-a.com/"},
        {"position": 45, "url": "https://zero-b.com/"},
    ]
    stats = aggregate([make_stored("u", organic=organic, search_volume=100)])
    assert [s.domain for s in stats] == ["first.com", "second.com", "zero-a.com", "zero-b.com"]


def test_average_position_rounded(make_stored):
    results = [
        make_stored("u1", query="a", organic=[{"position": 1, "url": "https://d.com/1"}]),
        make_stored("u2", query="b", organic=[{"position": 2, "url": "https://d.com/2"}]),
        make_stored("u3", query="c", organic=[{"position": 2, "url": "https://d.com/3"}]),
    ]
    assert aggregate(results)[0].average_position == 1.67


def test_url_rankings_sorted_by_position(make_stored):
    results = [
        make_stored("u1", query="late", organic=[{"position": 9, "url": "https://d.com/x"}]),
        make_stored("u2", query="early", organic=[{"position": 2, "url": "https://d.com/x"}]),
        make_stored("u3", query="mid", organic=[{"position": 4, "url": "https://d.com/y"}]),
    ]
    stats = aggregate(results)[0]

    assert [u.url for u in stats.url_rankings] == ["https://d.com/x", "https://d.com/y"]
    assert [r.query for r in stats.url_rankings[0].rankings] == ["early", "late"]


def test_duplicate_url_query_pairs_each_count(make_stored):
    organic = [
        {"position": 3, "url": "https://d.com/x"},
        {"position": 3, "url": "https://d.com/x"},
    ]
    stats = aggregate([make_stored("u", query="q", organic=organic, search_volume=100)])[0]

    assert stats.occurrences == 2
    assert len(stats.url_rankings[0].rankings) == 2
    assert stats.total_estimated_traffic == 18


def test_occurrence_and_traffic_invariants(make_stored, sample_organic):
    results = [
        make_stored("u1", query="a", organic=sample_organic, search_volume=500),
        make_stored("u2", query="b", organic=sample_organic[::-1], search_volume=1200),
    ]
    for stats in aggregate(results):
        rankings = [r for u in stats.url_rankings for r in u.rankings]
        assert stats.occurrences == len(rankings)
        assert stats.total_estimated_traffic == sum(r.estimated_traffic for r in rankings)


def test_bad_records_are_skipped(make_stored, sample_organic):
    results = [
        make_stored("bad-json", contents="{oops"),
        make_stored("no-organic", contents=json.dumps({"search_parameters": {"query": "x"}})),
        make_stored("failed", success=False),
        make_stored("invalid-url", organic=[{"position": 1, "url": "not a url"}]),
        make_stored("good", query="shoes", organic=sample_organic, search_volume=10),
    ]
    stats = aggregate(results)
    assert {s.domain for s in stats} == {"example.com", "acme.io"}


def test_empty_input():
    assert aggregate([]) == []


def test_aggregate_is_idempotent(make_stored, sample_organic):
    results = [make_stored("u", query="shoes", organic=sample_organic, search_volume=800)]
    assert aggregate(results) == aggregate(results)


def test_iter_domain_stats_is_lazy(make_stored, sample_organic):
    consumed = []

    def source():
        for result in [make_stored("u", organic=sample_organic)]:
            consumed.append(result.url)
            yield result

    stats_iter = iter_domain_stats(source())
    assert consumed == []
    assert len(list(stats_iter)) == 2
    assert consumed == ["u"]


async def test_aggregate_async_matches_and_reports_progress(make_stored, sample_organic):
    results = [
        make_stored(f"u{i}", query=f"q{i}", organic=sample_organic, search_volume=i * 100)
        for i in range(5)
    ]
    progress: list[int] = []

    stats = await aggregate_async(results, on_progress=progress.append, chunk_size=2)

    assert stats == aggregate(results)
    assert progress == [40, 80, 100]


async def test_aggregate_async_empty_input_reports_done():
    progress: list[int] = []
    assert await aggregate_async([], on_progress=progress.append) == []
    assert progress == [100]
