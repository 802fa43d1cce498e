#!/usr/bin/env python3
"""Benchmark domain aggregation over synthetic search-result pages."""

import asyncio
import json
import random
import sys
import time
from dataclasses import dataclass

from serprank.models.stored_result import StoredResult
from serprank.services.domain_aggregator import aggregate, aggregate_async

DEFAULT_RESULT_COUNTS = [100, 1_000, 10_000]
DOMAIN_POOL = [f"site{i}.example" for i in range(500)]


@dataclass
class BenchmarkResult:
    results: int
    domains: int
    sync_ms: int
    threaded_ms: int


def synthetic_results(count: int, seed: int = 7) -> list[StoredResult]:
    rng = random.Random(seed)
    results = []
    for i in range(count):
        organic = [
            {
                "position": position,
                "url": f"https://www.{rng.choice(DOMAIN_POOL)}/page/{rng.randint(1, 50)}",
                "title": f"Result {position}",
            }
            for position in range(1, 11)
        ]
        contents = json.dumps(
            {
                "search_parameters": {"query": f"query {i}"},
                "result": {"organic_results": organic},
            }
        )
        results.append(
            StoredResult(
                url=f"https://serp.test/search?q=query+{i}",
                status=200,
                success=True,
                payload={"contents": contents},
                owner_id="benchmark",
                search_volume=rng.randint(0, 50_000),
            )
        )
    return results


async def run_benchmark(count: int) -> BenchmarkResult:
    results = synthetic_results(count)

    start = time.time()
    stats = aggregate(results)
    sync_ms = int((time.time() - start) * 1000)

    start = time.time()
    await aggregate_async(results)
    threaded_ms = int((time.time() - start) * 1000)

    return BenchmarkResult(
        results=count,
        domains=len(stats),
        sync_ms=sync_ms,
        threaded_ms=threaded_ms,
    )


def print_results(results: list[BenchmarkResult]) -> None:
    print("\n" + "=" * 60)
    print("AGGREGATION BENCHMARK")
    print("=" * 60)
    print(f"  {'results':>10} {'domains':>8} {'sync':>10} {'threaded':>10}")
    for r in results:
        print(f"  {r.results:>10} {r.domains:>8} {r.sync_ms:>8}ms {r.threaded_ms:>8}ms")


async def main() -> None:
    counts = [int(arg) for arg in sys.argv[1:]] or DEFAULT_RESULT_COUNTS
    results = [await run_benchmark(count) for count in counts]
    print_results(results)


if __name__ == "__main__":
    asyncio.run(main())
