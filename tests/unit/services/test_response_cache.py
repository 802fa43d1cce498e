from serprank.models.fetch import FetchResult
from serprank.services.response_cache import ResponseCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _ok(url: str) -> FetchResult:
    return FetchResult(url=url, status=200, success=True, payload={"contents": "{}"})


def test_get_returns_cached_result():
    cache = ResponseCache(ttl_s=3600, clock=FakeClock())
    cache.put("https://a.com", _ok("https://a.com"))
    assert cache.get("https://a.com").status == 200


def test_entry_expires_after_ttl():
    clock = FakeClock()
    cache = ResponseCache(ttl_s=3600, clock=clock)
    cache.put("https://a.com", _ok("https://a.com"))

    clock.now += 3599
    assert cache.get("https://a.com") is not None

    clock.now += 1
    assert cache.get("https://a.com") is None
    assert len(cache) == 0


def test_failed_results_are_not_cached():
    cache = ResponseCache(ttl_s=3600, clock=FakeClock())
    cache.put("https://a.com", FetchResult(url="https://a.com", status=502, success=False))
    assert cache.get("https://a.com") is None
    assert len(cache) == 0


def test_capacity_triggers_sweep_of_expired_entries():
    clock = FakeClock()
    cache = ResponseCache(ttl_s=10, soft_capacity=3, clock=clock)
    for i in range(3):
        cache.put(f"https://old{i}.com", _ok(f"https://old{i}.com"))

    clock.now += 11
    cache.put("https://new.com", _ok("https://new.com"))

    assert len(cache) == 1
    assert cache.get("https://new.com") is not None


def test_sweep_keeps_live_entries():
    clock = FakeClock()
    cache = ResponseCache(ttl_s=10, soft_capacity=2, clock=clock)
    cache.put("https://a.com", _ok("https://a.com"))
    cache.put("https://b.com", _ok("https://b.com"))
    cache.put("https://c.com", _ok("https://c.com"))

    assert len(cache) == 3
