import json

import pytest

from serprank.config.settings import get_settings
from serprank.models.stored_result import StoredResult


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def serp_contents():
    """Provider-shaped search document, serialized the way proxies hand it back."""

    def build(query: str, organic: list[dict]) -> str:
        return json.dumps(
            {
                "search_parameters": {
                    "query": query,
                    "type": "search",
                    "google_domain": "google.com",
                },
                "result": {"organic_results": organic},
            }
        )

    return build


@pytest.fixture
def make_stored(serp_contents):
    def build(
        url: str,
        *,
        query: str = "",
        organic: list[dict] | None = None,
        search_volume: int = 0,
        success: bool = True,
        owner_id: str = "owner-1",
        contents: str | None = None,
    ) -> StoredResult:
        if contents is None and organic is not None:
            contents = serp_contents(query, organic)
        return StoredResult(
            url=url,
            status=200 if success else 0,
            success=success,
            payload={"contents": contents} if contents is not None else {},
            owner_id=owner_id,
            search_volume=search_volume,
        )

    return build


@pytest.fixture
def sample_organic() -> list[dict]:
    return [
        {"position": 1, "url": "https://www.example.com/a", "title": "A", "description": "a"},
        {"position": 2, "url": "https://acme.io/pricing", "title": "Acme", "description": "b"},
        {"position": 3, "url": "https://example.com/b", "title": "B", "description": "c"},
    ]
