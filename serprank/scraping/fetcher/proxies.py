"""Proxy backends: URL rewriting plus normalization of each proxy's envelope."""

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from serprank.config.constants import (
    ALLORIGINS_URL,
    PROXY_ALLORIGINS,
    PROXY_DIRECT,
    PROXY_RELAY,
)
from serprank.config.settings import get_settings


@dataclass(frozen=True)
class ProxyBackend:
    name: str
    rewrite: Callable[[str], str]

    def url_for(self, target_url: str) -> str:
        return self.rewrite(target_url)


def _direct(url: str) -> str:
    return url


def _allorigins(url: str) -> str:
    return ALLORIGINS_URL.format(url=quote(url, safe=""))


def _relay(template: str) -> Callable[[str], str]:
    def rewrite(url: str) -> str:
        return template.format(url=quote(url, safe=""))

    return rewrite


def build_backends(names: list[str] | None = None) -> list[ProxyBackend]:
    """Ordered proxy list from configured backend names. Unknown names raise ValueError."""
    settings = get_settings()
    names = names if names is not None else settings.proxy_backends
    factories: dict[str, Callable[[], ProxyBackend]] = {
        PROXY_DIRECT: lambda: ProxyBackend(PROXY_DIRECT, _direct),
        PROXY_ALLORIGINS: lambda: ProxyBackend(PROXY_ALLORIGINS, _allorigins),
        PROXY_RELAY: lambda: ProxyBackend(PROXY_RELAY, _relay(settings.relay_proxy_url)),
    }

    backends: list[ProxyBackend] = []
    for name in names:
        factory = factories.get(name)
        if factory is None:
            raise ValueError(f"Unknown proxy backend: {name}")
        backends.append(factory())
    return backends


def normalize_body(body: str) -> dict[str, Any]:
    """Reduce any proxy response body to ``{"contents": <str>}``.

    Envelopes that already carry a string ``contents`` field pass through;
    other JSON bodies are re-serialized; non-JSON bodies are kept verbatim.
    """
    try:
        data = json.loads(body)
    except ValueError:
        return {"contents": body}

    if isinstance(data, dict) and isinstance(data.get("contents"), str):
        return {"contents": data["contents"]}
    return {"contents": json.dumps(data)}


def relayed_status(body: str) -> int | None:
    """Upstream HTTP status reported inside a proxy envelope, if any.

    Wrapping proxies answer 200 themselves and carry the target's status as
    ``{"status": {"http_code": 404}}``.
    """
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict) or not isinstance(data.get("status"), dict):
        return None
    code = data["status"].get("http_code")
    if isinstance(code, bool) or not isinstance(code, int):
        return None
    return code
