from typing import Any

from pydantic import BaseModel


class FetchResult(BaseModel):
    url: str
    status: int
    success: bool
    # Normalized proxy envelope: {"contents": "<raw body>"} or empty
    payload: dict[str, Any] = {}
    error: str | None = None
    proxy: str | None = None
    duration_ms: int = 0

    @property
    def contents(self) -> str | None:
        value = self.payload.get("contents")
        return value if isinstance(value, str) else None

    @property
    def has_payload(self) -> bool:
        return bool(self.contents)
