from enum import StrEnum

from pydantic import BaseModel

from serprank.models.stored_result import StoredResult


class RunState(StrEnum):
    IDLE = "idle"
    LOADING_EXISTING = "loading_existing"
    PROCESSING = "processing"


class IngestProgress(BaseModel):
    phase: RunState
    completed: int
    total: int

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 100
        return round(self.completed / self.total * 100)


class IngestEvent(BaseModel):
    """One item of a run's output stream: a current result or a per-URL write failure."""

    url: str
    result: StoredResult | None = None
    fetched: bool = False
    error: str | None = None
