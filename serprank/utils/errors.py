from dataclasses import dataclass


class SerpRankError(Exception):
    """Base exception for ingest and ranking errors."""

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


@dataclass(frozen=True)
class LineError:
    line_number: int
    line: str
    message: str

    def __str__(self) -> str:
        return f"line {self.line_number}: {self.message}"


class InputValidationError(SerpRankError):
    """Raised when an uploaded URL list contains malformed lines."""

    def __init__(self, errors: list[LineError]):
        self.errors = errors
        summary = "; ".join(str(e) for e in errors[:5])
        if len(errors) > 5:
            summary += f"; and {len(errors) - 5} more"
        super().__init__(f"{len(errors)} invalid line(s): {summary}")


class FetchError(SerpRankError):
    """Raised when a single proxy attempt fails."""

    def __init__(self, message: str, status_code: int = 0, proxy: str = "", **kwargs: str):
        self.status_code = status_code
        self.proxy = proxy
        super().__init__(message, **kwargs)


class PersistenceError(SerpRankError):
    """Raised when the result store cannot be read or written."""


class PayloadParseError(SerpRankError):
    """Raised when an embedded search-result payload is missing or malformed."""


class RunCancelledError(SerpRankError):
    """Raised internally when an ingest run observes its cancellation token."""
