from pydantic import BaseModel, ConfigDict, Field

from serprank.utils.url import extract_domain, query_param


class UrlEntry(BaseModel):
    """One input line: a search URL and the monthly search volume of its query."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1)
    search_volume: int = Field(default=0, ge=0)

    @property
    def query(self) -> str:
        return query_param(self.url, "q")

    @property
    def domain(self) -> str:
        return extract_domain(self.url)

    @property
    def language(self) -> str:
        return query_param(self.url, "hl", "en")
