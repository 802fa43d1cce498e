from pydantic import BaseModel


class RankingEntry(BaseModel):
    query: str
    position: float
    search_volume: int
    estimated_traffic: int


class UrlRanking(BaseModel):
    url: str
    rankings: list[RankingEntry]

    @property
    def best_position(self) -> float:
        return min(r.position for r in self.rankings)


class DomainStats(BaseModel):
    domain: str
    average_position: float
    occurrences: int
    total_estimated_traffic: int
    queries: set[str]
    url_rankings: list[UrlRanking]
