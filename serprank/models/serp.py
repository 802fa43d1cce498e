from pydantic import BaseModel, ConfigDict, Field


class OrganicResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    position: float = Field(ge=1)
    url: str
    title: str = ""
    description: str = ""


class SearchParameters(BaseModel):
    model_config = ConfigDict(extra="allow")

    query: str = ""


class SearchResultPayload(BaseModel):
    """The search-result document embedded in a fetch payload's ``contents``."""

    search_parameters: SearchParameters = SearchParameters()
    organic_results: list[OrganicResult] = []

    @property
    def query(self) -> str:
        return self.search_parameters.query
