"""Parse the search-result document embedded in a stored fetch payload."""

import json
from typing import Any

from pydantic import ValidationError

from serprank.models.fetch import FetchResult
from serprank.models.serp import OrganicResult, SearchParameters, SearchResultPayload
from serprank.utils.errors import PayloadParseError


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _organic_items(data: dict[str, Any]) -> list[Any] | None:
    # Provider shape nests results under "result"; flat shapes carry them at the top
    nested = data.get("result")
    if isinstance(nested, dict):
        items = _first(nested, "organic_results", "organicResults")
        if items is not None:
            return items
    return _first(data, "organic_results", "organicResults")


def parse_document(data: Any) -> SearchResultPayload:
    if not isinstance(data, dict):
        raise PayloadParseError("payload is not a JSON object")

    items = _organic_items(data)
    if not isinstance(items, list):
        raise PayloadParseError("payload has no organic results")

    params = _first(data, "search_parameters", "searchParameters") or {}
    if not isinstance(params, dict):
        raise PayloadParseError("search parameters are not an object")

    organic: list[OrganicResult] = []
    for item in items:
        if not isinstance(item, dict) or not item.get("url"):
            continue
        try:
            organic.append(OrganicResult.model_validate(item))
        except ValidationError as e:
            raise PayloadParseError(f"invalid organic result: {e.errors()[0]['msg']}") from e

    try:
        search_parameters = SearchParameters.model_validate(params)
    except ValidationError as e:
        raise PayloadParseError(f"invalid search parameters: {e.errors()[0]['msg']}") from e

    return SearchResultPayload(search_parameters=search_parameters, organic_results=organic)


def parse_contents(contents: str | None) -> SearchResultPayload:
    if not contents:
        raise PayloadParseError("payload contents are empty")
    try:
        data = json.loads(contents)
    except ValueError as e:
        raise PayloadParseError(f"payload contents are not JSON: {e}") from e
    return parse_document(data)


def parse_payload(result: FetchResult) -> SearchResultPayload:
    """Parse ``result.payload["contents"]``. Raises PayloadParseError on any shape problem."""
    try:
        return parse_contents(result.contents)
    except PayloadParseError as e:
        e.url = result.url
        raise
