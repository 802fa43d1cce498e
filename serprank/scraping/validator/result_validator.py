from serprank.models.fetch import FetchResult
from serprank.scraping.parser.serp_parser import parse_payload
from serprank.utils.errors import PayloadParseError


def is_valid_stored_result(result: FetchResult) -> bool:
    """True when a result succeeded and carries at least one parsable organic result."""
    if not result.success:
        return False
    try:
        payload = parse_payload(result)
    except PayloadParseError:
        return False
    return len(payload.organic_results) > 0
