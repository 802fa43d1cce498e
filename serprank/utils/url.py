from urllib.parse import parse_qs, urlparse


def extract_domain(url: str) -> str:
    """Lowercased hostname with a leading ``www.`` removed; empty for invalid URLs."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return ""
    if not hostname:
        return ""
    return hostname.lower().removeprefix("www.")


def is_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def query_param(url: str, name: str, default: str = "") -> str:
    """First value of query parameter ``name``, or ``default``."""
    try:
        values = parse_qs(urlparse(url).query).get(name)
    except ValueError:
        return default
    return values[0] if values else default
