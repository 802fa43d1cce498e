"""Parse uploaded URL lists: one URL per line, optionally ``URL<TAB>volume``."""

import re

import structlog
from pydantic import ValidationError

from serprank.models.url_entry import UrlEntry
from serprank.utils.errors import InputValidationError, LineError
from serprank.utils.url import is_http_url

log = structlog.get_logger()

_VOLUME_RE = re.compile(r"^\d+$")


def parse_line(line: str, line_number: int) -> UrlEntry:
    """Parse one non-blank line. Raises InputValidationError with a single LineError."""
    raw = line
    parts = [part.strip() for part in line.strip().split("\t")]
    url = parts[0]

    def fail(message: str) -> InputValidationError:
        return InputValidationError([LineError(line_number, raw, message)])

    if len(parts) > 2:
        raise fail("expected 'URL<TAB>SearchVolume'")
    if not is_http_url(url):
        raise fail(f"invalid URL: {url!r}")

    search_volume = 0
    if len(parts) == 2:
        if not _VOLUME_RE.match(parts[1]):
            raise fail(f"search volume is not a non-negative integer: {parts[1]!r}")
        search_volume = int(parts[1])

    try:
        return UrlEntry(url=url, search_volume=search_volume)
    except ValidationError as e:
        raise fail(str(e)) from e


def parse_url_list(text: str) -> list[UrlEntry]:
    """Validate a whole file. Either every line is valid or nothing is returned.

    Blank lines are skipped. All malformed lines are collected and raised
    together as one InputValidationError.
    """
    entries: list[UrlEntry] = []
    errors: list[LineError] = []
    seen: set[str] = set()

    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            entry = parse_line(line, line_number)
        except InputValidationError as e:
            errors.extend(e.errors)
            continue

        if entry.url in seen:
            errors.append(LineError(line_number, line, f"duplicate URL: {entry.url}"))
            continue
        seen.add(entry.url)
        entries.append(entry)

    if errors:
        log.warning("url_list_rejected", invalid_lines=len(errors), valid_lines=len(entries))
        raise InputValidationError(errors)

    log.info("url_list_parsed", entries=len(entries))
    return entries
