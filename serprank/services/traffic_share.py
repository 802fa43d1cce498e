"""Click-through share model for organic search positions."""

import math

from serprank.config.constants import (
    MAX_RANKED_POSITION,
    POSITION_TRAFFIC_BANDS,
    POSITION_TRAFFIC_SHARE,
)


def _integer_share(position: int) -> float:
    if position in POSITION_TRAFFIC_SHARE:
        return POSITION_TRAFFIC_SHARE[position]
    for last_position, share in POSITION_TRAFFIC_BANDS:
        if 10 < position <= last_position:
            return share
    return 0.0


def share_for_position(position: float) -> float:
    """Estimated share of searches that click the result at ``position``.

    Fractional positions (blended results) interpolate linearly between the
    surrounding integer positions. Anything past position 30 gets no traffic.
    """
    if position > MAX_RANKED_POSITION or position < 0:
        return 0.0

    lower = math.floor(position)
    upper = math.ceil(position)
    lower_share = _integer_share(lower)
    if lower == upper:
        return lower_share

    fraction = position - lower
    return lower_share + fraction * (_integer_share(upper) - lower_share)


def estimated_traffic(position: float, search_volume: int) -> int:
    return math.floor(search_volume * share_for_position(position))
