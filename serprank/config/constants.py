# Click-through share for integer result positions 1-10
POSITION_TRAFFIC_SHARE: dict[int, float] = {
    1: 0.30,
    2: 0.13,
    3: 0.09,
    4: 0.06,
    5: 0.04,
    6: 0.03,
    7: 0.023,
    8: 0.019,
    9: 0.019,
    10: 0.017,
}

# (last position of band, share) for positions 11-30
POSITION_TRAFFIC_BANDS: list[tuple[int, float]] = [
    (15, 0.013),
    (20, 0.01),
    (30, 0.002),
]

MAX_RANKED_POSITION = 30

PROXY_DIRECT = "direct"
PROXY_ALLORIGINS = "allorigins"
PROXY_RELAY = "relay"

ALLORIGINS_URL = "https://api.allorigins.win/get?url={url}"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
