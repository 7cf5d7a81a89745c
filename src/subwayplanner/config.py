"""Configuration: transit constants, feed endpoints and environment settings."""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from .exceptions import UnknownLine

# MTA GTFS-Realtime feed URLs (subway), keyed by feed group
MTA_FEEDS = {
    "ace": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-ace",
    "bdfm": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-bdfm",
    "g": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-g",
    "jz": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-jz",
    "nqrw": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-nqrw",
    "l": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-l",
    "123456s": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs",
    "7": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-7",
    "si": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-si",
}

LINE_TO_FEED_GROUP = {
    "A": "ace", "C": "ace", "E": "ace",
    "B": "bdfm", "D": "bdfm", "F": "bdfm", "M": "bdfm",
    "G": "g",
    "J": "jz", "Z": "jz",
    "N": "nqrw", "Q": "nqrw", "R": "nqrw", "W": "nqrw",
    "L": "l",
    "1": "123456s", "2": "123456s", "3": "123456s",
    "4": "123456s", "5": "123456s", "6": "123456s", "S": "123456s",
    "7": "7",
    "SIR": "si",
}

# Minutes between trains
DEFAULT_TRAIN_FREQUENCIES = {
    "A": 6, "C": 10, "E": 6,
    "B": 10, "D": 8, "F": 6, "M": 10,
    "G": 8,
    "J": 8, "Z": 10,
    "N": 8, "Q": 6, "R": 8, "W": 10,
    "L": 4,
    "1": 5, "2": 6, "3": 8, "4": 5, "5": 6, "6": 4, "S": 5,
    "7": 4,
}

# Typical end-to-end commute ride per line, minutes
DEFAULT_ROUTE_TRANSIT_TIMES = {
    "A": 15, "C": 20, "E": 18,
    "F": 18, "M": 20, "G": 20,
    "R": 22, "N": 16, "Q": 15, "W": 22,
    "4": 14, "5": 14, "6": 20,
}


def feed_group_for_line(line: str) -> str:
    """
    Map a subway line to the feed group that carries it.

    Raises:
        UnknownLine: If no feed carries the line.
    """
    group = LINE_TO_FEED_GROUP.get(line.upper())
    if group is None:
        raise UnknownLine(f"Unknown subway line: {line}")
    return group


def feed_groups_for_lines(lines) -> Dict[str, str]:
    """Return {feed_group: url} for every known line in lines; unknown lines are skipped."""
    groups: Dict[str, str] = {}
    for line in lines:
        group = LINE_TO_FEED_GROUP.get(line.upper())
        if group:
            groups[group] = MTA_FEEDS[group]
    return groups


@dataclass
class TransitConfig:
    """
    Per-line transit constants.

    Lookups by line id never fail: lines missing from the tables use the
    documented defaults (8 minute frequency, 18 minute transit time).
    """
    train_frequencies: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_TRAIN_FREQUENCIES))
    default_frequency: int = 8
    route_transit_times: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_ROUTE_TRANSIT_TIMES))
    default_transit_time: int = 18
    walking_miles_per_hour: float = 3.0
    min_wait_minutes: int = 1  # Floor on the whole estimated wait
    min_additional_wait_minutes: int = 0  # Jitter bounds added to half the headway
    max_additional_wait_minutes: int = 3
    minimum_realistic_transit_time: int = 5
    final_walking_minutes: int = 8

    def get_train_frequency(self, line: str) -> int:
        return self.train_frequencies.get(line) or self.default_frequency

    def get_route_transit_time(self, line: str) -> int:
        return self.route_transit_times.get(line) or self.default_transit_time

    def get_transit_multiplier(self, line: str) -> float:
        return self.get_route_transit_time(line) / self.default_transit_time

    @property
    def walking_minutes_per_mile(self) -> float:
        return 60.0 / self.walking_miles_per_hour


@dataclass
class FeedSettings:
    """
    HTTP settings for feed polling.

    Env vars:
      - MTA_API_KEY: sent as x-api-key when set
      - MTA_DISABLE_AUTH: "true" to never send the key
      - MTA_FEED_TIMEOUT_S: per-request timeout (default 10)
      - MTA_FEED_CACHE_TTL_S: in-process snapshot cache TTL (default 30)
    """
    api_key: Optional[str] = None
    disable_auth: Optional[bool] = None
    timeout_s: float = 10.0
    cache_ttl_s: float = 30.0
    retry_delay_s: float = 1.0
    max_retries: int = 1
    request_deadline_s: float = 15.0
    user_agent: str = "SubwayPlanner/0.1.0"

    def __post_init__(self) -> None:
        if self.api_key is None:
            self.api_key = os.getenv("MTA_API_KEY")
        if self.disable_auth is None:
            self.disable_auth = os.getenv("MTA_DISABLE_AUTH", "").lower() == "true"
        if os.getenv("MTA_FEED_TIMEOUT_S"):
            self.timeout_s = float(os.environ["MTA_FEED_TIMEOUT_S"])
        if os.getenv("MTA_FEED_CACHE_TTL_S"):
            self.cache_ttl_s = float(os.environ["MTA_FEED_CACHE_TTL_S"])

    def headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/x-protobuf",
            "User-Agent": self.user_agent,
        }
        if self.api_key and not self.disable_auth:
            headers["x-api-key"] = self.api_key
        return headers
