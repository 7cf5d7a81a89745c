"""Data models for the subway route planner."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Direction(Enum):
    """Direction of travel, as encoded in directional stop ids."""
    NORTH = "northbound"
    SOUTH = "southbound"

    @property
    def suffix(self) -> str:
        """Stop id suffix used by the feeds ("N" or "S")."""
        return "N" if self is Direction.NORTH else "S"

    @classmethod
    def parse(cls, value) -> "Direction":
        """
        Parse a direction from user or config input.

        Accepts a Direction, "northbound"/"southbound", "north"/"south" or "N"/"S".

        Raises:
            ValueError: If the value names no direction.
        """
        if isinstance(value, Direction):
            return value
        text = str(value).strip().lower()
        if text in ("n", "north", "northbound", "uptown"):
            return cls.NORTH
        if text in ("s", "south", "southbound", "downtown"):
            return cls.SOUTH
        raise ValueError(f"Unknown direction '{value}'")


class StepKind(Enum):
    BOARD = "board"
    TRANSFER = "transfer"
    ARRIVE = "arrive"


REALTIME = "realtime"
ESTIMATE = "estimate"


@dataclass(frozen=True)
class Station:
    """Represents a subway station (or station complex)."""
    station_id: str
    name: str
    lines: Tuple[str, ...]  # Route IDs served at this station
    latitude: float
    longitude: float
    stop_ids: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)  # line -> base stop id

    def stop_id_for_line(self, line: str) -> str:
        """Base feed stop id for a line at this station."""
        return self.stop_ids.get(line, self.station_id)

    def serves(self, line: str) -> bool:
        return line in self.lines


@dataclass
class StopTimeUpdate:
    """One stop's arrival/departure prediction within a trip."""
    stop_id: str
    stop_sequence: int
    arrival_time: Optional[int] = None  # Unix timestamp
    departure_time: Optional[int] = None  # Unix timestamp
    delay: Optional[int] = None  # Seconds

    @property
    def event_time(self) -> Optional[int]:
        """Departure time when known, otherwise arrival time."""
        if self.departure_time is not None:
            return self.departure_time
        return self.arrival_time


@dataclass
class TripUpdate:
    """A vehicle's planned stop sequence with live timing."""
    trip_id: str
    route_id: str
    stop_time_updates: List[StopTimeUpdate] = field(default_factory=list)
    direction_id: Optional[int] = None


@dataclass
class ServiceAlert:
    """Represents a service alert for a route."""
    route_id: str
    header: str
    description: str = ""

    @property
    def message(self) -> str:
        return f"{self.header} {self.description}".strip()


@dataclass(frozen=True)
class TransferHub:
    """A station where two lines can be interchanged."""
    name: str
    latitude: float
    longitude: float
    lines: Tuple[str, ...]
    transfer_seconds: Dict[Tuple[str, str], int] = field(default_factory=dict, hash=False, compare=False)
    priority: int = 3  # 0-10, higher = more important
    is_user_priority: bool = False
    stop_ids: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)

    def serves(self, line: str) -> bool:
        return line in self.lines

    def stop_id_for_line(self, line: str) -> Optional[str]:
        return self.stop_ids.get(line)


@dataclass(frozen=True)
class HubConnection:
    """A hub able to connect two lines, with the in-station crossing time."""
    hub: TransferHub
    from_line: str
    to_line: str
    transfer_seconds: int

    @property
    def transfer_minutes(self) -> int:
        return self.transfer_seconds // 60

    @property
    def is_user_priority(self) -> bool:
        return self.hub.is_user_priority


@dataclass
class RouteStep:
    """One step of an itinerary. Steps are ordered chronologically."""
    kind: StepKind
    station: str
    line: str
    instructions: str
    wait_minutes: Optional[int] = None
    transfer_minutes: Optional[int] = None
    next_departure: Optional[int] = None  # Unix timestamp, only ever from a live feed
    direction: Optional[Direction] = None
    stop_id: Optional[str] = None  # Base feed stop id for (station, line)
    travel_minutes: Optional[int] = None  # Riding time until the next step
    data_source: str = ESTIMATE


@dataclass
class SubwayRoute:
    """A ranked itinerary option."""
    steps: List[RouteStep]
    total_minutes: int
    transfer_count: int
    confidence: int  # 0-95
    lines: List[str]
    is_real_time_data: bool = False
    estimated_arrival_time: Optional[float] = None  # Unix timestamp

    @property
    def is_direct(self) -> bool:
        return self.transfer_count == 0

    @property
    def confidence_level(self) -> str:
        if self.confidence >= 80:
            return "high"
        if self.confidence >= 60:
            return "medium"
        return "low"

    def sort_key(self) -> Tuple[int, int]:
        return (self.total_minutes, self.transfer_count)


@dataclass
class Departure:
    """An upcoming train departure at a station."""
    line: str
    departure_time: float  # Unix timestamp as reported (or synthesized)
    compensated_time: float  # departure_time minus drift compensation
    relative_time: str  # "Now", "1", or whole minutes
    feed_source: str  # Feed group tag, or "estimate"
    stop_id: Optional[str] = None
    trip_id: Optional[str] = None
    is_estimate: bool = False


@dataclass
class FeedSnapshot:
    """One decoded feed message and when it was fetched."""
    url: str
    feed_group: str
    message: object  # gtfs_realtime_pb2.FeedMessage
    fetched_at: float  # Unix timestamp


@dataclass
class FeedStatus:
    """Outcome of fetching one feed during a synthesis pass."""
    feed_group: str
    url: str
    ok: bool
    error: Optional[str] = None
    elapsed: Optional[float] = None  # Seconds


@dataclass
class RouteRequest:
    from_station: str
    to_station: str
    departure_time: Optional[float] = None  # Unix timestamp
    max_transfers: Optional[int] = None
    fallback_to_estimated: bool = True


@dataclass
class StationBoard:
    """Complete departure data for a station platform."""
    station: Station
    direction: Optional[Direction]
    departures: Dict[str, List[Departure]]  # line -> upcoming departures
    alerts: List[ServiceAlert]
    estimated_lines: List[str]  # Lines filled with synthetic departures
    last_updated: datetime


@dataclass
class PlanResult:
    """Complete result of one planning pass."""
    routes: List[SubwayRoute]
    feed_status: Dict[str, FeedStatus]
    alerts: List[ServiceAlert]
    used_estimates: bool
    generated_at: datetime

    @property
    def working_feeds(self) -> List[str]:
        return sorted(group for group, status in self.feed_status.items() if status.ok)

    @property
    def failed_feeds(self) -> List[str]:
        return sorted(group for group, status in self.feed_status.items() if not status.ok)
