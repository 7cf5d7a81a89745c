"""Projection of upcoming departures from decoded feeds."""

import logging
import math
import time
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .config import feed_group_for_line
from .exceptions import NoMatchingStop, SubwayPlannerError
from .models import Departure, Direction, FeedSnapshot, Station
from .stop_index import StopTimeIndex
from .stop_resolver import DirectionalStopResolver
from .tracing import Tracer

logger = logging.getLogger(__name__)

PROCESSING_DELAY_SECONDS = 30  # Average delay between feed generation and display
DATA_STALENESS_BUFFER_SECONDS = 15
MAX_DEPARTURES_PER_LINE = 5


def relative_label(seconds_away: float) -> str:
    """
    Human-relative label for a departure.

    Returns "Now" within 30 seconds, "1" within 90 seconds, otherwise the
    whole number of minutes (rounded down).
    """
    if seconds_away <= 30:
        return "Now"
    if seconds_away <= 90:
        return "1"
    return str(int(math.floor(seconds_away / 60)))


class DepartureProjector:
    """
    Turns matched stop-time updates into drift-compensated departures.

    A raw feed time is moved earlier by a processing delay, a staleness
    buffer, and the time elapsed since the snapshot was fetched. Only
    departures still in the future after compensation are returned.
    """

    def __init__(
        self,
        resolver: Optional[DirectionalStopResolver] = None,
        index: Optional[StopTimeIndex] = None,
        clock: Callable[[], float] = time.time,
        processing_delay: int = PROCESSING_DELAY_SECONDS,
        staleness_buffer: int = DATA_STALENESS_BUFFER_SECONDS,
        max_departures: int = MAX_DEPARTURES_PER_LINE,
        tracer: Optional[Tracer] = None,
    ):
        self.resolver = resolver or DirectionalStopResolver(tracer)
        self.index = index or StopTimeIndex()
        self.clock = clock
        self.processing_delay = processing_delay
        self.staleness_buffer = staleness_buffer
        self.max_departures = max_departures
        self.tracer = tracer or Tracer()

    def compensate(self, departure_time: float, fetched_at: Optional[float], now: float) -> float:
        """Apply drift compensation to a raw departure time."""
        compensated = departure_time - self.processing_delay - self.staleness_buffer
        if fetched_at is not None:
            compensated -= max(0.0, now - fetched_at)
        return compensated

    def project(
        self,
        station: Station,
        line: str,
        direction: Optional[Direction],
        feeds: Mapping[str, FeedSnapshot],
        now: Optional[float] = None,
    ) -> List[Departure]:
        """
        Upcoming departures of one line at a station.

        Args:
            station: Station to project for.
            line: Route id.
            direction: Platform direction; None accepts the bare station id.
            feeds: Decoded snapshots keyed by feed group.
            now: Current Unix time; the clock is used when omitted.

        Returns:
            Departures sorted by compensated time, at most max_departures.

        Raises:
            UnknownLine: If no feed carries the line.
            NoMatchingStop: If the line's feed has no stop for this station.
            SubwayPlannerError: If the line's feed is not among the snapshots.
        """
        return self.project_stop(station.stop_id_for_line(line), line, direction, feeds, now, station.name)

    def project_stop(
        self,
        base: str,
        line: str,
        direction: Optional[Direction],
        feeds: Mapping[str, FeedSnapshot],
        now: Optional[float] = None,
        label: Optional[str] = None,
    ) -> List[Departure]:
        """Same as project(), for a bare base stop id."""
        if now is None:
            now = self.clock()
        label = label or base

        feed_group = feed_group_for_line(line)
        snapshot = feeds.get(feed_group)
        if snapshot is None:
            raise SubwayPlannerError(f"No {feed_group} feed available for line {line}")

        trips = self.index.trip_updates(snapshot.message, [line], limit=None, drop_invalid=True)
        observed = {u.stop_id for trip in trips for u in trip.stop_time_updates}
        match = self.resolver.resolve(base, direction, observed)
        wanted = set(match.stop_ids)

        departures: List[Departure] = []
        for trip in trips:
            for update in trip.stop_time_updates:
                if update.stop_id not in wanted:
                    continue
                if not self.resolver.is_eligible(update, now):
                    continue
                raw = update.event_time
                compensated = self.compensate(raw, snapshot.fetched_at, now)
                if compensated <= now:
                    continue
                departures.append(Departure(
                    line=line,
                    departure_time=raw,
                    compensated_time=compensated,
                    relative_time=relative_label(compensated - now),
                    feed_source=feed_group,
                    stop_id=update.stop_id,
                    trip_id=trip.trip_id,
                ))

        departures.sort(key=lambda d: d.compensated_time)
        departures = departures[:self.max_departures]
        logger.debug(f"Found {len(departures)} upcoming {line} trains at {label} ({match.rule.name})")
        return departures

    def departures_for_station(
        self,
        station: Station,
        direction: Optional[Direction],
        feeds: Mapping[str, FeedSnapshot],
        now: Optional[float] = None,
    ) -> Tuple[Dict[str, List[Departure]], Dict[str, str]]:
        """
        Project every line at a station.

        A failure on one line does not stop the others.

        Returns:
            (departures by line for lines that projected,
             error message by line for lines that failed).
        """
        if now is None:
            now = self.clock()

        by_line: Dict[str, List[Departure]] = {}
        failures: Dict[str, str] = {}
        for line in station.lines:
            try:
                by_line[line] = self.project(station, line, direction, feeds, now)
            except NoMatchingStop as e:
                logger.warning(f"No {line} stop at {station.name}: {e}")
                failures[line] = str(e)
            except SubwayPlannerError as e:
                logger.warning(f"Failed to project departures for {line} line at {station.name}: {e}")
                failures[line] = str(e)

        self.tracer.event(
            "departures.station",
            station=station.name,
            projected=sorted(by_line),
            failed=sorted(failures),
        )
        return by_line, failures
