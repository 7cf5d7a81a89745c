"""Main subway planner class."""

import logging
import random
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from .clock import SystemClock
from .config import FeedSettings, TransitConfig, feed_groups_for_lines
from .departures import DepartureProjector
from .estimation import EstimationFallbackModel
from .exceptions import NoRouteFound
from .feed_client import FeedClient
from .hubs import TransferHubCatalog
from .models import (
    Direction,
    FeedSnapshot,
    PlanResult,
    RouteRequest,
    ServiceAlert,
    Station,
    StationBoard,
    SubwayRoute,
)
from .routes import RouteSynthesizer
from .stations import StationRegistry
from .stop_index import StopTimeIndex
from .tracing import Tracer

logger = logging.getLogger(__name__)


class SubwayPlanner:
    """
    Plans subway trips and departure boards from live MTA feeds.

    This class provides methods to:
    - Plan ranked direct and one-transfer routes between two stations
    - Get upcoming departures per line at a station platform
    - Collect service alerts for the lines involved

    Feeds that fail are recorded in the result and replaced by estimates.
    """

    def __init__(
        self,
        stations: Optional[StationRegistry] = None,
        hubs: Optional[TransferHubCatalog] = None,
        config: Optional[TransitConfig] = None,
        feed_client: Optional[FeedClient] = None,
        settings: Optional[FeedSettings] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], float]] = None,
        tracer: Optional[Tracer] = None,
    ):
        """
        Initialize the planner.

        Args:
            stations: Station registry; the built-in NYC table when omitted.
            hubs: Transfer hub catalog; derived from the stations when omitted.
            config: Per-line transit constants.
            feed_client: Feed fetcher; one is built from settings when omitted.
            settings: HTTP settings for the default feed client.
            rng: Random source for wait-time jitter.
            clock: Returns the current Unix time; an uncorrected SystemClock
                when omitted.
            tracer: Structured event sink shared by every component.
        """
        self.stations = stations if stations is not None else StationRegistry.default()
        self.hubs = hubs if hubs is not None else TransferHubCatalog.from_stations(self.stations.all())
        self.config = config or TransitConfig()
        clock = clock or SystemClock()
        self.clock = clock
        self.tracer = tracer or Tracer()
        self.feed_client = feed_client or FeedClient(settings=settings, clock=clock, tracer=self.tracer)
        self.index = StopTimeIndex()
        self.projector = DepartureProjector(index=self.index, clock=clock, tracer=self.tracer)
        self.estimation = EstimationFallbackModel(self.config, rng or random.Random(), clock)
        self.synthesizer = RouteSynthesizer(
            self.stations,
            hubs=self.hubs,
            config=self.config,
            projector=self.projector,
            estimation=self.estimation,
            clock=clock,
            tracer=self.tracer,
        )

    def get_station(self, station_input: str) -> Station:
        """
        Get a station by ID or name.

        Args:
            station_input: Either a station id (e.g., "F20") or name (e.g., "Carroll St").

        Returns:
            The first matching Station.

        Raises:
            StationNotFound: If no station matches.
        """
        return self.stations.resolve(station_input)[0]

    def nearest_station(self, latitude: float, longitude: float) -> Optional[Tuple[Station, float, int]]:
        """
        Closest station to a location.

        Returns:
            (station, distance in miles, walking minutes), or None when the
            registry is empty.
        """
        found = self.stations.nearest(latitude, longitude)
        if found is None:
            return None
        station, miles = found
        walking = max(1, round(miles * self.config.walking_minutes_per_mile))
        return station, miles, walking

    def plan(
        self,
        from_station: str,
        to_station: str,
        departure_time: Optional[float] = None,
        max_transfers: Optional[int] = None,
        use_real_time: bool = True,
    ) -> PlanResult:
        """
        Plan routes between two stations.

        Args:
            from_station: Origin station id or name.
            to_station: Destination station id or name.
            departure_time: Unix time the rider leaves; now when omitted.
            max_transfers: 0 for direct routes only (when any exist).
            use_real_time: Fetch feeds and enhance routes with live departures.

        Returns:
            PlanResult with up to five ranked routes, per-feed status and alerts.

        Raises:
            StationNotFound: If either station cannot be resolved.
            NoDataAvailable: If neither live nor estimated routes can be produced.
        """
        started = time.monotonic()
        request = RouteRequest(
            from_station=from_station,
            to_station=to_station,
            departure_time=departure_time,
            max_transfers=max_transfers,
        )

        try:
            base_routes = self.synthesizer.find_routes(request)
        except NoRouteFound as e:
            logger.warning(f"{e}; estimates only")
            base_routes = []

        feeds: Dict[str, FeedSnapshot] = {}
        statuses = {}
        if use_real_time:
            lines = self._lines_involved(request, base_routes)
            feeds, statuses = self.feed_client.fetch_all(feed_groups_for_lines(lines))
            routes = self.synthesizer.find_routes_with_realtime(request, feeds, base_routes)
        elif base_routes:
            routes = base_routes
        else:
            routes = self.synthesizer.find_routes_with_realtime(request, feeds, base_routes)
        alerts = self._collect_alerts(feeds, {line for route in routes for line in route.lines})

        result = PlanResult(
            routes=routes,
            feed_status=statuses,
            alerts=alerts,
            used_estimates=not any(route.is_real_time_data for route in routes),
            generated_at=datetime.now(),
        )
        logger.info(
            f"Planned {len(routes)} routes from {from_station} to {to_station} "
            f"({len(result.working_feeds)} feeds ok, {len(result.failed_feeds)} failed)"
        )
        self.tracer.event(
            "plan.complete",
            origin=from_station,
            destination=to_station,
            routes=len(routes),
            working=result.working_feeds,
            failed=result.failed_feeds,
            elapsed=round(time.monotonic() - started, 3),
        )
        return result

    def departure_board(self, station_input: str, direction=None) -> StationBoard:
        """
        Upcoming departures per line at a station platform.

        Lines whose feed failed (or whose stop is missing from the feed) get
        synthetic departures and are listed in estimated_lines.

        Args:
            station_input: Station id or name.
            direction: Direction or text such as "north"/"S"; None for any platform.

        Returns:
            StationBoard for the station.
        """
        station = self.get_station(station_input)
        if direction is not None:
            direction = Direction.parse(direction)

        feeds, _ = self.feed_client.fetch_all(feed_groups_for_lines(station.lines))
        now = self.clock()
        departures, failures = self.projector.departures_for_station(station, direction, feeds, now)

        estimated_lines = sorted(failures)
        for line in estimated_lines:
            departures[line] = self.estimation.synthetic_departures(line, now)

        return StationBoard(
            station=station,
            direction=direction,
            departures=departures,
            alerts=self._collect_alerts(feeds, station.lines),
            estimated_lines=estimated_lines,
            last_updated=datetime.now(),
        )

    def _lines_involved(self, request: RouteRequest, routes: List[SubwayRoute]) -> List[str]:
        if routes:
            return sorted({line for route in routes for line in route.lines})
        # Estimates only; fetch the endpoints' lines for alerts
        lines = set()
        for name in (request.from_station, request.to_station):
            for station in self.stations.resolve(name):
                lines.update(station.lines)
        return sorted(lines)

    def _collect_alerts(self, feeds: Dict[str, FeedSnapshot], lines) -> List[ServiceAlert]:
        lines = set(lines)
        alerts: List[ServiceAlert] = []
        for group in sorted(feeds):
            alerts.extend(self.index.alerts_for_lines(feeds[group].message, lines))
        return alerts

    def cleanup(self) -> None:
        """Release resources and clear caches."""
        self.feed_client.clear_cache()
        logger.info("Cleaned up planner resources")
