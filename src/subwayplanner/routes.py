"""
Direct and one-transfer route synthesis.

Routes are first built from distances, headways and hub transfer times,
then optionally enhanced step by step with live departures.
"""

import logging
import math
import random
import time
from dataclasses import replace
from typing import Callable, List, Mapping, Optional

from .config import TransitConfig
from .departures import DepartureProjector
from .estimation import EstimationFallbackModel
from .exceptions import NoDataAvailable, NoRouteFound, SubwayPlannerError
from .geo import haversine_miles
from .hubs import TransferHubCatalog
from .models import (
    ESTIMATE,
    REALTIME,
    Direction,
    FeedSnapshot,
    HubConnection,
    RouteRequest,
    RouteStep,
    Station,
    StepKind,
    SubwayRoute,
)
from .stations import StationRegistry
from .tracing import Tracer

logger = logging.getLogger(__name__)

MAX_ROUTES = 5
HUBS_PER_LINE_PAIR = 3
DIRECT_CONFIDENCE = 90
TRANSFER_BASE_CONFIDENCE = 70
MAX_CONFIDENCE = 95


def leg_direction(origin, destination) -> Direction:
    """Northbound when the leg ends further north than it starts."""
    return Direction.NORTH if destination.latitude > origin.latitude else Direction.SOUTH


def transfer_confidence(connection: HubConnection) -> int:
    confidence = TRANSFER_BASE_CONFIDENCE
    if connection.is_user_priority:
        confidence += 15
    if connection.transfer_seconds == 0:
        confidence += 10  # Same platform
    if connection.hub.priority >= 8:
        confidence += 5
    return min(confidence, MAX_CONFIDENCE)


def rank_routes(routes: List[SubwayRoute]) -> List[SubwayRoute]:
    """Order by total minutes then transfer count, keeping the best five."""
    return sorted(routes, key=SubwayRoute.sort_key)[:MAX_ROUTES]


class RouteSynthesizer:
    """
    Builds and ranks itineraries between two stations.

    Example:
        >>> synthesizer = RouteSynthesizer(StationRegistry.default())
        >>> routes = synthesizer.find_routes(RouteRequest("Carroll St", "23rd St-8th Ave"))
    """

    def __init__(
        self,
        stations: StationRegistry,
        hubs: Optional[TransferHubCatalog] = None,
        config: Optional[TransitConfig] = None,
        projector: Optional[DepartureProjector] = None,
        estimation: Optional[EstimationFallbackModel] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        tracer: Optional[Tracer] = None,
    ):
        """
        Args:
            stations: Station registry used for name lookups.
            hubs: Transfer hub catalog; built from the stations when omitted.
            config: Per-line transit constants.
            projector: Live departure projector for enhancement.
            estimation: Fallback model; also the source of wait estimates.
            rng: Random source for wait jitter (ignored when estimation is given).
            clock: Returns the current Unix time.
            tracer: Structured event sink.
        """
        self.stations = stations
        self.hubs = hubs if hubs is not None else TransferHubCatalog.from_stations(stations.all())
        self.config = config or TransitConfig()
        self.clock = clock
        self.tracer = tracer or Tracer()
        self.projector = projector or DepartureProjector(clock=clock, tracer=self.tracer)
        self.estimation = estimation or EstimationFallbackModel(self.config, rng, clock)

    def find_stations_by_name(self, name: str) -> List[Station]:
        """
        Raises:
            StationNotFound: If nothing matches the id or name.
        """
        return self.stations.resolve(name)

    def estimate_travel_minutes(self, origin, destination, line: str) -> int:
        """
        Riding time between two points on a line.

        Roughly two minutes per mile, scaled by how slow the line is
        compared with the default transit time.
        """
        miles = haversine_miles(origin.latitude, origin.longitude, destination.latitude, destination.longitude)
        base_minutes = max(1, round(miles * 2))
        return round(base_minutes * self.config.get_transit_multiplier(line))

    def estimate_wait(self, line: str) -> int:
        return self.estimation.estimate_wait(line)

    def find_routes(self, request: RouteRequest) -> List[SubwayRoute]:
        """
        Estimate-only routes for a request, best first.

        Returns:
            At most five routes ordered by total minutes, then transfers.

        Raises:
            StationNotFound: If either station cannot be resolved.
            NoRouteFound: If no shared line or connecting hub exists.
        """
        origins = self.find_stations_by_name(request.from_station)
        destinations = self.find_stations_by_name(request.to_station)

        routes = self._direct_routes(origins, destinations, request)
        if not routes or request.max_transfers is None or request.max_transfers > 0:
            routes.extend(self._transfer_routes(origins, destinations, request))

        if not routes:
            raise NoRouteFound(f"No route from {request.from_station} to {request.to_station}")

        ranked = rank_routes(routes)
        self.tracer.event(
            "routes.synthesized",
            origin=request.from_station,
            destination=request.to_station,
            candidates=len(routes),
            returned=len(ranked),
        )
        return ranked

    def _direct_routes(
        self, origins: List[Station], destinations: List[Station], request: RouteRequest
    ) -> List[SubwayRoute]:
        routes = []
        for origin in origins:
            for destination in destinations:
                if origin.station_id == destination.station_id:
                    continue
                for line in origin.lines:
                    if destination.serves(line):
                        routes.append(self._direct_route(origin, destination, line, request))
        return routes

    def _direct_route(
        self, origin: Station, destination: Station, line: str, request: RouteRequest
    ) -> SubwayRoute:
        travel = self.estimate_travel_minutes(origin, destination, line)
        wait = self.estimate_wait(line)
        total = wait + travel
        steps = [
            RouteStep(
                kind=StepKind.BOARD,
                station=origin.name,
                line=line,
                instructions=f"Board the {line} train at {origin.name}",
                wait_minutes=wait,
                direction=leg_direction(origin, destination),
                stop_id=origin.stop_id_for_line(line),
                travel_minutes=travel,
            ),
            RouteStep(
                kind=StepKind.ARRIVE,
                station=destination.name,
                line=line,
                instructions=f"Arrive at {destination.name}",
            ),
        ]
        return SubwayRoute(
            steps=steps,
            total_minutes=total,
            transfer_count=0,
            confidence=DIRECT_CONFIDENCE,
            lines=[line],
            estimated_arrival_time=_arrival(request.departure_time, total),
        )

    def _transfer_routes(
        self, origins: List[Station], destinations: List[Station], request: RouteRequest
    ) -> List[SubwayRoute]:
        from_lines = _unique_lines(origins)
        to_lines = _unique_lines(destinations)

        routes = []
        for from_line in from_lines:
            for to_line in to_lines:
                if from_line == to_line:
                    continue
                origin = next(s for s in origins if s.serves(from_line))
                destination = next(s for s in destinations if s.serves(to_line))
                connections = [
                    c for c in self.hubs.connecting_hubs(from_line, to_line)
                    if c.hub.name not in (origin.name, destination.name)
                ]
                for connection in connections[:HUBS_PER_LINE_PAIR]:
                    routes.append(self._transfer_route(origin, destination, connection, request))
        return routes

    def _transfer_route(
        self, origin: Station, destination: Station, connection: HubConnection, request: RouteRequest
    ) -> SubwayRoute:
        hub = connection.hub
        from_line, to_line = connection.from_line, connection.to_line

        first_leg = self.estimate_travel_minutes(origin, hub, from_line)
        second_leg = self.estimate_travel_minutes(hub, destination, to_line)
        initial_wait = self.estimate_wait(from_line)
        transfer_minutes = connection.transfer_minutes
        transfer_wait = self.estimate_wait(to_line)

        same_platform = " (same platform)" if connection.transfer_seconds == 0 else ""
        steps = [
            RouteStep(
                kind=StepKind.BOARD,
                station=origin.name,
                line=from_line,
                instructions=f"Board the {from_line} train at {origin.name}",
                wait_minutes=initial_wait,
                direction=leg_direction(origin, hub),
                stop_id=origin.stop_id_for_line(from_line),
                travel_minutes=first_leg,
            ),
            RouteStep(
                kind=StepKind.TRANSFER,
                station=hub.name,
                line=to_line,
                instructions=f"Transfer to the {to_line} train at {hub.name}{same_platform}",
                wait_minutes=transfer_wait,
                transfer_minutes=transfer_minutes,
                direction=leg_direction(hub, destination),
                stop_id=hub.stop_id_for_line(to_line),
                travel_minutes=second_leg,
            ),
            RouteStep(
                kind=StepKind.ARRIVE,
                station=destination.name,
                line=to_line,
                instructions=f"Arrive at {destination.name}",
            ),
        ]
        total = initial_wait + first_leg + transfer_minutes + transfer_wait + second_leg
        return SubwayRoute(
            steps=steps,
            total_minutes=total,
            transfer_count=1,
            confidence=transfer_confidence(connection),
            lines=[from_line, to_line],
            estimated_arrival_time=_arrival(request.departure_time, total),
        )

    def enhance_route(
        self,
        route: SubwayRoute,
        feeds: Mapping[str, FeedSnapshot],
        departure_time: Optional[float] = None,
    ) -> SubwayRoute:
        """
        Replace estimated waits with live departures where the feeds have them.

        A time cursor walks the steps. At each board or transfer step the
        first live departure at or after the cursor is adopted and the cursor
        jumps to it; without one the step keeps its estimated wait. The
        route counts as real-time only when every such step used live data.
        Otherwise the estimated route comes back with every live value
        stripped, so a non-real-time route never carries a feed time.

        Args:
            route: Route from find_routes().
            feeds: Decoded snapshots keyed by feed group.
            departure_time: Unix time the rider leaves; now when omitted.

        Returns:
            A new route; the input route is not modified.
        """
        now = self.clock()
        cursor = departure_time if departure_time is not None else now
        total = 0
        steps = []
        live_steps = 0
        boarding_steps = 0

        for step in route.steps:
            step = replace(step, next_departure=None, data_source=ESTIMATE)

            if step.kind in (StepKind.BOARD, StepKind.TRANSFER):
                boarding_steps += 1
                departure = self._next_live_departure(step, feeds, now, cursor)
                if departure is not None:
                    wait = max(0, math.ceil((departure.departure_time - cursor) / 60))
                    step.wait_minutes = wait
                    step.next_departure = int(departure.departure_time)
                    step.data_source = REALTIME
                    cursor = departure.departure_time
                    live_steps += 1
                else:
                    wait = step.wait_minutes if step.wait_minutes is not None else self.estimate_wait(step.line)
                    step.wait_minutes = wait
                    cursor += wait * 60
                total += wait

                if step.transfer_minutes:
                    total += step.transfer_minutes
                    cursor += step.transfer_minutes * 60

            if step.travel_minutes:
                total += step.travel_minutes
                cursor += step.travel_minutes * 60

            steps.append(step)

        is_real_time = boarding_steps > 0 and live_steps == boarding_steps
        self.tracer.event(
            "routes.enhanced",
            lines="/".join(route.lines),
            live_steps=live_steps,
            steps=boarding_steps,
            total_minutes=total,
        )
        if not is_real_time:
            logger.debug(f"Only {live_steps}/{boarding_steps} live steps for {route.lines}; keeping estimates")
            start = departure_time if departure_time is not None else now
            return replace(
                route,
                steps=[replace(s, next_departure=None, data_source=ESTIMATE) for s in route.steps],
                is_real_time_data=False,
                estimated_arrival_time=_arrival(start, route.total_minutes),
            )
        return replace(
            route,
            steps=steps,
            total_minutes=total,
            is_real_time_data=True,
            estimated_arrival_time=cursor,
        )

    def _next_live_departure(self, step: RouteStep, feeds: Mapping[str, FeedSnapshot], now: float, cursor: float):
        if not step.stop_id:
            return None
        try:
            departures = self.projector.project_stop(
                step.stop_id, step.line, step.direction, feeds, now, step.station
            )
        except SubwayPlannerError as e:
            logger.warning(f"No live {step.line} departures at {step.station}: {e}")
            return None
        for departure in departures:
            if departure.departure_time >= cursor:
                return departure
        return None

    def find_routes_with_realtime(
        self,
        request: RouteRequest,
        feeds: Mapping[str, FeedSnapshot],
        base_routes: Optional[List[SubwayRoute]] = None,
    ) -> List[SubwayRoute]:
        """
        Routes enhanced with live departures, or estimates when there are none.

        Falls back to the estimation model when no route can be built or no
        feed is available (and request.fallback_to_estimated is set).

        Raises:
            StationNotFound: If either station cannot be resolved.
            NoDataAvailable: If neither live nor estimated routes can be produced.
        """
        if base_routes is None:
            try:
                base_routes = self.find_routes(request)
            except NoRouteFound as e:
                logger.warning(f"{e}; falling back to estimates")
                base_routes = []

        if base_routes and feeds:
            enhanced = [self.enhance_route(route, feeds, request.departure_time) for route in base_routes]
            ranked = rank_routes(enhanced)
            live = sum(1 for route in ranked if route.is_real_time_data)
            logger.info(f"Enhanced {len(ranked)} routes ({live} fully real-time)")
            return ranked

        routes = base_routes
        if request.fallback_to_estimated:
            origins = self.find_stations_by_name(request.from_station)
            destinations = self.find_stations_by_name(request.to_station)
            routes = rank_routes(self.estimation.estimate_routes(origins, destinations, request.departure_time))
            logger.warning(
                f"Using {len(routes)} estimated routes from {request.from_station} to {request.to_station}"
            )
        if not routes:
            raise NoDataAvailable(
                f"No live or estimated routes from {request.from_station} to {request.to_station}"
            )
        return routes


def _unique_lines(stations: List[Station]) -> List[str]:
    lines: List[str] = []
    for station in stations:
        for line in station.lines:
            if line not in lines:
                lines.append(line)
    return lines


def _arrival(departure_time: Optional[float], total_minutes: int) -> Optional[float]:
    if departure_time is None:
        return None
    return departure_time + total_minutes * 60
