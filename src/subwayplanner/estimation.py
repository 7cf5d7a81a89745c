"""Frequency-based estimates used when live feeds are missing."""

import logging
import random
import time
from typing import Callable, Iterable, List, Optional

from .config import TransitConfig
from .departures import relative_label
from .models import ESTIMATE, Departure, RouteStep, Station, StepKind, SubwayRoute

logger = logging.getLogger(__name__)

ESTIMATE_CONFIDENCE = 50
SYNTHETIC_DEPARTURE_COUNT = 3


class EstimationFallbackModel:
    """
    Builds itineraries and departures from configured line frequencies.

    Everything produced here is flagged as non-real-time; no value in an
    estimate ever comes from a feed.
    """

    def __init__(
        self,
        config: Optional[TransitConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or TransitConfig()
        self.rng = rng or random.Random()
        self.clock = clock

    def estimate_wait(self, line: str) -> int:
        """Half the line's headway plus bounded random jitter, in minutes."""
        frequency = self.config.get_train_frequency(line)
        base_wait = max(1, frequency // 2)
        jitter = self.rng.randint(
            self.config.min_additional_wait_minutes, self.config.max_additional_wait_minutes
        )
        return max(self.config.min_wait_minutes, base_wait + jitter)

    def estimate_routes(
        self,
        origins: Iterable[Station],
        destinations: Iterable[Station],
        departure_time: Optional[float] = None,
    ) -> List[SubwayRoute]:
        """
        Direct-shaped routes for every origin/destination pair.

        Shared lines are used when a pair has any; otherwise the origin's own
        lines stand in, since the estimate only needs a headway and a ride time.
        """
        destinations = list(destinations)
        routes: List[SubwayRoute] = []
        for origin in origins:
            for destination in destinations:
                if origin.station_id == destination.station_id:
                    continue
                lines = [line for line in origin.lines if destination.serves(line)] or list(origin.lines)
                for line in lines:
                    routes.append(self._estimated_route(origin, destination, line, departure_time))

        routes.sort(key=SubwayRoute.sort_key)
        logger.info(f"Built {len(routes)} estimated routes")
        return routes

    def _estimated_route(
        self, origin: Station, destination: Station, line: str, departure_time: Optional[float]
    ) -> SubwayRoute:
        wait = self.estimate_wait(line)
        transit = max(self.config.minimum_realistic_transit_time, self.config.get_route_transit_time(line))
        total = wait + transit + self.config.final_walking_minutes
        steps = [
            RouteStep(
                kind=StepKind.BOARD,
                station=origin.name,
                line=line,
                instructions=f"Take the {line} train from {origin.name} (estimated)",
                wait_minutes=wait,
                stop_id=origin.stop_id_for_line(line),
                travel_minutes=transit,
                data_source=ESTIMATE,
            ),
            RouteStep(
                kind=StepKind.ARRIVE,
                station=destination.name,
                line=line,
                instructions=f"Arrive at {destination.name}",
                data_source=ESTIMATE,
            ),
        ]
        return SubwayRoute(
            steps=steps,
            total_minutes=total,
            transfer_count=0,
            confidence=ESTIMATE_CONFIDENCE,
            lines=[line],
            is_real_time_data=False,
            estimated_arrival_time=departure_time + total * 60 if departure_time is not None else None,
        )

    def synthetic_departures(self, line: str, now: Optional[float] = None) -> List[Departure]:
        """Next three departures of a line spaced by its headway."""
        if now is None:
            now = self.clock()
        frequency = self.config.get_train_frequency(line)
        first_wait = self.estimate_wait(line)

        departures = []
        for i in range(SYNTHETIC_DEPARTURE_COUNT):
            seconds_away = (first_wait + i * frequency) * 60
            departures.append(Departure(
                line=line,
                departure_time=now + seconds_away,
                compensated_time=now + seconds_away,
                relative_time=relative_label(seconds_away),
                feed_source=ESTIMATE,
                is_estimate=True,
            ))
        return departures
