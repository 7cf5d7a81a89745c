"""Extraction of trip updates and alerts from decoded GTFS-Realtime messages."""

import logging
from typing import Iterable, List, Optional, Set, Tuple

from .models import ServiceAlert, StopTimeUpdate, TripUpdate

logger = logging.getLogger(__name__)

DEFAULT_TRIP_LIMIT = 4


def _stop_time_update(proto, position: int) -> StopTimeUpdate:
    """Convert one protobuf StopTimeUpdate. int64 times arrive as Python ints."""
    arrival_time = None
    departure_time = None
    delay = None

    if proto.HasField("arrival"):
        if proto.arrival.HasField("time"):
            arrival_time = int(proto.arrival.time)
        if proto.arrival.HasField("delay"):
            delay = int(proto.arrival.delay)
    if proto.HasField("departure"):
        if proto.departure.HasField("time"):
            departure_time = int(proto.departure.time)
        if delay is None and proto.departure.HasField("delay"):
            delay = int(proto.departure.delay)

    stop_sequence = proto.stop_sequence if proto.HasField("stop_sequence") else position
    return StopTimeUpdate(
        stop_id=proto.stop_id,
        stop_sequence=stop_sequence,
        arrival_time=arrival_time,
        departure_time=departure_time,
        delay=delay,
    )


def _trip_update(proto) -> TripUpdate:
    trip = proto.trip
    direction_id = trip.direction_id if trip.HasField("direction_id") else None
    return TripUpdate(
        trip_id=trip.trip_id,
        route_id=trip.route_id,
        stop_time_updates=[
            _stop_time_update(stu, position)
            for position, stu in enumerate(proto.stop_time_update, start=1)
        ],
        direction_id=direction_id,
    )


def schedule_violations(trip: TripUpdate) -> List[Tuple[StopTimeUpdate, StopTimeUpdate]]:
    """
    Find consecutive stops that break time ordering.

    A trip is consistent when the departure at each stop is no later than the
    arrival at the next stop. Stops missing either time are not compared.

    Returns:
        (stop, next_stop) pairs that violate the ordering, in stop order.
    """
    ordered = sorted(trip.stop_time_updates, key=lambda u: u.stop_sequence)
    violations = []
    for current, following in zip(ordered, ordered[1:]):
        leave = current.departure_time
        arrive = following.arrival_time
        if leave is not None and arrive is not None and leave > arrive:
            violations.append((current, following))
    return violations


class StopTimeIndex:
    """Selects the trip updates relevant to a set of lines."""

    def trip_updates(
        self,
        message,
        lines: Iterable[str],
        limit: Optional[int] = DEFAULT_TRIP_LIMIT,
        sort_by_sequence: bool = False,
        drop_invalid: bool = False,
    ) -> List[TripUpdate]:
        """
        Extract trip updates for the given lines.

        Args:
            message: Decoded gtfs_realtime_pb2.FeedMessage.
            lines: Route ids of interest.
            limit: Maximum number of trips to return; None for all of them.
            sort_by_sequence: Sort each trip's stops by stop sequence. When
                False the feed order is kept as-is.
            drop_invalid: Skip trips whose stop times are out of order.

        Returns:
            List of TripUpdate objects in feed order.
        """
        wanted: Set[str] = set(lines)
        trips: List[TripUpdate] = []

        for entity in message.entity:
            if limit is not None and len(trips) >= limit:
                break
            if not entity.HasField("trip_update"):
                continue
            if entity.trip_update.trip.route_id not in wanted:
                continue

            trip = _trip_update(entity.trip_update)

            if drop_invalid:
                violations = schedule_violations(trip)
                if violations:
                    first, second = violations[0]
                    logger.warning(
                        f"Dropping trip {trip.trip_id}: departs {first.stop_id} after arriving {second.stop_id}"
                    )
                    continue

            if sort_by_sequence:
                trip.stop_time_updates.sort(key=lambda u: u.stop_sequence)
            trips.append(trip)

        logger.debug(f"Selected {len(trips)} trips for lines {sorted(wanted)}")
        return trips

    @staticmethod
    def stop_ids(message) -> Set[str]:
        """Every stop id referenced by any trip update in the message."""
        found: Set[str] = set()
        for entity in message.entity:
            if entity.HasField("trip_update"):
                for stu in entity.trip_update.stop_time_update:
                    if stu.stop_id:
                        found.add(stu.stop_id)
        return found

    @staticmethod
    def alerts_for_lines(message, lines: Iterable[str]) -> List[ServiceAlert]:
        """
        Extract service alerts affecting any of the given lines.

        Args:
            message: Decoded gtfs_realtime_pb2.FeedMessage.
            lines: Route ids of interest.

        Returns:
            List of ServiceAlert objects, one per (alert, line).
        """
        wanted = set(lines)
        alerts: List[ServiceAlert] = []
        seen: Set[Tuple[str, str]] = set()

        for entity in message.entity:
            if not entity.HasField("alert"):
                continue

            alert_obj = entity.alert
            header_text = ""
            description_text = ""
            if alert_obj.HasField("header_text") and alert_obj.header_text.translation:
                header_text = alert_obj.header_text.translation[0].text
            if alert_obj.HasField("description_text") and alert_obj.description_text.translation:
                description_text = alert_obj.description_text.translation[0].text

            for informed_entity in alert_obj.informed_entity:
                # Route can be specified directly in route_id OR in trip.route_id
                route_id = informed_entity.route_id
                if not route_id and informed_entity.HasField("trip"):
                    route_id = informed_entity.trip.route_id

                key = (entity.id, route_id)
                if route_id in wanted and key not in seen:
                    seen.add(key)
                    alerts.append(ServiceAlert(
                        route_id=route_id,
                        header=header_text,
                        description=description_text,
                    ))

        logger.debug(f"Parsed {len(alerts)} alerts")
        return alerts
