"""Exceptions raised by the subway planner."""

from typing import Optional


class SubwayPlannerError(Exception):
    """Base class for planner errors."""


class FeedError(SubwayPlannerError):
    """A feed could not be turned into a decoded message."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class FeedUnavailable(FeedError):
    """Non-success HTTP status or transport failure."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, url)
        self.status_code = status_code


class FeedFormatError(FeedError):
    """Body is markup rather than a protobuf feed, or failed to decode."""


class EmptyFeed(FeedError):
    """Zero-length body."""


class UnknownLine(SubwayPlannerError, ValueError):
    """No feed carries the requested line."""


class NoMatchingStop(SubwayPlannerError):
    """No stop id in a feed matches the station, line and direction."""

    def __init__(self, base_stop_id: str, direction=None):
        label = direction.value if direction is not None else "any direction"
        super().__init__(f"No stop matching {base_stop_id} ({label})")
        self.base_stop_id = base_stop_id
        self.direction = direction


class RoutingError(SubwayPlannerError):
    """Base exception for route calculation failures."""


class NoRouteFound(RoutingError):
    """No shared line and no connecting hub for a station pair."""


class StationNotFound(RoutingError, ValueError):
    """Station name or id not in the registry."""


class NoDataAvailable(SubwayPlannerError):
    """Neither live nor estimated routes could be produced."""
