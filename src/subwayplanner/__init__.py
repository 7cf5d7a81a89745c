"""SubwayPlanner - Real-time NYC subway route planner built on MTA GTFS-Realtime feeds."""

__version__ = "0.1.0"

from .models import (
    Departure,
    Direction,
    PlanResult,
    RouteRequest,
    RouteStep,
    ServiceAlert,
    Station,
    StationBoard,
    StepKind,
    SubwayRoute,
    TransferHub,
)
from .exceptions import (
    EmptyFeed,
    FeedError,
    FeedFormatError,
    FeedUnavailable,
    NoDataAvailable,
    NoMatchingStop,
    NoRouteFound,
    StationNotFound,
    SubwayPlannerError,
    UnknownLine,
)
from .config import FeedSettings, TransitConfig
from .feed_client import FeedClient
from .stop_index import StopTimeIndex
from .stop_resolver import DirectionalStopResolver
from .departures import DepartureProjector
from .stations import StationRegistry
from .hubs import TransferHubCatalog
from .estimation import EstimationFallbackModel
from .routes import RouteSynthesizer
from .planner import SubwayPlanner

__all__ = [
    "SubwayPlanner",
    "FeedClient",
    "StopTimeIndex",
    "DirectionalStopResolver",
    "DepartureProjector",
    "StationRegistry",
    "TransferHubCatalog",
    "RouteSynthesizer",
    "EstimationFallbackModel",
    "TransitConfig",
    "FeedSettings",
    "Station",
    "TransferHub",
    "Departure",
    "Direction",
    "RouteRequest",
    "RouteStep",
    "StepKind",
    "SubwayRoute",
    "ServiceAlert",
    "StationBoard",
    "PlanResult",
    "SubwayPlannerError",
    "FeedError",
    "FeedUnavailable",
    "FeedFormatError",
    "EmptyFeed",
    "UnknownLine",
    "NoMatchingStop",
    "NoRouteFound",
    "StationNotFound",
    "NoDataAvailable",
]
