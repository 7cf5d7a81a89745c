"""Static station registry for NYC subway stations."""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .exceptions import StationNotFound
from .geo import haversine_miles
from .models import Station

logger = logging.getLogger(__name__)

# Station complexes: (station_id, name, lines, lat, lon, per-line base stop ids)
DEFAULT_STATIONS = [
    ("F20", "Carroll St", ("F", "G"), 40.679371, -73.995458, {}),
    ("F18", "23rd St", ("F", "M"), 40.742878, -73.992821, {}),
    ("A41", "Jay St-MetroTech", ("A", "C", "F"), 40.692338, -73.987342, {"F": "F25"}),
    ("A23", "23rd St-8th Ave", ("C", "E"), 40.742878, -73.996324, {}),
    ("A27", "14th St-8th Ave", ("A", "C", "E"), 40.740893, -73.996864, {}),
    ("R16", "Union Sq-14th St", ("4", "5", "6", "L", "N", "Q", "R", "W"), 40.735736, -73.990568, {}),
    ("R20", "23rd St", ("N", "Q", "R", "W"), 40.742878, -73.989568, {}),
    ("A25", "42nd St-Port Authority", ("A", "C", "E"), 40.757308, -73.989735, {}),
    ("R13", "Times Sq-42nd St", ("1", "2", "3", "7", "N", "Q", "R", "W"), 40.755477, -73.986754, {}),
    ("A15", "59th St-Columbus Circle", ("1", "A", "B", "C", "D"), 40.768296, -73.981736, {}),
    ("F21", "Smith-9th Sts", ("F", "G"), 40.673473, -73.995745, {}),
    ("F22", "4th Ave-9th St", ("F", "G"), 40.670272, -73.988114, {}),
    ("F24", "Bergen St", ("F", "G"), 40.686145, -73.990064, {}),
    ("F26", "Hoyt-Schermerhorn Sts", ("A", "C", "G"), 40.688484, -73.985001, {}),
    ("R25", "Atlantic Av-Barclays Ctr", ("2", "3", "4", "5", "B", "D", "N", "Q", "R", "W"), 40.684359, -73.977666, {}),
    ("F11", "Roosevelt Ave-Jackson Hts", ("7", "E", "F", "M", "R"), 40.746325, -73.891394, {}),
    ("F14", "Lexington Ave-53rd St", ("6", "E", "M"), 40.757552, -73.969055, {}),
    ("R11", "Grand Central-42nd St", ("4", "5", "6", "7"), 40.751776, -73.976848, {}),
    ("D21", "Broadway-Lafayette St", ("B", "D", "F", "M"), 40.725297, -73.996204, {}),
    ("A32", "W 4th St-Washington Sq", ("A", "B", "C", "D", "E", "F", "M"), 40.732338, -74.000495, {}),
]


def normalize_name(name: str) -> str:
    """Lowercase alphanumeric-only form of a station name."""
    return re.sub(r"[^a-z0-9]", "", name.lower())


class StationRegistry:
    """Read-only lookup table of stations, by id, name, line and location."""

    def __init__(self, stations: Iterable[Station]):
        self.stations: Dict[str, Station] = {}
        self.stations_by_line: Dict[str, List[Station]] = {}
        for station in stations:
            self.stations[station.station_id] = station
            for line in station.lines:
                self.stations_by_line.setdefault(line, []).append(station)
        logger.debug(f"Registered {len(self.stations)} stations")

    @classmethod
    def default(cls) -> "StationRegistry":
        """Registry of the built-in NYC station table."""
        return cls(
            Station(
                station_id=station_id,
                name=name,
                lines=lines,
                latitude=lat,
                longitude=lon,
                stop_ids=dict(stop_ids),
            )
            for station_id, name, lines, lat, lon, stop_ids in DEFAULT_STATIONS
        )

    @classmethod
    def from_csv(cls, path: str) -> "StationRegistry":
        """
        Load a station table from CSV.

        Expected columns: station_id, name, lines (space separated), latitude,
        longitude and optionally stop_ids ("F:F25 A:A41").
        """
        frame = pd.read_csv(path, dtype=str, keep_default_na=False)
        missing = {"station_id", "name", "lines", "latitude", "longitude"} - set(frame.columns)
        if missing:
            raise ValueError(f"Station table {path} is missing columns: {sorted(missing)}")

        stations = []
        for row in frame.to_dict("records"):
            stop_ids = {}
            for pair in row.get("stop_ids", "").split():
                line, _, stop_id = pair.partition(":")
                if line and stop_id:
                    stop_ids[line] = stop_id
            stations.append(Station(
                station_id=row["station_id"].strip(),
                name=row["name"].strip(),
                lines=tuple(row["lines"].split()),
                latitude=float(row["latitude"]),
                longitude=float(row["longitude"]),
                stop_ids=stop_ids,
            ))
        logger.info(f"Loaded {len(stations)} stations from {path}")
        return cls(stations)

    def __len__(self) -> int:
        return len(self.stations)

    def all(self) -> List[Station]:
        return list(self.stations.values())

    def get(self, station_id: str) -> Station:
        """
        Get station by id.

        Raises:
            StationNotFound: If the id is unknown.
        """
        if station_id not in self.stations:
            raise StationNotFound(f"Station {station_id} not found")
        return self.stations[station_id]

    def find_by_name(self, name: str) -> List[Station]:
        """
        Find stations by name.

        An exact case-insensitive match wins; otherwise stations whose
        alphanumeric-only name contains the query, or is contained in it.
        """
        wanted = name.strip().lower()
        matches = [s for s in self.stations.values() if s.name.lower() == wanted]
        if matches:
            return matches

        query = normalize_name(name)
        if not query:
            return []
        return [
            s for s in self.stations.values()
            if query in normalize_name(s.name) or normalize_name(s.name) in query
        ]

    def resolve(self, station_input: str) -> List[Station]:
        """Stations for an id or a name; raises StationNotFound when none match."""
        if station_input in self.stations:
            return [self.stations[station_input]]
        matches = self.find_by_name(station_input)
        if not matches:
            raise StationNotFound(f"No station found matching '{station_input}'")
        return matches

    def stations_for_line(self, line: str) -> List[Station]:
        return list(self.stations_by_line.get(line, []))

    def nearest(self, latitude: float, longitude: float) -> Optional[Tuple[Station, float]]:
        """Nearest station and its distance in miles, or None for an empty registry."""
        best: Optional[Tuple[Station, float]] = None
        for station in self.stations.values():
            distance = haversine_miles(latitude, longitude, station.latitude, station.longitude)
            if best is None or distance < best[1]:
                best = (station, distance)
        return best

    def nearest_for_line(
        self, latitude: float, longitude: float, line: str, limit: int = 3
    ) -> List[Tuple[Station, float]]:
        """Closest stations on a line with their distances in miles."""
        scored = [
            (station, haversine_miles(latitude, longitude, station.latitude, station.longitude))
            for station in self.stations_by_line.get(line, [])
        ]
        scored.sort(key=lambda pair: pair[1])
        return scored[:limit]
