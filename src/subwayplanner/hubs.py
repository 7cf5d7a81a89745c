"""Transfer hub catalog for one-transfer route planning."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .models import HubConnection, Station, TransferHub

logger = logging.getLogger(__name__)

# Hubs the rider asked to prefer
PRIORITY_HUB_NAMES = (
    "Jay St-MetroTech",
    "Broadway-Lafayette St",
    "Carroll St",
    "Hoyt-Schermerhorn Sts",
)

MAJOR_HUBS = (
    "Times Sq-42nd St",
    "14th St-Union Sq",
    "Atlantic Av-Barclays Ctr",
    "59th St-Columbus Circle",
    "Grand Central-42nd St",
    "Fulton St",
    "Herald Sq",
    "14th St-6th Ave",
    "W 4th St-Washington Sq",
    "14th St-8th Ave",
    "125th St",
)

# Known in-station crossing times, minutes: hub -> from line -> to line
QUICK_TRANSFERS = {
    "Jay St-MetroTech": {
        "F": {"A": 0, "C": 0, "R": 2},  # Same platform F/A/C
        "A": {"F": 0, "C": 0, "R": 2},
        "C": {"F": 0, "A": 0, "R": 2},
        "R": {"F": 2, "A": 2, "C": 2},
    },
    "Hoyt-Schermerhorn Sts": {
        "A": {"C": 1, "G": 3},
        "C": {"A": 1, "G": 3},
        "G": {"A": 3, "C": 3},
    },
    "Carroll St": {
        "F": {"G": 2},
        "G": {"F": 2},
    },
}

DEFAULT_TRANSFER_SECONDS = 180


def is_hub(name: str, lines: Tuple[str, ...]) -> bool:
    """Whether a station complex is worth routing transfers through."""
    if name in PRIORITY_HUB_NAMES:
        return True
    if any(hub in name or name in hub for hub in MAJOR_HUBS):
        return True
    if len(lines) >= 3:
        return True
    if "F" in lines or "A" in lines:
        return len(lines) >= 2
    return False


def hub_priority(name: str, lines: Tuple[str, ...], is_user_priority: bool) -> int:
    if is_user_priority:
        return 10
    if "Times Sq" in name or "Grand Central" in name or "Union Sq" in name:
        return 9
    if "Atlantic" in name or "Barclays" in name:
        return 8
    if len(lines) >= 6:
        return 7
    if len(lines) >= 4:
        return 6
    if len(lines) >= 3:
        return 5
    if len(lines) >= 2:
        return 4
    return 3


def hub_transfer_seconds(name: str, lines: Tuple[str, ...], is_user_priority: bool) -> Dict[Tuple[str, str], int]:
    """Crossing time for every ordered pair of distinct lines at a hub."""
    quick = QUICK_TRANSFERS.get(name, {})
    if is_user_priority:
        default_minutes = 2
    elif len(lines) >= 6:
        default_minutes = 5
    elif len(lines) >= 4:
        default_minutes = 3
    else:
        default_minutes = 2

    times: Dict[Tuple[str, str], int] = {}
    for from_line in lines:
        for to_line in lines:
            if from_line == to_line:
                continue
            minutes = quick.get(from_line, {}).get(to_line, default_minutes)
            times[(from_line, to_line)] = minutes * 60
    return times


class TransferHubCatalog:
    """Static lookup of interchange stations. Never modified after construction."""

    def __init__(self, hubs: Iterable[TransferHub]):
        self._hubs: Dict[str, TransferHub] = {hub.name: hub for hub in hubs}
        logger.debug(f"Loaded {len(self._hubs)} transfer hubs")

    @classmethod
    def from_stations(cls, stations: Iterable[Station]) -> "TransferHubCatalog":
        """
        Build the catalog from a station table.

        Args:
            stations: Station complexes (a StationRegistry's all()).

        Returns:
            Catalog of the stations that qualify as hubs.
        """
        hubs = []
        for station in stations:
            lines = tuple(sorted(station.lines))
            if not is_hub(station.name, lines):
                continue
            user_priority = station.name in PRIORITY_HUB_NAMES
            hubs.append(TransferHub(
                name=station.name,
                latitude=station.latitude,
                longitude=station.longitude,
                lines=lines,
                transfer_seconds=hub_transfer_seconds(station.name, lines, user_priority),
                priority=hub_priority(station.name, lines, user_priority),
                is_user_priority=user_priority,
                stop_ids={line: station.stop_id_for_line(line) for line in lines},
            ))
        return cls(hubs)

    def __len__(self) -> int:
        return len(self._hubs)

    def all(self) -> List[TransferHub]:
        return list(self._hubs.values())

    def get(self, name: str) -> Optional[TransferHub]:
        return self._hubs.get(name)

    def transfer_seconds(self, hub_name: str, from_line: str, to_line: str) -> int:
        """Crossing time between two lines at a hub; 3 minutes when unknown."""
        if from_line == to_line:
            return 0
        hub = self._hubs.get(hub_name)
        if hub is None:
            logger.warning(f"Hub not found: {hub_name}")
            return DEFAULT_TRANSFER_SECONDS
        seconds = hub.transfer_seconds.get((from_line, to_line))
        if seconds is None:
            logger.warning(f"No transfer time from {from_line} to {to_line} at {hub_name}")
            return DEFAULT_TRANSFER_SECONDS
        return seconds

    def connecting_hubs(self, from_line: str, to_line: str) -> List[HubConnection]:
        """
        Hubs where from_line and to_line meet.

        Returns:
            Connections ordered by descending hub priority, then hub name.
        """
        hubs = [
            hub for hub in self._hubs.values()
            if hub.serves(from_line) and hub.serves(to_line)
        ]
        hubs.sort(key=lambda hub: (-hub.priority, hub.name))
        return [
            HubConnection(
                hub=hub,
                from_line=from_line,
                to_line=to_line,
                transfer_seconds=self.transfer_seconds(hub.name, from_line, to_line),
            )
            for hub in hubs
        ]

    def hubs_for_line(self, line: str) -> List[TransferHub]:
        hubs = [hub for hub in self._hubs.values() if hub.serves(line)]
        hubs.sort(key=lambda hub: (-hub.priority, hub.name))
        return hubs

    def best_connecting_hub(self, from_lines: Iterable[str], to_lines: Iterable[str]) -> Optional[TransferHub]:
        """
        Single best hub touching any origin line and any destination line.

        Scored by priority, +10 for user-priority hubs, and a bonus for hubs
        with fewer lines (simpler transfers).
        """
        from_set = set(from_lines)
        to_set = set(to_lines)
        best: Optional[TransferHub] = None
        best_score = -1
        for hub in sorted(self._hubs.values(), key=lambda h: h.name):
            if not (from_set & set(hub.lines)) or not (to_set & set(hub.lines)):
                continue
            score = hub.priority + (10 if hub.is_user_priority else 0) + max(0, 10 - len(hub.lines))
            if score > best_score:
                best_score = score
                best = hub
        return best
