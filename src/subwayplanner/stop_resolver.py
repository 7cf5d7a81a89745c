"""Matching of station base stop ids against the stop ids seen in a feed."""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional, Tuple

from .exceptions import NoMatchingStop
from .models import Direction, StopTimeUpdate
from .tracing import Tracer

logger = logging.getLogger(__name__)


class MatchRule(IntEnum):
    """Stop id matching rules, most precise first."""
    EXACT_DIRECTIONAL = 1  # F20N
    EXACT_BASE = 2  # F20, direction-agnostic request
    SEPARATED_DIRECTIONAL = 3  # F20_N, F20-N, F20 N
    PREFIX_DIRECTIONAL = 4  # starts with F20, remainder names the direction
    DEGRADED_BASE = 5  # F20 although F20N was asked for
    ANY_PLATFORM = 6  # F20N or F20S, direction-agnostic request with no bare F20


@dataclass(frozen=True)
class StopMatch:
    rule: MatchRule
    stop_ids: Tuple[str, ...]

    @property
    def degraded(self) -> bool:
        return self.rule is MatchRule.DEGRADED_BASE


def base_stop_id(stop_id: str) -> str:
    """Strip a trailing N/S direction suffix (F20N -> F20)."""
    if len(stop_id) > 1 and stop_id[-1] in "NS" and stop_id[-2].isdigit():
        return stop_id[:-1]
    return stop_id


def directional_stop_id(stop_id: str, direction: Direction) -> str:
    """F20 + northbound -> F20N."""
    return f"{base_stop_id(stop_id)}{direction.suffix}"


class DirectionalStopResolver:
    """Decides which feed stop ids stand for a station platform in one direction."""

    def __init__(self, tracer: Optional[Tracer] = None):
        self.tracer = tracer or Tracer()

    def match(self, base: str, direction: Optional[Direction], stop_id: str) -> Optional[MatchRule]:
        """
        Return the first rule under which stop_id matches, or None.

        Args:
            base: Station base stop id (a directional id is reduced to its base).
            direction: Requested direction, or None for any platform.
            stop_id: Stop id observed in a feed.
        """
        base = base_stop_id(base)
        if direction is None:
            if stop_id == base:
                return MatchRule.EXACT_BASE
            if stop_id in (f"{base}N", f"{base}S"):
                return MatchRule.ANY_PLATFORM
            return None

        suffix = direction.suffix
        if stop_id == f"{base}{suffix}":
            return MatchRule.EXACT_DIRECTIONAL
        if stop_id in (f"{base}_{suffix}", f"{base}-{suffix}", f"{base} {suffix}"):
            return MatchRule.SEPARATED_DIRECTIONAL
        if stop_id.startswith(base) and stop_id != base:
            remainder = stop_id[len(base):]
            # A following digit means a different stop (F201 is not F20)
            if not remainder[0].isdigit() and suffix in remainder.upper():
                return MatchRule.PREFIX_DIRECTIONAL
        if stop_id == base:
            return MatchRule.DEGRADED_BASE
        return None

    def resolve(self, base: str, direction: Optional[Direction], observed_stop_ids: Iterable[str]) -> StopMatch:
        """
        Pick the stop ids to use for a station platform.

        Rules are tried in priority order; the first rule that matches any
        observed stop id wins and only the ids it matched are returned.

        Raises:
            NoMatchingStop: If no rule matches any observed stop id.
        """
        best_rule: Optional[MatchRule] = None
        matched = []
        for stop_id in set(observed_stop_ids):
            rule = self.match(base, direction, stop_id)
            if rule is None:
                continue
            if best_rule is None or rule < best_rule:
                best_rule = rule
                matched = [stop_id]
            elif rule == best_rule:
                matched.append(stop_id)

        if best_rule is None:
            self.tracer.event("stop.unmatched", base=base, direction=_label(direction))
            raise NoMatchingStop(base_stop_id(base), direction)

        if best_rule is MatchRule.DEGRADED_BASE:
            logger.warning(
                f"Degraded stop match for {base} ({_label(direction)}): using direction-agnostic id"
            )
        self.tracer.event(
            "stop.matched",
            base=base,
            direction=_label(direction),
            rule=best_rule.name,
            stop_ids=sorted(matched),
        )
        return StopMatch(rule=best_rule, stop_ids=tuple(sorted(matched)))

    @staticmethod
    def is_eligible(update: StopTimeUpdate, now: float) -> bool:
        """True when the stop time (departure, else arrival) is strictly after now."""
        event_time = update.event_time
        return event_time is not None and event_time > now


def _label(direction: Optional[Direction]) -> str:
    return direction.value if direction is not None else "any"
