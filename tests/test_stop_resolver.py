"""Tests for DirectionalStopResolver."""

import unittest
import sys
from pathlib import Path

# Add src to path so we can import subwayplanner
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from subwayplanner.exceptions import NoMatchingStop
from subwayplanner.models import Direction, StopTimeUpdate
from subwayplanner.stop_resolver import (
    DirectionalStopResolver,
    MatchRule,
    base_stop_id,
    directional_stop_id,
)
from subwayplanner.tracing import RecordingTracer

NORTH = Direction.NORTH
SOUTH = Direction.SOUTH


class TestStopIdHelpers(unittest.TestCase):
    """Test stop id suffix handling."""

    def test_base_stop_id(self):
        """Test stripping of direction suffixes."""
        self.assertEqual(base_stop_id("F20N"), "F20")
        self.assertEqual(base_stop_id("F20S"), "F20")
        self.assertEqual(base_stop_id("F20"), "F20")
        self.assertEqual(base_stop_id("S"), "S")

    def test_directional_stop_id(self):
        """Test building directional ids, including from a directional id."""
        self.assertEqual(directional_stop_id("F20", NORTH), "F20N")
        self.assertEqual(directional_stop_id("F20N", SOUTH), "F20S")


class TestMatchRules(unittest.TestCase):
    """Test each matching rule in isolation."""

    def setUp(self):
        """Set up test fixtures."""
        self.resolver = DirectionalStopResolver(RecordingTracer())

    def test_exact_directional(self):
        """Test rule 1: base plus suffix."""
        self.assertEqual(self.resolver.match("F20", NORTH, "F20N"), MatchRule.EXACT_DIRECTIONAL)
        self.assertIsNone(self.resolver.match("F20", NORTH, "F20S"))

    def test_exact_base_for_any_direction(self):
        """Test rule 2: bare base id for a direction-agnostic request."""
        self.assertEqual(self.resolver.match("F20", None, "F20"), MatchRule.EXACT_BASE)
        self.assertIsNone(self.resolver.match("F20", None, "F201N"))

    def test_any_platform_for_any_direction(self):
        """Test rule 6: either directional id for a direction-agnostic request."""
        self.assertEqual(self.resolver.match("F20", None, "F20N"), MatchRule.ANY_PLATFORM)
        self.assertEqual(self.resolver.match("F20", None, "F20S"), MatchRule.ANY_PLATFORM)
        self.assertIsNone(self.resolver.match("F20", None, "F20_N"))

    def test_separated_directional(self):
        """Test rule 3: underscore, dash and space separators."""
        for stop_id in ("F20_N", "F20-N", "F20 N"):
            self.assertEqual(self.resolver.match("F20", NORTH, stop_id), MatchRule.SEPARATED_DIRECTIONAL)

    def test_prefix_directional(self):
        """Test rule 4: starts with the base and names the direction."""
        self.assertEqual(self.resolver.match("F20", NORTH, "F20-PLATFORM-N"), MatchRule.PREFIX_DIRECTIONAL)
        self.assertIsNone(self.resolver.match("F20", SOUTH, "F20-PLATFORM-N"))

    def test_prefix_rejects_longer_stop_number(self):
        """Test that F201N is not taken for F20."""
        self.assertIsNone(self.resolver.match("F20", NORTH, "F201N"))

    def test_degraded_base(self):
        """Test rule 5: bare base id although a direction was requested."""
        self.assertEqual(self.resolver.match("F20", NORTH, "F20"), MatchRule.DEGRADED_BASE)

    def test_unrelated_stop(self):
        """Test that other stations never match."""
        self.assertIsNone(self.resolver.match("F20", NORTH, "A41N"))
        self.assertIsNone(self.resolver.match("F20", NORTH, "F2N"))


class TestResolve(unittest.TestCase):
    """Test rule priority across everything observed in a feed."""

    def setUp(self):
        """Set up test fixtures."""
        self.tracer = RecordingTracer()
        self.resolver = DirectionalStopResolver(self.tracer)

    def test_most_precise_rule_wins(self):
        """Test that an exact directional id beats weaker matches."""
        match = self.resolver.resolve("F20", NORTH, ["F20", "F20_N", "F20N", "F20S"])

        self.assertEqual(match.rule, MatchRule.EXACT_DIRECTIONAL)
        self.assertEqual(match.stop_ids, ("F20N",))
        self.assertFalse(match.degraded)
        self.assertEqual(self.tracer.named("stop.matched")[0]["rule"], "EXACT_DIRECTIONAL")

    def test_degraded_match_is_flagged(self):
        """Test that only a bare base id gives a degraded match."""
        with self.assertLogs("subwayplanner.stop_resolver", level="WARNING"):
            match = self.resolver.resolve("F20", SOUTH, ["F20", "A41S"])

        self.assertTrue(match.degraded)
        self.assertEqual(match.stop_ids, ("F20",))

    def test_any_station_id_in_feed_matches(self):
        """Test that a base id present with or without suffix always resolves."""
        for observed in (["F20N"], ["F20S"], ["F20"]):
            for direction in (NORTH, SOUTH):
                stop_id = observed[0]
                if stop_id.endswith(("N", "S")) and stop_id[-1] != direction.suffix:
                    continue
                self.assertIsNotNone(self.resolver.resolve("F20", direction, observed))

    def test_undirected_request_takes_both_platforms(self):
        """Test that a feed with only directional ids resolves for any direction."""
        match = self.resolver.resolve("F20", None, ["F20N", "F20S", "F18N"])

        self.assertEqual(match.rule, MatchRule.ANY_PLATFORM)
        self.assertEqual(match.stop_ids, ("F20N", "F20S"))

    def test_bare_id_beats_platforms_for_undirected_request(self):
        match = self.resolver.resolve("F20", None, ["F20", "F20N", "F20S"])

        self.assertEqual(match.rule, MatchRule.EXACT_BASE)
        self.assertEqual(match.stop_ids, ("F20",))

    def test_no_match_raises(self):
        """Test NoMatchingStop when every rule is exhausted."""
        with self.assertRaises(NoMatchingStop) as ctx:
            self.resolver.resolve("F20", NORTH, ["A41N", "F18N"])

        self.assertEqual(ctx.exception.base_stop_id, "F20")
        self.assertEqual(len(self.tracer.named("stop.unmatched")), 1)

    def test_eligibility_is_strictly_after_now(self):
        """Test that stop times at or before now are not eligible."""
        now = 1_700_000_000
        self.assertTrue(DirectionalStopResolver.is_eligible(StopTimeUpdate("F20N", 1, departure_time=now + 1), now))
        self.assertFalse(DirectionalStopResolver.is_eligible(StopTimeUpdate("F20N", 1, departure_time=now), now))
        self.assertTrue(DirectionalStopResolver.is_eligible(StopTimeUpdate("F20N", 1, arrival_time=now + 5), now))
        self.assertFalse(DirectionalStopResolver.is_eligible(StopTimeUpdate("F20N", 1), now))


if __name__ == "__main__":
    unittest.main()
