"""Tests for EstimationFallbackModel."""

import random
import unittest
import sys
from pathlib import Path

# Add src to path so we can import subwayplanner
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from subwayplanner.clock import FixedClock
from subwayplanner.config import TransitConfig
from subwayplanner.estimation import EstimationFallbackModel
from subwayplanner.models import StepKind
from subwayplanner.stations import StationRegistry

NOW = 1_700_000_000


class TestEstimationFallbackModel(unittest.TestCase):
    """Test frequency-based estimates."""

    def setUp(self):
        """Set up test fixtures."""
        self.registry = StationRegistry.default()
        self.model = EstimationFallbackModel(TransitConfig(), random.Random(42), FixedClock(NOW))

    def test_wait_is_bounded(self):
        """Test half-headway waits with jitter of at most three minutes."""
        for _ in range(50):
            # F runs every 6 minutes
            self.assertIn(self.model.estimate_wait("F"), range(3, 7))
            # Unknown lines use the 8 minute default
            self.assertIn(self.model.estimate_wait("X"), range(4, 8))

    def test_wait_without_jitter(self):
        """Test the configured minimum and a zero jitter bound."""
        config = TransitConfig(max_additional_wait_minutes=0, min_wait_minutes=3, train_frequencies={"L": 2})
        model = EstimationFallbackModel(config, random.Random(1))
        self.assertEqual(model.estimate_wait("L"), 3)
        self.assertEqual(model.estimate_wait("C"), 4)  # default 8 minute headway

    def test_jitter_lower_bound(self):
        """Test that the jitter range is bounded on both sides."""
        config = TransitConfig(min_additional_wait_minutes=2, max_additional_wait_minutes=2)
        model = EstimationFallbackModel(config, random.Random(3))
        # F runs every 6 minutes: 3 + exactly 2
        self.assertEqual(model.estimate_wait("F"), 5)

        config = TransitConfig(min_additional_wait_minutes=1, max_additional_wait_minutes=3)
        model = EstimationFallbackModel(config, random.Random(3))
        for _ in range(50):
            self.assertIn(model.estimate_wait("F"), range(4, 7))

    def test_seeded_rng_is_deterministic(self):
        """Test that the same seed gives the same waits."""
        first = EstimationFallbackModel(rng=random.Random(7))
        second = EstimationFallbackModel(rng=random.Random(7))
        self.assertEqual(
            [first.estimate_wait("C") for _ in range(10)],
            [second.estimate_wait("C") for _ in range(10)],
        )

    def test_estimate_routes(self):
        """Test direct-shaped, non-real-time estimated routes."""
        origins = [self.registry.get("F20")]
        destinations = [self.registry.get("F18")]

        routes = self.model.estimate_routes(origins, destinations, departure_time=NOW)

        self.assertEqual(len(routes), 1)
        route = routes[0]
        self.assertEqual(route.lines, ["F"])
        self.assertFalse(route.is_real_time_data)
        self.assertEqual(route.confidence_level, "low")
        self.assertEqual(route.transfer_count, 0)
        self.assertEqual([s.kind for s in route.steps], [StepKind.BOARD, StepKind.ARRIVE])
        wait = route.steps[0].wait_minutes
        self.assertEqual(route.total_minutes, wait + 18 + 8)
        self.assertEqual(route.estimated_arrival_time, NOW + route.total_minutes * 60)
        self.assertTrue(all(s.next_departure is None for s in route.steps))

    def test_estimate_routes_without_shared_line(self):
        """Test that the origin's lines stand in when no line is shared."""
        routes = self.model.estimate_routes([self.registry.get("F20")], [self.registry.get("A23")])

        self.assertEqual(sorted(r.lines[0] for r in routes), ["F", "G"])
        self.assertIsNone(routes[0].estimated_arrival_time)

    def test_synthetic_departures(self):
        """Test three evenly spaced synthetic departures."""
        departures = self.model.synthetic_departures("C")

        self.assertEqual(len(departures), 3)
        self.assertTrue(all(d.is_estimate for d in departures))
        self.assertTrue(all(d.feed_source == "estimate" for d in departures))
        self.assertEqual(departures[1].departure_time - departures[0].departure_time, 10 * 60)
        self.assertTrue(all(d.departure_time > NOW for d in departures))
        self.assertEqual(departures[0].relative_time, str((departures[0].departure_time - NOW) // 60))


if __name__ == "__main__":
    unittest.main()
