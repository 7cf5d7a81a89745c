"""Tests for StopTimeIndex."""

import unittest
import sys
from pathlib import Path

# Add src to path so we can import subwayplanner
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from google.transit import gtfs_realtime_pb2

from gtfs_fixtures import build_feed
from subwayplanner.stop_index import StopTimeIndex, schedule_violations

NOW = 1_700_000_000


class TestTripUpdates(unittest.TestCase):
    """Test trip update extraction."""

    def setUp(self):
        """Set up test fixtures."""
        self.index = StopTimeIndex()

    def test_filters_by_line(self):
        """Test that only trips on requested lines are returned."""
        feed = build_feed(trips=[
            ("f1", "F", [("F20N", NOW + 60)]),
            ("g1", "G", [("F20N", NOW + 120)]),
            ("m1", "M", [("F18N", NOW + 180)]),
        ])

        trips = self.index.trip_updates(feed, ["F", "M"])

        self.assertEqual([t.trip_id for t in trips], ["f1", "m1"])
        self.assertEqual(trips[0].route_id, "F")

    def test_bounded_trip_count(self):
        """Test the default limit of four trips and an unbounded call."""
        feed = build_feed(trips=[(f"f{i}", "F", [("F20N", NOW + i)]) for i in range(6)])

        self.assertEqual(len(self.index.trip_updates(feed, ["F"])), 4)
        self.assertEqual(len(self.index.trip_updates(feed, ["F"], limit=None)), 6)

    def test_times_are_native_ints(self):
        """Test that 64-bit times decode to plain ints, including past 2038."""
        far_future = 4_102_444_800  # 2100-01-01
        feed = build_feed(trips=[("f1", "F", [("F20N", (far_future - 30, far_future))])])

        update = self.index.trip_updates(feed, ["F"])[0].stop_time_updates[0]

        self.assertEqual(update.arrival_time, far_future - 30)
        self.assertEqual(update.departure_time, far_future)
        self.assertIsInstance(update.departure_time, int)
        self.assertEqual(update.event_time, far_future)

    def test_missing_times_stay_none(self):
        """Test that absent arrival/departure fields are not read as zero."""
        feed = build_feed(trips=[("f1", "F", [("F20N", (NOW + 60, None))])])

        update = self.index.trip_updates(feed, ["F"])[0].stop_time_updates[0]

        self.assertEqual(update.arrival_time, NOW + 60)
        self.assertIsNone(update.departure_time)
        self.assertEqual(update.event_time, NOW + 60)

    def test_feed_order_kept_unless_sorting_requested(self):
        """Test explicit stop-sequence sorting."""
        feed = gtfs_realtime_pb2.FeedMessage()
        feed.header.gtfs_realtime_version = "2.0"
        entity = feed.entity.add()
        entity.id = "f1"
        entity.trip_update.trip.trip_id = "f1"
        entity.trip_update.trip.route_id = "F"
        for stop_id, sequence in (("F21N", 2), ("F22N", 1)):
            stu = entity.trip_update.stop_time_update.add()
            stu.stop_id = stop_id
            stu.stop_sequence = sequence

        unsorted = self.index.trip_updates(feed, ["F"])[0]
        ordered = self.index.trip_updates(feed, ["F"], sort_by_sequence=True)[0]

        self.assertEqual([u.stop_id for u in unsorted.stop_time_updates], ["F21N", "F22N"])
        self.assertEqual([u.stop_id for u in ordered.stop_time_updates], ["F22N", "F21N"])

    def test_drop_invalid_trips(self):
        """Test that a trip departing a stop after arriving at the next is dropped on request."""
        feed = build_feed(trips=[
            ("bad", "F", [("F20N", (NOW, NOW + 600)), ("F18N", (NOW + 300, NOW + 320))]),
            ("good", "F", [("F20N", (NOW, NOW + 30)), ("F18N", (NOW + 300, NOW + 320))]),
        ])

        trips = self.index.trip_updates(feed, ["F"], drop_invalid=True)

        self.assertEqual([t.trip_id for t in trips], ["good"])
        self.assertEqual(len(schedule_violations(self.index.trip_updates(feed, ["F"])[0])), 1)

    def test_stop_ids(self):
        """Test collection of every referenced stop id."""
        feed = build_feed(trips=[
            ("f1", "F", [("F20N", NOW), ("F18N", NOW + 60)]),
            ("g1", "G", [("F20S", NOW)]),
        ])

        self.assertEqual(self.index.stop_ids(feed), {"F20N", "F18N", "F20S"})


class TestAlerts(unittest.TestCase):
    """Test service alert extraction."""

    def test_alerts_for_lines(self):
        """Test that alerts are filtered to the requested lines."""
        feed = build_feed(alerts=[
            ("a1", "F", "Delays on the F", "Signal problems at Jay St"),
            ("a2", "G", "G trains rerouted", ""),
        ])

        alerts = StopTimeIndex.alerts_for_lines(feed, ["F"])

        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0].route_id, "F")
        self.assertEqual(alerts[0].header, "Delays on the F")
        self.assertEqual(alerts[0].message, "Delays on the F Signal problems at Jay St")


if __name__ == "__main__":
    unittest.main()
