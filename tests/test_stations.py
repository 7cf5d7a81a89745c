"""Tests for StationRegistry."""

import os
import tempfile
import unittest
import sys
from pathlib import Path

# Add src to path so we can import subwayplanner
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from subwayplanner.exceptions import StationNotFound
from subwayplanner.geo import haversine_miles
from subwayplanner.stations import StationRegistry, normalize_name


class TestStationRegistry(unittest.TestCase):
    """Test station lookups."""

    def setUp(self):
        """Set up test fixtures."""
        self.registry = StationRegistry.default()

    def test_get_by_id(self):
        """Test retrieving a station by id."""
        station = self.registry.get("F20")
        self.assertEqual(station.name, "Carroll St")
        self.assertEqual(station.lines, ("F", "G"))

    def test_get_not_found(self):
        """Test error handling for a non-existent station."""
        with self.assertRaises(StationNotFound):
            self.registry.get("NONEXISTENT")
        with self.assertRaises(ValueError):
            self.registry.get("NONEXISTENT")

    def test_exact_name_match_wins(self):
        """Test that an exact case-insensitive match skips substring matching."""
        results = self.registry.find_by_name("23RD ST-8TH AVE")
        self.assertEqual([s.station_id for s in results], ["A23"])

    def test_normalized_substring_match(self):
        """Test alphanumeric-only matching in both directions."""
        self.assertEqual([s.name for s in self.registry.find_by_name("jay st metrotech")], ["Jay St-MetroTech"])
        self.assertEqual([s.name for s in self.registry.find_by_name("Carroll St station")], ["Carroll St"])
        self.assertEqual(self.registry.find_by_name("!!!"), [])

    def test_duplicate_names(self):
        """Test that stations sharing a name are all returned."""
        ids = sorted(s.station_id for s in self.registry.find_by_name("23rd St"))
        self.assertEqual(ids, ["F18", "R20"])

    def test_resolve(self):
        """Test resolving ids first, then names."""
        self.assertEqual(self.registry.resolve("A41")[0].name, "Jay St-MetroTech")
        self.assertEqual(self.registry.resolve("Carroll")[0].station_id, "F20")
        with self.assertRaises(StationNotFound):
            self.registry.resolve("Atlantis")

    def test_stations_for_line(self):
        """Test lookup by line."""
        ids = {s.station_id for s in self.registry.stations_for_line("G")}
        self.assertIn("F20", ids)
        self.assertIn("F26", ids)

    def test_nearest(self):
        """Test nearest station lookup from coordinates."""
        station, miles = self.registry.nearest(40.6794, -73.9955)
        self.assertEqual(station.name, "Carroll St")
        self.assertLess(miles, 0.05)

    def test_nearest_for_line(self):
        """Test nearest stations on one line, closest first."""
        results = self.registry.nearest_for_line(40.6794, -73.9955, "C", limit=2)
        self.assertEqual(len(results), 2)
        self.assertLessEqual(results[0][1], results[1][1])
        self.assertTrue(all(s.serves("C") for s, _ in results))

    def test_per_line_stop_ids(self):
        """Test that complexes map lines to their feed stop ids."""
        jay = self.registry.get("A41")
        self.assertEqual(jay.stop_id_for_line("F"), "F25")
        self.assertEqual(jay.stop_id_for_line("A"), "A41")


class TestStationCsv(unittest.TestCase):
    """Test loading a station table from CSV."""

    def test_from_csv(self):
        """Test parsing of lines and per-line stop ids."""
        csv_data = """station_id,name,lines,latitude,longitude,stop_ids
A41,Jay St-MetroTech,A C F R,40.692338,-73.987342,F:F25 R:R29
F20,Carroll St,F G,40.679371,-73.995458,
"""
        with tempfile.NamedTemporaryFile("w", suffix=".csv", delete=False) as handle:
            handle.write(csv_data)
            path = handle.name
        try:
            registry = StationRegistry.from_csv(path)
        finally:
            os.unlink(path)

        self.assertEqual(len(registry), 2)
        jay = registry.get("A41")
        self.assertEqual(jay.lines, ("A", "C", "F", "R"))
        self.assertEqual(jay.stop_id_for_line("R"), "R29")
        self.assertEqual(registry.get("F20").stop_ids, {})
        self.assertAlmostEqual(registry.get("F20").latitude, 40.679371, places=5)

    def test_from_csv_missing_columns(self):
        """Test that a table without coordinates is rejected."""
        with tempfile.NamedTemporaryFile("w", suffix=".csv", delete=False) as handle:
            handle.write("station_id,name,lines\nF20,Carroll St,F G\n")
            path = handle.name
        try:
            with self.assertRaises(ValueError):
                StationRegistry.from_csv(path)
        finally:
            os.unlink(path)


class TestGeo(unittest.TestCase):
    """Test distance helpers."""

    def test_haversine(self):
        """Test a known distance and the zero case."""
        self.assertEqual(haversine_miles(40.7, -73.9, 40.7, -73.9), 0)
        # One degree of latitude is about 69 miles
        self.assertAlmostEqual(haversine_miles(40.0, -73.9, 41.0, -73.9), 69.1, places=1)

    def test_normalize_name(self):
        """Test alphanumeric-only names."""
        self.assertEqual(normalize_name("Jay St-MetroTech"), "jaystmetrotech")


if __name__ == "__main__":
    unittest.main()
