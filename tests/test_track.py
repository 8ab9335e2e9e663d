"""Tests for track record decoding."""
import unittest

from gdb_fixtures import track_payload, trackpoint
from gdbfile import TruncatedDataError, decode_track
from models import Color


class TestDecodeTrack(unittest.TestCase):

    def setUp(self):
        self.points = [
            trackpoint(45.0, 11.25, altitude=120.0, creation_time=3600),
            trackpoint(45.001, 11.251, depth=2.0, temperature=18.5),
            trackpoint(45.002, 11.252, altitude=2.0e24),
        ]

    def test_header_fields(self):
        track = decode_track(track_payload(name="Lake loop", color=10, points=self.points))
        self.assertEqual(track.name, "Lake loop")
        self.assertEqual(track.color, Color.RED)
        self.assertEqual(len(track), 3)

    def test_point_fields(self):
        track = decode_track(track_payload(points=self.points))
        first, second, third = track.points
        self.assertEqual((first.latitude, first.longitude), (45.0, 11.25))
        self.assertEqual(first.altitude, 120.0)
        self.assertEqual(first.creation_time, 3600)
        self.assertIsNone(first.depth)
        self.assertIsNone(second.altitude)
        self.assertEqual(second.depth, 2.0)
        self.assertEqual(second.temperature, 18.5)
        self.assertIsNone(third.altitude)

    def test_points_in_order(self):
        track = decode_track(track_payload(points=self.points))
        lats = [p.latitude for p in track]
        self.assertEqual(lats, sorted(lats))
        self.assertAlmostEqual(lats[1], 45.001, places=6)

    def test_declared_count_exceeds_data(self):
        """count = 3 with only two points worth of bytes."""
        payload = track_payload(points=self.points[:2], count=3)
        with self.assertRaises(TruncatedDataError):
            decode_track(payload)

    def test_empty_track(self):
        track = decode_track(track_payload(name="", points=()))
        self.assertEqual(len(track), 0)
        self.assertEqual(track.bounds(), (0, 0, 0, 0))
        self.assertEqual(track.total_distance(), 0.0)

    def test_distance_and_bounds(self):
        track = decode_track(track_payload(points=self.points))
        min_lat, min_lng, max_lat, max_lng = track.bounds()
        self.assertEqual((min_lat, min_lng), (45.0, 11.25))
        self.assertAlmostEqual(max_lat, 45.002, places=6)
        # ~0.002 deg diagonal at 45N is roughly 270 m
        self.assertGreater(track.total_distance(), 200)
        self.assertLess(track.total_distance(), 350)


class TestColor(unittest.TestCase):

    def test_lookup(self):
        self.assertEqual(Color.from_index(0), Color.DEFAULT)
        self.assertEqual(Color.from_index(1), Color.BLACK)
        self.assertEqual(Color.from_index(17), Color.TRANSPARENT)

    def test_unknown_index(self):
        self.assertEqual(Color.from_index(18), Color.UNKNOWN)
        self.assertEqual(Color.from_index(-1), Color.UNKNOWN)


if __name__ == '__main__':
    unittest.main()
