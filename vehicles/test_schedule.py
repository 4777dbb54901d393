"""
Unit tests for vehicle schedule snapshots.

This test suite validates waypoint indexing, slack time computation,
occupancy validation and loading schedules from scenario dictionaries.
"""

import math
import unittest
import logging

from demand.request import DrtRequest
from vehicles.schedule import (
    Start,
    Stop,
    StopTask,
    Vehicle,
    VehicleEntry,
    compute_slack_times,
    create_vehicle_entry,
    vehicle_entry_from_dict,
)


class TestVehicleEntry(unittest.TestCase):
    """Test cases for VehicleEntry and its factory functions."""

    def setUp(self):
        logging.disable(logging.CRITICAL)

        self.vehicle = Vehicle("V1", 4, service_end_time=1000.0)
        self.p0 = DrtRequest("P0", "S", "A", latest_arrival_time=150.0)
        self.p1 = DrtRequest("P1", "B", "C", latest_start_time=260.0, latest_arrival_time=400.0)

        self.start = Start("S", 0.0, 1)
        self.stops = [
            Stop(StopTask("A", 100.0, 110.0, dropoff_requests=(self.p0,)), 0),
            Stop(StopTask("B", 200.0, 210.0, pickup_requests=(self.p1,)), 1),
            Stop(StopTask("C", 300.0, 310.0, dropoff_requests=(self.p1,)), 0),
        ]

    def tearDown(self):
        logging.disable(logging.NOTSET)

    # ==================== Waypoint Tests ====================

    def test_waypoint_indexing(self):
        entry = create_vehicle_entry(self.vehicle, self.start, self.stops, now=0.0)

        self.assertEqual(entry.stop_count, 3)
        self.assertIs(entry.get_waypoint(0), self.start)
        self.assertIs(entry.get_waypoint(1), self.stops[0])
        self.assertIs(entry.get_waypoint(3), self.stops[2])
        self.assertEqual(entry.vehicle_id, "V1")

    def test_waypoint_out_of_range(self):
        entry = create_vehicle_entry(self.vehicle, self.start, self.stops, now=0.0)
        with self.assertRaises(IndexError):
            entry.get_waypoint(4)
        with self.assertRaises(IndexError):
            entry.get_waypoint(-1)

    def test_stop_time_bounds(self):
        self.assertEqual(self.stops[0].latest_arrival_time, 150.0)
        self.assertTrue(math.isinf(self.stops[0].latest_departure_time))
        self.assertEqual(self.stops[1].latest_departure_time, 260.0)
        self.assertEqual(self.stops[1].arrival_time, 200.0)
        self.assertEqual(self.stops[1].departure_time, 210.0)

    def test_stops_are_stored_as_tuple(self):
        entry = VehicleEntry(self.vehicle, self.start, list(self.stops))
        self.assertIsInstance(entry.stops, tuple)

    # ==================== Slack Tests ====================

    def test_slack_times(self):
        slack = compute_slack_times(self.vehicle, 0.0, self.start, self.stops)
        self.assertEqual(slack, (50.0, 50.0, 100.0, 690.0))

    def test_slack_without_stops(self):
        slack = compute_slack_times(self.vehicle, 400.0, Start("S", 300.0, 0), [])
        self.assertEqual(slack, (600.0,))

    def test_unbounded_vehicle_slack(self):
        slack = compute_slack_times(Vehicle("V2", 4), 0.0, Start("S", 0.0, 0), [])
        self.assertTrue(math.isinf(slack[0]))

    def test_entry_carries_slack(self):
        entry = create_vehicle_entry(self.vehicle, self.start, self.stops, now=0.0)
        self.assertEqual(entry.get_slack_time(1), 50.0)
        self.assertEqual(entry.get_slack_time(3), 690.0)

    # ==================== Validation Tests ====================

    def test_over_capacity_raises(self):
        stops = [Stop(StopTask("A", 100.0, 110.0), 5), Stop(StopTask("B", 200.0, 210.0), 0)]
        with self.assertRaises(ValueError):
            create_vehicle_entry(self.vehicle, Start("S", 0.0, 0), stops, now=0.0)

    def test_nonzero_end_occupancy_raises(self):
        stops = [Stop(StopTask("A", 100.0, 110.0), 2)]
        with self.assertRaises(ValueError):
            create_vehicle_entry(self.vehicle, Start("S", 0.0, 0), stops, now=0.0)

    def test_missing_slack_times_raise(self):
        stops = [Stop(StopTask("A", 100.0, 110.0), 0)]
        entry = VehicleEntry(self.vehicle, Start("S", 0.0, 0), stops)
        with self.assertRaises(ValueError):
            entry.validate()

        entry = VehicleEntry(self.vehicle, Start("S", 0.0, 0), stops, slack_times=(10.0,))
        with self.assertRaises(ValueError):
            entry.validate()

    def test_valid_entry_passes_validation(self):
        entry = create_vehicle_entry(self.vehicle, self.start, self.stops, now=0.0)
        entry.validate()
        self.assertEqual(len(entry.slack_times), entry.stop_count + 1)

    def test_invalid_capacity_raises(self):
        with self.assertRaises(ValueError):
            Vehicle("V0", 0)

    def test_stop_ending_before_it_begins_raises(self):
        with self.assertRaises(ValueError):
            StopTask("A", 100.0, 90.0)

    # ==================== Scenario Loading Tests ====================

    def test_vehicle_entry_from_dict(self):
        data = {
            "vehicle_id": "M1",
            "capacity": 4,
            "service_end_time": 1000,
            "start": {"location": "S", "time": 0.0, "occupancy": 1},
            "stops": [
                {"location": "A", "begin_time": 100, "end_time": 110,
                 "outgoing_occupancy": 0, "dropoff_request_ids": ["P0"]},
            ],
        }
        entry = vehicle_entry_from_dict(data, {"P0": self.p0}, now=0.0)

        self.assertEqual(entry.vehicle_id, "M1")
        self.assertEqual(entry.stop_count, 1)
        self.assertEqual(entry.stops[0].task.dropoff_requests, (self.p0,))
        self.assertEqual(entry.slack_times, (50.0, 890.0))

    def test_unknown_request_reference_raises(self):
        data = {
            "vehicle_id": "M1",
            "capacity": 4,
            "start": {"location": "S", "occupancy": 1},
            "stops": [
                {"location": "A", "begin_time": 100, "end_time": 110,
                 "outgoing_occupancy": 0, "dropoff_request_ids": ["missing"]},
            ],
        }
        with self.assertRaises(KeyError):
            vehicle_entry_from_dict(data, {}, now=0.0)


if __name__ == '__main__':
    unittest.main(verbosity=2)
