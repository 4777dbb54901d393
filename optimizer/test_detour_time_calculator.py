"""
Unit tests for the DetourTimeCalculator.

Schedule used throughout (stop_duration = 10):

    S (depart 0) --100--> A (100..110) --90--> B (200..210)

New request O -> D with fixed leg times from MockEstimator.
"""

import math
import unittest
import logging

from demand.request import DrtRequest
from optimizer.detour_time_calculator import DetourTimeCalculator, DetourTimeInfo
from optimizer.insertion_generator import Insertion
from vehicles.schedule import Start, Stop, StopTask, Vehicle, create_vehicle_entry


class MockEstimator:
    """Fixed travel times; 0 for identical locations, KeyError for unknown legs."""

    def __init__(self, times):
        self.times = times
        self.queries = []

    def estimate_time(self, from_location, to_location):
        self.queries.append((from_location, to_location))
        if from_location == to_location:
            return 0.0
        return self.times[(from_location, to_location)]


LEG_TIMES = {
    ("S", "O"): 30.0,
    ("A", "O"): 20.0,
    ("B", "O"): 25.0,
    ("O", "A"): 80.0,
    ("O", "D"): 50.0,
    ("A", "D"): 40.0,
    ("D", "B"): 70.0,
    ("O", "B"): 60.0,
}


class TestDetourTimeCalculator(unittest.TestCase):
    """Test cases for detour legs and time losses."""

    def setUp(self):
        logging.disable(logging.CRITICAL)

        self.estimator = MockEstimator(LEG_TIMES)
        self.calculator = DetourTimeCalculator(self.estimator, stop_duration=10.0)

        passenger = DrtRequest("P0", "A", "B")
        self.entry = create_vehicle_entry(
            Vehicle("V1", 4),
            Start("S", 0.0, 0),
            [
                Stop(StopTask("A", 100.0, 110.0, pickup_requests=(passenger,)), 1),
                Stop(StopTask("B", 200.0, 210.0, dropoff_requests=(passenger,)), 0),
            ],
            now=0.0,
        )
        self.request = DrtRequest("R1", "O", "D")

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def insertion(self, pickup_idx, dropoff_idx, request=None):
        return Insertion(request or self.request, self.entry, pickup_idx, dropoff_idx)

    # ==================== Detour Legs ====================

    def test_legs_for_separate_pickup_and_dropoff(self):
        data = self.calculator.calculate_detour_times(self.insertion(0, 1))

        self.assertEqual(data.detour_to_pickup, 30.0)
        self.assertEqual(data.detour_from_pickup, 80.0)
        self.assertEqual(data.detour_to_dropoff, 40.0)
        self.assertEqual(data.detour_from_dropoff, 70.0)
        self.assertEqual((data.pickup_idx, data.dropoff_idx), (0, 1))

    def test_legs_collapse_when_pickup_and_dropoff_are_adjacent(self):
        data = self.calculator.calculate_detour_times(self.insertion(1, 1))

        self.assertEqual(data.detour_to_pickup, 20.0)
        self.assertEqual(data.detour_from_pickup, 50.0)
        self.assertEqual(data.detour_to_dropoff, 0.0)
        self.assertEqual(data.detour_from_dropoff, 70.0)

    def test_no_leg_after_dropoff_at_end_of_schedule(self):
        data = self.calculator.calculate_detour_times(self.insertion(2, 2))

        self.assertEqual(data.detour_to_pickup, 25.0)
        self.assertEqual(data.detour_from_pickup, 50.0)
        self.assertEqual(data.detour_to_dropoff, 0.0)
        self.assertTrue(math.isinf(data.detour_from_dropoff))

    def test_no_leg_queried_after_end_of_schedule(self):
        self.calculator.calculate_detour_times(self.insertion(2, 2))
        self.assertEqual(self.estimator.queries, [("B", "O"), ("O", "D")])

    # ==================== Time Losses ====================

    def test_time_info_for_separate_pickup_and_dropoff(self):
        info = self.calculator.calculate(self.insertion(0, 1))
        self.assertEqual(info, DetourTimeInfo(40.0, 170.0, 20.0, 30.0))
        self.assertEqual(info.total_time_loss, 50.0)

    def test_time_info_for_adjacent_pickup_and_dropoff(self):
        info = self.calculator.calculate(self.insertion(1, 1))
        self.assertEqual(info, DetourTimeInfo(140.0, 190.0, 30.0, 40.0))

    def test_time_info_for_append_at_end(self):
        info = self.calculator.calculate(self.insertion(2, 2))
        self.assertEqual(info, DetourTimeInfo(245.0, 295.0, 35.0, 60.0))

    def test_pickup_waits_for_earliest_start_time(self):
        request = DrtRequest("R2", "O", "D", earliest_start_time=300.0)
        info = self.calculator.calculate(self.insertion(2, 2, request))

        self.assertEqual(info.departure_time, 310.0)
        self.assertEqual(info.pickup_time_loss, 100.0)
        self.assertEqual(info.arrival_time, 360.0)

    def test_pickup_at_existing_stop_adds_no_dwell(self):
        request = DrtRequest("R2", "A", "D")
        info = self.calculator.calculate(self.insertion(1, 1, request))
        self.assertEqual(info, DetourTimeInfo(110.0, 150.0, 0.0, 30.0))

    def test_dropoff_at_existing_stop_adds_no_loss(self):
        request = DrtRequest("R2", "O", "B")
        info = self.calculator.calculate(self.insertion(0, 2, request))

        self.assertEqual(info.pickup_time_loss, 20.0)
        self.assertEqual(info.dropoff_time_loss, 0.0)
        self.assertEqual(info.arrival_time, 220.0)

    def test_losses_are_never_negative(self):
        shortcut = MockEstimator({("S", "O"): 10.0, ("O", "A"): 20.0, ("A", "D"): 5.0, ("D", "B"): 5.0})
        calculator = DetourTimeCalculator(shortcut, stop_duration=0.0)
        info = calculator.calculate(self.insertion(0, 1))

        self.assertEqual(info.pickup_time_loss, 0.0)
        self.assertEqual(info.dropoff_time_loss, 0.0)

    # ==================== Validation ====================

    def test_negative_stop_duration_raises(self):
        with self.assertRaises(ValueError):
            DetourTimeCalculator(self.estimator, stop_duration=-1.0)


if __name__ == '__main__':
    unittest.main(verbosity=2)
