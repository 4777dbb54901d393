"""
Unit tests for the travel time estimators.
"""

import os
import json
import shutil
import tempfile
import unittest
import logging

import numpy as np

from network.time_estimator import (
    BeelineTimeEstimator,
    MatrixTimeEstimator,
    create_time_estimator,
    haversine_m,
)
from network.travel_time_manager import TravelTimeManager
from demand.request import DrtRequest
from optimizer.insertion_search import create_insertion_search
from vehicles.schedule import Start, Vehicle, create_vehicle_entry

# one degree of latitude on a 6371 km sphere
ONE_DEGREE_M = 111194.93


class TestBeelineTimeEstimator(unittest.TestCase):
    """Test cases for haversine distance and BeelineTimeEstimator."""

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.coordinates = {"A": (0.0, 0.0), "B": (1.0, 0.0), "C": (47.3769, 8.5417)}

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def test_haversine_one_degree(self):
        self.assertAlmostEqual(haversine_m(0.0, 0.0, 1.0, 0.0), ONE_DEGREE_M, delta=1.0)

    def test_haversine_same_point(self):
        self.assertEqual(haversine_m(47.3769, 8.5417, 47.3769, 8.5417), 0.0)

    def test_estimate_time(self):
        estimator = BeelineTimeEstimator(self.coordinates, speed=10.0, beeline_distance_factor=1.3)
        self.assertAlmostEqual(
            estimator.estimate_time("A", "B"), ONE_DEGREE_M * 1.3 / 10.0, delta=0.5
        )

    def test_estimate_time_is_symmetric(self):
        estimator = BeelineTimeEstimator(self.coordinates, speed=8.33)
        self.assertAlmostEqual(estimator.estimate_time("A", "C"), estimator.estimate_time("C", "A"))

    def test_same_location_is_zero(self):
        estimator = BeelineTimeEstimator(self.coordinates, speed=8.33)
        self.assertEqual(estimator.estimate_time("C", "C"), 0.0)

    def test_unknown_location_raises(self):
        estimator = BeelineTimeEstimator(self.coordinates, speed=8.33)
        with self.assertRaises(ValueError):
            estimator.estimate_time("A", "Z")

    def test_invalid_parameters_raise(self):
        with self.assertRaises(ValueError):
            BeelineTimeEstimator(self.coordinates, speed=0.0)
        with self.assertRaises(ValueError):
            BeelineTimeEstimator(self.coordinates, speed=8.33, beeline_distance_factor=0.5)


class TestMatrixTimeEstimator(unittest.TestCase):
    """Test cases for MatrixTimeEstimator and create_time_estimator."""

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.tmp_dir = tempfile.mkdtemp()

        base = np.array([[0, 120], [150, 0]], dtype=float)
        matrix = np.stack([base, base * 2], axis=2)
        matrix_path = os.path.join(self.tmp_dir, 'matrix.npy')
        metadata_path = os.path.join(self.tmp_dir, 'metadata.json')
        np.save(matrix_path, matrix)
        with open(metadata_path, 'w', encoding='utf-8') as f:
            json.dump({'station_mapping': {'A': 0, 'B': 1}, 'time_slot_duration': 600}, f)

        self.manager = TravelTimeManager(matrix_path, metadata_path)

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)
        logging.disable(logging.NOTSET)

    def test_uses_time_slot_of_departure_time(self):
        self.assertEqual(MatrixTimeEstimator(self.manager, 0.0).estimate_time('A', 'B'), 120.0)
        self.assertEqual(MatrixTimeEstimator(self.manager, 900.0).estimate_time('B', 'A'), 300.0)

    def test_same_station_is_zero(self):
        self.assertEqual(MatrixTimeEstimator(self.manager, 0.0).estimate_time('B', 'B'), 0.0)

    def test_unreachable_pair_fails_insertion_search(self):
        matrix = np.stack([np.array([[0, np.inf], [60, 0]], dtype=float)], axis=2)
        matrix_path = os.path.join(self.tmp_dir, 'unreachable.npy')
        metadata_path = os.path.join(self.tmp_dir, 'unreachable.json')
        np.save(matrix_path, matrix)
        with open(metadata_path, 'w', encoding='utf-8') as f:
            json.dump({'station_mapping': {'A': 0, 'B': 1}, 'time_slot_duration': 600}, f)

        estimator = MatrixTimeEstimator(TravelTimeManager(matrix_path, metadata_path), 0.0)
        search = create_insertion_search({'stop_duration': 0.0}, estimator)
        entry = create_vehicle_entry(Vehicle('V1', 4), Start('A', 0.0, 0), [], now=0.0)

        with self.assertRaises(ValueError):
            estimator.estimate_time('A', 'B')
        with self.assertRaises(ValueError):
            search.find_feasible_insertions(DrtRequest('R1', 'A', 'B'), entry)

    def test_create_matrix_estimator(self):
        estimator = create_time_estimator(
            {'time_estimator': 'matrix'}, manager=self.manager, departure_time=600.0
        )
        self.assertIsInstance(estimator, MatrixTimeEstimator)
        self.assertEqual(estimator.time_slot, 1)

    def test_create_beeline_estimator(self):
        config = {'time_estimator': 'beeline', 'beeline_speed': 5.0, 'beeline_distance_factor': 1.0}
        estimator = create_time_estimator(config, coordinates={'A': (0.0, 0.0)})
        self.assertIsInstance(estimator, BeelineTimeEstimator)
        self.assertEqual(estimator.speed, 5.0)

    def test_create_estimator_missing_input_raises(self):
        with self.assertRaises(ValueError):
            create_time_estimator({'time_estimator': 'matrix'})
        with self.assertRaises(ValueError):
            create_time_estimator({'time_estimator': 'beeline'})

    def test_create_unknown_estimator_raises(self):
        with self.assertRaises(ValueError):
            create_time_estimator({'time_estimator': 'routing'}, manager=self.manager)


if __name__ == '__main__':
    unittest.main(verbosity=2)
