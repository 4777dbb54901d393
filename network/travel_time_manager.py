"""
Travel Time Manager for the DRT dispatcher

This module manages pre-computed travel time matrices for efficient lookup
while evaluating insertions. Travel times vary by time of day and are stored
in a 3D numpy array.
"""

import json
import logging
from functools import lru_cache
from typing import Any, Dict, Hashable

import numpy as np

logger = logging.getLogger(__name__)


class TravelTimeManager:
    """
    Manages travel time queries between stations.

    The travel times are pre-stored in a 3D numpy matrix with dimensions:
    [origin_station_index, destination_station_index, time_slot_index]

    Time slots represent fixed intervals (default 600 seconds) starting at
    start_time, allowing for time-varying travel times.

    Attributes:
        travel_time_matrix (np.ndarray): 3D array of shape (N_stations, N_stations, N_time_slots)
        station_mapping (dict): Maps station IDs to matrix indices, e.g., {"A": 0, "B": 1}
        time_slot_duration (float): Duration of each time slot in seconds
        start_time (float): Time covered by slot 0, in seconds
        num_stations (int): Total number of stations in the network
        num_time_slots (int): Total number of time slots
    """

    def __init__(self, matrix_path: str, metadata_path: str):
        """
        Initialize the TravelTimeManager by loading the matrix and metadata.

        Args:
            matrix_path (str): Path to the .npy file containing the travel time matrix
            metadata_path (str): Path to the JSON file containing metadata

        Raises:
            ValueError: If matrix dimensions don't match metadata
            FileNotFoundError: If files don't exist
        """
        logger.info(f"Initializing TravelTimeManager from {matrix_path}")

        self.travel_time_matrix = self.load_matrix(matrix_path)
        metadata = self.load_metadata(metadata_path)

        self.station_mapping: Dict[str, int] = {
            str(station_id): int(idx) for station_id, idx in metadata['station_mapping'].items()
        }
        self.time_slot_duration = float(metadata['time_slot_duration'])
        self.start_time = float(metadata.get('start_time', 0.0))

        if self.time_slot_duration <= 0:
            raise ValueError(
                f"time_slot_duration must be positive, got {self.time_slot_duration}"
            )

        self.num_stations = self.travel_time_matrix.shape[0]
        self.num_time_slots = self.travel_time_matrix.shape[2]

        if len(self.station_mapping) != self.num_stations:
            raise ValueError(
                f"Station mapping size ({len(self.station_mapping)}) "
                f"doesn't match matrix dimension ({self.num_stations})"
            )

        logger.info(f"Matrix shape: {self.travel_time_matrix.shape}")
        logger.info(f"Time slot duration: {self.time_slot_duration:.0f} seconds")

        if not self.validate_matrix():
            logger.warning("Matrix validation found issues - check logs")

    def load_matrix(self, matrix_path: str) -> np.ndarray:
        """
        Load the travel time matrix from a .npy file.

        Raises:
            ValueError: If the loaded array is not 3D or not square
            FileNotFoundError: If file doesn't exist
        """
        try:
            matrix = np.load(matrix_path)
        except FileNotFoundError:
            logger.error(f"Matrix file not found: {matrix_path}")
            raise

        if matrix.ndim != 3:
            raise ValueError(
                f"Expected 3D matrix, got {matrix.ndim}D array with shape {matrix.shape}"
            )
        if matrix.shape[0] != matrix.shape[1]:
            raise ValueError(
                f"Expected square origin/destination dimensions, got shape {matrix.shape}"
            )

        logger.info(f"Successfully loaded matrix from {matrix_path}")
        return matrix

    def load_metadata(self, metadata_path: str) -> Dict[str, Any]:
        """
        Load metadata from a JSON file.

        Required fields:
            - station_mapping: dict mapping station IDs to indices
            - time_slot_duration: slot length in seconds

        Optional fields:
            - start_time: time covered by slot 0 (seconds)
            - date: date of the data

        Raises:
            FileNotFoundError: If file doesn't exist
            KeyError: If required fields are missing
            json.JSONDecodeError: If JSON is invalid
        """
        try:
            with open(metadata_path, 'r', encoding='utf-8') as f:
                metadata = json.load(f)
        except FileNotFoundError:
            logger.error(f"Metadata file not found: {metadata_path}")
            raise
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in {metadata_path}: {e}")
            raise

        for field in ('station_mapping', 'time_slot_duration'):
            if field not in metadata:
                raise KeyError(f"Required field '{field}' missing from metadata")

        logger.info(f"Successfully loaded metadata from {metadata_path}")
        return metadata

    @lru_cache(maxsize=4096)
    def get_travel_time(self, origin_id: str, dest_id: str, current_time: float) -> float:
        """
        Get the travel time between two stations at a specific time.

        Results are cached using LRU cache for repeated queries.

        Args:
            origin_id (str): Origin station ID
            dest_id (str): Destination station ID
            current_time (float): Departure time in seconds

        Returns:
            float: Travel time in seconds

        Raises:
            ValueError: If station IDs are invalid, time is before start_time
                        or the matrix has no finite travel time for the pair
        """
        if origin_id == dest_id:
            return 0.0

        origin_idx = self.get_station_index(origin_id)
        dest_idx = self.get_station_index(dest_id)
        slot_idx = self.time_to_slot_index(current_time)

        travel_time = float(self.travel_time_matrix[origin_idx, dest_idx, slot_idx])
        if not np.isfinite(travel_time):
            raise ValueError(
                f"No finite travel time from '{origin_id}' to '{dest_id}' "
                f"in time slot {slot_idx} (got {travel_time})"
            )
        return travel_time

    def time_to_slot_index(self, current_time: float) -> int:
        """
        Convert a time (in seconds) to a time slot index.

        Times beyond the last slot use the last slot.

        Raises:
            ValueError: If current_time is before start_time

        Examples:
            >>> manager.time_to_slot_index(2100.0)  # 600 seconds per slot
            3
        """
        if current_time < self.start_time:
            raise ValueError(
                f"current_time must be >= start_time ({self.start_time}), got {current_time}"
            )

        slot_index = int((current_time - self.start_time) // self.time_slot_duration)

        if slot_index >= self.num_time_slots:
            logger.debug(
                f"Time {current_time}s (slot {slot_index}) exceeds available slots "
                f"({self.num_time_slots}), using last slot"
            )
            slot_index = self.num_time_slots - 1

        return slot_index

    def get_station_index(self, station_id: Hashable) -> int:
        """
        Get the matrix index for a given station ID.

        Station IDs are matched as strings, like the metadata keys, so an
        integer location 3 finds station "3".

        Raises:
            ValueError: If station_id doesn't exist in the mapping
        """
        key = str(station_id)
        if key not in self.station_mapping:
            raise ValueError(
                f"Station ID '{station_id}' not found in station mapping. "
                f"Available stations: {list(self.station_mapping.keys())}"
            )
        return self.station_mapping[key]

    def validate_matrix(self) -> bool:
        """
        Validate the integrity of the travel time matrix.

        Checks performed:
            - Diagonal elements are zero (same station travel time)
            - All values are non-negative
            - No NaN or Inf values

        Returns:
            bool: True if all validation checks pass
        """
        all_valid = True

        for time_slot in range(self.num_time_slots):
            diagonal = np.diagonal(self.travel_time_matrix[:, :, time_slot])
            if not np.allclose(diagonal, 0):
                logger.warning(
                    f"Time slot {time_slot}: diagonal contains non-zero values. "
                    f"Max diagonal value: {np.max(np.abs(diagonal))}"
                )
                all_valid = False

        if np.any(self.travel_time_matrix < 0):
            negative_count = int(np.sum(self.travel_time_matrix < 0))
            logger.error(f"Found {negative_count} negative travel times")
            all_valid = False

        if np.any(np.isnan(self.travel_time_matrix)):
            nan_count = int(np.sum(np.isnan(self.travel_time_matrix)))
            logger.error(f"Found {nan_count} NaN values in matrix")
            all_valid = False

        if np.any(np.isinf(self.travel_time_matrix)):
            inf_count = int(np.sum(np.isinf(self.travel_time_matrix)))
            logger.error(f"Found {inf_count} Inf values in matrix")
            all_valid = False

        if all_valid:
            logger.info("Matrix validation passed all checks")

        return all_valid

    def __repr__(self) -> str:
        return (
            f"TravelTimeManager("
            f"stations={self.num_stations}, "
            f"time_slots={self.num_time_slots}, "
            f"slot_duration={self.time_slot_duration:.0f}s)"
        )
