"""
Point-to-point travel time estimators used for detour calculation.

Implementation:
- MatrixTimeEstimator: time slice of a pre-computed TravelTimeManager matrix
- BeelineTimeEstimator: Haversine distance * detour factor / constant speed

Estimators must be total over the locations they are queried with; an
unknown location is a caller bug and raises ValueError.
"""

import logging
import math
from typing import Any, Dict, Hashable, Optional, Protocol, Tuple

from network.travel_time_manager import TravelTimeManager

logger = logging.getLogger(__name__)

_EARTH_RADIUS_M = 6371000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_r = math.radians(lat1)
    lat2_r = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.asin(min(1.0, math.sqrt(a)))
    return _EARTH_RADIUS_M * c


class DetourTimeEstimator(Protocol):
    """Protocol for travel time (seconds) between two locations."""

    def estimate_time(self, from_location: Hashable, to_location: Hashable) -> float:
        """Non-negative travel time; 0 when both locations are equal."""
        ...


class MatrixTimeEstimator:
    """
    Estimator backed by a TravelTimeManager, frozen at one departure time.

    Args:
        manager: Loaded travel time matrix
        departure_time: Time used to pick the matrix time slot (seconds)
    """

    def __init__(self, manager: TravelTimeManager, departure_time: float):
        self.manager = manager
        self.departure_time = departure_time
        self.time_slot = manager.time_to_slot_index(departure_time)

    def estimate_time(self, from_location: Hashable, to_location: Hashable) -> float:
        return self.manager.get_travel_time(from_location, to_location, self.departure_time)

    def __repr__(self) -> str:
        return f"MatrixTimeEstimator(slot={self.time_slot}, manager={self.manager})"


class BeelineTimeEstimator:
    """
    Estimator based on straight-line distance.

    travel_time = haversine_m * beeline_distance_factor / speed

    Args:
        coordinates: Maps location -> (lat, lon)
        speed: Average speed in m/s
        beeline_distance_factor: Ratio of network to straight-line distance
    """

    def __init__(
        self,
        coordinates: Dict[Hashable, Tuple[float, float]],
        speed: float,
        beeline_distance_factor: float = 1.3
    ):
        if speed <= 0:
            raise ValueError(f"speed must be positive, got {speed}")
        if beeline_distance_factor < 1.0:
            raise ValueError(
                f"beeline_distance_factor must be >= 1.0, got {beeline_distance_factor}"
            )
        self.coordinates = dict(coordinates)
        self.speed = speed
        self.beeline_distance_factor = beeline_distance_factor

    def _get_coordinates(self, location: Hashable) -> Tuple[float, float]:
        if location not in self.coordinates:
            raise ValueError(f"No coordinates for location '{location}'")
        return self.coordinates[location]

    def estimate_time(self, from_location: Hashable, to_location: Hashable) -> float:
        if from_location == to_location:
            return 0.0
        lat1, lon1 = self._get_coordinates(from_location)
        lat2, lon2 = self._get_coordinates(to_location)
        distance = haversine_m(lat1, lon1, lat2, lon2) * self.beeline_distance_factor
        return distance / self.speed


def create_time_estimator(
    config: Dict[str, Any],
    manager: Optional[TravelTimeManager] = None,
    coordinates: Optional[Dict[Hashable, Tuple[float, float]]] = None,
    departure_time: float = 0.0
) -> DetourTimeEstimator:
    """
    Select an estimator by config["time_estimator"].

    Args:
        config: Configuration dict (see config.get_config)
        manager: Required for "matrix"
        coordinates: Required for "beeline"
        departure_time: Time slice used by the matrix estimator

    Returns:
        DetourTimeEstimator

    Raises:
        ValueError: If the estimator name is unknown or its input is missing
    """
    name = config.get('time_estimator', 'matrix')

    if name == 'matrix':
        if manager is None:
            raise ValueError("The 'matrix' time estimator requires a TravelTimeManager")
        estimator = MatrixTimeEstimator(manager, departure_time)
    elif name == 'beeline':
        if coordinates is None:
            raise ValueError("The 'beeline' time estimator requires station coordinates")
        estimator = BeelineTimeEstimator(
            coordinates,
            speed=config.get('beeline_speed', 8.33),
            beeline_distance_factor=config.get('beeline_distance_factor', 1.3),
        )
    else:
        raise ValueError(
            f"Unsupported time_estimator '{name}'. Must be one of ['matrix', 'beeline']"
        )

    logger.info(f"Using time estimator {estimator!r}")
    return estimator
