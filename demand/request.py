"""
Request module for the demand-responsive transport (DRT) dispatcher.

This module implements the DrtRequest value representing a single on-demand
pickup/dropoff demand. A request is created once by the demand source and is
never mutated afterwards; every insertion evaluation reads the same snapshot.

Time windows:
    earliest_start_time <= pickup departure <= latest_start_time
    dropoff arrival <= latest_arrival_time

    Unconstrained bounds are represented by +inf (latest) and 0.0 (earliest).
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Hashable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DrtRequest:
    """
    Immutable pickup + dropoff demand.

    Attributes:
        request_id: Unique identifier for the request
        origin: Pickup location (any hashable location key, e.g. a station ID)
        destination: Dropoff location
        size: Number of demand units (passengers) travelling together
        submission_time: Time when the request was submitted (seconds)
        earliest_start_time: Pickup cannot depart before this time
        latest_start_time: Pickup must depart no later than this time
        latest_arrival_time: Dropoff must happen no later than this time
    """

    request_id: str
    origin: Hashable
    destination: Hashable
    size: int = 1
    submission_time: float = 0.0
    earliest_start_time: float = 0.0
    latest_start_time: float = math.inf
    latest_arrival_time: float = math.inf

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError(
                f"Request {self.request_id}: size must be at least 1, got {self.size}"
            )
        if self.latest_start_time < self.earliest_start_time:
            raise ValueError(
                f"Request {self.request_id}: latest_start_time "
                f"{self.latest_start_time} is before earliest_start_time "
                f"{self.earliest_start_time}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DrtRequest':
        """
        Build a request from a scenario dictionary.

        Missing time-window keys fall back to the unconstrained defaults.

        Args:
            data: Dict with keys request_id, origin, destination and
                optionally size, submission_time, earliest_start_time,
                latest_start_time, latest_arrival_time

        Returns:
            The corresponding DrtRequest

        Raises:
            KeyError: If a required key is missing
        """
        return cls(
            request_id=str(data['request_id']),
            origin=data['origin'],
            destination=data['destination'],
            size=int(data.get('size', 1)),
            submission_time=float(data.get('submission_time', 0.0)),
            earliest_start_time=float(data.get('earliest_start_time', 0.0)),
            latest_start_time=float(data.get('latest_start_time', math.inf)),
            latest_arrival_time=float(data.get('latest_arrival_time', math.inf)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'request_id': self.request_id,
            'origin': self.origin,
            'destination': self.destination,
            'size': self.size,
            'submission_time': self.submission_time,
            'earliest_start_time': self.earliest_start_time,
            'latest_start_time': self.latest_start_time,
            'latest_arrival_time': self.latest_arrival_time,
        }

    def __repr__(self) -> str:
        return (
            f"DrtRequest(id={self.request_id}, "
            f"{self.origin}->{self.destination}, size={self.size})"
        )


def create_drt_request(
    request_id: str,
    origin: Hashable,
    destination: Hashable,
    submission_time: float,
    direct_travel_time: float,
    max_wait_time: float,
    max_travel_time_alpha: float,
    max_travel_time_beta: float,
    size: int = 1
) -> DrtRequest:
    """
    Create a request whose time windows are derived from service-level limits.

    latest_start_time = submission_time + max_wait_time
    latest_arrival_time = submission_time + alpha * direct_travel_time + beta

    Args:
        request_id: Unique identifier for the request
        origin: Pickup location
        destination: Dropoff location
        submission_time: Time when the request was submitted (seconds)
        direct_travel_time: Unshared origin -> destination travel time (seconds)
        max_wait_time: Maximum wait between submission and pickup (seconds)
        max_travel_time_alpha: Multiplier on the direct travel time
        max_travel_time_beta: Constant allowance added to the travel time (seconds)
        size: Number of demand units

    Returns:
        DrtRequest with earliest_start_time = submission_time

    Raises:
        ValueError: If direct_travel_time or max_wait_time is negative,
                    or alpha < 1
    """
    if direct_travel_time < 0:
        raise ValueError(
            f"direct_travel_time must be non-negative, got {direct_travel_time}"
        )
    if max_wait_time < 0:
        raise ValueError(f"max_wait_time must be non-negative, got {max_wait_time}")
    if max_travel_time_alpha < 1.0:
        raise ValueError(
            f"max_travel_time_alpha must be >= 1.0, got {max_travel_time_alpha}"
        )

    latest_start_time = submission_time + max_wait_time
    latest_arrival_time = (
        submission_time + max_travel_time_alpha * direct_travel_time + max_travel_time_beta
    )

    request = DrtRequest(
        request_id=request_id,
        origin=origin,
        destination=destination,
        size=size,
        submission_time=submission_time,
        earliest_start_time=submission_time,
        latest_start_time=latest_start_time,
        latest_arrival_time=latest_arrival_time,
    )

    logger.debug(
        f"Request {request_id} created: {origin} -> {destination}, "
        f"latest_start={latest_start_time:.1f}s, latest_arrival={latest_arrival_time:.1f}s"
    )
    return request
