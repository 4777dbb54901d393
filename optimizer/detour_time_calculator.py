"""
optimizer/detour_time_calculator.py

Detour travel times and schedule time losses of a candidate insertion.

Two steps:
1. calculate_detour_times: the four new legs around pickup and dropoff,
   queried from a DetourTimeEstimator.
2. calculate_detour_time_info: how much the insertion delays the existing
   schedule at the pickup side and at the dropoff side, and when the new
   request departs from its pickup and arrives at its dropoff.
"""

import logging
import math
from dataclasses import dataclass

from network.time_estimator import DetourTimeEstimator
from optimizer.insertion_generator import Insertion, InsertionWithDetourData
from vehicles.schedule import Stop, VehicleEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetourTimeInfo:
    """
    Time impact of an insertion.

    Attributes:
        departure_time: When the vehicle leaves the new pickup
        arrival_time: When the vehicle reaches the new dropoff
        pickup_time_loss: Delay added to the stops after the pickup
        dropoff_time_loss: Additional delay added to the stops after the dropoff
    """

    departure_time: float
    arrival_time: float
    pickup_time_loss: float
    dropoff_time_loss: float

    @property
    def total_time_loss(self) -> float:
        return self.pickup_time_loss + self.dropoff_time_loss


class DetourTimeCalculator:
    """
    Computes detour legs and time losses using an injected time estimator.

    Attributes:
        estimator: Point-to-point travel time estimator
        stop_duration: Dwell time of a newly created stop (seconds)
    """

    def __init__(self, estimator: DetourTimeEstimator, stop_duration: float = 0.0):
        if stop_duration < 0:
            raise ValueError(f"stop_duration must be non-negative, got {stop_duration}")
        self.estimator = estimator
        self.stop_duration = stop_duration

    def calculate_detour_times(self, insertion: Insertion) -> InsertionWithDetourData[float]:
        """
        Compute the four detour legs of an insertion.

        When pickup and dropoff share the insertion point, detour_from_pickup
        is the combined pickup -> dropoff leg and detour_to_dropoff is 0.
        When the dropoff becomes the new end of the schedule there is no leg
        after it and detour_from_dropoff is +inf.

        Args:
            insertion: Structurally feasible insertion

        Returns:
            InsertionWithDetourData with float travel times
        """
        request = insertion.request
        entry = insertion.vehicle_entry
        pickup_idx = insertion.pickup_idx
        dropoff_idx = insertion.dropoff_idx
        estimate = self.estimator.estimate_time

        to_pickup = estimate(entry.get_waypoint(pickup_idx).location, request.origin)

        if pickup_idx == dropoff_idx:
            from_pickup = estimate(request.origin, request.destination)
            to_dropoff = 0.0
        else:
            from_pickup = estimate(request.origin, entry.get_waypoint(pickup_idx + 1).location)
            to_dropoff = estimate(entry.get_waypoint(dropoff_idx).location, request.destination)

        if dropoff_idx == entry.stop_count:
            from_dropoff = math.inf
        else:
            from_dropoff = estimate(
                request.destination, entry.get_waypoint(dropoff_idx + 1).location
            )

        return InsertionWithDetourData(
            insertion=insertion,
            detour_to_pickup=to_pickup,
            detour_from_pickup=from_pickup,
            detour_to_dropoff=to_dropoff,
            detour_from_dropoff=from_dropoff,
        )

    def calculate_detour_time_info(
        self,
        insertion_with_detour_data: InsertionWithDetourData[float]
    ) -> DetourTimeInfo:
        """
        Compute time losses and the new request's departure/arrival times.

        A pickup at the location of an existing stop (waypoint pickup_idx) is
        served during that stop and adds no dwell time; likewise a dropoff at
        the location of waypoint dropoff_idx adds no loss at all.

        Args:
            insertion_with_detour_data: Output of calculate_detour_times

        Returns:
            DetourTimeInfo with non-negative losses
        """
        data = insertion_with_detour_data
        insertion = data.insertion
        request = insertion.request
        entry = insertion.vehicle_entry
        pickup_idx = insertion.pickup_idx
        dropoff_idx = insertion.dropoff_idx

        # --- pickup side ---
        pickup_waypoint = entry.get_waypoint(pickup_idx)
        previous_departure = pickup_waypoint.departure_time

        if isinstance(pickup_waypoint, Stop) and pickup_waypoint.location == request.origin:
            departure_time = max(previous_departure, request.earliest_start_time)
        else:
            arrival_at_pickup = previous_departure + data.detour_to_pickup
            departure_time = (
                max(arrival_at_pickup, request.earliest_start_time) + self.stop_duration
            )

        pickup_time_loss = departure_time - previous_departure
        if pickup_idx < dropoff_idx:
            pickup_time_loss += data.detour_from_pickup - _replaced_drive_time(entry, pickup_idx)
        pickup_time_loss = max(0.0, pickup_time_loss)

        # --- dropoff side ---
        if pickup_idx == dropoff_idx:
            arrival_time = departure_time + data.detour_from_pickup
            leg_to_dropoff = data.detour_from_pickup
        else:
            dropoff_waypoint = entry.get_waypoint(dropoff_idx)
            if dropoff_waypoint.location == request.destination:
                # served during an existing stop, which is only shifted by the pickup loss
                arrival_time = dropoff_waypoint.arrival_time + pickup_time_loss
                return DetourTimeInfo(departure_time, arrival_time, pickup_time_loss, 0.0)

            arrival_time = (
                dropoff_waypoint.departure_time + pickup_time_loss + data.detour_to_dropoff
            )
            leg_to_dropoff = data.detour_to_dropoff

        dropoff_time_loss = leg_to_dropoff + self.stop_duration
        if dropoff_idx < entry.stop_count:
            dropoff_time_loss += data.detour_from_dropoff - _replaced_drive_time(entry, dropoff_idx)
        dropoff_time_loss = max(0.0, dropoff_time_loss)

        return DetourTimeInfo(departure_time, arrival_time, pickup_time_loss, dropoff_time_loss)

    def calculate(self, insertion: Insertion) -> DetourTimeInfo:
        return self.calculate_detour_time_info(self.calculate_detour_times(insertion))


def _replaced_drive_time(entry: VehicleEntry, index: int) -> float:
    """Scheduled time between leaving waypoint index and reaching the next one."""
    if index >= entry.stop_count:
        return 0.0
    return (
        entry.get_waypoint(index + 1).arrival_time
        - entry.get_waypoint(index).departure_time
    )
