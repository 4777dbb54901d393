"""
vehicles/schedule.py

Immutable schedule snapshot of a vehicle at dispatch time.

A VehicleEntry is rebuilt every dispatch cycle from the authoritative fleet
state. It holds the vehicle's current position (Start waypoint), its planned
stops in visit order (Stop waypoints) with the occupancy after each of them,
and the slack time available at every insertion point.

Waypoint indexing:
    waypoint 0      -> Start (current position)
    waypoint k >= 1 -> stops[k - 1]

slack_times[i] is the maximum delay that can be added to every stop after
waypoint i (and to the vehicle's end of service) without violating a time
window of an already scheduled request.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Optional, Sequence, Tuple, Union

from demand.request import DrtRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Vehicle:
    """
    Static vehicle description.

    Attributes:
        vehicle_id: Unique identifier of the vehicle
        capacity: Maximum number of demand units aboard
        service_begin_time: Start of the vehicle's service (seconds)
        service_end_time: End of the vehicle's service (seconds)
    """

    vehicle_id: str
    capacity: int
    service_begin_time: float = 0.0
    service_end_time: float = math.inf

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError(
                f"Vehicle {self.vehicle_id}: capacity must be positive, got {self.capacity}"
            )


@dataclass(frozen=True)
class StopTask:
    """Planned stop: where, when, and which requests are served there."""

    location: Hashable
    begin_time: float
    end_time: float
    pickup_requests: Tuple[DrtRequest, ...] = ()
    dropoff_requests: Tuple[DrtRequest, ...] = ()

    def __post_init__(self) -> None:
        if self.end_time < self.begin_time:
            raise ValueError(
                f"Stop at {self.location}: end_time {self.end_time} is before "
                f"begin_time {self.begin_time}"
            )
        object.__setattr__(self, 'pickup_requests', tuple(self.pickup_requests))
        object.__setattr__(self, 'dropoff_requests', tuple(self.dropoff_requests))


@dataclass(frozen=True)
class Start:
    """
    Vehicle's current position.

    Attributes:
        location: Where the vehicle is (or will be once it can divert)
        time: Earliest time the vehicle can depart from location
        occupancy: Demand units aboard when departing
        task: Optional reference to the task currently executed
    """

    location: Hashable
    time: float
    occupancy: int
    task: Optional[Any] = None

    @property
    def departure_time(self) -> float:
        return self.time

    @property
    def outgoing_occupancy(self) -> int:
        return self.occupancy


@dataclass(frozen=True)
class Stop:
    """
    Planned stop with the occupancy on the leg departing it.

    Attributes:
        task: The planned stop task
        outgoing_occupancy: Demand units aboard after serving this stop
    """

    task: StopTask
    outgoing_occupancy: int

    @property
    def location(self) -> Hashable:
        return self.task.location

    @property
    def arrival_time(self) -> float:
        return self.task.begin_time

    @property
    def departure_time(self) -> float:
        return self.task.end_time

    @property
    def latest_arrival_time(self) -> float:
        """Earliest latest-arrival bound among requests dropped off here."""
        return min(
            (r.latest_arrival_time for r in self.task.dropoff_requests),
            default=math.inf
        )

    @property
    def latest_departure_time(self) -> float:
        """Earliest latest-start bound among requests picked up here."""
        return min(
            (r.latest_start_time for r in self.task.pickup_requests),
            default=math.inf
        )


Waypoint = Union[Start, Stop]


@dataclass(frozen=True)
class VehicleEntry:
    """
    Snapshot of a vehicle's schedule used for insertion evaluation.

    Attributes:
        vehicle: Static vehicle description
        start: Current position waypoint
        stops: Planned stops in visit order
        slack_times: Slack per insertion point, length len(stops) + 1
    """

    vehicle: Optional[Vehicle]
    start: Optional[Start]
    stops: Tuple[Stop, ...] = ()
    slack_times: Tuple[float, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, 'stops', tuple(self.stops or ()))
        object.__setattr__(self, 'slack_times', tuple(self.slack_times or ()))

    @property
    def stop_count(self) -> int:
        return len(self.stops)

    @property
    def vehicle_id(self) -> Optional[str]:
        return self.vehicle.vehicle_id if self.vehicle is not None else None

    def get_waypoint(self, index: int) -> Waypoint:
        """
        Get waypoint by insertion index (0 = Start, k = stops[k - 1]).

        Raises:
            IndexError: If index is outside [0, stop_count]
        """
        if index < 0 or index > self.stop_count:
            raise IndexError(
                f"Waypoint index {index} out of range [0, {self.stop_count}]"
            )
        return self.start if index == 0 else self.stops[index - 1]

    def get_slack_time(self, index: int) -> float:
        return self.slack_times[index]

    def get_end_occupancy(self) -> int:
        """Occupancy after the last stop, or at Start if there are no stops."""
        if self.stops:
            return self.stops[-1].outgoing_occupancy
        return self.start.occupancy

    def validate(self) -> None:
        """
        Check the snapshot invariants.

        Raises:
            ValueError: If any occupancy is outside [0, capacity], the
                        occupancy after the last stop is not zero, or there
                        is not exactly one slack time per waypoint
        """
        if len(self.slack_times) != self.stop_count + 1:
            raise ValueError(
                f"Vehicle {self.vehicle_id}: expected {self.stop_count + 1} slack times, "
                f"got {len(self.slack_times)}"
            )

        capacity = self.vehicle.capacity
        for index in range(self.stop_count + 1):
            occupancy = self.get_waypoint(index).outgoing_occupancy
            if occupancy < 0 or occupancy > capacity:
                raise ValueError(
                    f"Vehicle {self.vehicle_id}: occupancy {occupancy} at waypoint "
                    f"{index} is outside [0, {capacity}]"
                )

        end_occupancy = self.get_end_occupancy()
        if end_occupancy != 0:
            raise ValueError(
                f"Vehicle {self.vehicle_id}: occupancy after the last stop must be 0, "
                f"got {end_occupancy} (dangling unfinished legs)"
            )

    def __repr__(self) -> str:
        return (
            f"VehicleEntry(vehicle={self.vehicle_id}, "
            f"stops={self.stop_count}, slack={list(self.slack_times)})"
        )


def compute_slack_times(
    vehicle: Vehicle,
    now: float,
    start: Start,
    stops: Sequence[Stop]
) -> Tuple[float, ...]:
    """
    Compute the slack time at every insertion point with a backward pass.

    The last entry is the vehicle slack (service end minus end of schedule).
    Walking backwards, each stop can only tighten the slack:
        slack[i] = min(slack[i + 1],
                       stop_i.latest_arrival_time - stop_i.arrival_time,
                       stop_i.latest_departure_time - stop_i.departure_time)

    Args:
        vehicle: Vehicle owning the schedule
        now: Current time (seconds)
        start: Current position waypoint
        stops: Planned stops in visit order

    Returns:
        Tuple of length len(stops) + 1
    """
    end_of_schedule = stops[-1].departure_time if stops else start.departure_time
    slack_time = vehicle.service_end_time - max(now, end_of_schedule)

    slack_times = [0.0] * (len(stops) + 1)
    slack_times[len(stops)] = slack_time

    for i in range(len(stops) - 1, -1, -1):
        stop = stops[i]
        slack_time = min(stop.latest_arrival_time - stop.arrival_time, slack_time)
        slack_time = min(stop.latest_departure_time - stop.departure_time, slack_time)
        slack_times[i] = slack_time

    return tuple(slack_times)


def create_vehicle_entry(
    vehicle: Vehicle,
    start: Start,
    stops: Sequence[Stop],
    now: float
) -> VehicleEntry:
    """
    Build a validated VehicleEntry with slack times.

    Args:
        vehicle: Vehicle owning the schedule
        start: Current position waypoint
        stops: Planned stops in visit order
        now: Current time (seconds)

    Returns:
        Fully formed immutable VehicleEntry

    Raises:
        ValueError: If the schedule violates the occupancy invariants
    """
    stops = tuple(stops)
    entry = VehicleEntry(
        vehicle=vehicle,
        start=start,
        stops=stops,
        slack_times=compute_slack_times(vehicle, now, start, stops),
    )
    entry.validate()

    logger.debug(f"Built {entry}")
    return entry


def vehicle_entry_from_dict(
    data: Dict[str, Any],
    requests_by_id: Dict[str, DrtRequest],
    now: float
) -> VehicleEntry:
    """
    Build a VehicleEntry from a scenario dictionary.

    Expected format:
        {
            "vehicle_id": "M1", "capacity": 4, "service_end_time": 86400,
            "start": {"location": "A", "time": 100.0, "occupancy": 1},
            "stops": [
                {"location": "B", "begin_time": 400, "end_time": 460,
                 "outgoing_occupancy": 0,
                 "pickup_request_ids": [], "dropoff_request_ids": ["P0"]}
            ]
        }

    Args:
        data: Vehicle dictionary
        requests_by_id: Already scheduled requests referenced by stops
        now: Current time (seconds)

    Returns:
        Validated VehicleEntry

    Raises:
        KeyError: If a required key or a referenced request is missing
        ValueError: If the schedule violates the occupancy invariants
    """
    vehicle = Vehicle(
        vehicle_id=str(data['vehicle_id']),
        capacity=int(data['capacity']),
        service_begin_time=float(data.get('service_begin_time', 0.0)),
        service_end_time=float(data.get('service_end_time', math.inf)),
    )

    start_data = data['start']
    start = Start(
        location=start_data['location'],
        time=float(start_data.get('time', now)),
        occupancy=int(start_data.get('occupancy', 0)),
    )

    stops: List[Stop] = []
    for stop_data in data.get('stops', []):
        task = StopTask(
            location=stop_data['location'],
            begin_time=float(stop_data['begin_time']),
            end_time=float(stop_data['end_time']),
            pickup_requests=tuple(
                requests_by_id[rid] for rid in stop_data.get('pickup_request_ids', [])
            ),
            dropoff_requests=tuple(
                requests_by_id[rid] for rid in stop_data.get('dropoff_request_ids', [])
            ),
        )
        stops.append(Stop(task=task, outgoing_occupancy=int(stop_data['outgoing_occupancy'])))

    return create_vehicle_entry(vehicle, start, stops, now)
