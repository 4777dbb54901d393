"""
optimizer/insertion_generator.py

Enumerates structurally valid insertions of a request into one vehicle's
schedule. Only occupancy is checked here; time feasibility is left to the
cost calculator.

Indexing:
    pickup_idx = k  -> pickup inserted right after waypoint k (0 = Start)
    dropoff_idx     -> same convention on the ORIGINAL stop sequence,
                       pickup_idx <= dropoff_idx <= stop_count
"""

import logging
from dataclasses import dataclass
from typing import Generic, List, TypeVar

from demand.request import DrtRequest
from vehicles.schedule import VehicleEntry

logger = logging.getLogger(__name__)

D = TypeVar('D')


@dataclass(frozen=True)
class Insertion:
    """
    Candidate placement of a request into a vehicle's schedule.

    Attributes:
        request: The request being inserted
        vehicle_entry: Schedule snapshot of the target vehicle
        pickup_idx: Pickup goes right after this waypoint
        dropoff_idx: Dropoff goes right after this waypoint (original indexing)
    """

    request: DrtRequest
    vehicle_entry: VehicleEntry
    pickup_idx: int
    dropoff_idx: int

    def __post_init__(self) -> None:
        if not 0 <= self.pickup_idx <= self.dropoff_idx:
            raise ValueError(
                f"Invalid insertion indices: pickup_idx={self.pickup_idx}, "
                f"dropoff_idx={self.dropoff_idx}"
            )
        if self.vehicle_entry is not None and self.dropoff_idx > self.vehicle_entry.stop_count:
            raise ValueError(
                f"Invalid insertion indices: dropoff_idx={self.dropoff_idx} exceeds "
                f"stop count {self.vehicle_entry.stop_count}"
            )

    def __repr__(self) -> str:
        vehicle_id = self.vehicle_entry.vehicle_id if self.vehicle_entry else None
        return (
            f"Insertion(vehicle={vehicle_id}, "
            f"pickup_idx={self.pickup_idx}, dropoff_idx={self.dropoff_idx})"
        )


@dataclass(frozen=True)
class InsertionWithDetourData(Generic[D]):
    """
    Insertion plus the detour payload of its four affected legs.

    D is float for scalar travel times, but may be any path representation
    (e.g. full route geometry) produced by a detour calculator.
    """

    insertion: Insertion
    detour_to_pickup: D
    detour_from_pickup: D
    detour_to_dropoff: D
    detour_from_dropoff: D

    @property
    def pickup_idx(self) -> int:
        return self.insertion.pickup_idx

    @property
    def dropoff_idx(self) -> int:
        return self.insertion.dropoff_idx


class InsertionGenerator:
    """
    Generates all occupancy-feasible insertions for (request, vehicle).

    Duplicates caused by zero-detour coincidences are suppressed: if the
    origin equals the location of the stop right after pickup_idx, the
    insertion anchored at that stop (pickup_idx + 1) is kept instead; the
    same holds for the destination and dropoff_idx.
    """

    def generate_insertions(
        self,
        request: DrtRequest,
        vehicle_entry: VehicleEntry
    ) -> List[Insertion]:
        """
        Enumerate (pickup_idx, dropoff_idx) pairs in ascending order.

        Args:
            request: Request to insert
            vehicle_entry: Target vehicle's schedule snapshot

        Returns:
            List of Insertion, possibly empty

        Raises:
            ValueError: If the vehicle entry violates the zero end-occupancy
                        invariant (caller bug)
        """
        end_occupancy = vehicle_entry.get_end_occupancy()
        if end_occupancy != 0:
            raise ValueError(
                f"Vehicle {vehicle_entry.vehicle_id}: occupancy after the last stop "
                f"must be 0, got {end_occupancy}"
            )

        capacity = vehicle_entry.vehicle.capacity
        stop_count = vehicle_entry.stop_count
        insertions: List[Insertion] = []

        occupancy = vehicle_entry.start.occupancy
        for pickup_idx in range(stop_count):
            next_stop = vehicle_entry.stops[pickup_idx]

            # room on the leg departing waypoint pickup_idx
            if occupancy + request.size <= capacity:
                # pickup at next_stop's location is covered by pickup_idx + 1
                if request.origin != next_stop.location:
                    insertions.extend(
                        self._generate_dropoff_insertions(request, vehicle_entry, pickup_idx)
                    )

            occupancy = next_stop.outgoing_occupancy

        # after the last stop the vehicle is empty
        if request.size <= capacity:
            insertions.append(Insertion(request, vehicle_entry, stop_count, stop_count))

        logger.debug(
            f"Generated {len(insertions)} insertions for {request.request_id} "
            f"into vehicle {vehicle_entry.vehicle_id} ({stop_count} stops)"
        )
        return insertions

    def _generate_dropoff_insertions(
        self,
        request: DrtRequest,
        vehicle_entry: VehicleEntry,
        pickup_idx: int
    ) -> List[Insertion]:
        capacity = vehicle_entry.vehicle.capacity
        stop_count = vehicle_entry.stop_count
        insertions: List[Insertion] = []

        for dropoff_idx in range(pickup_idx, stop_count):
            next_stop = vehicle_entry.stops[dropoff_idx]

            # dropoff at next_stop's location is covered by dropoff_idx + 1
            if request.destination != next_stop.location:
                insertions.append(Insertion(request, vehicle_entry, pickup_idx, dropoff_idx))

            if next_stop.outgoing_occupancy + request.size > capacity:
                # Dropping off exactly at next_stop never loads the leg after it.
                if request.destination == next_stop.location:
                    insertions.append(
                        Insertion(request, vehicle_entry, pickup_idx, dropoff_idx + 1)
                    )
                return insertions

        insertions.append(Insertion(request, vehicle_entry, pickup_idx, stop_count))
        return insertions
