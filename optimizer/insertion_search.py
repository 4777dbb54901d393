"""
optimizer/insertion_search.py

Finds the cheapest feasible insertion of one request across the fleet.

Per vehicle:  generate insertions -> detour legs -> time losses -> cost
Fleet-wide:   evaluate vehicles independently (thread pool) and reduce to the
              minimum finite cost. Vehicles not yet started when the
              deadline expires are skipped.
"""

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from demand.request import DrtRequest
from network.time_estimator import DetourTimeEstimator
from optimizer.cost_calculation import (
    InsertionCostCalculator,
    create_cost_calculation_strategy,
)
from optimizer.detour_time_calculator import DetourTimeCalculator, DetourTimeInfo
from optimizer.insertion_generator import InsertionGenerator, InsertionWithDetourData
from vehicles.schedule import VehicleEntry

logger = logging.getLogger(__name__)


class InsertionSearchError(Exception):
    """
    Raised when the insertion search pipeline cannot be built from the
    given configuration (unknown strategy, invalid worker count, ...).
    """
    pass


@dataclass(frozen=True)
class InsertionWithCost:
    """Feasible insertion with its detour legs, time losses and cost."""

    insertion_with_detour_data: InsertionWithDetourData[float]
    detour_time_info: DetourTimeInfo
    cost: float

    @property
    def vehicle_id(self) -> Optional[str]:
        return self.insertion_with_detour_data.insertion.vehicle_entry.vehicle_id

    @property
    def pickup_idx(self) -> int:
        return self.insertion_with_detour_data.pickup_idx

    @property
    def dropoff_idx(self) -> int:
        return self.insertion_with_detour_data.dropoff_idx

    def sort_key(self):
        return (self.cost, self.vehicle_id or '', self.pickup_idx, self.dropoff_idx)

    def to_dict(self) -> Dict[str, Any]:
        info = self.detour_time_info
        return {
            'vehicle_id': self.vehicle_id,
            'pickup_idx': self.pickup_idx,
            'dropoff_idx': self.dropoff_idx,
            'cost': self.cost,
            'departure_time': info.departure_time,
            'arrival_time': info.arrival_time,
            'pickup_time_loss': info.pickup_time_loss,
            'dropoff_time_loss': info.dropoff_time_loss,
        }


class InsertionSearch:
    """
    Evaluates a request against vehicle schedules.

    Attributes:
        generator: Structural insertion enumeration
        detour_time_calculator: Detour legs and time losses
        cost_calculator: Feasibility and cost
        max_workers: Thread pool size for fleet-wide search (1 = sequential)
        deadline: Wall-clock budget in seconds for one fleet-wide search,
                  None for unlimited
    """

    def __init__(
        self,
        generator: InsertionGenerator,
        detour_time_calculator: DetourTimeCalculator,
        cost_calculator: InsertionCostCalculator,
        max_workers: int = 1,
        deadline: Optional[float] = None
    ):
        if max_workers < 1:
            raise InsertionSearchError(f"max_workers must be at least 1, got {max_workers}")
        if deadline is not None and deadline <= 0:
            raise InsertionSearchError(f"deadline must be positive, got {deadline}")

        self.generator = generator
        self.detour_time_calculator = detour_time_calculator
        self.cost_calculator = cost_calculator
        self.max_workers = max_workers
        self.deadline = deadline

    def find_feasible_insertions(
        self,
        request: DrtRequest,
        vehicle_entry: VehicleEntry
    ) -> List[InsertionWithCost]:
        """
        All finite-cost insertions into one vehicle, cheapest first.

        Args:
            request: Request to insert
            vehicle_entry: Target vehicle's schedule snapshot

        Returns:
            Sorted list, empty if the vehicle cannot serve the request

        Raises:
            ValueError: If the vehicle entry is malformed
        """
        vehicle_entry.validate()
        feasible: List[InsertionWithCost] = []

        for insertion in self.generator.generate_insertions(request, vehicle_entry):
            detour_data = self.detour_time_calculator.calculate_detour_times(insertion)
            detour_time_info = self.detour_time_calculator.calculate_detour_time_info(detour_data)
            cost = self.cost_calculator.calculate_cost(request, insertion, detour_time_info)

            if math.isinf(cost):
                continue
            feasible.append(InsertionWithCost(detour_data, detour_time_info, cost))

        feasible.sort(key=InsertionWithCost.sort_key)
        return feasible

    def find_best_insertion(
        self,
        request: DrtRequest,
        vehicle_entries: Sequence[VehicleEntry]
    ) -> Optional[InsertionWithCost]:
        """
        Cheapest feasible insertion across all vehicles.

        Ties are broken by vehicle_id, then pickup_idx, then dropoff_idx, so
        the result does not depend on evaluation order.

        Args:
            request: Request to insert
            vehicle_entries: Schedule snapshots of the fleet

        Returns:
            Best InsertionWithCost, or None if the request is unassignable
            this cycle
        """
        deadline_at = time.monotonic() + self.deadline if self.deadline is not None else None

        def evaluate(vehicle_entry: VehicleEntry) -> Optional[List[InsertionWithCost]]:
            if deadline_at is not None and time.monotonic() > deadline_at:
                return None
            return self.find_feasible_insertions(request, vehicle_entry)

        if self.max_workers == 1 or len(vehicle_entries) <= 1:
            results = [evaluate(entry) for entry in vehicle_entries]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(evaluate, vehicle_entries))

        skipped = sum(1 for result in results if result is None)
        if skipped:
            logger.warning(
                f"Deadline of {self.deadline}s expired: skipped {skipped}/"
                f"{len(vehicle_entries)} vehicles for request {request.request_id}"
            )

        candidates = [result[0] for result in results if result]
        if not candidates:
            logger.warning(
                f"Could not assign request {request.request_id} to any vehicle"
            )
            return None

        best = min(candidates, key=InsertionWithCost.sort_key)
        logger.info(
            f"Best insertion for {request.request_id}: vehicle {best.vehicle_id}, "
            f"pickup_idx={best.pickup_idx}, dropoff_idx={best.dropoff_idx}, "
            f"cost={best.cost:.2f}"
        )
        return best


def create_insertion_search(
    config: Dict[str, Any],
    estimator: DetourTimeEstimator
) -> InsertionSearch:
    """
    Build the search pipeline from a configuration dict.

    Uses config keys: stop_duration, cost_calculation_strategy, max_workers,
    search_deadline.

    Raises:
        InsertionSearchError: If the configuration is invalid
    """
    try:
        strategy = create_cost_calculation_strategy(
            config.get('cost_calculation_strategy', 'reject_soft_constraint_violations')
        )
        detour_time_calculator = DetourTimeCalculator(
            estimator, stop_duration=config.get('stop_duration', 0.0)
        )
    except ValueError as e:
        raise InsertionSearchError(f"Invalid insertion search configuration: {e}") from e

    search = InsertionSearch(
        generator=InsertionGenerator(),
        detour_time_calculator=detour_time_calculator,
        cost_calculator=InsertionCostCalculator(strategy, detour_time_calculator),
        max_workers=config.get('max_workers', 1),
        deadline=config.get('search_deadline'),
    )

    logger.info(
        f"InsertionSearch initialized with strategy={type(strategy).__name__}, "
        f"max_workers={search.max_workers}, deadline={search.deadline}"
    )
    return search
