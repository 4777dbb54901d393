"""
optimizer/cost_calculation.py

Feasibility and cost of a candidate insertion.

Two checks decide feasibility:
1. Already scheduled requests: the pickup-side loss must fit into the slack
   at pickup_idx and the total loss into the slack at dropoff_idx.
2. The new request's own time window, handled by a pluggable
   CostCalculationStrategy selected by name from the configuration.

Infeasibility is a normal outcome and is reported as INFEASIBLE_SOLUTION_COST,
never raised.
"""

import logging
import math
from typing import Dict, Protocol, Type

from demand.request import DrtRequest
from optimizer.detour_time_calculator import DetourTimeCalculator, DetourTimeInfo
from optimizer.insertion_generator import Insertion, InsertionWithDetourData

logger = logging.getLogger(__name__)

INFEASIBLE_SOLUTION_COST = math.inf


class CostCalculationStrategy(Protocol):
    """Cost of an insertion that already satisfies the scheduled-request slack."""

    def calc_cost(
        self,
        request: DrtRequest,
        insertion: Insertion,
        detour_time_info: DetourTimeInfo
    ) -> float:
        ...


class RejectSoftConstraintViolations:
    """Infeasible if the new request misses its latest pickup or arrival time."""

    def calc_cost(
        self,
        request: DrtRequest,
        insertion: Insertion,
        detour_time_info: DetourTimeInfo
    ) -> float:
        if (detour_time_info.departure_time > request.latest_start_time
                or detour_time_info.arrival_time > request.latest_arrival_time):
            return INFEASIBLE_SOLUTION_COST

        return detour_time_info.total_time_loss


class DiscourageSoftConstraintViolations:
    """Accepts time-window violations of the new request at a penalty per second."""

    MAX_WAIT_TIME_VIOLATION_PENALTY = 1.0
    MAX_TRAVEL_TIME_VIOLATION_PENALTY = 10.0

    def calc_cost(
        self,
        request: DrtRequest,
        insertion: Insertion,
        detour_time_info: DetourTimeInfo
    ) -> float:
        wait_time_violation = max(0.0, detour_time_info.departure_time - request.latest_start_time)
        travel_time_violation = max(0.0, detour_time_info.arrival_time - request.latest_arrival_time)

        return (
            self.MAX_WAIT_TIME_VIOLATION_PENALTY * wait_time_violation
            + self.MAX_TRAVEL_TIME_VIOLATION_PENALTY * travel_time_violation
            + detour_time_info.total_time_loss
        )


COST_CALCULATION_STRATEGIES: Dict[str, Type] = {
    'reject_soft_constraint_violations': RejectSoftConstraintViolations,
    'discourage_soft_constraint_violations': DiscourageSoftConstraintViolations,
}


def create_cost_calculation_strategy(name: str) -> CostCalculationStrategy:
    """
    Instantiate a strategy by its configuration name.

    Raises:
        ValueError: If name is not registered
    """
    if name not in COST_CALCULATION_STRATEGIES:
        raise ValueError(
            f"Unsupported cost calculation strategy '{name}'. "
            f"Must be one of {sorted(COST_CALCULATION_STRATEGIES)}"
        )
    return COST_CALCULATION_STRATEGIES[name]()


def check_time_constraints_for_scheduled_requests(
    insertion: Insertion,
    pickup_time_loss: float,
    total_time_loss: float
) -> bool:
    """
    Check that the insertion does not break already scheduled requests.

    Stops between pickup and dropoff are delayed by the pickup loss, stops
    after the dropoff (and the vehicle's end of service) by the total loss.

    Args:
        insertion: Candidate insertion (its vehicle entry carries the slack)
        pickup_time_loss: Delay caused by serving the pickup
        total_time_loss: Pickup plus dropoff delay

    Returns:
        True if both losses fit into the corresponding slack
    """
    vehicle_entry = insertion.vehicle_entry

    if vehicle_entry.get_slack_time(insertion.pickup_idx) < pickup_time_loss:
        return False

    if vehicle_entry.get_slack_time(insertion.dropoff_idx) < total_time_loss:
        return False

    return True


class InsertionCostCalculator:
    """
    Scalar cost of an insertion, or INFEASIBLE_SOLUTION_COST.

    Attributes:
        strategy: Policy for the new request's own time window
        detour_time_calculator: Turns detour legs into time losses
    """

    def __init__(
        self,
        strategy: CostCalculationStrategy,
        detour_time_calculator: DetourTimeCalculator
    ):
        self.strategy = strategy
        self.detour_time_calculator = detour_time_calculator

    def calculate_cost(
        self,
        request: DrtRequest,
        insertion: Insertion,
        detour_time_info: DetourTimeInfo
    ) -> float:
        if not check_time_constraints_for_scheduled_requests(
            insertion,
            detour_time_info.pickup_time_loss,
            detour_time_info.total_time_loss
        ):
            return INFEASIBLE_SOLUTION_COST

        return self.strategy.calc_cost(request, insertion, detour_time_info)

    def calculate(
        self,
        request: DrtRequest,
        insertion_with_detour_data: InsertionWithDetourData[float]
    ) -> float:
        detour_time_info = self.detour_time_calculator.calculate_detour_time_info(
            insertion_with_detour_data
        )
        return self.calculate_cost(request, insertion_with_detour_data.insertion, detour_time_info)
