"""
DRT Insertion Dispatcher - Main Entry Point

This module serves as the main entry point for the insertion dispatcher.
It loads the configuration and a scenario (vehicle schedules plus requests),
builds the insertion search pipeline and reports the best insertion for every
new request.
"""

import sys
import logging
import argparse
import json
import time
from datetime import datetime
from typing import Any, Dict, List, Tuple

import config
from demand.request import DrtRequest, create_drt_request
from network.time_estimator import DetourTimeEstimator, create_time_estimator
from network.travel_time_manager import TravelTimeManager
from optimizer.insertion_search import create_insertion_search
from vehicles.schedule import VehicleEntry, vehicle_entry_from_dict


def setup_logging(log_level=None, log_file=None):
    """
    Configure the logging system with both file and console handlers.

    Args:
        log_level: Override log level from config
        log_file: Override log file path from config
    """
    level = log_level or config.LOG_LEVEL
    file_path = log_file or config.LOG_FILE

    formatter = logging.Formatter(
        '[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    try:
        file_handler = logging.FileHandler(file_path, mode='a', encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Failed to create log file handler: {e}")


def parse_arguments(argv=None):
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='DRT Insertion Dispatcher',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--scenario',
        type=str,
        help='Path to the scenario JSON file (overrides config)'
    )

    parser.add_argument(
        '--estimator',
        type=str,
        choices=['matrix', 'beeline'],
        help='Travel time estimator (overrides config)'
    )

    parser.add_argument(
        '--strategy',
        type=str,
        choices=['reject_soft_constraint_violations', 'discourage_soft_constraint_violations'],
        help='Cost calculation strategy (overrides config)'
    )

    parser.add_argument(
        '--workers',
        type=int,
        help='Number of threads evaluating vehicles (overrides config)'
    )

    parser.add_argument(
        '--deadline',
        type=float,
        help='Search deadline per request in seconds (overrides config)'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (overrides config)'
    )

    return parser.parse_args(argv)


def build_config_dict(cmd_overrides):
    """
    Build configuration dictionary from config module and command line overrides.

    Args:
        cmd_overrides: Dictionary containing command line parameter overrides

    Returns:
        dict: Complete configuration dictionary
    """
    config_dict = config.get_config()

    if 'scenario' in cmd_overrides:
        config_dict['scenario_file'] = cmd_overrides['scenario']

    if 'estimator' in cmd_overrides:
        config_dict['time_estimator'] = cmd_overrides['estimator']

    if 'strategy' in cmd_overrides:
        config_dict['cost_calculation_strategy'] = cmd_overrides['strategy']

    if 'workers' in cmd_overrides:
        config_dict['max_workers'] = cmd_overrides['workers']

    if 'deadline' in cmd_overrides:
        config_dict['search_deadline'] = cmd_overrides['deadline']

    return config_dict


def validate_config(config_dict):
    """
    Validate the dispatcher configuration.

    Args:
        config_dict: Configuration dictionary

    Returns:
        bool: True if valid, False otherwise
    """
    logger = logging.getLogger(__name__)

    errors = config.validate_config(config_dict)
    for error in errors:
        logger.error(error)

    return not errors


def load_scenario(scenario_path: str) -> Tuple[float, List[VehicleEntry], List[Dict], Dict]:
    """
    Load vehicle schedules and requests from a scenario file.

    Expected format:
        {
            "current_time": 0.0,
            "scheduled_requests": [{"request_id": "P0", ...}],
            "new_requests": [{"request_id": "R1", "origin": "A", "destination": "B"}],
            "vehicles": [{"vehicle_id": "M1", ...}],
            "coordinates": {"A": [52.52, 13.40]}
        }

    New requests are returned as raw dicts; see build_new_request.

    Args:
        scenario_path: Path to the scenario JSON file

    Returns:
        Tuple of (current_time, vehicle_entries, new_request_dicts, coordinates)

    Raises:
        FileNotFoundError: If the file doesn't exist
        KeyError: If a required key is missing
        ValueError: If a schedule or request is invalid
    """
    logger = logging.getLogger(__name__)

    with open(scenario_path, 'r', encoding='utf-8') as f:
        scenario = json.load(f)

    current_time = float(scenario.get('current_time', 0.0))

    scheduled = [DrtRequest.from_dict(r) for r in scenario.get('scheduled_requests', [])]
    requests_by_id = {r.request_id: r for r in scheduled}

    vehicle_entries = [
        vehicle_entry_from_dict(v, requests_by_id, current_time)
        for v in scenario['vehicles']
    ]
    new_requests = list(scenario.get('new_requests', []))

    coordinates = {
        location: (float(lat_lon[0]), float(lat_lon[1]))
        for location, lat_lon in scenario.get('coordinates', {}).items()
    }

    logger.info(
        f"Loaded scenario {scenario_path}: {len(vehicle_entries)} vehicles, "
        f"{len(scheduled)} scheduled requests, {len(new_requests)} new requests"
    )
    return current_time, vehicle_entries, new_requests, coordinates


def build_new_request(
    data: Dict[str, Any],
    estimator: DetourTimeEstimator,
    config_dict: Dict[str, Any],
    current_time: float
) -> DrtRequest:
    """
    Build a new request, deriving missing time windows from the config.

    A request that specifies latest_start_time or latest_arrival_time is taken
    as is. Otherwise its windows follow from MAX_WAIT_TIME and the
    MAX_TRAVEL_TIME_ALPHA/BETA limits applied to the direct travel time.
    """
    if 'latest_start_time' in data or 'latest_arrival_time' in data:
        return DrtRequest.from_dict(data)

    submission_time = float(data.get('submission_time', current_time))
    direct_travel_time = estimator.estimate_time(data['origin'], data['destination'])

    return create_drt_request(
        request_id=str(data['request_id']),
        origin=data['origin'],
        destination=data['destination'],
        submission_time=submission_time,
        direct_travel_time=direct_travel_time,
        max_wait_time=config_dict['max_wait_time'],
        max_travel_time_alpha=config_dict['max_travel_time_alpha'],
        max_travel_time_beta=config_dict['max_travel_time_beta'],
        size=int(data.get('size', 1)),
    )


def run_dispatch(config_dict: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Find the best insertion for every new request of the configured scenario.

    Each request is evaluated against the same schedule snapshot; accepted
    insertions are not applied to the schedules.

    Args:
        config_dict: Complete configuration dictionary

    Returns:
        One result dict per new request with the request's
        resolved time windows; 'insertion' is None if unassignable
    """
    logger = logging.getLogger(__name__)

    current_time, vehicle_entries, new_requests, coordinates = load_scenario(
        config_dict['scenario_file']
    )

    manager = None
    if config_dict['time_estimator'] == 'matrix':
        manager = TravelTimeManager(
            config_dict['travel_time_matrix'], config_dict['matrix_metadata']
        )

    estimator = create_time_estimator(
        config_dict, manager=manager, coordinates=coordinates, departure_time=current_time
    )
    search = create_insertion_search(config_dict, estimator)

    results = []
    for request_data in new_requests:
        request = build_new_request(request_data, estimator, config_dict, current_time)
        best = search.find_best_insertion(request, vehicle_entries)
        results.append({
            'request_id': request.request_id,
            'request': request.to_dict(),
            'insertion': best.to_dict() if best is not None else None,
        })

    assigned = sum(1 for r in results if r['insertion'] is not None)
    logger.info(f"Assigned {assigned}/{len(results)} requests")
    return results


def print_welcome():
    """Print welcome banner."""
    print("=" * 60)
    print("    DRT Insertion Dispatcher")
    print("=" * 60)
    print()


def print_config_summary(config_dict):
    """
    Print configuration summary.

    Args:
        config_dict: Configuration dictionary
    """
    logger = logging.getLogger(__name__)

    logger.info("Configuration Summary:")
    logger.info(f"  Scenario File: {config_dict['scenario_file']}")
    logger.info(f"  Time Estimator: {config_dict['time_estimator']}")
    logger.info(f"  Stop Duration: {config_dict['stop_duration']}s")
    logger.info(f"  Cost Strategy: {config_dict['cost_calculation_strategy']}")
    logger.info(f"  Max Workers: {config_dict['max_workers']}")
    logger.info(f"  Search Deadline: {config_dict['search_deadline']}")
    logger.info(f"  Log Level: {logging.getLevelName(logging.getLogger().getEffectiveLevel())}")
    print()


def print_results(results):
    """Print one line per request."""
    print()
    print("=" * 60)
    for result in results:
        insertion = result['insertion']
        if insertion is None:
            print(f"  {result['request_id']}: no feasible insertion")
        else:
            print(
                f"  {result['request_id']}: vehicle {insertion['vehicle_id']} "
                f"pickup_idx={insertion['pickup_idx']} dropoff_idx={insertion['dropoff_idx']} "
                f"cost={insertion['cost']:.1f}s"
            )
    print("=" * 60)


def main(argv=None):
    """
    Main entry point for the insertion dispatcher.

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    real_start_time = time.time()
    logger = logging.getLogger(__name__)

    try:
        args = parse_arguments(argv)

        log_level = getattr(logging, args.log_level) if args.log_level else None
        setup_logging(log_level=log_level)

        print_welcome()

        cmd_overrides = {}

        if args.scenario:
            cmd_overrides['scenario'] = args.scenario

        if args.estimator:
            cmd_overrides['estimator'] = args.estimator

        if args.strategy:
            cmd_overrides['strategy'] = args.strategy

        if args.workers is not None:
            cmd_overrides['workers'] = args.workers

        if args.deadline is not None:
            cmd_overrides['deadline'] = args.deadline

        logger.info("Building configuration...")
        config_dict = build_config_dict(cmd_overrides)

        if cmd_overrides:
            logger.info("Applied configuration overrides:")
            for key, value in cmd_overrides.items():
                logger.info(f"  {key} = {value}")

        if not validate_config(config_dict):
            logger.error("Configuration validation failed")
            return 1

        print_config_summary(config_dict)

        logger.info("=" * 60)
        logger.info("Starting insertion dispatch...")
        logger.info(f"Real start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 60)

        results = run_dispatch(config_dict)
        print_results(results)

        total_time = time.time() - real_start_time
        logger.info(f"Dispatch completed in {total_time:.2f} seconds")
        return 0

    except KeyboardInterrupt:
        logger.warning("Dispatch interrupted by user")
        print("\n⚠ Dispatch interrupted by user")
        return 1

    except Exception as e:
        logger.exception(f"Fatal error during dispatch: {e}")
        print(f"\n✗ Fatal error: {e}")
        print("  Check log file for details")
        return 1


if __name__ == "__main__":
    sys.exit(main())
