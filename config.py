"""
Configuration module for the DRT insertion dispatcher.

This module contains all configurable parameters: data file paths, travel
time estimation, insertion search settings and logging. All parameters can
be modified here without changing the dispatcher code; main.py allows
overriding the most common ones from the command line.

Config to change: SCENARIO_FILE, TRAVEL_TIME_MATRIX_FILE, MATRIX_METADATA_FILE,
TIME_ESTIMATOR, COST_CALCULATION_STRATEGY, MAX_WORKERS, SEARCH_DEADLINE
"""

import os
from typing import Any, Dict, List


# ============================================================================
# DATA FILE PATHS
# ============================================================================

# Scenario with the vehicle schedules and the requests to insert (JSON format)
SCENARIO_FILE = "data/scenario.json"

# Path to the travel time matrix (NumPy binary format)
TRAVEL_TIME_MATRIX_FILE = "data/travel_time_matrix.npy"

# Path to the matrix metadata file (JSON format)
MATRIX_METADATA_FILE = "data/matrix_metadata.json"


# ============================================================================
# TRAVEL TIME SETTINGS
# ============================================================================

# Travel time estimator: "matrix" (pre-computed matrix) or "beeline"
TIME_ESTIMATOR = "matrix"

# Average speed for the beeline estimator, in m/s (30 km/h)
BEELINE_SPEED = 8.33

# Network distance / straight-line distance
BEELINE_DISTANCE_FACTOR = 1.3


# ============================================================================
# INSERTION SETTINGS
# ============================================================================

# Dwell time of a newly created pickup or dropoff stop (seconds)
STOP_DURATION = 60.0

# "reject_soft_constraint_violations" or "discourage_soft_constraint_violations"
COST_CALCULATION_STRATEGY = "reject_soft_constraint_violations"

# Threads evaluating vehicles in parallel (1 = sequential)
MAX_WORKERS = 4

# Wall-clock budget for one fleet-wide search in seconds (None = unlimited)
SEARCH_DEADLINE = None


# ============================================================================
# REQUEST SETTINGS
# ============================================================================

# Maximum time (in seconds) between submission and pickup
MAX_WAIT_TIME = 600.0

# latest_arrival = submission + ALPHA * direct_travel_time + BETA
MAX_TRAVEL_TIME_ALPHA = 1.5
MAX_TRAVEL_TIME_BETA = 600.0


# ============================================================================
# OUTPUT SETTINGS
# ============================================================================

# Name of the log file
LOG_FILE = "dispatcher.log"

# Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_LEVEL = "INFO"


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def get_config() -> Dict[str, Any]:
    """
    Package all configuration parameters into a dictionary.

    Returns:
        Dict[str, Any]: Dictionary containing all configuration parameters
    """
    config = {
        # Data file paths
        "scenario_file": SCENARIO_FILE,
        "travel_time_matrix": TRAVEL_TIME_MATRIX_FILE,
        "matrix_metadata": MATRIX_METADATA_FILE,

        # Travel time settings
        "time_estimator": TIME_ESTIMATOR,
        "beeline_speed": BEELINE_SPEED,
        "beeline_distance_factor": BEELINE_DISTANCE_FACTOR,

        # Insertion settings
        "stop_duration": STOP_DURATION,
        "cost_calculation_strategy": COST_CALCULATION_STRATEGY,
        "max_workers": MAX_WORKERS,
        "search_deadline": SEARCH_DEADLINE,

        # Request settings
        "max_wait_time": MAX_WAIT_TIME,
        "max_travel_time_alpha": MAX_TRAVEL_TIME_ALPHA,
        "max_travel_time_beta": MAX_TRAVEL_TIME_BETA,

        # Output settings
        "log_file": LOG_FILE,
        "log_level": LOG_LEVEL,
    }

    return config


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration values.

    Checks:
    - Required data files exist for the selected estimator
    - Parameter values are within valid ranges

    Args:
        config: Configuration dictionary (see get_config)

    Returns:
        List of error messages, empty if the configuration is valid
    """
    errors = []

    required_files = [config["scenario_file"]]
    if config["time_estimator"] == "matrix":
        required_files += [config["travel_time_matrix"], config["matrix_metadata"]]

    for file_path in required_files:
        if not os.path.exists(file_path):
            errors.append(f"Required file not found: {file_path}")

    if config["time_estimator"] not in ("matrix", "beeline"):
        errors.append(
            f"TIME_ESTIMATOR must be 'matrix' or 'beeline', got {config['time_estimator']}"
        )

    if config["stop_duration"] < 0:
        errors.append("STOP_DURATION must be non-negative")

    if config["max_workers"] < 1:
        errors.append("MAX_WORKERS must be at least 1")

    deadline = config["search_deadline"]
    if deadline is not None and deadline <= 0:
        errors.append("SEARCH_DEADLINE must be positive or None")

    if config["max_travel_time_alpha"] < 1.0:
        errors.append("MAX_TRAVEL_TIME_ALPHA must be >= 1.0")

    return errors
