"""
Google Distance Matrix API data collection for the travel time matrix.

Queries driving times between all stations for a series of departure times
and stores them in the format read by network.travel_time_manager:
    - travel_time_matrix.npy: float array of shape (N, N, T), seconds
    - matrix_metadata.json: station_mapping, time_slot_duration, start_time, ...

Google API limit: 100 elements per request, so every time point is queried
in batches of at most 10x10 origins/destinations.
"""

import argparse
import json
import logging
import math
import sys
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

import googlemaps
import numpy as np
import pytz

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = 'Europe/Zurich'
MAX_BATCH_SIZE = 10


def load_stations(json_file: str) -> List[Dict[str, Any]]:
    """Load station data ({"stations": [{"station_id", "location": [lat, lon]}]})."""
    with open(json_file, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return data['stations']


def generate_time_points(
    base_date: datetime,
    start_hour: int = 15,
    start_min: int = 0,
    end_hour: int = 21,
    end_min: int = 0,
    interval_min: int = 10,
    timezone: str = DEFAULT_TIMEZONE
) -> List[datetime]:
    """
    Generate timezone-aware departure times, both ends included.

    Raises:
        ValueError: If interval_min is not positive
    """
    if interval_min <= 0:
        raise ValueError(f"interval_min must be positive, got {interval_min}")

    tz = pytz.timezone(timezone)

    start_dt = tz.localize(datetime(
        base_date.year, base_date.month, base_date.day, start_hour, start_min, 0
    ))
    end_dt = tz.localize(datetime(
        base_date.year, base_date.month, base_date.day, end_hour, end_min, 0
    ))

    time_points = []
    current_dt = start_dt
    while current_dt <= end_dt:
        time_points.append(current_dt)
        current_dt += timedelta(minutes=interval_min)

    return time_points


def get_distance_matrix_batch(
    gmaps_client,
    origins: Sequence[Tuple[float, float]],
    destinations: Sequence[Tuple[float, float]],
    departure_time: datetime
) -> Optional[Dict[str, Any]]:
    """
    Call the Distance Matrix API for one batch.

    Returns:
        API response dict, or None if the call failed
    """
    try:
        return gmaps_client.distance_matrix(
            origins=list(origins),
            destinations=list(destinations),
            mode="driving",
            departure_time=departure_time,
            traffic_model="best_guess",
            units="metric"
        )
    except googlemaps.exceptions.ApiError as e:
        logger.error(f"Distance Matrix API error: {e}")
    except googlemaps.exceptions.TransportError as e:
        logger.error(f"Distance Matrix transport error: {e}")
    except googlemaps.exceptions.Timeout:
        logger.error("Distance Matrix request timed out")
    return None


def element_duration(element: Dict[str, Any]) -> float:
    """Travel time of one response element, preferring duration_in_traffic."""
    if element.get('status') != 'OK':
        return math.inf
    for key in ('duration_in_traffic', 'duration'):
        value = element.get(key, {}).get('value')
        if value is not None:
            return float(value)
    return math.inf


def collect_travel_time_slice(
    gmaps_client,
    stations: Sequence[Dict[str, Any]],
    departure_time: datetime,
    batch_size: int = MAX_BATCH_SIZE,
    pause: float = 0.3
) -> np.ndarray:
    """
    Collect the (N, N) travel time slice for one departure time.

    Args:
        gmaps_client: googlemaps.Client (or any object with distance_matrix)
        stations: Stations in matrix order
        departure_time: Timezone-aware departure time
        batch_size: Origins/destinations per batch, at most 10
        pause: Delay between API calls in seconds

    Returns:
        Array with zero diagonal; failed elements are +inf
    """
    if not 1 <= batch_size <= MAX_BATCH_SIZE:
        raise ValueError(f"batch_size must be in [1, {MAX_BATCH_SIZE}], got {batch_size}")

    coords = [(s['location'][0], s['location'][1]) for s in stations]
    n_stations = len(stations)
    n_batches = math.ceil(n_stations / batch_size)

    travel_times = np.full((n_stations, n_stations), np.inf)
    failed = 0

    for i in range(n_batches):
        for j in range(n_batches):
            origin_start, origin_end = i * batch_size, min((i + 1) * batch_size, n_stations)
            dest_start, dest_end = j * batch_size, min((j + 1) * batch_size, n_stations)

            response = get_distance_matrix_batch(
                gmaps_client,
                coords[origin_start:origin_end],
                coords[dest_start:dest_end],
                departure_time
            )

            if not response or response.get('status') != 'OK':
                logger.error(
                    f"Batch [{i + 1},{j + 1}] at {departure_time:%H:%M} failed, "
                    f"status={response.get('status') if response else None}"
                )
                failed += (origin_end - origin_start) * (dest_end - dest_start)
            else:
                for row_offset, row in enumerate(response.get('rows', [])):
                    for col_offset, element in enumerate(row.get('elements', [])):
                        value = element_duration(element)
                        if math.isinf(value):
                            failed += 1
                        travel_times[origin_start + row_offset, dest_start + col_offset] = value

            if pause > 0:
                time.sleep(pause)

    np.fill_diagonal(travel_times, 0.0)

    if failed:
        logger.warning(f"{failed} elements missing at {departure_time:%H:%M}, stored as inf")

    return travel_times


def collect_travel_time_matrix(
    gmaps_client,
    stations: Sequence[Dict[str, Any]],
    time_points: Sequence[datetime],
    batch_size: int = MAX_BATCH_SIZE,
    pause: float = 0.3
) -> np.ndarray:
    """
    Collect the full (N, N, T) matrix, one slice per departure time.

    Raises:
        ValueError: If stations or time_points are empty
    """
    if not stations:
        raise ValueError("At least one station is required")
    if not time_points:
        raise ValueError("At least one time point is required")

    slices = []
    for idx, departure_time in enumerate(time_points, 1):
        logger.info(f"[{idx}/{len(time_points)}] Querying for {departure_time:%H:%M}...")
        slices.append(
            collect_travel_time_slice(gmaps_client, stations, departure_time, batch_size, pause)
        )

    return np.stack(slices, axis=2)


def build_metadata(
    stations: Sequence[Dict[str, Any]],
    time_points: Sequence[datetime]
) -> Dict[str, Any]:
    """
    Metadata matching a collected matrix.

    start_time is seconds since local midnight of the first time point.
    """
    first = time_points[0]
    if len(time_points) > 1:
        time_slot_duration = (time_points[1] - time_points[0]).total_seconds()
    else:
        time_slot_duration = 600.0

    return {
        'station_mapping': {str(s['station_id']): idx for idx, s in enumerate(stations)},
        'time_slot_duration': time_slot_duration,
        'start_time': float(first.hour * 3600 + first.minute * 60 + first.second),
        'date': first.strftime('%Y-%m-%d'),
        'timezone': str(first.tzinfo),
        'num_time_slots': len(time_points),
    }


def save_matrix(
    matrix: np.ndarray,
    metadata: Dict[str, Any],
    matrix_path: str,
    metadata_path: str
) -> None:
    """Write the matrix (.npy) and its metadata (JSON)."""
    np.save(matrix_path, matrix)
    with open(metadata_path, 'w', encoding='utf-8') as f:
        json.dump(metadata, f, indent=2)
    logger.info(f"Saved matrix {matrix.shape} to {matrix_path} and metadata to {metadata_path}")


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description='Collect a travel time matrix from the Google Distance Matrix API'
    )
    parser.add_argument('api_key', help='Google Maps API key')
    parser.add_argument('stations_file', help='Stations JSON file')
    parser.add_argument('--date', default=datetime.now().strftime('%Y-%m-%d'),
                        help='Base date YYYY-MM-DD')
    parser.add_argument('--start', default='15:00', help='First departure HH:MM')
    parser.add_argument('--end', default='21:00', help='Last departure HH:MM')
    parser.add_argument('--interval', type=int, default=10, help='Minutes between departures')
    parser.add_argument('--timezone', default=DEFAULT_TIMEZONE)
    parser.add_argument('--matrix-out', default='data/travel_time_matrix.npy')
    parser.add_argument('--metadata-out', default='data/matrix_metadata.json')
    return parser.parse_args(argv)


def main(argv=None):
    """Orchestrate data collection. Returns an exit code."""
    logging.basicConfig(
        level=logging.INFO,
        format='[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    args = parse_arguments(argv)

    try:
        base_date = datetime.strptime(args.date, '%Y-%m-%d')
        start_hour, start_min = (int(x) for x in args.start.split(':'))
        end_hour, end_min = (int(x) for x in args.end.split(':'))
    except ValueError as e:
        logger.error(f"Invalid date/time argument: {e}")
        return 1

    stations = load_stations(args.stations_file)
    logger.info(f"Loaded {len(stations)} stations from {args.stations_file}")

    time_points = generate_time_points(
        base_date, start_hour, start_min, end_hour, end_min, args.interval, args.timezone
    )

    n_batches = math.ceil(len(stations) / MAX_BATCH_SIZE)
    logger.info(
        f"{len(time_points)} time points x {n_batches * n_batches} batches = "
        f"{len(time_points) * n_batches * n_batches} API calls"
    )

    gmaps = googlemaps.Client(key=args.api_key)
    matrix = collect_travel_time_matrix(gmaps, stations, time_points)
    save_matrix(matrix, build_metadata(stations, time_points), args.matrix_out, args.metadata_out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
