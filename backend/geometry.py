"""Distance, elevation, loop and duration metrics for a decoded track.

Everything here is a pure function of the track points.
"""

import logging
import math
from collections.abc import Sequence

from models import GeometrySummary, TrackPoint

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM: float = 6371.0

# Endpoints closer than this make the route a loop.
LOOP_THRESHOLD_KM: float = 0.1
LOOP_CIRCULAR: str = "Circular"
LOOP_POINT_TO_POINT: str = "Inicio-Fin"

# Walking-time model: 4 km/h on the flat plus one hour per 300 m climbed.
WALKING_SPEED_KMH: float = 4.0
CLIMB_METRES_PER_HOUR: float = 300.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Returns the great-circle distance in kilometres between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = lat2_r - lat1_r
    dlng = math.radians(lng2 - lng1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def point_distance_km(a: TrackPoint, b: TrackPoint) -> float:
    return haversine_km(a.lat, a.lng, b.lat, b.lng)


def cumulative_distances(points: Sequence[TrackPoint]) -> list[float]:
    """Returns the unrounded distance from the first point to each point, in km."""
    result: list[float] = []
    total = 0.0
    for i, point in enumerate(points):
        if i > 0:
            total += point_distance_km(points[i - 1], point)
        result.append(total)
    return result


def elevation_change(points: Sequence[TrackPoint]) -> tuple[float, float]:
    """Returns (gain, loss) in metres from raw consecutive deltas.

    No smoothing is applied, so noisy elevation sampling inflates both values.
    """
    gain = 0.0
    loss = 0.0
    for prev, curr in zip(points, points[1:]):
        diff = (curr.elevation or 0.0) - (prev.elevation or 0.0)
        if diff > 0:
            gain += diff
        else:
            loss += -diff
    return gain, loss


def classify_loop(points: Sequence[TrackPoint]) -> str:
    """Circular if the track ends within 100 m of where it started."""
    if not points:
        return LOOP_POINT_TO_POINT
    gap = point_distance_km(points[0], points[-1])
    return LOOP_CIRCULAR if gap < LOOP_THRESHOLD_KM else LOOP_POINT_TO_POINT


def estimate_duration(distance_km: float, elevation_gain_m: float) -> str:
    """Formats the estimated walking time as a range of hours, or minutes.

    >>> estimate_duration(8.0, 300)
    '3-4 horas'
    >>> estimate_duration(2.0, 0)
    '30 minutos'
    """
    total_hours = (
        distance_km / WALKING_SPEED_KMH + elevation_gain_m / CLIMB_METRES_PER_HOUR
    )
    hours = math.floor(total_hours)
    if hours >= 1:
        return f"{hours}-{hours + 1} horas"
    return f"{round(total_hours * 60)} minutos"


def analyze_track(points: Sequence[TrackPoint]) -> GeometrySummary:
    """Computes the full geometry summary for an ordered list of track points."""
    distances = cumulative_distances(points)
    distance_km = distances[-1] if distances else 0.0
    gain, loss = elevation_change(points)

    # Zero means "not recorded" in most GPX exports; ignore it for the range.
    recorded = [p.elevation for p in points if p.elevation and p.elevation > 0]
    min_elevation = min(recorded) if recorded else 0.0
    max_elevation = max(recorded) if recorded else 0.0

    summary = GeometrySummary(
        distance_km=round(distance_km, 1),
        elevation_gain_m=round(gain),
        elevation_loss_m=round(loss),
        min_elevation_m=round(min_elevation),
        max_elevation_m=round(max_elevation),
        loop_classification=classify_loop(points),
        estimated_duration=estimate_duration(distance_km, gain),
    )
    logger.info(
        "Track analysed: %.1fkm, +%dm/-%dm, %s, %s",
        summary.distance_km,
        summary.elevation_gain_m,
        summary.elevation_loss_m,
        summary.loop_classification,
        summary.estimated_duration,
    )
    return summary
