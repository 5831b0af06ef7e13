"""Waypoint classification and placement along the track.

Each GPX waypoint gets a semantic category from keyword matching on its
name and description, and a distance-from-start measured along the track.
"""

import logging
import math
import re
import unicodedata
from collections.abc import Sequence

from geometry import EARTH_RADIUS_KM, cumulative_distances, haversine_km
from models import TrackPoint, Waypoint, WaypointCategory

logger = logging.getLogger(__name__)

# A waypoint closer than this to a track point takes that point's distance.
SNAP_TOLERANCE_KM: float = 0.010

# Accent-free, lowercase keywords per category. Spanish, Catalan, Galician,
# Basque and English. Dict order is the matching precedence.
CATEGORY_KEYWORDS: dict[WaypointCategory, tuple[str, ...]] = {
    WaypointCategory.MIRADOR: (
        "mirador", "miradoiro", "mirall", "talaia", "balcon",
        "viewpoint", "view point", "lookout", "overlook", "belvedere",
    ),
    WaypointCategory.PUENTE: (
        "puente", "pont", "pontet", "ponte", "zubi", "pasarela",
        "bridge", "footbridge",
    ),
    WaypointCategory.FUENTE: (
        "fuente", "font", "fonte", "iturri", "manantial", "surgencia",
        "spring", "fountain", "water point",
    ),
    WaypointCategory.ENLACE: (
        "enlace", "cruce", "desvio", "bifurcacion", "cruilla", "encrucijada",
        "junction", "crossroads", "intersection", "fork",
    ),
    WaypointCategory.IGLESIA: (
        "iglesia", "esglesia", "igrexa", "eliza", "parroquia", "catedral",
        "monasterio", "church", "cathedral", "monastery",
    ),
    WaypointCategory.HERMITA: (
        "hermita", "ermita", "ermida", "capilla", "santuario",
        "chapel", "hermitage", "sanctuary",
    ),
    WaypointCategory.ARBOL: (
        "arbol", "arbre", "arbore", "zuhaitz", "roble", "encina", "tejo",
        "castano", "tree", "oak", "yew",
    ),
    WaypointCategory.LAGUNA: (
        "laguna", "lago", "llac", "estany", "ibon", "embalse", "pantano",
        "lake", "lagoon", "pond", "tarn", "reservoir",
    ),
    WaypointCategory.REFUGIO: (
        "refugio", "refugi", "refuxio", "aterpe", "cabana", "borda",
        "albergue", "hut", "shelter", "bothy",
    ),
    WaypointCategory.PICO: (
        "pico", "pic", "picu", "tuc", "tuca", "cima", "cim", "cumbre",
        "tossal", "puig", "mendi", "peak", "summit",
    ),
}

_CATEGORY_PATTERNS: list[tuple[WaypointCategory, re.Pattern]] = [
    (
        category,
        re.compile(r"\b(?:" + "|".join(map(re.escape, words)) + r")\b"),
    )
    for category, words in CATEGORY_KEYWORDS.items()
]


def fold_text(text: str) -> str:
    """Lowercases and strips accents: ``"Refugio de Góriz"`` → ``"refugio de goriz"``."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def classify(name: str | None, description: str | None = None) -> WaypointCategory:
    """Returns the first category whose keywords appear in name + description."""
    text = fold_text(" ".join(part for part in (name, description) if part))
    if not text.strip():
        return WaypointCategory.UNKNOWN
    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    return WaypointCategory.UNKNOWN


def project_onto_track(
    waypoint: Waypoint,
    points: Sequence[TrackPoint],
    cumulative: Sequence[float] | None = None,
) -> float:
    """Returns the waypoint's distance from the start along the track, in km.

    The nearest track point is found by great-circle distance. Within
    ``SNAP_TOLERANCE_KM`` that point's cumulative distance is used directly.
    Further away, the waypoint is projected onto the segment either side of
    the nearest point and the along-track distance interpolated between the
    segment's endpoints.
    """
    if not points:
        return 0.0
    if cumulative is None:
        cumulative = cumulative_distances(points)

    nearest = min(
        range(len(points)),
        key=lambda i: haversine_km(
            waypoint.lat, waypoint.lng, points[i].lat, points[i].lng
        ),
    )
    gap = haversine_km(
        waypoint.lat, waypoint.lng, points[nearest].lat, points[nearest].lng
    )
    if gap <= SNAP_TOLERANCE_KM or len(points) < 2:
        return round(cumulative[nearest], 2)

    best: tuple[float, float] | None = None  # (offset from segment, distance)
    for a, b in ((nearest - 1, nearest), (nearest, nearest + 1)):
        if a < 0 or b >= len(points):
            continue
        t, offset = _segment_projection(waypoint, points[a], points[b])
        along = cumulative[a] + t * (cumulative[b] - cumulative[a])
        if best is None or offset < best[0]:
            best = (offset, along)

    return round(best[1], 2) if best else round(cumulative[nearest], 2)


def classify_waypoints(
    waypoints: Sequence[Waypoint], points: Sequence[TrackPoint]
) -> list[Waypoint]:
    """Returns copies of the waypoints with category and distance filled in."""
    cumulative = cumulative_distances(points)
    result = [
        w.model_copy(
            update={
                "category": classify(w.name, w.description),
                "distance_from_start": project_onto_track(w, points, cumulative),
            }
        )
        for w in waypoints
    ]
    if result:
        logger.info(
            "Classified %d waypoints: %s",
            len(result),
            ", ".join(f"{w.name or '?'}={w.category.value}" for w in result),
        )
    return result


def _segment_projection(
    waypoint: Waypoint, start: TrackPoint, end: TrackPoint
) -> tuple[float, float]:
    """Projects the waypoint onto segment start→end in a local flat frame.

    Returns (t, offset_km) where t ∈ [0, 1] is the position along the
    segment and offset_km the perpendicular distance to it.
    """
    cos_lat = math.cos(math.radians(start.lat))
    scale = math.radians(EARTH_RADIUS_KM)

    def to_xy(lat: float, lng: float) -> tuple[float, float]:
        return (lng - start.lng) * cos_lat * scale, (lat - start.lat) * scale

    bx, by = to_xy(end.lat, end.lng)
    px, py = to_xy(waypoint.lat, waypoint.lng)
    length_sq = bx * bx + by * by
    if length_sq == 0:
        return 0.0, math.hypot(px, py)
    t = max(0.0, min(1.0, (px * bx + py * by) / length_sq))
    return t, math.hypot(px - t * bx, py - t * by)
