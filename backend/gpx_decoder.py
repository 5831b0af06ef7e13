"""Decodes an uploaded GPX document into track points and waypoints.

gpxpy does the XML work; this module applies the title/point precedence
rules and turns an empty or unreadable file into a ``ParseError``.
"""

import logging
import os
import re

import gpxpy
import gpxpy.gpx

from errors import ParseError
from models import DecodedTrack, TrackPoint, Waypoint

logger = logging.getLogger(__name__)

_BOM = "\ufeff"


def decode_gpx(content: str | bytes, filename: str | None = None) -> DecodedTrack:
    """Parses GPX text and returns its points, waypoints, title and description.

    Args:
        content: The raw GPX document. Bytes are decoded as UTF-8.
        filename: Original upload name, used for the title when the document
            carries no name of its own.

    Raises:
        ParseError: If the document is not valid GPX or contains no track or
            route points.
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    content = content.lstrip(_BOM).strip()
    if not content:
        raise ParseError("The GPX file is empty.")

    try:
        gpx = gpxpy.parse(content)
    except (gpxpy.gpx.GPXException, ValueError) as exc:
        raise ParseError(f"Could not parse the GPX file: {exc}") from exc

    points = _track_points(gpx)
    source = "track"
    if not points:
        points = _route_points(gpx)
        source = "route"
    if not points:
        raise ParseError("No track or route points were found in the GPX file.")

    waypoints = tuple(_waypoint(w) for w in gpx.waypoints)
    title = _title(gpx, filename)
    logger.info(
        "Decoded GPX %r: %d %s points, %d waypoints",
        title,
        len(points),
        source,
        len(waypoints),
    )
    return DecodedTrack(
        title=title,
        description=_description(gpx),
        track_points=tuple(points),
        waypoints=waypoints,
    )


def title_from_filename(filename: str) -> str:
    """Turns ``"ruta_del-cares.gpx"`` into ``"ruta del cares"``."""
    stem, _ = os.path.splitext(os.path.basename(filename))
    return re.sub(r"\s+", " ", re.sub(r"[_-]", " ", stem)).strip()


def _title(gpx: gpxpy.gpx.GPX, filename: str | None) -> str | None:
    candidates = [gpx.name]
    candidates += [t.name for t in gpx.tracks[:1]]
    candidates += [r.name for r in gpx.routes[:1]]
    for name in candidates:
        if name and name.strip():
            return re.sub(r"\s+", " ", name).strip()
    if filename:
        return title_from_filename(filename) or None
    return None


def _description(gpx: gpxpy.gpx.GPX) -> str | None:
    candidates = [gpx.description]
    candidates += [t.description for t in gpx.tracks[:1]]
    candidates += [r.description for r in gpx.routes[:1]]
    for desc in candidates:
        if desc and desc.strip():
            return desc.strip()
    return None


def _track_points(gpx: gpxpy.gpx.GPX) -> list[TrackPoint]:
    return [
        _point(p)
        for track in gpx.tracks
        for segment in track.segments
        for p in segment.points
    ]


def _route_points(gpx: gpxpy.gpx.GPX) -> list[TrackPoint]:
    return [_point(p) for route in gpx.routes for p in route.points]


def _point(p) -> TrackPoint:
    return TrackPoint(
        lat=p.latitude,
        lng=p.longitude,
        elevation=p.elevation if p.elevation is not None else 0.0,
    )


def _waypoint(w: gpxpy.gpx.GPXWaypoint) -> Waypoint:
    description = w.description or w.comment
    return Waypoint(
        lat=w.latitude,
        lng=w.longitude,
        elevation=w.elevation,
        name=w.name.strip() if w.name else None,
        description=description.strip() if description else None,
    )
