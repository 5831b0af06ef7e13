"""Merges geometry, waypoints, metadata and images into one RouteDraft.

Pure: no I/O, no logging of its own. Whatever the metadata leaves blank is
filled from the geometry or from fixed defaults so the draft is always
complete.
"""

from collections.abc import Sequence

from fallback import SITE_NAME
from geometry import LOOP_CIRCULAR
from models import (
    Coordinates,
    DraftLocation,
    EnrichedMetadata,
    GeometrySummary,
    ImageReference,
    RouteDraft,
    SeoInfo,
    Waypoint,
)

DEFAULT_TITLE: str = "Ruta sin nombre"
DEFAULT_TYPE: str = "trekking"
DEFAULT_DIFFICULTY: str = "Moderada"
DEFAULT_DOGS: str = "Atados"
DEFAULT_STATUS: str = "Abierta"
RETURN_CIRCULAR: str = "Circular"
RETURN_SAME_WAY: str = "Mismo punto"
META_DESCRIPTION_LIMIT: int = 160


def assemble_draft(
    *,
    title: str | None,
    description: str | None,
    geometry: GeometrySummary,
    waypoints: Sequence[Waypoint],
    metadata: EnrichedMetadata,
    hero_image: ImageReference,
    gallery: Sequence[ImageReference],
    start: Coordinates,
    source: str,
) -> RouteDraft:
    """Builds the immutable draft.

    Args:
        title: Route title from the GPX file or filename.
        description: GPX description, used when the metadata has no summary.
        geometry: Metrics from the analyzer. ``route_type`` always comes
            from its loop classification.
        waypoints: Classified waypoints in file order.
        metadata: Provider or fallback metadata.
        hero_image: Resolved hero image.
        gallery: Resolved gallery images, order preserved.
        start: First track point, stored as the route's coordinates.
        source: ``ai`` or ``fallback``.
    """
    title = (title or "").strip() or DEFAULT_TITLE
    summary = metadata.summary.strip() or (description or "").strip()
    circular = geometry.loop_classification == LOOP_CIRCULAR

    seo = SeoInfo(
        meta_title=metadata.seo.meta_title or f"{title} | {SITE_NAME}",
        meta_description=(
            metadata.seo.meta_description or summary[:META_DESCRIPTION_LIMIT]
        ),
        keywords=tuple(metadata.seo.keywords),
    )

    return RouteDraft(
        title=title,
        type=metadata.type or DEFAULT_TYPE,
        summary=summary,
        difficulty=metadata.difficulty or DEFAULT_DIFFICULTY,
        distance_km=geometry.distance_km,
        elevation_m=geometry.elevation_gain_m,
        duration=metadata.duration or geometry.estimated_duration,
        geometry=geometry,
        route_type=geometry.loop_classification,
        location=DraftLocation(
            region=metadata.location.region,
            province=metadata.location.province,
            coordinates=start,
        ),
        approach=metadata.approach,
        approach_info=metadata.approach_info,
        return_path=metadata.return_path
        or (RETURN_CIRCULAR if circular else RETURN_SAME_WAY),
        return_info=metadata.return_info,
        food=metadata.food,
        food_info=metadata.food_info,
        orientation=metadata.orientation,
        orientation_info=metadata.orientation_info,
        best_season=tuple(metadata.best_season),
        best_season_info=metadata.best_season_info,
        dogs=metadata.dogs or DEFAULT_DOGS,
        status=DEFAULT_STATUS,
        parking=tuple(metadata.parking),
        restaurants=tuple(metadata.restaurants),
        waypoints=tuple(waypoints),
        safety_tips=tuple(metadata.safety_tips),
        storytelling=metadata.storytelling,
        seo=seo,
        hero_image=hero_image,
        gallery=tuple(gallery),
        source=source,
    )
