"""Pydantic request and response models for the Peak Explorer backend."""

from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    AliasGenerator,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Track geometry
# ---------------------------------------------------------------------------


class TrackPoint(BaseModel):
    """A single recorded point of the uploaded track."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float
    elevation: float = 0.0


class Coordinates(BaseModel):
    """A bare lat/lng pair."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class WaypointCategory(str, Enum):
    """Semantic category of a point of interest, in matching precedence order."""

    MIRADOR = "mirador"
    PUENTE = "puente"
    FUENTE = "fuente"
    ENLACE = "enlace"
    IGLESIA = "iglesia"
    HERMITA = "hermita"
    ARBOL = "arbol"
    LAGUNA = "laguna"
    REFUGIO = "refugio"
    PICO = "pico"
    UNKNOWN = "unknown"


class Waypoint(BaseModel):
    """A named point of interest from the GPX file."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float
    elevation: float | None = None
    name: str | None = None
    description: str | None = None
    distance_from_start: float = Field(default=0.0, ge=0)
    """Distance along the track from its first point, in kilometres."""

    category: WaypointCategory = WaypointCategory.UNKNOWN


class DecodedTrack(BaseModel):
    """Raw output of the GPX decoder."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    description: str | None = None
    track_points: tuple[TrackPoint, ...]
    waypoints: tuple[Waypoint, ...] = ()


class GeometrySummary(BaseModel):
    """Metrics derived purely from the track points."""

    model_config = ConfigDict(frozen=True)

    distance_km: float = Field(ge=0)
    elevation_gain_m: int = Field(ge=0)
    elevation_loss_m: int = Field(ge=0)
    min_elevation_m: int
    max_elevation_m: int
    loop_classification: str
    """Circular | Inicio-Fin."""

    estimated_duration: str


# ---------------------------------------------------------------------------
# AI enrichment
# ---------------------------------------------------------------------------


class _Lenient(BaseModel):
    """Base for provider-facing models.

    JSON nulls fall back to defaults, and every field also accepts its
    camelCase spelling (``safetyTips``, ``heroImage``).
    """

    model_config = ConfigDict(
        frozen=True,
        coerce_numbers_to_str=True,
        alias_generator=AliasGenerator(
            validation_alias=lambda name: AliasChoices(name, to_camel(name))
        ),
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ImageReference(_Lenient):
    """An image to show for the route."""

    url: str = ""
    alt: str = ""
    width: int = 0
    height: int = 0


class LocationInfo(_Lenient):
    region: str = ""
    province: str = ""


class Restaurant(_Lenient):
    lat: float
    lng: float
    name: str = ""


class SeoInfo(_Lenient):
    meta_title: str = ""
    meta_description: str = ""
    keywords: tuple[str, ...] = ()


class EnrichedMetadata(_Lenient):
    """Descriptive metadata for a route, from the provider or the fallback.

    Field names match the JSON schema the provider is asked to produce.
    """

    type: str = ""
    """trekking | ferrata."""

    summary: str = ""
    difficulty: str = ""
    """Fácil | Moderada | Difícil | Muy Difícil | Extrema."""

    duration: str = ""
    location: LocationInfo = Field(default_factory=LocationInfo)
    approach: str = ""
    approach_info: str = ""
    return_path: str = ""
    return_info: str = ""
    food: str = ""
    food_info: str = ""
    orientation: str = ""
    orientation_info: str = ""
    best_season: list[str] = Field(default_factory=list)
    best_season_info: str = ""
    route_type: str = ""
    dogs: str = ""
    """Sí | No | Sueltos | Atados."""

    parking: list[Coordinates] = Field(default_factory=list)
    restaurants: list[Restaurant] = Field(default_factory=list)
    safety_tips: list[str] = Field(default_factory=list)
    storytelling: str = ""
    """Narrative description of the route in markdown."""

    hero_image: ImageReference = Field(default_factory=ImageReference)
    gallery: list[ImageReference] = Field(default_factory=list)
    seo: SeoInfo = Field(default_factory=SeoInfo)


# ---------------------------------------------------------------------------
# Assembled draft
# ---------------------------------------------------------------------------


class DraftLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    region: str = ""
    province: str = ""
    coordinates: Coordinates


class RouteDraft(BaseModel):
    """The complete draft returned to the admin for confirmation.

    Immutable once built. Persistence is the caller's job.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    type: str
    summary: str
    difficulty: str
    distance_km: float
    elevation_m: int
    """Accumulated positive elevation (desnivel positivo)."""

    duration: str
    geometry: GeometrySummary
    route_type: str
    location: DraftLocation
    approach: str
    approach_info: str
    return_path: str
    return_info: str
    food: str
    food_info: str
    orientation: str
    orientation_info: str
    best_season: tuple[str, ...]
    best_season_info: str
    dogs: str
    status: str
    parking: tuple[Coordinates, ...]
    restaurants: tuple[Restaurant, ...]
    waypoints: tuple[Waypoint, ...]
    safety_tips: tuple[str, ...]
    storytelling: str
    seo: SeoInfo
    hero_image: ImageReference
    gallery: tuple[ImageReference, ...]
    source: str
    """ai when the provider's metadata was used, fallback otherwise."""


class ProcessingResult(BaseModel):
    """What one pipeline run hands back to its caller."""

    draft: RouteDraft
    track: list[TrackPoint]
    """Raw points, stored by the persistence layer once the draft is confirmed."""

    logs: list[str] = Field(default_factory=list)
    """Ordered human-readable diagnostics for the admin UI."""


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


class ProcessGpxRequest(BaseModel):
    """Request body for the /process-gpx endpoint."""

    filename: str
    content: str
    """The GPX document as text."""

    use_ai: bool = True
    """False skips the metadata provider and uses the fallback synthesizer."""
