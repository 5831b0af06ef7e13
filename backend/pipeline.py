"""GPX upload to route draft, end to end.

Steps:
1. Decode the GPX document into track points and waypoints.
2. Derive distance, elevation and loop metrics; classify waypoints.
3. Ask the configured metadata provider for descriptive metadata and repair
   its JSON. Any enrichment failure switches to the fallback synthesizer.
4. Resolve hero and gallery images against the allow-listed Maps endpoints.
5. Assemble the immutable draft.

Only a ``ParseError`` from step 1 escapes; every later failure degrades.
"""

import logging
from collections import Counter

from assembler import DEFAULT_TITLE, assemble_draft
from config import Settings
from errors import BlockedContentError, EnrichmentError, EnrichmentParseError
from fallback import synthesize_metadata
from geometry import analyze_track
from gpx_decoder import decode_gpx
from images import ImageContext, ImageResolver
from models import Coordinates, EnrichedMetadata, ProcessingResult
from providers import MetadataProvider, create_provider
from repair import parse_enrichment
from waypoints import classify_waypoints

logger = logging.getLogger(__name__)

SOURCE_AI: str = "ai"
SOURCE_FALLBACK: str = "fallback"


class RunLog:
    """Mirrors pipeline log records into an ordered list for the caller."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def info(self, msg: str, *args) -> None:
        self._add(logging.INFO, msg, args)

    def warning(self, msg: str, *args) -> None:
        self._add(logging.WARNING, msg, args)

    def _add(self, level: int, msg: str, args: tuple) -> None:
        logger.log(level, msg, *args)
        self.messages.append(msg % args if args else msg)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


async def process_gpx(
    content: str | bytes,
    filename: str | None = None,
    *,
    settings: Settings | None = None,
    provider: MetadataProvider | None = None,
    resolver: ImageResolver | None = None,
    use_ai: bool = True,
) -> ProcessingResult:
    """Turns one GPX document into a route draft.

    Args:
        content: The GPX document.
        filename: Upload filename, used for the title when the file has none.
        settings: Runtime configuration. Read from the environment if omitted.
        provider: Optional pre-constructed metadata provider. Built from
            ``settings`` if omitted.
        resolver: Optional pre-constructed image resolver. Built from
            ``settings`` if omitted.
        use_ai: False skips the provider and uses the fallback synthesizer.

    Returns:
        The draft, the raw track points and the run's diagnostics.

    Raises:
        ParseError: If the document holds no usable track geometry.
    """
    settings = settings or Settings.from_env()
    run = RunLog()

    # Step 1: decode.
    decoded = decode_gpx(content, filename)
    points = decoded.track_points
    run.info(
        "Decoded %d track points and %d waypoints", len(points), len(decoded.waypoints)
    )

    # Step 2: geometry and waypoints.
    geometry = analyze_track(points)
    run.info(
        "Distance %.1f km, +%d m / -%d m, %s, estimated %s",
        geometry.distance_km,
        geometry.elevation_gain_m,
        geometry.elevation_loss_m,
        geometry.loop_classification,
        geometry.estimated_duration,
    )
    waypoints = classify_waypoints(decoded.waypoints, points)
    if waypoints:
        run.info("Classified %d waypoints", len(waypoints))

    title = decoded.title or DEFAULT_TITLE
    start = Coordinates(lat=points[0].lat, lng=points[0].lng)

    # Step 3: metadata.
    metadata, source = await _enrich(title, start, settings, provider, use_ai, run)

    # Step 4: images.
    resolver = resolver or ImageResolver(
        settings.google_maps_api_key,
        concurrency=settings.image_lookup_concurrency,
    )
    hero, gallery, sources = await resolver.resolve_all(
        metadata.hero_image, metadata.gallery, ImageContext(title, start)
    )
    counts = Counter(sources)
    run.info(
        "Resolved %d images: %d validated, %d from place lookup, %d static maps",
        len(sources),
        counts["validated"],
        counts["lookup"],
        counts["static_map"],
    )

    # Step 5: assemble.
    draft = assemble_draft(
        title=title,
        description=decoded.description,
        geometry=geometry,
        waypoints=waypoints,
        metadata=metadata,
        hero_image=hero,
        gallery=gallery,
        start=start,
        source=source,
    )
    run.info("Draft %r ready (metadata source: %s)", draft.title, source)
    return ProcessingResult(draft=draft, track=list(points), logs=run.messages)


# ---------------------------------------------------------------------------
# Step 3: enrichment with fallback
# ---------------------------------------------------------------------------


async def _enrich(
    title: str,
    start: Coordinates,
    settings: Settings,
    provider: MetadataProvider | None,
    use_ai: bool,
    run: RunLog,
) -> tuple[EnrichedMetadata, str]:
    """Returns (metadata, source). Provider failures never escape."""
    if not use_ai:
        run.info("AI enrichment skipped on request; using fallback metadata")
        return synthesize_metadata(title), SOURCE_FALLBACK

    provider = provider or create_provider(settings)
    if provider is None:
        run.info(
            "No credential configured for provider %s; using fallback metadata",
            settings.provider,
        )
        return synthesize_metadata(title), SOURCE_FALLBACK

    run.info("Requesting metadata from %s", provider.name)
    try:
        raw = await provider.fetch(title, start)
        metadata, stage = parse_enrichment(raw)
    except BlockedContentError as exc:
        run.warning(
            "Provider %s blocked the response (%s); using fallback metadata",
            provider.name,
            exc.reason or "unspecified",
        )
        return synthesize_metadata(title), SOURCE_FALLBACK
    except EnrichmentParseError as exc:
        run.warning("Provider JSON could not be repaired: %s; using fallback metadata", exc)
        return synthesize_metadata(title), SOURCE_FALLBACK
    except EnrichmentError as exc:
        run.warning(
            "Provider %s failed (%s: %s); using fallback metadata",
            provider.name,
            type(exc).__name__,
            exc,
        )
        return synthesize_metadata(title), SOURCE_FALLBACK
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error from provider %s", provider.name)
        run.warning(
            "Provider %s returned an unusable response (%s); using fallback metadata",
            provider.name,
            type(exc).__name__,
        )
        return synthesize_metadata(title), SOURCE_FALLBACK

    run.info("Metadata from %s parsed (repair stage: %s)", provider.name, stage)
    return metadata, SOURCE_AI
