"""Image reference validation and resolution against Google Maps endpoints.

Only two endpoints are accepted as a source of record for route images:
Places photos and Static Maps, both on maps.googleapis.com. Any other URL
is replaced by a Places text search for the image's alt text, and when that
finds nothing, by a static map of the route area.
"""

import asyncio
import logging
from typing import NamedTuple
from urllib.parse import parse_qs, urlencode, urlsplit

import googlemaps
from googlemaps import exceptions as maps_exceptions

from errors import ImageResolutionError
from fallback import GALLERY_SIZE, HERO_SIZE, default_coordinates
from models import Coordinates, ImageReference

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_HOST: str = "maps.googleapis.com"
PLACE_PHOTO_PATH: str = "/maps/api/place/photo"
STATIC_MAP_PATH: str = "/maps/api/staticmap"
_BASE = f"https://{ALLOWED_IMAGE_HOST}"

PHOTO_MAX_WIDTH: int = 1600
STATIC_MAP_MAX_SIZE: int = 640     # Static Maps limit without a premium plan
STATIC_MAP_ZOOM: int = 13
STATIC_MAP_TYPE: str = "terrain"
LOOKUP_RADIUS_M: int = 20_000      # bias radius around the known coordinates
MAPS_TIMEOUT_SECONDS: int = 10
# googlemaps retries 5xx responses until this many seconds have passed; zero
# leaves exactly one attempt, which then surfaces as googlemaps Timeout.
MAPS_RETRY_TIMEOUT_SECONDS: int = 0


class ImageContext(NamedTuple):
    """What the resolver knows about the route an image belongs to."""

    title: str
    coordinates: Coordinates | None = None


def is_allowed_image_url(url: str) -> bool:
    """True if ``url`` points at an allow-listed photo or map endpoint."""
    parsed = urlsplit(url or "")
    return (
        parsed.scheme == "https"
        and (parsed.hostname or "").lower() == ALLOWED_IMAGE_HOST
        and parsed.path.rstrip("/") in (PLACE_PHOTO_PATH, STATIC_MAP_PATH)
    )


class ImageResolver:
    """Turns metadata image references into validated, allow-listed URLs."""

    def __init__(
        self,
        api_key: str = "",
        *,
        maps_client: googlemaps.Client | None = None,
        concurrency: int = 4,
    ) -> None:
        self._api_key = api_key
        self._concurrency = max(1, concurrency)
        self._maps = maps_client
        if self._maps is None and api_key:
            try:
                self._maps = googlemaps.Client(
                    key=api_key,
                    timeout=MAPS_TIMEOUT_SECONDS,
                    retry_timeout=MAPS_RETRY_TIMEOUT_SECONDS,
                    retry_over_query_limit=False,
                )
            except ValueError as exc:
                logger.warning("Place lookup disabled: %s", exc)

    # -- URL builders --------------------------------------------------------

    def photo_url(self, photo_reference: str, width: int) -> str:
        params = {
            "maxwidth": min(max(width, 1), PHOTO_MAX_WIDTH),
            "photo_reference": photo_reference,
        }
        return self._with_key(PLACE_PHOTO_PATH, params)

    def static_map_url(
        self,
        center: Coordinates | str,
        width: int,
        height: int,
        *,
        zoom: int | str = STATIC_MAP_ZOOM,
        maptype: str = STATIC_MAP_TYPE,
    ) -> str:
        if isinstance(center, Coordinates):
            center = f"{center.lat:.5f},{center.lng:.5f}"
        size = (
            f"{min(max(width, 1), STATIC_MAP_MAX_SIZE)}"
            f"x{min(max(height, 1), STATIC_MAP_MAX_SIZE)}"
        )
        params = {
            "center": center,
            "zoom": zoom,
            "size": size,
            "maptype": maptype,
        }
        return self._with_key(STATIC_MAP_PATH, params)

    def _with_key(self, path: str, params: dict) -> str:
        if self._api_key:
            params["key"] = self._api_key
        return f"{_BASE}{path}?{urlencode(params)}"

    # -- Validation ----------------------------------------------------------

    def validate(self, url: str, reference: ImageReference) -> str | None:
        """Returns a normalised URL if ``url`` is on the allow-list, else None.

        Photo URLs must carry a photo reference and static maps a center;
        size and credential parameters are rewritten from ``reference`` and
        the configured key.
        """
        if not url or not url.strip():
            return None
        parsed = urlsplit(url.strip())
        if parsed.scheme not in ("http", "https"):
            return None
        if (parsed.hostname or "").lower() != ALLOWED_IMAGE_HOST:
            return None

        params = parse_qs(parsed.query)
        path = parsed.path.rstrip("/")
        if path == PLACE_PHOTO_PATH:
            photo_ref = _first(params, "photo_reference") or _first(
                params, "photoreference"
            )
            if not photo_ref:
                return None
            return self.photo_url(photo_ref, reference.width)
        if path == STATIC_MAP_PATH:
            center = _first(params, "center")
            if not center:
                return None
            return self.static_map_url(
                center,
                reference.width,
                reference.height,
                zoom=_first(params, "zoom") or STATIC_MAP_ZOOM,
                maptype=_first(params, "maptype") or STATIC_MAP_TYPE,
            )
        return None

    # -- Resolution ----------------------------------------------------------

    async def resolve(
        self,
        reference: ImageReference,
        context: ImageContext,
        *,
        default_size: tuple[int, int] = GALLERY_SIZE,
    ) -> tuple[ImageReference, str]:
        """Resolves one reference. Never raises for lookup failures.

        Returns:
            Tuple of (resolved reference, source) where source is one of
            ``validated``, ``lookup`` or ``static_map``.
        """
        sized = reference.model_copy(
            update={
                "width": reference.width or default_size[0],
                "height": reference.height or default_size[1],
                "alt": reference.alt.strip() or context.title,
            }
        )
        url = self.validate(reference.url, sized)
        if url:
            return sized.model_copy(update={"url": url}), "validated"
        if reference.url:
            logger.info("Rejected image URL outside the allow-list: %s", reference.url[:120])

        try:
            photo_ref = await self._lookup_photo_reference(sized.alt, context)
            return (
                sized.model_copy(update={"url": self.photo_url(photo_ref, sized.width)}),
                "lookup",
            )
        except ImageResolutionError as exc:
            logger.info("Using static map for %r: %s", sized.alt, exc)

        center = context.coordinates or default_coordinates(context.title)
        url = self.static_map_url(center, sized.width, sized.height)
        return sized.model_copy(update={"url": url}), "static_map"

    async def resolve_all(
        self,
        hero: ImageReference,
        gallery: list[ImageReference],
        context: ImageContext,
    ) -> tuple[ImageReference, list[ImageReference], list[str]]:
        """Resolves the hero image and every gallery entry, preserving order.

        Gallery lookups run concurrently, bounded by the configured
        concurrency; the hero resolves alongside them outside that bound.

        Returns:
            Tuple of (hero, gallery, sources) where sources lists the
            resolution source of the hero followed by each gallery entry.
        """
        semaphore = asyncio.Semaphore(self._concurrency)

        async def bounded(ref: ImageReference) -> tuple[ImageReference, str]:
            async with semaphore:
                return await self.resolve(ref, context, default_size=GALLERY_SIZE)

        results = await asyncio.gather(
            self.resolve(hero, context, default_size=HERO_SIZE),
            *(bounded(ref) for ref in gallery),
        )
        resolved = [ref for ref, _ in results]
        sources = [source for _, source in results]
        return resolved[0], resolved[1:], sources

    async def _lookup_photo_reference(self, query: str, context: ImageContext) -> str:
        """Places text search; returns the first photo reference found."""
        if self._maps is None:
            raise ImageResolutionError("No Google Maps client configured.")

        kwargs: dict = {"query": query}
        if context.coordinates:
            kwargs["location"] = (context.coordinates.lat, context.coordinates.lng)
            kwargs["radius"] = LOOKUP_RADIUS_M
        try:
            # googlemaps is synchronous; keep it off the event loop.
            result = await asyncio.to_thread(self._maps.places, **kwargs)
        except (
            maps_exceptions.ApiError,
            maps_exceptions.TransportError,
            maps_exceptions.Timeout,
        ) as exc:
            raise ImageResolutionError(f"Place search failed for {query!r}: {exc}") from exc
        except Exception as exc:  # noqa: BLE001
            # Malformed bodies surface as ValueError or KeyError from the client.
            raise ImageResolutionError(
                f"Place search returned an unusable response for {query!r}: {exc!r}"
            ) from exc

        places = result.get("results") if isinstance(result, dict) else None
        for place in places or []:
            if not isinstance(place, dict):
                continue
            for photo in place.get("photos") or []:
                photo_ref = photo.get("photo_reference") if isinstance(photo, dict) else None
                if photo_ref:
                    return photo_ref
        raise ImageResolutionError(f"No place photos found for {query!r}.")


def _first(params: dict[str, list[str]], name: str) -> str:
    values = params.get(name) or [""]
    return values[0].strip()
