"""Metadata providers: one adapter per generative text backend.

Every adapter takes a route title (plus the track's start coordinates) and
returns the provider's raw text. Parsing and repair happen elsewhere, so
adapters only translate transport failures and stop reasons into the
enrichment error types:

  ProviderError        network failure, timeout, non-2xx status
  BlockedContentError  safety / recitation / refusal stop
  TruncatedError       length-limit stop with no partial text

The active adapter is chosen once from ``Settings`` by ``create_provider``.
"""

import logging
from typing import Any, Protocol

import anthropic
import httpx
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from config import Settings
from errors import BlockedContentError, ProviderError, TruncatedError
from models import Coordinates

logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS: int = 8192
TEMPERATURE: float = 0.3

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_V1_BASE_URL = "https://generativelanguage.googleapis.com/v1"

# Stop reasons that mean the provider refused to answer.
_GEMINI_BLOCKED = frozenset(
    {"SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"}
)


class MetadataProvider(Protocol):
    """Anything that can turn a route title into raw metadata text."""

    name: str

    async def fetch(
        self, route_title: str, coordinates: Coordinates | None = None
    ) -> str: ...


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are an expert in hiking routes and via ferratas in Spain and a structured \
data API. You respond with ONLY one valid JSON object: no markdown, no code \
fences, no explanation, no commentary before or after it.\
"""

_TASK_PROMPT = """\
Find real information about the hiking route or via ferrata named \
"{title}"{near}. Use what is known from sources such as Wikiloc, AllTrails \
or official tourism sites. Do not invent facts you are unsure of.

Return exactly one JSON object with these fields:

{{
  "type": "trekking" | "ferrata",
  "summary": "short description of the route",
  "difficulty": "Fácil" | "Moderada" | "Difícil" | "Muy Difícil" | "Extrema",
  "duration": "estimated duration, e.g. '4-5 horas'",
  "location": {{"region": "autonomous community", "province": "province"}},
  "approach": "how to get to the start",
  "approach_info": "additional approach details",
  "return_path": "how the return works",
  "return_info": "additional return details",
  "food": "food and restaurants nearby",
  "food_info": "additional food details",
  "orientation": "signage and orientation",
  "orientation_info": "additional orientation details",
  "best_season": ["Primavera" | "Verano" | "Otoño" | "Invierno" | "Todo el año"],
  "best_season_info": "why those seasons",
  "route_type": "Circular" | "Inicio-Fin",
  "dogs": "Sí" | "No" | "Sueltos" | "Atados",
  "parking": [{{"lat": 0.0, "lng": 0.0}}],
  "restaurants": [{{"lat": 0.0, "lng": 0.0, "name": "restaurant name"}}],
  "safety_tips": ["tip 1", "tip 2"],
  "storytelling": "narrative description of the route in markdown",
  "hero_image": {{"url": "", "alt": "real place shown", "width": 1200, "height": 800}},
  "gallery": [{{"url": "", "alt": "real place shown", "width": 800, "height": 600}}],
  "seo": {{"meta_title": "SEO title", "meta_description": "SEO description", \
"keywords": ["keyword 1", "keyword 2"]}}
}}

LANGUAGE: every natural-language value (summary, descriptions, tips, \
storytelling, alt texts, SEO fields) must be written in {language}, \
regardless of the language of these instructions. Enumerated values keep \
the exact spelling shown above.

IMAGES: never write an image URL. Leave every "url" empty. Images are looked \
up afterwards in a place-search service using the "alt" text, so each "alt" \
must name a real, searchable place on or next to the route (a peak, lake, \
village, refuge, viewpoint).

JSON: escape quotes inside strings as \\", separate every element with a \
comma, put no comma before a closing bracket, and close every object and \
array. Output the JSON object only.\
"""


def build_prompt(
    route_title: str,
    coordinates: Coordinates | None = None,
    language: str = "Spanish",
) -> tuple[str, str]:
    """Returns (system_prompt, task_prompt) for the given route."""
    near = (
        f" (the track starts at {coordinates.lat:.5f}, {coordinates.lng:.5f})"
        if coordinates
        else ""
    )
    task = _TASK_PROMPT.format(title=route_title, near=near, language=language)
    return _SYSTEM_PROMPT, task


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """Claude via the Messages API."""

    name = "anthropic"

    def __init__(
        self,
        settings: Settings,
        *,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or AsyncAnthropic(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            max_retries=0,
        )

    async def fetch(
        self, route_title: str, coordinates: Coordinates | None = None
    ) -> str:
        system, task = build_prompt(route_title, coordinates, self._settings.language)
        logger.info("Requesting route metadata from Claude (%s)", self._settings.model)
        try:
            response = await self._client.messages.create(
                model=self._settings.model,
                max_tokens=MAX_OUTPUT_TOKENS,
                temperature=TEMPERATURE,
                system=system,
                messages=[
                    {"role": "user", "content": task},
                    {"role": "assistant", "content": "{"},
                ],
            )
        except anthropic.APIError as exc:
            raise ProviderError(f"Anthropic API error: {exc}") from exc

        text = "".join(
            getattr(block, "text", "") for block in response.content or []
        ).strip()
        stop_reason = response.stop_reason
        logger.info("Claude stop_reason=%s, %d chars", stop_reason, len(text))

        if stop_reason == "refusal":
            raise BlockedContentError(
                "Claude refused to answer (refusal).", reason="refusal"
            )
        if stop_reason == "max_tokens" and not text:
            raise TruncatedError("Claude hit max_tokens without producing text.")
        if not text:
            raise ProviderError("Claude returned an empty response.")
        # Prepend the "{" we used as prefill.
        return text if text.startswith("{") else "{" + text


# ---------------------------------------------------------------------------
# OpenAI (and OpenAI-compatible "custom" endpoints)
# ---------------------------------------------------------------------------


class OpenAIProvider:
    """GPT via Chat Completions; also serves OpenAI-compatible custom endpoints."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._settings = settings
        self.name = settings.provider if settings.provider == "custom" else "openai"
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            max_retries=0,
        )

    async def fetch(
        self, route_title: str, coordinates: Coordinates | None = None
    ) -> str:
        system, task = build_prompt(route_title, coordinates, self._settings.language)
        kwargs: dict[str, Any] = {
            "model": self._settings.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": task},
            ],
            "temperature": TEMPERATURE,
        }
        if self.name == "openai":
            kwargs["max_completion_tokens"] = MAX_OUTPUT_TOKENS
            kwargs["response_format"] = {"type": "json_object"}
        else:
            # Compatible servers rarely support the newer parameters.
            kwargs["max_tokens"] = MAX_OUTPUT_TOKENS

        logger.info("Requesting route metadata from %s (%s)", self.name, self._settings.model)
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            raise ProviderError(f"{self.name} API error: {exc}") from exc

        if not response.choices:
            raise ProviderError(f"{self.name} returned no choices.")
        choice = response.choices[0]
        text = (choice.message.content or "").strip()
        finish_reason = choice.finish_reason
        logger.info("%s finish_reason=%s, %d chars", self.name, finish_reason, len(text))

        if finish_reason == "content_filter":
            raise BlockedContentError(
                f"{self.name} blocked the response (content_filter).",
                reason="content_filter",
            )
        if finish_reason == "length" and not text:
            raise TruncatedError(f"{self.name} hit the length limit without text.")
        if not text:
            raise ProviderError(f"{self.name} returned an empty response.")
        return text


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------


class GeminiProvider:
    """Gemini via the Generative Language REST API."""

    name = "gemini"

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._http_client = http_client

    @property
    def endpoint(self) -> str:
        """generateContent URL. 1.5-series models are served from v1."""
        base = self._settings.base_url
        if not base:
            base = (
                GEMINI_V1_BASE_URL
                if "1.5" in self._settings.model
                else GEMINI_BASE_URL
            )
        return f"{base.rstrip('/')}/models/{self._settings.model}:generateContent"

    async def fetch(
        self, route_title: str, coordinates: Coordinates | None = None
    ) -> str:
        system, task = build_prompt(route_title, coordinates, self._settings.language)
        body = {
            "contents": [{"parts": [{"text": f"{system}\n\n{task}"}]}],
            "generationConfig": {
                "temperature": TEMPERATURE,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": MAX_OUTPUT_TOKENS,
                "responseMimeType": "application/json",
            },
        }
        logger.info("Requesting route metadata from Gemini (%s)", self._settings.model)
        data = await self._post(body)
        return _gemini_text(data)

    async def _post(self, body: dict[str, Any]) -> Any:
        params = {"key": self._settings.api_key}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.endpoint, params=params, json=body
                )
            else:
                async with httpx.AsyncClient(
                    timeout=self._settings.timeout_seconds
                ) as client:
                    response = await client.post(self.endpoint, params=params, json=body)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Gemini request failed: {exc!r}") from exc

        if response.status_code >= 400:
            raise ProviderError(
                f"Gemini API error: {response.status_code} "
                f"{_gemini_error_message(response)}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError("Gemini returned a non-JSON body.") from exc


def _gemini_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", ""))
    return response.text[:200]


def _gemini_text(data: Any) -> str:
    """Extracts text from a generateContent response, mapping stop reasons.

    Raises:
        ProviderError: If the body does not have the generateContent shape.
    """
    if not isinstance(data, dict):
        raise ProviderError(
            f"Gemini returned a JSON {type(data).__name__} instead of an object."
        )
    feedback = data.get("promptFeedback") or {}
    block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
    if block_reason:
        raise BlockedContentError(
            f"Gemini blocked the prompt ({block_reason}).", reason=block_reason
        )

    candidates = data.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        raise ProviderError("Gemini returned no candidates.")
    candidate = candidates[0]
    if not isinstance(candidate, dict):
        raise ProviderError("Gemini returned a malformed candidate.")
    finish_reason = candidate.get("finishReason", "")

    if finish_reason in _GEMINI_BLOCKED:
        raise BlockedContentError(
            f"Gemini blocked the response ({finish_reason}).", reason=finish_reason
        )

    content = candidate.get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if parts is not None and not isinstance(parts, list):
        raise ProviderError("Gemini returned malformed content parts.")
    text = "".join(
        p["text"]
        for p in parts or []
        if isinstance(p, dict) and isinstance(p.get("text"), str)
    ).strip()
    logger.info("Gemini finishReason=%s, %d chars", finish_reason, len(text))

    if finish_reason == "MAX_TOKENS":
        if not text:
            raise TruncatedError(
                "Gemini hit MAX_TOKENS without producing text; the model may "
                "have spent its budget on internal reasoning."
            )
        logger.warning("Gemini response truncated by MAX_TOKENS; using partial text")
    if not text:
        raise ProviderError("Gemini returned an empty response.")
    return text


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def create_provider(settings: Settings) -> MetadataProvider | None:
    """Returns the adapter for the configured provider.

    Returns ``None`` when no credential is configured, which tells the
    pipeline to skip straight to the fallback synthesizer.
    """
    if not settings.ai_enabled:
        return None
    if settings.provider == "anthropic":
        return AnthropicProvider(settings)
    if settings.provider in ("openai", "custom"):
        return OpenAIProvider(settings)
    return GeminiProvider(settings)
