"""Exception hierarchy for the GPX route drafting pipeline.

Only ``ParseError`` is fatal to a request. Everything under
``EnrichmentError`` is caught by the pipeline and degrades to the fallback
synthesizer; ``ImageResolutionError`` is absorbed per image.
"""


class RouteDraftError(Exception):
    """Base class for all pipeline errors."""


class ParseError(RouteDraftError):
    """The uploaded file carries no usable track geometry."""


# ---------------------------------------------------------------------------
# AI enrichment
# ---------------------------------------------------------------------------


class EnrichmentError(RouteDraftError):
    """Base class for metadata provider and response parsing failures."""


class ProviderError(EnrichmentError):
    """Network failure, timeout, or non-success HTTP status from the provider."""


class BlockedContentError(EnrichmentError):
    """The provider stopped generation for safety or content-policy reasons."""

    def __init__(self, message: str, reason: str = "") -> None:
        super().__init__(message)
        self.reason = reason


class TruncatedError(EnrichmentError):
    """The provider hit its length limit and returned no usable text."""


class EnrichmentParseError(EnrichmentError):
    """Provider text could not be repaired into valid metadata."""

    def __init__(self, message: str, excerpt: str = "") -> None:
        super().__init__(message)
        self.excerpt = excerpt


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


class ImageResolutionError(RouteDraftError):
    """A single image reference could not be resolved via place lookup."""
