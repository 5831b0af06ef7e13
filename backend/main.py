"""Peak Explorer route drafting service.

Exposes endpoints for turning an uploaded GPX track into a route draft
ready for admin review.
"""

import logging
import os

from fastapi import FastAPI, HTTPException

import pipeline
from errors import ParseError
from models import ProcessGpxRequest, ProcessingResult

logging.basicConfig(level=logging.INFO)

# Upload contract for /process-gpx.
MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
ALLOWED_EXTENSION: str = ".gpx"

app = FastAPI(
    title="Peak Explorer Backend",
    description="GPX route drafting with AI-enriched metadata.",
    version="0.1.0",
)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint used by the platform to verify the service is live."""
    return {"status": "ok"}


@app.post("/process-gpx", response_model=ProcessingResult)
async def process_gpx(request: ProcessGpxRequest) -> ProcessingResult:
    """Builds a route draft from an uploaded GPX document.

    Runs the five-step pipeline: decode, measure, enrich (AI or fallback),
    resolve images, assemble. AI failures never fail the request; they are
    reported in ``logs`` and the fallback metadata is used.

    Args:
        request: Contains ``filename``, the GPX ``content`` as text, and
            ``use_ai`` to allow or skip the metadata provider.

    Returns:
        ``ProcessingResult`` with the draft, the raw track points and the
        run's diagnostics.

    Raises:
        HTTPException 400: If the filename does not end in ``.gpx``.
        HTTPException 413: If the content exceeds 10 MB.
        HTTPException 422: If the document holds no usable track.
        HTTPException 502: On any unexpected failure.
    """
    filename = os.path.basename(request.filename.strip())
    if not filename.lower().endswith(ALLOWED_EXTENSION):
        raise HTTPException(
            status_code=400,
            detail="Only .gpx files are accepted.",
        )
    if len(request.content.encode("utf-8")) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail="GPX file is too large (max 10 MB).",
        )
    try:
        return await pipeline.process_gpx(
            request.content, filename, use_ai=request.use_ai
        )
    except ParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except Exception as exc:  # noqa: BLE001
        logging.exception("pipeline.process_gpx failed")
        raise HTTPException(
            status_code=502,
            detail="Failed to process the GPX file. Please try again.",
        ) from exc
