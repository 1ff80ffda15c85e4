"""Plant Report - FastAPI Application.

This module is the single entry point for the web service.  It defines the
``create_app()`` factory, the module-level ``app`` instance, all REST API
routes, and the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The routes are a thin orchestration layer over three collaborators, each
held on ``app.state``:

- ``object_store`` - :class:`~plantreport.core.object_store.ObjectStore`
  persisting uploads.  Connected once in the lifespan; ``None`` until then.
- ``analysis_client`` - :class:`~plantreport.core.analysis.AnalysisClient`
  calling the generative model.
- ``renderer`` - :class:`~plantreport.core.report.ReportRenderer` drawing
  PDF reports.

Errors raised by the collaborators are subclasses of
:class:`~plantreport.core.errors.PlantReportError`; a single exception
handler logs them and answers ``{"error": message}`` with the matching
status code.

Endpoints
---------
========  ======================  ==========================================
Method    Path                    Purpose
========  ======================  ==========================================
POST      ``/analyze``            Store an uploaded image and analyse it
POST      ``/download``           Render analysis text (+ image) as a PDF
GET       ``/test-pdf``           Fixed single-page PDF (renderer check)
GET       ``/files/{file_id}``    Stream a stored upload
GET       ``/health``             Liveness and storage status
========  ======================  ==========================================

Usage
-----
CLI (installed entry point)::

    plantreport

Direct invocation::

    python -m plantreport.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import APIRouter, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

from plantreport import __version__
from plantreport.api.models import AnalyzeResponse, DownloadRequest, HealthResponse
from plantreport.core.analysis import AnalysisClient, GeminiAnalysisClient
from plantreport.core.config import PlantReportConfig, config
from plantreport.core.data_url import decode_data_url, encode_data_url
from plantreport.core.errors import (
    PlantReportError,
    RenderError,
    StorageError,
    StorageUnavailable,
    UpstreamError,
    ValidationError,
)
from plantreport.core.object_store import ObjectStore, connect_object_store
from plantreport.core.report import ReportRenderer, iter_pdf_chunks

logger = logging.getLogger(__name__)

REPORT_FILENAME = "Plant_Report.pdf"
DEFAULT_UPLOAD_NAME = "upload"
DEFAULT_MIME_TYPE = "application/octet-stream"

router = APIRouter()

_FALLBACK_MESSAGES: dict[str, str] = {
    "/analyze": UpstreamError.public_message,
    "/download": RenderError.public_message,
    "/test-pdf": RenderError.public_message,
}


# ---------------------------------------------------------------------------
# Application lifecycle - object store connection.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Connect the object store before serving and close it on shutdown.

    A connection failure is logged and re-raised, which aborts uvicorn's
    startup: the service never accepts requests without a store.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    settings: PlantReportConfig = app.state.config

    # --- Startup -----------------------------------------------------------
    try:
        app.state.object_store = await connect_object_store(settings)
    except StorageError as e:
        logger.critical(f"Object store connection failed, refusing to start: {e}")
        raise

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    store: ObjectStore | None = app.state.object_store
    app.state.object_store = None
    if store is not None:
        await store.close()


# ---------------------------------------------------------------------------
# Collaborator accessors.
# ---------------------------------------------------------------------------


def _require_store(request: Request) -> ObjectStore:
    """Return the connected object store.

    Raises:
        StorageUnavailable: If the store was never initialized.
    """
    store: ObjectStore | None = request.app.state.object_store
    if store is None:
        raise StorageUnavailable("Object store used before initialization")
    return store


def _upload_too_large(settings: PlantReportConfig) -> ValidationError:
    return ValidationError(
        f"Image exceeds the {settings.max_upload_bytes} byte upload limit"
    )


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_image(
    request: Request,
    image: UploadFile | None = File(default=None),
) -> AnalyzeResponse:
    """Store an uploaded image, then ask the model to analyse it.

    This endpoint:

    1. Validates that a non-empty ``image`` file was uploaded.
    2. Writes the image to the object store.
    3. Sends the image and the configured instruction to the model.
    4. Returns the analysis, the image as a data URL, and the stored id.

    The image is written before the model is called and stays stored when
    the analysis fails, unless ``discard_failed_uploads`` is enabled.

    Args:
        request: Incoming request (gives access to ``app.state``).
        image: Uploaded multipart file from the ``image`` field.

    Returns:
        The :class:`AnalyzeResponse` payload.

    Raises:
        ValidationError: 400 when no file, an empty file, or an oversized
            file was uploaded.
        StorageUnavailable: 500 when the store was never initialized.
        StorageError: 500 when the write fails.
        UpstreamError: 500 when the model call fails.
    """
    settings: PlantReportConfig = request.app.state.config

    # --- Validate upload ---------------------------------------------------
    if image is None:
        raise ValidationError("No image file uploaded")
    # The multipart parser records the size, so oversized uploads are
    # rejected without reading them back into memory.
    if image.size is not None and image.size > settings.max_upload_bytes:
        raise _upload_too_large(settings)
    data = await image.read()
    if not data:
        raise ValidationError("No image file uploaded")
    if len(data) > settings.max_upload_bytes:
        raise _upload_too_large(settings)

    store = _require_store(request)
    mime_type = image.content_type or DEFAULT_MIME_TYPE
    filename = image.filename or DEFAULT_UPLOAD_NAME

    # --- Persist before analysis -------------------------------------------
    file_id = await store.store(filename, mime_type, data)

    # --- Analyse -----------------------------------------------------------
    client: AnalysisClient = request.app.state.analysis_client
    try:
        result = await client.analyze(data, mime_type, settings.analysis_prompt)
    except UpstreamError:
        if settings.discard_failed_uploads:
            try:
                await store.delete(file_id)
            except StorageError as e:
                logger.warning(f"Could not discard {file_id} after failed analysis: {e}")
        raise

    return AnalyzeResponse(
        result=result,
        image=encode_data_url(mime_type, data),
        image_file_id=file_id,
    )


@router.post("/download")
async def download_report(req: DownloadRequest, request: Request) -> StreamingResponse:
    """Render the analysis as a downloadable PDF report.

    The report holds the title, the ``result`` text and, when ``image`` is
    given, the image on a second page.  An empty ``result`` still produces
    a valid report.

    Args:
        req: Validated :class:`DownloadRequest` payload.
        request: Incoming request (gives access to ``app.state``).

    Returns:
        ``application/pdf`` stream served as ``Plant_Report.pdf``.

    Raises:
        ValidationError: 400 when ``image`` is not a valid base64 data URL.
        RenderError: 500 when the image cannot be decoded or drawing fails.
    """
    image_bytes: bytes | None = None
    if req.image:
        _, image_bytes = decode_data_url(req.image)

    renderer: ReportRenderer = request.app.state.renderer
    pdf = await run_in_threadpool(renderer.render, req.result, image_bytes)

    return StreamingResponse(
        iter_pdf_chunks(pdf),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={REPORT_FILENAME}"},
    )


@router.get("/test-pdf")
async def test_pdf(request: Request) -> StreamingResponse:
    """Return a fixed single-page PDF.

    Exercises the renderer only; it works whether or not the store is
    connected or an API key is configured.
    """
    renderer: ReportRenderer = request.app.state.renderer
    pdf = await run_in_threadpool(renderer.render_test_page)
    return StreamingResponse(
        iter_pdf_chunks(pdf),
        media_type="application/pdf",
    )


@router.get("/files/{file_id}")
async def get_file(file_id: str, request: Request) -> Response:
    """Return a stored upload with its original content type.

    Args:
        file_id: Identifier returned as ``imageFileId`` by ``/analyze``.
        request: Incoming request (gives access to ``app.state``).

    Raises:
        ValidationError: 400 for a malformed identifier.
        FileNotFound: 404 when nothing is stored under ``file_id``.
        StorageUnavailable: 500 when the store was never initialized.
    """
    store = _require_store(request)
    stored = await store.retrieve(file_id)
    return Response(
        content=stored.data,
        media_type=stored.content_type,
        headers={
            "Content-Disposition": f"inline; filename*=UTF-8''{quote(stored.filename)}"
        },
    )


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Report liveness and whether the object store is connected."""
    connected = request.app.state.object_store is not None
    return HealthResponse(
        storage="connected" if connected else "unavailable",
        version=__version__,
    )


# ---------------------------------------------------------------------------
# Error handlers.
# ---------------------------------------------------------------------------


async def handle_service_error(request: Request, exc: PlantReportError) -> JSONResponse:
    """Log a service error and convert it to ``{"error": message}``."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.client_message})


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Answer malformed request bodies with a 400 ``{"error": message}``."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()))
        message = f"Invalid request: {location} {errors[0].get('msg', '')}".strip()
    logger.warning(f"{request.method} {request.url.path} rejected: {message}")
    return JSONResponse(status_code=400, content={"error": message})


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Convert any other exception into a generic 500 ``{"error": message}``.

    The message is the one the route would give for its own failure class:
    analysis failures for ``/analyze``, PDF failures for the report routes.
    """
    logger.error(
        f"{request.method} {request.url.path} failed unexpectedly: {exc!r}", exc_info=exc
    )
    message = _FALLBACK_MESSAGES.get(request.url.path, "Internal server error")
    return JSONResponse(status_code=500, content={"error": message})


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    settings: PlantReportConfig = config,
    *,
    analysis_client: AnalysisClient | None = None,
    renderer: ReportRenderer | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    The object store is connected by the lifespan, so ``app.state.object_store``
    stays ``None`` until the server starts (or a caller assigns one).

    Args:
        settings: Configuration to run with.
        analysis_client: Analysis client; defaults to Gemini built from
            ``settings``.
        renderer: PDF renderer; defaults to :class:`ReportRenderer`.

    Returns:
        A configured :class:`FastAPI` instance.
    """
    app = FastAPI(
        title="Plant Report",
        description="Plant image analysis with PDF report export.",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = settings
    app.state.object_store = None
    app.state.analysis_client = analysis_client or GeminiAnalysisClient.from_config(settings)
    app.state.renderer = renderer or ReportRenderer()

    # Allow the frontend to be served from a different origin in development.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PlantReportError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router)

    # The frontend is optional; mount it last so API routes take precedence.
    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(settings.static_dir), html=True), name="static")
        logger.info(f"Serving static files from {settings.static_dir}")

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Configure logging and launch the uvicorn ASGI server.

    Reads host and port from :data:`~plantreport.core.config.config`
    (``PLANTREPORT_SERVER_HOST`` / ``PLANTREPORT_SERVER_PORT`` or ``PORT``).
    Defaults to ``0.0.0.0:5000``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "plantreport.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
