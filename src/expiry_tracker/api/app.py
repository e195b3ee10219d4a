"""FastAPI application factory."""

import base64
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from expiry_tracker.api.admin import router as admin_router
from expiry_tracker.api.schemas import (
    CreateSessionResponse,
    ErrorResponse,
    ExtractTextResponse,
    SessionImagePayload,
    SessionImagesResponse,
    SessionStatusResponse,
    UploadResponse,
)
from expiry_tracker.app_logging import configure_logging
from expiry_tracker.containers import AppContainer
from expiry_tracker.domain.errors import (
    AnalysisCallError,
    ExtractionCallError,
    SessionNotFoundError,
    StoreUnavailableError,
    UploadValidationError,
)
from expiry_tracker.domain.vision import ProductFields


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.container.sweeper.start()
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(HTTPException)
    async def http_error(_: Request, exc: HTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(SessionNotFoundError)
    async def session_not_found(_: Request, exc: SessionNotFoundError) -> JSONResponse:
        return _error_response(404, "Session not found")

    @app.exception_handler(UploadValidationError)
    async def upload_invalid(_: Request, exc: UploadValidationError) -> JSONResponse:
        return _error_response(400, str(exc))

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable(
        request: Request, exc: StoreUnavailableError
    ) -> JSONResponse:
        logger.error(
            "Store unavailable", exc_info=exc, extra={"path": request.url.path}
        )
        return _error_response(
            503, "Storage unavailable", _debug_detail(container, exc)
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/session")
    async def create_session(request: Request) -> CreateSessionResponse:
        """Start a handoff and return the deep link for the capture app."""
        state_container: AppContainer = request.app.state.container
        ticket = state_container.handoff_coordinator.start_handoff()
        return CreateSessionResponse(
            session_id=ticket.session_id, deep_link=ticket.deep_link
        )

    @app.get("/session")
    async def session_status(
        request: Request, session_id: str | None = Query(default=None, alias="id")
    ) -> SessionStatusResponse:
        """Report whether a session exists and how many images it holds."""
        if not session_id:
            raise HTTPException(status_code=400, detail="Session ID required")
        state_container: AppContainer = request.app.state.container
        poll = state_container.handoff_coordinator.poll_session(session_id)
        if not poll.exists or poll.created_at is None:
            raise SessionNotFoundError(session_id)
        return SessionStatusResponse(
            session_id=session_id,
            image_count=poll.image_count,
            created_at=poll.created_at,
        )

    @app.get("/session/{session_id}")
    async def session_images(
        session_id: str, request: Request
    ) -> SessionImagesResponse:
        """Return a session's images inline for the primary device."""
        state_container: AppContainer = request.app.state.container
        images = state_container.handoff_coordinator.fetch_session_images(session_id)
        payloads = [
            SessionImagePayload(
                filename=image.record.filename,
                content_type=image.record.content_type,
                data=base64.b64encode(image.data).decode("ascii"),
            )
            for image in images
        ]
        return SessionImagesResponse(
            session_id=session_id, image_count=len(payloads), images=payloads
        )

    @app.post("/session/{session_id}/upload")
    async def upload_image(
        session_id: str,
        request: Request,
        image: UploadFile | None = File(default=None),
    ) -> UploadResponse:
        """Accept an image from the capture app into a session."""
        state_container: AppContainer = request.app.state.container
        data = await image.read() if image is not None else b""
        receipt = state_container.upload_ingestor.upload(
            session_id=session_id,
            filename=image.filename if image is not None else None,
            content_type=image.content_type if image is not None else None,
            data=data,
        )
        return UploadResponse(
            session_id=receipt.session_id, image_count=receipt.image_count
        )

    @app.post("/analyze", response_model=None)
    async def analyze_image(
        request: Request,
        image: UploadFile | None = File(default=None),
        manual_product: str = Form(default="", alias="manualProduct"),
        manual_date: str = Form(default="", alias="manualDate"),
    ) -> dict[str, object] | JSONResponse:
        """Read product name and expiry date from an image."""
        if image is None:
            return _error_response(400, "No image provided")
        state_container: AppContainer = request.app.state.container
        data = await image.read()
        try:
            fields = await state_container.vision_service.extract_fields(
                data,
                hint_product=manual_product,
                hint_date=manual_date,
                content_type=image.content_type,
            )
        except AnalysisCallError as exc:
            logger.exception("Analysis failed", extra={"image": image.filename})
            return _error_response(
                502, "Failed to analyze image", _debug_detail(state_container, exc)
            )
        return _fields_payload(fields)

    @app.post("/extract-text", response_model=None)
    async def extract_text(
        request: Request, image: UploadFile | None = File(default=None)
    ) -> ExtractTextResponse | JSONResponse:
        """Return all readable text in an image."""
        if image is None:
            return _error_response(400, "No image provided")
        state_container: AppContainer = request.app.state.container
        data = await image.read()
        try:
            text = await state_container.vision_service.extract_text(
                data, content_type=image.content_type
            )
        except ExtractionCallError as exc:
            logger.exception("Text extraction failed", extra={"image": image.filename})
            return _error_response(
                500, "Failed to extract text", _debug_detail(state_container, exc)
            )
        return ExtractTextResponse(extracted_text=text)

    return app


def _fields_payload(fields: ProductFields) -> dict[str, object]:
    return fields.model_dump(by_alias=True)


def _error_response(
    status_code: int, error: str, details: str | None = None
) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


def _debug_detail(container: AppContainer, exc: Exception) -> str | None:
    """Return exception detail only for local development."""
    if container.settings.environment == "local":
        return f"{type(exc).__name__}: {exc}"
    return None
