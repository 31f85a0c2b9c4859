"""
Extraction Service — ASGI entry point

create_app() is the only place that:
  - loads Settings (a bad configuration raises ConfigurationError here,
    so the process never starts half-configured)
  - builds the ServiceContainer (S3, Textract, Transcribe, Lambda,
    RDS Data API adapters + the batch pipeline) and parks it on app.state
  - installs middleware and error handlers

Request path:
  request_context  → assigns/echoes X-Request-ID, one access log line
  CORS             → wide open in development only
  /aws router      → handlers render PipelineErrors per api.error_mode
  error handlers   → 422 for bad bodies, opaque 500 for anything else
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.dependencies import ServiceContainer
from app.api.v1.aws import router as aws_router
from app.core.config import Settings, load_settings
from app.schemas.aws import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)

SERVICE_NAME = "extraction-service"
REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.container.settings
    pipeline = settings.pipeline
    logger.info(
        "Service up | env=%s region=%s bucket=%s summarizer=%s error_mode=%s",
        settings.app_env, settings.region, settings.default_bucket,
        settings.summarizer.backend.value, settings.api.error_mode.value,
    )
    logger.info(
        "Polling | interval=%.1fs max_polls=%d timeout=%.0fs transcription=%s failure_mode=%s",
        pipeline.poll_interval_seconds, pipeline.max_poll_attempts,
        pipeline.job_timeout_seconds, pipeline.transcription_enabled,
        pipeline.failure_mode.value,
    )
    yield
    logger.info("Service down")


# ---------------------------------------------------------------------------
# Installation helpers
# ---------------------------------------------------------------------------

def _install_middleware(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.app_env == "development" else [],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = rid
        began = time.perf_counter()

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = rid
        logger.info(
            "Request done | method=%s path=%s status=%d elapsed_ms=%.1f request_id=%s",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - began) * 1000, rid,
        )
        return response


def _validation_details(exc: RequestValidationError) -> list[ErrorDetail]:
    return [
        ErrorDetail(
            field=".".join(str(part) for part in err["loc"]),
            message=err["msg"],
            code="VALIDATION_ERROR",
        )
        for err in exc.errors()
    ]


def _install_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def on_invalid_request(request: Request, exc: RequestValidationError):
        payload = ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Request body is invalid.",
            details=_validation_details(exc),
            request_id=getattr(request.state, "request_id", None),
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=payload.model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception):
        # Middleware may not have run if the failure happened before it
        rid = getattr(request.state, "request_id", None) or uuid.uuid4().hex
        logger.exception("Unhandled error | path=%s request_id=%s", request.url.path, rid)
        payload = ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="Internal server error.",
            request_id=rid,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=payload.model_dump(mode="json"),
            headers={REQUEST_ID_HEADER: rid},
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Settings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    settings = settings or load_settings()

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    show_docs = not settings.is_production
    app = FastAPI(
        title="Document Extraction & Summarization Service",
        summary="Textract / Transcribe over a case prefix in S3, then one summary.",
        version="1.0.0",
        docs_url="/docs" if show_docs else None,
        redoc_url=None,
        openapi_url="/openapi.json" if show_docs else None,
        lifespan=lifespan,
    )
    app.state.container = container or ServiceContainer.build(settings)

    _install_middleware(app, settings)
    _install_error_handlers(app)
    app.include_router(aws_router)

    @app.get("/health", tags=["Operations"], summary="Process liveness, no backend calls")
    async def health() -> dict:
        return {"status": "ok", "service": SERVICE_NAME}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=3000, reload=True)
