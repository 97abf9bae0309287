from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .configuration import ServiceSettings, load_settings
from .exceptions import ServiceError, ValidationError
from .middleware import RateLimiter, RequestContextMiddleware, enforce_rate_limit, require_api_key
from .models import (
    EncryptedPdfData,
    EncryptPdfRequest,
    ErrorResponse,
    HealthStatus,
    ProcessPdfRequest,
    SuccessResponse,
    WatermarkConfig,
    WatermarkedPdfData,
    WatermarkPdfRequest,
)
from .pipeline import ContractPdfPipeline, ProcessedDocument
from .utils import configure_logging
from .validation import build_encryption_request, decode_and_validate_pdf, encode_pdf_data_uri
from .watermark import WatermarkOptions

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


def _error(status_code: int, error: str, details: Optional[list] = None, headers: Optional[dict] = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details or None)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)


def _to_watermark_options(config: Optional[WatermarkConfig]) -> WatermarkOptions:
    if config is None:
        return WatermarkOptions()
    return WatermarkOptions(text=config.text, opacity=config.opacity, position=config.position, date=config.date)


def _encrypted_data(result: ProcessedDocument) -> EncryptedPdfData:
    return EncryptedPdfData(
        encrypted_pdf_base64=encode_pdf_data_uri(result.document.content),
        password=result.password,
        file_size=result.document.size_bytes,
        processing_time=result.processing_time_ms,
    )


def get_pipeline(request: Request) -> ContractPdfPipeline:
    return request.app.state.pipeline


def get_settings(request: Request) -> ServiceSettings:
    return request.app.state.settings


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        logger.warning(f"[{_request_id(request)}] Invalid request: {exc.details}")
        return _error(exc.status_code, exc.public_message, exc.details)

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        logger.error(f"[{_request_id(request)}] {type(exc).__name__} on {request.url.path}: {exc.message}")
        return _error(exc.status_code, exc.public_message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ())[1:])
            details.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
        logger.warning(f"[{_request_id(request)}] Invalid request: {details}")
        return _error(400, "Invalid request", details)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            logger.warning(f"Route not found: {request.method} {request.url.path}")
            return _error(404, "Route not found")
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"[{_request_id(request)}] Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return _error(500, "Internal server error")


def create_app(settings: Optional[ServiceSettings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    if settings.is_development and not settings.api_key:
        logger.warning("API key authentication disabled in development mode")

    app = FastAPI(title="Contract PDF Service", version="0.1.0")
    app.state.settings = settings
    app.state.pipeline = ContractPdfPipeline.from_settings(settings)
    app.state.rate_limiter = RateLimiter(requests_per_minute=settings.rate_limit_per_minute)
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Key", "X-Request-ID"],
    )
    app.add_middleware(RequestContextMiddleware, max_body_size=settings.max_request_size)
    register_exception_handlers(app)

    protected = [Depends(require_api_key), Depends(enforce_rate_limit)]

    @app.get("/health", response_model=HealthStatus)
    def healthcheck(request: Request, settings: ServiceSettings = Depends(get_settings)) -> HealthStatus:
        return HealthStatus(
            status="ok",
            timestamp=datetime.now(timezone.utc),
            uptime=round(time.monotonic() - request.app.state.started_at, 3),
            environment=settings.environment,
        )

    @app.get("/health/ready", response_model=HealthStatus, responses={503: {"model": HealthStatus}})
    def readiness(pipeline: ContractPdfPipeline = Depends(get_pipeline)):
        checks = pipeline.is_ready()
        ready = all(checks.values())
        status = HealthStatus(status="ready" if ready else "not ready", timestamp=datetime.now(timezone.utc), checks=checks)
        if not ready:
            return JSONResponse(status_code=503, content=status.model_dump(mode="json", exclude_none=True))
        return status

    @app.post(
        "/api/pdf/process",
        response_model=SuccessResponse[EncryptedPdfData],
        dependencies=protected,
        responses=ERROR_RESPONSES,
    )
    def process_pdf(
        body: ProcessPdfRequest,
        request: Request,
        pipeline: ContractPdfPipeline = Depends(get_pipeline),
    ) -> SuccessResponse[EncryptedPdfData]:
        request_id = _request_id(request)
        encryption_request = build_encryption_request(
            body.contract_id, body.contract_number, body.pdf_base64, pipeline.settings.max_pdf_size
        )
        logger.info(f"[{request_id}] Processing PDF for contract {body.contract_number} ({len(encryption_request.pdf_bytes)} bytes)")

        watermark = _to_watermark_options(body.watermark_config) if body.watermark_config else None
        metadata = body.metadata.model_dump() if body.metadata else None
        result = pipeline.process(encryption_request, watermark=watermark, metadata=metadata)

        logger.info(
            f"[{request_id}] PDF processed for contract {body.contract_number} in {result.processing_time_ms}ms "
            f"(output: {result.document.size_bytes} bytes)"
        )
        return SuccessResponse[EncryptedPdfData](data=_encrypted_data(result))

    @app.post(
        "/api/pdf/encrypt",
        response_model=SuccessResponse[EncryptedPdfData],
        dependencies=protected,
        responses=ERROR_RESPONSES,
    )
    def encrypt_pdf(
        body: EncryptPdfRequest,
        request: Request,
        pipeline: ContractPdfPipeline = Depends(get_pipeline),
    ) -> SuccessResponse[EncryptedPdfData]:
        encryption_request = build_encryption_request(
            body.contract_id, body.contract_number, body.pdf_base64, pipeline.settings.max_pdf_size
        )
        permissions = body.permissions.model_dump(exclude_none=True) if body.permissions else None
        result = pipeline.encrypt_only(encryption_request, permissions=permissions)

        logger.info(f"[{_request_id(request)}] PDF encrypted for contract {body.contract_number} in {result.processing_time_ms}ms")
        return SuccessResponse[EncryptedPdfData](data=_encrypted_data(result))

    @app.post(
        "/api/pdf/watermark",
        response_model=SuccessResponse[WatermarkedPdfData],
        dependencies=protected,
        responses=ERROR_RESPONSES,
    )
    def watermark_pdf(
        body: WatermarkPdfRequest,
        request: Request,
        pipeline: ContractPdfPipeline = Depends(get_pipeline),
    ) -> SuccessResponse[WatermarkedPdfData]:
        pdf_bytes = decode_and_validate_pdf(body.pdf_base64, pipeline.settings.max_pdf_size)
        result = pipeline.watermark_only(pdf_bytes, _to_watermark_options(body.watermark_config))

        logger.info(f"[{_request_id(request)}] Watermark added in {result.processing_time_ms}ms")
        return SuccessResponse[WatermarkedPdfData](
            data=WatermarkedPdfData(
                watermarked_pdf_base64=encode_pdf_data_uri(result.content),
                file_size=result.size_bytes,
                processing_time=result.processing_time_ms,
            )
        )

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
