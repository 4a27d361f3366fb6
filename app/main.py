"""Token Compliance Service.

This service validates proposed token metadata against versioned standard
profiles, answers capability matrix queries, and records tamper-evident
evidence of every validation decision.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from app.api.routes.capabilities import router as capabilities_router
from app.api.routes.standards import router as standards_router
from app.api.routes.validation import router as validation_router
from app.compliance.capability_matrix import CapabilityMatrix
from app.compliance.capability_resolver import CapabilityResolver
from app.compliance.registry import StandardProfileRegistry
from app.core.config import AppEnvironment, Settings, get_settings
from app.core.database import reset_engine
from app.core.errors import ComplianceError, ValidationInputError, get_status_code
from app.core.logging import setup_logging
from app.core.tracing import (
    bind_contextvars_to_logging,
    clear_tracing_context,
    set_request_id,
    set_trace_parent,
)

logger = structlog.get_logger(__name__)

COMPLIANCE_PREFIX = "/compliance"
API_CSP_POLICY = (
    "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; "
    "form-action 'none'; object-src 'none'"
)
DOCS_CSP_POLICY = (
    "default-src 'self'; img-src 'self' data:; style-src 'self' 'unsafe-inline'; "
    "script-src 'self' 'unsafe-inline'; frame-ancestors 'none'; object-src 'none'; "
    "base-uri 'self'"
)


def _request_log_context(request: Request) -> dict[str, str]:
    return {
        "path": request.url.path,
        "method": request.method,
        "query": request.url.query,
        "request_id": getattr(request.state, "request_id", ""),
        "client_host": request.client.host if request.client else "",
    }


def _is_docs_path(path: str) -> bool:
    return path.startswith("/docs") or path.startswith("/redoc") or path.startswith("/openapi.json")


def _error_body(exc: ComplianceError) -> dict:
    return {
        "detail": exc.message,
        "code": exc.code,
        **({"errors": jsonable_encoder(exc.details)} if exc.details else {}),
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan context manager.

    Standard profiles and the capability matrix are loaded once here and
    shared read-only by every request. A malformed profile or matrix aborts
    startup.
    """
    settings = get_settings()
    setup_logging()

    logger.info(
        "Starting Token Compliance Service",
        app=settings.app.name,
        env=settings.app.env.value,
        version=settings.app.version,
    )

    registry = StandardProfileRegistry.default()
    matrix = CapabilityMatrix.from_file(settings.compliance.capability_matrix_path)

    app.state.settings = settings
    app.state.registry = registry
    app.state.capability_resolver = CapabilityResolver(matrix)

    yield

    await reset_engine()

    logger.info("Token Compliance Service stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Token Compliance Service",
        description=(
            "Deterministic token metadata validation, capability matrix "
            "resolution and validation evidence retrieval."
        ),
        version=settings.app.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.app.env != AppEnvironment.PROD else None,
        redoc_url="/redoc" if settings.app.env != AppEnvironment.PROD else None,
        openapi_url="/openapi.json" if settings.app.env != AppEnvironment.PROD else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_allowed_origins,
        allow_credentials=settings.security.cors_allow_credentials,
        allow_methods=settings.security.cors_allow_methods,
        allow_headers=settings.security.cors_allow_headers,
    )

    api_prefix = settings.app.api_prefix.rstrip("/") + COMPLIANCE_PREFIX
    app.include_router(validation_router, prefix=api_prefix)
    app.include_router(capabilities_router, prefix=api_prefix)
    app.include_router(standards_router, prefix=api_prefix)

    setup_telemetry(app, settings)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Propagate X-Request-ID and bind it into structlog context."""
        request_id = set_request_id(request.headers.get("x-request-id"))
        set_trace_parent(request.headers.get("traceparent"))
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**bind_contextvars_to_logging())
        try:
            response = await call_next(request)
        finally:
            # Prevent context leakage across requests in long-lived workers.
            clear_tracing_context()
            structlog.contextvars.clear_contextvars()

        response.headers["X-Request-ID"] = request_id
        return response

    @app.middleware("http")
    async def payload_size_guard(request: Request, call_next):
        request_context = _request_log_context(request)
        max_request = settings.security.max_request_size_bytes

        content_length = request.headers.get("content-length")
        if content_length:
            try:
                if int(content_length) > max_request:
                    logger.warning(
                        "Request payload exceeds configured size limit",
                        **request_context,
                        content_length=content_length,
                        max_request_size_bytes=max_request,
                    )
                    return JSONResponse(
                        status_code=413, content={"detail": "Request payload too large"}
                    )
            except ValueError:
                logger.warning(
                    "Invalid Content-Length header",
                    **request_context,
                    content_length=content_length,
                )
        elif request.method in {"POST", "PUT", "PATCH"}:
            body = await request.body()
            if len(body) > max_request:
                logger.warning(
                    "Request payload exceeds configured size limit",
                    **request_context,
                    content_length=len(body),
                    max_request_size_bytes=max_request,
                )
                return JSONResponse(
                    status_code=413, content={"detail": "Request payload too large"}
                )

        return await call_next(request)

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        """Set baseline security headers for all responses."""
        response = await call_next(request)

        csp_policy = DOCS_CSP_POLICY if _is_docs_path(request.url.path) else API_CSP_POLICY
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault(
            "Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload"
        )
        response.headers.setdefault("Content-Security-Policy", csp_policy)
        return response

    @app.exception_handler(ComplianceError)
    async def domain_error_handler(request: Request, exc: ComplianceError) -> JSONResponse:
        """Handle domain-specific errors."""
        status_code = get_status_code(exc)
        logger.warning(
            "Domain exception",
            **_request_log_context(request),
            status_code=status_code,
            code=exc.code,
            error=exc.message,
        )
        return JSONResponse(status_code=status_code, content=_error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Render malformed request bodies as ValidationInputError."""
        fields = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        error = ValidationInputError("Request validation failed", details={"fields": fields})
        logger.info("Malformed request", **_request_log_context(request), errors=len(exc.errors()))
        return JSONResponse(status_code=get_status_code(error), content=_error_body(error))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(
            "Unhandled exception",
            **_request_log_context(request),
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


def setup_telemetry(app: FastAPI, settings: Settings) -> None:
    """Setup OpenTelemetry instrumentation."""
    if not settings.observability.otlp_endpoint:
        return

    resource = Resource(
        attributes={
            SERVICE_NAME: settings.observability.service_name,
        }
    )

    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(
        endpoint=settings.observability.otlp_endpoint,
        insecure=settings.observability.otlp_insecure,
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app)


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.app.env == AppEnvironment.LOCAL,
        workers=1 if settings.app.env == AppEnvironment.LOCAL else settings.server.workers,
        log_level=settings.app.log_level.value.lower(),
    )


if __name__ == "__main__":
    run()
