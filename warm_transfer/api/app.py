"""
Main FastAPI application for the warm transfer service.
"""

import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response

from warm_transfer.api.routes import transfer_router
from warm_transfer.config import get_settings
from warm_transfer.core.handoff import TransferOrchestrator
from warm_transfer.core.handoff.factory import build_transfer_runtime
from warm_transfer.utils.logging import setup_logging

logger = structlog.get_logger(__name__)

# Prometheus metrics
REQUEST_COUNT = Counter(
    "warm_transfer_requests_total",
    "Total requests",
    ["method", "endpoint", "status"]
)
REQUEST_LATENCY = Histogram(
    "warm_transfer_request_latency_seconds",
    "Request latency",
    ["method", "endpoint"]
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    settings = get_settings()
    setup_logging(settings)

    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.api.debug
    )

    runtime = None
    if app.state.orchestrator is None:
        runtime = build_transfer_runtime(settings)
        app.state.orchestrator = runtime.orchestrator

    yield

    logger.info("application_shutting_down")
    if runtime is not None:
        await runtime.close()
        app.state.orchestrator = None
    else:
        await app.state.orchestrator.shutdown()


def create_app(orchestrator: TransferOrchestrator | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Warm Transfer API",
        description="""
        AI-assisted warm call transfers between handlers.

        ## Features
        - LLM call summary and handoff script
        - Dedicated LiveKit room for the briefing
        - Spoken briefing via TTS
        - Step-by-step progress polling and cancellation
        """,
        version="1.0.0",
        docs_url="/docs" if settings.api.debug else None,
        redoc_url="/redoc" if settings.api.debug else None,
        lifespan=lifespan
    )
    app.state.orchestrator = orchestrator

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging and metrics middleware
    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        start_time = time.time()
        request_id = request.headers.get("X-Request-ID", str(time.time()))

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                error=str(e)
            )
            raise

        latency = time.time() - start_time
        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).inc()
        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=request.url.path
        ).observe(latency)

        logger.info(
            "request_completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            latency_ms=int(latency * 1000)
        )

        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    # Health check endpoints
    @app.get("/health")
    async def health_check():
        """Basic health check."""
        return {"status": "healthy"}

    @app.get("/health/ready")
    async def readiness_check():
        """Readiness check: the transfer orchestrator is up."""
        current = app.state.orchestrator
        checks = {
            "api": True,
            "orchestrator": current is not None,
        }

        all_healthy = all(checks.values())
        return {
            "status": "ready" if all_healthy else "not_ready",
            "checks": checks,
            "active_transfers": len(current.active_transfer_ids()) if current else 0
        }

    @app.get("/health/live")
    async def liveness_check():
        """Liveness check."""
        return {"status": "alive"}

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(),
            media_type="text/plain"
        )

    app.include_router(transfer_router, prefix="/api/v1")

    return app


# Application instance
app = create_app()
