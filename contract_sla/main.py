import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from contract_sla.core.config import settings
from contract_sla.core.components import build_components
from contract_sla.core.database import AsyncSessionLocal, create_tables
from contract_sla.core.exceptions import (
    ContractSlaException,
    ResourceNotFoundException,
    UnsupportedTicketTypeException,
    InvalidBusinessHoursException,
)
from contract_sla.core.logging import configure_structured_logging
from contract_sla.api.v1 import api_router
from contract_sla.api.v1 import metrics
from contract_sla.middleware.monitoring import MonitoringMiddleware

# Configure structured logging
if settings.ENABLE_STRUCTURED_LOGGING:
    configure_structured_logging(
        log_level="DEBUG" if settings.DEBUG else "INFO",
        json_format=not settings.DEBUG  # Use JSON in production, plain text in debug
    )
else:
    logging.basicConfig(
        level=logging.INFO if not settings.DEBUG else logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Creates the tables, wires the engine components and warms their caches.
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await create_tables()
    components = build_components(AsyncSessionLocal)
    await components.initialize()
    app.state.components = components
    logger.info("SLA engine components initialized")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Contractual SLA compliance and violation API",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Performance monitoring middleware (outermost - runs first)
if settings.ENABLE_PROMETHEUS_METRICS:
    app.add_middleware(MonitoringMiddleware)


_STATUS_BY_EXCEPTION = (
    (ResourceNotFoundException, status.HTTP_404_NOT_FOUND),
    (UnsupportedTicketTypeException, status.HTTP_400_BAD_REQUEST),
    (InvalidBusinessHoursException, status.HTTP_400_BAD_REQUEST),
)


@app.exception_handler(ContractSlaException)
async def contract_sla_exception_handler(request: Request, exc: ContractSlaException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for exc_type, code in _STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            status_code = code
            break
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "details": exc.details}
    )


# Include API router
app.include_router(api_router, prefix="/api/v1")
if settings.ENABLE_PROMETHEUS_METRICS:
    app.include_router(metrics.router)


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.

    Reports backing-store reachability of each component and cache state.
    """
    components = request.app.state.components
    checks = await components.health()
    return {
        "status": "healthy" if all(checks.values()) else "degraded",
        "components": checks,
        "caches": {
            "contractual_slas": components.sla_store.get_cache_stats(),
            **components.violation_service.get_cache_stats(),
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "contract_sla.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
