# control-plane/main.py
"""
Kakuremichi Control Plane - Main Application
FastAPI application entry point
"""

import uvicorn
import logging
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from api.v1 import agents, gateways, tunnels, ipam
from core.exceptions import MeshError, ValidationError, ExhaustedError, NotFoundError
from database.session import init_db, db_manager
from config import settings
from schemas.base import HealthResponse

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Track startup time
startup_time = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan events
    - Startup: Initialize database
    - Shutdown: Cleanup resources
    """
    global startup_time

    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENV}")

    init_db()
    startup_time = datetime.utcnow()

    logger.info("Application started successfully")

    yield

    # Shutdown
    logger.info("Shutting down application")


# Initialize FastAPI App
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Kakuremichi Control Plane API

    Manages the WireGuard mesh between Agents (edge nodes) and Gateways (relays):
    - Agent and Gateway registration, heartbeats and key updates
    - Tunnel creation with per-tunnel 10.N.0.0/24 block allocation
    - Per-node WireGuard topology, as JSON or rendered wg-quick text

    ## Authentication

    - Admin endpoints: X-Admin-Token header
    - Node endpoints (heartbeat, own config): X-API-Key header or admin token
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# === Exception Handlers ===

def _error_body(error: str, error_code: str, details=None) -> dict:
    return {
        "success": False,
        "error": error,
        "error_code": error_code,
        "details": details,
        "timestamp": datetime.utcnow().isoformat()
    }


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body("Validation error", "VALIDATION_ERROR", {"errors": errors})
    )


@app.exception_handler(MeshError)
async def mesh_exception_handler(request: Request, exc: MeshError):
    """Map allocation and topology errors to HTTP status codes"""
    details = None
    if isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
        details = {"kind": exc.kind, "id": exc.record_id}
    elif isinstance(exc, ExhaustedError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.error(f"Allocation failed: {exc}")
    elif isinstance(exc, ValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return JSONResponse(
        status_code=status_code,
        content=_error_body(str(exc), exc.error_code, details)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.exception(f"Unexpected error: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            "Internal server error",
            "INTERNAL_ERROR",
            {"message": str(exc)} if settings.DEBUG else None
        )
    )


# === Include Routers ===

app.include_router(
    agents.router,
    prefix=f"{settings.API_PREFIX}/agents",
    tags=["Agents"]
)

app.include_router(
    gateways.router,
    prefix=f"{settings.API_PREFIX}/gateways",
    tags=["Gateways"]
)

app.include_router(
    tunnels.router,
    prefix=f"{settings.API_PREFIX}/tunnels",
    tags=["Tunnels"]
)

app.include_router(
    ipam.router,
    prefix=f"{settings.API_PREFIX}/ipam",
    tags=["IPAM"]
)


# === Root Endpoints ===

@app.get(
    "/",
    summary="Root endpoint",
    description="Welcome message and API info"
)
async def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "agents": f"{settings.API_PREFIX}/agents",
            "gateways": f"{settings.API_PREFIX}/gateways",
            "tunnels": f"{settings.API_PREFIX}/tunnels",
            "ipam": f"{settings.API_PREFIX}/ipam"
        }
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check application and database health"
)
async def health_check():
    """Health check endpoint for monitoring"""
    db_status = "connected" if db_manager.check_connection() else "disconnected"

    uptime = None
    if startup_time:
        uptime = (datetime.utcnow() - startup_time).total_seconds()

    return HealthResponse(
        status="healthy" if db_status == "connected" else "unhealthy",
        service="control-plane",
        version=settings.APP_VERSION,
        uptime_seconds=uptime,
        database=db_status
    )


# === Run Application ===

def run():
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()
