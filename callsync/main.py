"""
Call sync - FastAPI application
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
import structlog

from callsync import __version__
from callsync.config import settings
from callsync.logging_config import configure_logging
from callsync.api import calls, sync
from callsync.webhooks import exotel

# Configure structured logging
configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting call sync API", version=__version__)
    yield
    logger.info("Shutting down call sync API")


# Create FastAPI application
app = FastAPI(
    title="Call Sync",
    description="Keeps CRM call records in step with the voice provider",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoints
@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "callsync", "version": __version__}


@app.get("/health/ready")
async def ready():
    """Readiness check with dependency verification"""
    from callsync.database import SessionLocal

    checks = {}

    # Check database
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"failed: {str(e)}"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
    }


# Include API routers
app.include_router(calls.router, prefix="/orgs/{org_id}/calls", tags=["Calls"])
app.include_router(sync.router, prefix="/sync", tags=["Sync"])

# Include webhook routers
app.include_router(exotel.router, prefix="/webhooks/exotel", tags=["Webhooks"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "callsync.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
