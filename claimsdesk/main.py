"""
Claims Desk - Main Application Entry Point

Sends prefilled JotForm documents to clients for signature and records the
completed submissions.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from claimsdesk.config import settings
from claimsdesk.database import init_db, close_db
from claimsdesk.rate_limit import RateLimitMiddleware
from claimsdesk.routes.signature_routes import router as signature_router
from claimsdesk.routes.webhook_routes import router as webhook_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


# =============================================================================
# STARTUP & SHUTDOWN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup and release the engine on shutdown."""
    await init_db()

    print(f"""
    ==============================================================
    Claims Desk is starting...

    Version: {settings.APP_VERSION}
    URL: {settings.BASE_URL}
    Docs: {settings.BASE_URL}/docs
    JotForm API: {"configured" if settings.JOTFORM_API_KEY else "not configured (static field mapping)"}
    ==============================================================
    """)

    yield

    await close_db()
    print("\nClaims Desk is shutting down...\n")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(RateLimitMiddleware)

app.include_router(signature_router)
app.include_router(webhook_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


# =============================================================================
# RUN (for development)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "claimsdesk.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
