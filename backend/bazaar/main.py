"""
Bazaar - Backend API
Multi-vendor marketplace: checkout, Stripe payments and vendor commissions
"""
import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bazaar import __version__
from bazaar.api import orders, stripe_webhook
from bazaar.core.config import settings
from bazaar.core.database import ping
from bazaar.core.exceptions import register_exception_handlers

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["*"],
)

register_exception_handlers(app, expose_internal_errors=not settings.is_production)

# Include API routers
app.include_router(orders.router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(stripe_webhook.router, prefix="/api/v1/stripe", tags=["Stripe"])


@app.get("/")
async def root():
    """Root endpoint - API status"""
    return {
        "message": "Bazaar API",
        "status": "online",
        "version": __version__,
    }


@app.get("/health")
def health():
    """Health check endpoint - tests database connectivity"""
    start_time = time.time()

    db_status = "connected"
    db_latency_ms = None
    db_error = None

    try:
        db_latency_ms = ping()
    except Exception as e:
        db_status = "disconnected"
        db_error = None if settings.is_production else str(e)
        logger.warning(f"Health check: database unreachable: {e}")

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "service": "bazaar-api",
        "version": __version__,
        "database": {
            "status": db_status,
            "latency_ms": db_latency_ms,
            "error": db_error,
        },
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
    }
