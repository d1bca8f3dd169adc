from datetime import datetime, timezone
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from support_bridge.config import settings
from support_bridge.core.logging_config import get_logger
from support_bridge.db.mongodb import get_client

router = APIRouter()
logger = get_logger(__name__)


# Health check endpoint
@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Verifies:
    - MongoDB connectivity (critical)
    - Slack configuration (bot token, signing secret, channel)

    Returns 200 if MongoDB is reachable, 503 otherwise.
    """

    checks = {
        "application": "healthy",
        "mongodb": "unknown",
        "slack": "unknown",
    }

    try:
        await get_client().admin.command("ping")
        checks["mongodb"] = "healthy"
    except Exception as e:
        logger.error("health_check_mongodb_failed", error=str(e))
        checks["mongodb"] = f"unhealthy: {type(e).__name__}"

    missing = [
        name for name in ("SLACK_BOT_TOKEN", "SLACK_SIGNING_SECRET", "SLACK_CHANNEL_ID")
        if not getattr(settings, name)
    ]
    checks["slack"] = "healthy" if not missing else f"degraded: missing {', '.join(missing)}"

    all_healthy = checks["mongodb"] == "healthy"
    status_code = 200 if all_healthy else 503

    response_data = {
        "status": "healthy" if all_healthy else "degraded",
        "service": "support-bridge",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "checks": checks
    }

    return JSONResponse(content=response_data, status_code=status_code)


# Root endpoint
@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs" if settings.ENABLE_DOCS else None,
        "health": "/health",
        "metrics": "/metrics",
        "slack_events": "/slack/events",
    }
