from fastapi import FastAPI
from contextlib import asynccontextmanager
from prometheus_fastapi_instrumentator import Instrumentator

from support_bridge.config import settings
from support_bridge.core.logging_config import setup_logging, get_logger
from support_bridge.core.paths import get_path_config
from support_bridge.db.mongodb import init_db, close_db
from support_bridge.dependencies import get_message_watcher
from support_bridge.middleware.access_log import AccessLogMiddleware
from support_bridge.routes import ops, slack_events
from support_bridge.services.slack_gateway import shutdown_chat_gateway
from support_bridge.tasks.install import create_support_index

# Setup structured logging BEFORE any other imports that might log
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info(
        "application_startup",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        log_level=settings.LOG_LEVEL,
    )

    # Fail fast on malformed CONFIG_PATH / MESSAGES_PATH
    paths = get_path_config()
    logger.info(
        "document_paths_configured",
        thread_document=paths.thread_document.template,
        messages_collection=paths.messages_collection.template,
    )

    try:
        await init_db()
        logger.info("database_initialized", database=settings.DATABASE_NAME)
    except Exception as e:
        logger.error(
            "database_initialization_failed",
            error=str(e),
            database=settings.DATABASE_NAME,
            exc_info=True,
        )
        raise

    if settings.PROVISION_INDEX_ON_STARTUP:
        await create_support_index()

    watcher = None
    if settings.ENABLE_MESSAGE_WATCHER:
        watcher = get_message_watcher()
        watcher.start()
    else:
        logger.info("message_watcher_disabled")

    yield

    # Shutdown
    logger.info("application_shutdown")

    if watcher is not None:
        await watcher.stop()

    await shutdown_chat_gateway()
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
**Relays support conversations between the app's chat and a Slack channel.**

- New user messages in MongoDB are posted into a per-user Slack thread
- Staff replies mentioning the bot in that thread are stored back as messages
- Slack requests are authenticated with the app's signing secret
    """,
    docs_url="/docs" if settings.ENABLE_DOCS else None,
    redoc_url="/redoc" if settings.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if settings.ENABLE_DOCS else None,
    lifespan=lifespan
)

# Prometheus HTTP metrics
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_group_untemplated=True,
    excluded_handlers=["/metrics"],  # Don't track metrics endpoint itself
)
instrumentator.instrument(app).expose(app, endpoint="/metrics")

app.add_middleware(AccessLogMiddleware)

# Include routers
app.include_router(ops.router, tags=["operations"])
app.include_router(slack_events.router, tags=["slack"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "support_bridge.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=False,  # Disable default access log - we use custom middleware
    )
