"""
Structured logging configuration with structlog.

- All logs to STDOUT/STDERR for container log collection
- Structured JSON logging for production environments
- Human-readable console logs for development
- Third-party library noise filtering (slack_sdk, pymongo, aiohttp)
- Request correlation IDs bound by the access log middleware
"""

import logging
import logging.config
from typing import Any
import structlog
from structlog.types import EventDict, Processor
from support_bridge.config import settings


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add application context to every log entry.

    This processor enriches logs with:
    - Service name (for observability stack filtering)
    - Application name
    - Environment (dev/staging/prod)
    - Service version
    """
    event_dict["service"] = "support-bridge"
    event_dict["app"] = settings.APP_NAME
    event_dict["version"] = settings.APP_VERSION
    event_dict["environment"] = settings.ENVIRONMENT
    return event_dict


def add_severity_level(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Map the structlog level onto an upper-case severity label."""
    if "level" in event_dict:
        event_dict["severity"] = event_dict["level"].upper()
    return event_dict


def add_trace_id_alias(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Expose correlation_id (or request_id) as trace_id as well."""
    if "correlation_id" in event_dict:
        event_dict["trace_id"] = event_dict["correlation_id"]
    elif "request_id" in event_dict:
        event_dict["trace_id"] = event_dict["request_id"]

    return event_dict


def censor_sensitive_data(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Censor sensitive data from logs to prevent security leaks.

    Redacts Slack bot tokens, the signing secret, request signatures
    and authorization headers.
    """
    sensitive_keys = ["password", "token", "api_key", "secret", "signature", "authorization"]

    for key in list(event_dict.keys()):
        if any(sensitive in key.lower() for sensitive in sensitive_keys):
            event_dict[key] = "***REDACTED***"

    return event_dict


def _use_json() -> bool:
    return settings.ENVIRONMENT == "production" or settings.LOG_JSON_FORMAT


def setup_logging() -> None:
    """
    Configure the complete logging stack for the application.

    1. Sets up structlog with the shared processor chain
    2. Picks JSON (production) or colored console output
    3. Routes stdlib loggers (uvicorn, pymongo, slack_sdk) through the same formatter
    4. Sends ERROR and above to STDERR as well
    """
    log_level_name = settings.LOG_LEVEL.upper()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,  # correlation_id etc.
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_app_context,
        add_severity_level,
        add_trace_id_alias,
        censor_sensitive_data,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if _use_json():
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processor": renderer,
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "default": {
                "level": log_level_name,
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "structured",
            },
            "error": {
                "level": "ERROR",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "structured",
            },
        },
        "loggers": {
            "": {
                "handlers": ["default", "error"],
                "level": log_level_name,
                "propagate": False,
            },
            "support_bridge": {
                "handlers": ["default", "error"],
                "level": log_level_name,
                "propagate": False,
            },
            "uvicorn": {
                "handlers": ["default"],
                "level": log_level_name,
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["default", "error"],
                "level": log_level_name,
                "propagate": False,  # Critical: prevents duplication
            },
            "uvicorn.access": {
                "handlers": [],  # Disabled - we use custom access log middleware
                "level": "CRITICAL",
                "propagate": False,
            },
            # Third-party library noise filtering
            "slack_sdk": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False,
            },
            "pymongo": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False,
            },
            "aiohttp": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False,
            },
            "asyncio": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False,
            },
        },
    })

    logger = get_logger(__name__)
    logger.info(
        "logging_configured",
        log_level=log_level_name,
        environment=settings.ENVIRONMENT,
        format="json" if _use_json() else "console",
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("support_message_relayed", user_id="123", thread_ts="1700000000.000100")

    All structured data passed as kwargs will be included in the log output.
    """
    return structlog.get_logger(name)
