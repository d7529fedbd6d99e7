"""
Structured Logging
==================
structlog setup shared by every OTP component.

Usage:
    from otp_core.logging_config import configure_logging

    configure_logging(service_name="otp-service")
"""

import logging
import sys

import structlog


def configure_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """
    Configure structlog for a service.

    Args:
        service_name: Name bound to every event (e.g., "otp-service")
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON (production) instead of console output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def mask_identity(identity: str) -> str:
    """
    Mask an identity for logs.

    "alice@example.com" -> "al***@example.com"
    """
    if not identity:
        return ""
    local, sep, domain = identity.partition("@")
    visible = local[:2]
    return f"{visible}***{sep}{domain}" if sep else f"{visible}***"
