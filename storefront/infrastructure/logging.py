"""Structured logging setup.

Configures structlog on top of the standard library logging module so
that every log line is a JSON document carrying the bound request context.
"""

import logging
import sys

import structlog

from storefront.domain.base import AggregateRoot
from storefront.infrastructure.config import Settings

audit_logger = structlog.get_logger("storefront.audit")


def configure_logging(settings: Settings) -> None:
    """Configure stdlib logging and structlog processors.

    Args:
        settings: Application settings (log level and debug flag).
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.debug
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def log_domain_events(aggregate: AggregateRoot, request_id: str | None = None) -> int:
    """Drain an aggregate's recorded events into the audit log.

    Args:
        aggregate: Product or inquiry that was just saved.
        request_id: Request ID for correlation.

    Returns:
        Number of events logged.
    """
    events = aggregate.collect_events()
    for event in events:
        data = event.to_dict()
        audit_logger.info(
            "Domain event",
            event_type=data["event_type"],
            event_id=data["event_id"],
            aggregate_type=data["aggregate_type"],
            aggregate_id=data["aggregate_id"],
            payload=data["payload"],
            request_id=request_id,
        )
    return len(events)
