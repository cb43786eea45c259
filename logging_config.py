# logging_config.py - Structured logging for production observability
import structlog
import logging
import os
import sys
from typing import Optional


def setup_logging(service_name: Optional[str] = None) -> None:
    """
    Configure structured logging

    Args:
        service_name: Name of the service (e.g., "spacecat-api", "brand-presence-import")
    """

    # Clear existing handlers to avoid duplicates
    logging.root.handlers.clear()

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if service_name:
        processors.insert(0, lambda logger, method_name, event_dict:
                          dict(event_dict, service=service_name))

    # JSON in deployed environments, console output locally
    is_production = os.getenv("ENV", "development") == "production"
    use_json = os.getenv("STRUCTURED_LOGGING", "true" if is_production else "false").lower() == "true"

    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level, logging.INFO),
        handlers=[logging.StreamHandler()],
        force=True
    )

    # Reduce noise from verbose libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance

    Args:
        name: Logger name (usually module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class MetricsLogger:
    """Helper class for consistent metrics logging"""

    def __init__(self, logger: structlog.stdlib.BoundLogger):
        self.logger = logger

    def api_request(self, endpoint: str, method: str, status_code: int,
                    duration_ms: int, user_email: str = None, **kwargs):
        """Log API request metrics"""
        self.logger.info(
            "api_request",
            endpoint=endpoint,
            method=method,
            status_code=status_code,
            duration_ms=duration_ms,
            user_email=user_email,
            **kwargs
        )

    def queue_message_sent(self, queue_url: str, message_type: str,
                           message_id: str = None, **kwargs):
        """Log an SQS message hand-off"""
        self.logger.info(
            "queue_message_sent",
            queue_url=queue_url,
            message_type=message_type,
            message_id=message_id,
            **kwargs
        )

    def athena_query(self, description: str, query_id: str, duration_ms: int,
                     state: str, rows: int = None, **kwargs):
        """Log Athena query execution metrics"""
        self.logger.info(
            "athena_query",
            description=description,
            query_id=query_id,
            duration_ms=duration_ms,
            state=state,
            rows=rows,
            **kwargs
        )


def get_metrics_logger(name: str) -> MetricsLogger:
    """Get a metrics logger instance"""
    logger = get_logger(name)
    return MetricsLogger(logger)
