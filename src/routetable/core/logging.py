"""Logging module for the routing engine.

Provides structured logging in JSON or text format for table construction
and request matching events.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from routetable.core.config import LoggingConfig

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRIBUTES = frozenset(
    [
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "extra_fields",
    ]
)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON.

        Args:
            record: The log record to format

        Returns:
            JSON-formatted log string
        """
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = getattr(record, "extra_fields", None)
        if isinstance(extra, dict):
            log_data.update(extra)

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Text formatter for human-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(UTC).isoformat()
        base = f"{timestamp} [{record.levelname}] {record.name}: {record.getMessage()}"

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


class RoutingLogger:
    """Configures the ``routetable`` logger and emits routing events."""

    def __init__(self, config: LoggingConfig):
        """Initialize the routing logger.

        Args:
            config: Logging configuration
        """
        self.config = config
        self._setup_logging()

    def _setup_logging(self) -> None:
        """Set up logging configuration."""
        logger = logging.getLogger("routetable")
        logger.setLevel(getattr(logging, self.config.level))
        logger.handlers.clear()

        handler: logging.Handler
        if self.config.output == "stdout":
            handler = logging.StreamHandler(sys.stdout)
        elif self.config.output == "stderr":
            handler = logging.StreamHandler(sys.stderr)
        else:
            # Assume it's a file path
            handler = logging.FileHandler(self.config.output)

        formatter: logging.Formatter
        if self.config.format == "json":
            formatter = JsonFormatter()
        else:
            formatter = TextFormatter()

        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False

    def get_logger(self, name: str = "routetable") -> logging.Logger:
        return logging.getLogger(name)

    def log_table_built(self, rule_count: int, property_count: int, source: str | None = None) -> None:
        """Log the completion of a table build.

        Args:
            rule_count: Number of routable records
            property_count: Number of properties collected
            source: Where the rules came from, if loaded from a source
        """
        extra_fields = {
            "event_type": "table_built",
            "table": {"rules": rule_count, "properties": property_count, "source": source},
        }
        self.get_logger().info(
            f"Rule table ready: {rule_count} rules, {property_count} properties",
            extra={"extra_fields": extra_fields},
        )

    def log_match(
        self,
        method: str,
        path: str,
        route_name: str | None,
        target: str,
        **kwargs: Any,
    ) -> None:
        """Log a successful match.

        Args:
            method: HTTP method
            path: Request path
            route_name: Name of the matched rule
            target: Rendered resolved target
            **kwargs: Additional fields to log
        """
        extra_fields = {
            "event_type": "route_matched",
            "request": {"method": method, "path": path},
            "route": {"name": route_name, "target": target},
        }
        extra_fields.update(kwargs)
        self.get_logger().debug(
            f"{method} {path} -> {target}", extra={"extra_fields": extra_fields}
        )

    def log_no_match(self, method: str, path: str, allowed_methods: list[str], **kwargs: Any) -> None:
        """Log a request that matched no rule.

        Args:
            method: HTTP method
            path: Request path
            allowed_methods: Methods the path would match under
            **kwargs: Additional fields to log
        """
        extra_fields = {
            "event_type": "route_not_found",
            "request": {"method": method, "path": path},
            "allowed_methods": allowed_methods,
        }
        extra_fields.update(kwargs)
        status = 405 if allowed_methods else 404
        self.get_logger().info(
            f"{method} {path} -> {status}", extra={"extra_fields": extra_fields}
        )

