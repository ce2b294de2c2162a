"""aiohttp integration for the routing engine.

Reads the request attributes the matcher needs from an aiohttp request and
attaches the Matched Route to it. Invoking the target is left to the
application handler, which finds the match under ``request["matched_route"]``.
"""

import logging
import time
from datetime import UTC, datetime
from typing import Awaitable, Callable, Optional, Tuple

from aiohttp import web

from routetable.core.config import MatchingConfig
from routetable.core.logging import RoutingLogger
from routetable.core.matched import MatchedRoute
from routetable.core.metrics import RoutingMetrics
from routetable.core.table import RuleTable

logger = logging.getLogger(__name__)

MATCHED_ROUTE_KEY = "matched_route"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def request_attributes(
    request: web.Request, config: Optional[MatchingConfig] = None
) -> Tuple[str, Optional[str], bool, str]:
    """Extract method, hostname, AJAX flag and decoded path from a request.

    Args:
        request: aiohttp Request object
        config: Header names to read; defaults to Host and X-Requested-With

    Returns:
        Tuple of (method, hostname, ajax, path)
    """
    config = config or MatchingConfig()

    hostname = request.headers.get(config.hostname_header)
    # A bracketed IPv6 literal without a port ends with "]"
    if hostname and config.strip_port and not hostname.endswith("]"):
        hostname = hostname.rsplit(":", 1)[0]

    ajax = bool(request.headers.get(config.ajax_header))

    # aiohttp exposes the percent-decoded path as ``request.path``
    return request.method, hostname, ajax, request.path


def match_request(
    table: RuleTable, request: web.Request, config: Optional[MatchingConfig] = None
) -> Optional[MatchedRoute]:
    """Match an aiohttp request against a rule table.

    Args:
        table: Built rule table
        request: aiohttp Request object
        config: Header names to read

    Returns:
        MatchedRoute if a rule matches, None otherwise
    """
    method, hostname, ajax, path = request_attributes(request, config)
    return table.match(method, hostname, ajax, path)


class RoutingMiddleware:
    """aiohttp middleware that matches every request against a rule table.

    On a match the route is stored in the request and the handler runs.
    Without one the middleware answers 405 (with ``Allow``) when the path
    matches under other methods and 404 otherwise.

    The table can be replaced at runtime with :meth:`swap_table`; requests
    already being matched keep using the table they started with.
    """

    __middleware_version__ = 1

    def __init__(
        self,
        table: RuleTable,
        config: Optional[MatchingConfig] = None,
        metrics: Optional[RoutingMetrics] = None,
        structured_logger: Optional[RoutingLogger] = None,
    ):
        """Initialize the routing middleware.

        Args:
            table: Built rule table
            config: Header names to read
            metrics: Optional metrics collector
            structured_logger: Optional logger for match events
        """
        self.config = config or MatchingConfig()
        self.metrics = metrics
        self.structured_logger = structured_logger
        self.table = table
        if metrics is not None:
            metrics.set_table_size(len(table))

    def swap_table(self, table: RuleTable) -> None:
        """Replace the active table with a fully built one."""
        self.table = table
        if self.metrics is not None:
            self.metrics.set_table_size(len(table))
        logger.info(
            f"Rule table swapped ({len(table)} rules)",
            extra={"rule_count": len(table)},
        )

    async def __call__(self, request: web.Request, handler: Handler) -> web.StreamResponse:
        table = self.table
        method, hostname, ajax, path = request_attributes(request, self.config)

        start = time.perf_counter()
        matched = table.match(method, hostname, ajax, path)

        if matched is not None:
            if self.metrics is not None:
                self.metrics.record_match(matched, time.perf_counter() - start)
            if self.structured_logger is not None:
                self.structured_logger.log_match(method, path, matched.name, str(matched.target))
            request[MATCHED_ROUTE_KEY] = matched
            return await handler(request)

        allowed_methods = table.get_allowed_methods(path, hostname, ajax)
        if self.metrics is not None:
            self.metrics.record_miss(bool(allowed_methods), time.perf_counter() - start)
        if self.structured_logger is not None:
            self.structured_logger.log_no_match(method, path, allowed_methods)

        timestamp = datetime.now(UTC).isoformat()
        if allowed_methods:
            return web.json_response(
                {
                    "error": "method_not_allowed",
                    "message": f"Method {method} not allowed for this path",
                    "timestamp": timestamp,
                },
                status=405,
                headers={"Allow": ", ".join(allowed_methods)},
            )

        return web.json_response(
            {
                "error": "not_found",
                "message": "The requested resource was not found",
                "timestamp": timestamp,
            },
            status=404,
        )
