"""aiohttp components for matching requests against a rule table."""

from routetable.middleware.routing import (
    MATCHED_ROUTE_KEY,
    RoutingMiddleware,
    match_request,
    request_attributes,
)

__all__ = [
    "MATCHED_ROUTE_KEY",
    "RoutingMiddleware",
    "match_request",
    "request_attributes",
]
