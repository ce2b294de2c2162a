"""Shared fixtures for integration tests."""

import textwrap
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer
from prometheus_client import CollectorRegistry

from routetable.core.config import MetricsConfig, RoutesConfig, RouteTableConfig
from routetable.core.loader import load_table
from routetable.core.metrics import RoutingMetrics
from routetable.core.table import RuleTable
from routetable.middleware import MATCHED_ROUTE_KEY, RoutingMiddleware

SITE_ROUTES = """
properties:
  site_name: Example
  theme: light
rules:
  - get: ""
    controller: app.Home
    name: home
  - path: blog
    include: blog/routes.yaml
  - path: admin
    include: admin.yaml
  - path: "pages/{page}"
    view: "pages/{page}"
    name: page
"""

BLOG_ROUTES = """
- get: "{slug}"
  view: post
  name: blog_post
- get: "{*rest}"
  view: catchall
  name: blog_catchall
"""

ADMIN_ROUTES = """
properties:
  theme: dark
rules:
  - get: "users"
    controller: [app.admin.Users, list]
    hostname: admin.example.com
    name: admin_users
  - post: "users"
    controller: [app.admin.Users, create]
    hostname: admin.example.com
    name: admin_create_user
  - get: "stats"
    controller: [app.admin.Stats, poll]
    ajax: true
    name: admin_stats
"""


@pytest.fixture
def routes_dir(tmp_path: Path) -> Path:
    """Write a site rule file tree with nested includes."""
    files = {
        "routes.yaml": SITE_ROUTES,
        "blog/routes.yaml": BLOG_ROUTES,
        "admin.yaml": ADMIN_ROUTES,
    }
    for name, content in files.items():
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content), encoding="utf-8")
    return tmp_path


@pytest.fixture
def site_config(routes_dir: Path) -> RouteTableConfig:
    """Create configuration pointing at the site rule files."""
    return RouteTableConfig(routes=RoutesConfig(file="routes.yaml", base_dir=str(routes_dir)))


@pytest.fixture
def site_table(site_config: RouteTableConfig) -> RuleTable:
    return load_table(site_config)


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def routing(site_table: RuleTable, registry: CollectorRegistry) -> RoutingMiddleware:
    return RoutingMiddleware(site_table, metrics=RoutingMetrics(MetricsConfig(), registry=registry))


@pytest.fixture
def site_app(routing: RoutingMiddleware) -> web.Application:
    """Create an application whose single handler reports the matched route."""

    async def dispatch(request: web.Request) -> web.Response:
        matched = request[MATCHED_ROUTE_KEY]
        return web.json_response(
            {
                "name": matched.name,
                "route": str(matched),
                "target": str(matched.target),
                "args": dict(matched.args),
            }
        )

    app = web.Application(middlewares=[routing])
    app.router.add_route("*", "/{tail:.*}", dispatch)
    return app


@pytest.fixture
async def site_client(site_app: web.Application) -> AsyncGenerator[TestClient, None]:
    """Create a test client for the site application."""
    client = TestClient(TestServer(site_app))
    await client.start_server()
    yield client
    await client.close()
