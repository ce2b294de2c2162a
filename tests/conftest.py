"""Shared pytest fixtures and configuration."""

import pytest
from prometheus_client import REGISTRY


def _unregister_collectors() -> None:
    # Default process/platform collectors refuse to unregister twice
    for collector in list(REGISTRY._collector_to_names.keys()):
        try:
            REGISTRY.unregister(collector)
        except KeyError:
            pass


@pytest.fixture(autouse=True)
def reset_prometheus_registry():
    """Reset Prometheus registry around each test to avoid duplicate metric errors."""
    _unregister_collectors()
    yield
    _unregister_collectors()
