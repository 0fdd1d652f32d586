"""
Pytest configuration and shared fixtures for PERMIT_CACHE tests.

This module provides:
- Mock decision fetchers
- An httpx MockTransport-backed fetcher factory
- Session factories
- Isolation of environment variables and global metrics
"""

from typing import Any, Callable, Dict, List
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from permit_cache.constants import (ENV_BACKEND_URL, ENV_CHECK_METHOD,
                                    ENV_DEFAULT_ANSWER, ENV_LOGGED_IN_USER,
                                    ENV_TIMEOUT_SECONDS)
from permit_cache.core.session import PermitSession
from permit_cache.observability.metrics import get_metrics_collector
from permit_cache.transport.fetcher import HttpDecisionFetcher

BACKEND_URL = "http://example.com"

# ============================================================================
# ISOLATION
# ============================================================================


@pytest.fixture(autouse=True)
def clean_permit_env(monkeypatch):
    """Make sure no PERMIT_* variables leak in from the host environment."""
    for name in (
        ENV_LOGGED_IN_USER,
        ENV_BACKEND_URL,
        ENV_DEFAULT_ANSWER,
        ENV_CHECK_METHOD,
        ENV_TIMEOUT_SECONDS,
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start each test with an empty global metrics collector."""
    get_metrics_collector().reset()
    yield
    get_metrics_collector().reset()


# ============================================================================
# MOCK FETCHER FIXTURES
# ============================================================================


@pytest.fixture
def mock_fetcher() -> MagicMock:
    """A DecisionFetcher whose methods are AsyncMocks."""
    fetcher = MagicMock(spec=HttpDecisionFetcher)
    fetcher.fetch_one = AsyncMock(return_value=True)
    fetcher.fetch_bulk = AsyncMock(return_value=[])
    fetcher.aclose = AsyncMock()
    return fetcher


@pytest.fixture
def make_session(mock_fetcher) -> Callable[..., PermitSession]:
    """Factory for sessions wired to the mock fetcher."""

    def _make(**overrides: Any) -> PermitSession:
        params: Dict[str, Any] = {
            "logged_in_user": "user1",
            "backend_url": BACKEND_URL,
            "fetcher": mock_fetcher,
        }
        params.update(overrides)
        return PermitSession(**params)

    return _make


@pytest.fixture
def permit_session(make_session) -> PermitSession:
    """Session with default_answer_if_not_exist=False."""
    return make_session()


# ============================================================================
# HTTP FIXTURES
# ============================================================================


@pytest.fixture
def recorded_requests() -> List[httpx.Request]:
    return []


@pytest.fixture
def make_http_fetcher(recorded_requests) -> Callable[..., HttpDecisionFetcher]:
    """
    Factory for an HttpDecisionFetcher whose client talks to a MockTransport.

    The handler receives each httpx.Request and returns an httpx.Response
    (or raises an httpx error). Every request is appended to
    ``recorded_requests``.
    """

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> HttpDecisionFetcher:
        def _recording_handler(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(_recording_handler))
        return HttpDecisionFetcher(client=client)

    return _make


@pytest.fixture
def file_requests() -> List[Dict[str, Any]]:
    return [
        {"action": "read", "resource": "file"},
        {"action": "write", "resource": "file"},
    ]
