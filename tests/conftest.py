"""
Test configuration and fixtures for Thread Harvester.
"""

from typing import Callable, Dict, Union
from unittest.mock import Mock

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from harvester.db.database import DatabaseManager
from harvester.db.record_store import RecordStore
from harvester.metrics.registry import MetricsRegistry


def make_response(status_code: int = 200, text: str = "", json_data=None, headers=None) -> Mock:
    """Build a stand-in for ``requests.Response``."""
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.text = text
    response.headers = headers or {}
    if json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    return response


class FakeSession:
    """Routes GET requests by URL prefix to canned responses or exceptions."""

    def __init__(self, routes: Dict[str, Union[Mock, Exception, Callable]] = None):
        self.routes = routes or {}
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        # Longest prefix wins so question pages can be routed apart from search pages
        for prefix in sorted(self.routes, key=len, reverse=True):
            if url.startswith(prefix):
                outcome = self.routes[prefix]
                if isinstance(outcome, Exception):
                    raise outcome
                if callable(outcome) and not isinstance(outcome, Mock):
                    return outcome(url, **kwargs)
                return outcome
        raise requests.exceptions.ConnectionError(f"No route for {url}")


@pytest.fixture
def fake_session():
    """Empty FakeSession; tests register routes on it."""
    return FakeSession()


@pytest.fixture
def connection_manager(fake_session):
    """ConnectionManager stand-in that always hands out ``fake_session``."""
    manager = Mock()
    manager.get_session.return_value = fake_session
    return manager


@pytest.fixture
def metrics():
    """Fresh metrics registry per test."""
    return MetricsRegistry()


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine shared across sessions of one test."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture
def db_manager(sqlite_engine):
    """DatabaseManager bound to the in-memory engine."""
    return DatabaseManager(engine=sqlite_engine)


@pytest.fixture
def record_store(db_manager):
    return RecordStore(db_manager)
