"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from deltametrics.api.app import create_app
from deltametrics.cache.result_cache import ResultCache
from deltametrics.database.descriptor import default_registry
from deltametrics.database.engine import get_session_factory, init_schema
from deltametrics.database.repository import build_repositories


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StatementCounter:
    """Counts SELECT statements sent to the store."""

    def __init__(self, engine):
        self.selects = 0
        event.listen(engine, "before_cursor_execute", self._on_execute)

    def _on_execute(self, conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            self.selects += 1


@pytest.fixture
def engine():
    """Create a temporary in-memory database shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_schema(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResultCache(max_bytes=10 * 1024 * 1024, ttl_seconds=4 * 3600, purge_interval_seconds=4 * 3600, timer=clock)


@pytest.fixture
def counter(engine):
    return StatementCounter(engine)


@pytest.fixture
def repositories(registry, session_factory, cache):
    return build_repositories(registry, session_factory, cache=cache)


@pytest.fixture
def uncached_repositories(registry, session_factory):
    return build_repositories(registry, session_factory)


@pytest.fixture
def app(repositories, registry, cache):
    app = create_app(repositories, registry, cache=cache)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
