import json
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from app.config import Settings
from app.database import Base, create_session_factory, settings
from app.dependencies import get_realtime_service
from app.main import app
from app.models.todo import Todo  # noqa: F401  (register tables on Base.metadata)
from app.models.todo_list import ListMember, TodoList  # noqa: F401
from app.models.user import User  # noqa: F401
from app.services.auth import create_access_token
from app.services.realtime import RealtimeService


class MemberStore:
    """In-memory stand-in for the list membership table."""

    def __init__(self) -> None:
        self.lists: dict[uuid.UUID, list[uuid.UUID]] = {}
        self.lookups: list[uuid.UUID] = []

    def add_list(self, *members: uuid.UUID) -> uuid.UUID:
        list_id = uuid.uuid4()
        self.lists[list_id] = list(members)
        return list_id

    async def load(self, list_id: uuid.UUID) -> list[uuid.UUID] | None:
        self.lookups.append(list_id)
        members = self.lists.get(list_id)
        return list(members) if members is not None else None


class TodoStore:
    def __init__(self) -> None:
        self.todos = {}
        self.lookups: list[uuid.UUID] = []

    async def load(self, todo_id: uuid.UUID):
        self.lookups.append(todo_id)
        return self.todos.get(todo_id)


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


async def _received(connection) -> list[dict]:
    """Drain every message queued on a connection's sink."""
    events = []
    while True:
        message = await connection.sink.receive(timeout=0.01)
        if message is None:
            return events
        events.append(json.loads(message))


@pytest.fixture
def test_settings():
    return Settings(
        jwt_secret="test-secret",
        sse_heartbeat_interval_seconds=0.01,
        sse_sweep_interval_seconds=0.01,
        sse_stale_threshold_seconds=300,
    )


@pytest.fixture
def members():
    return MemberStore()


@pytest.fixture
def todos():
    return TodoStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def realtime(test_settings, members, todos, clock):
    service = RealtimeService(
        test_settings,
        load_member_ids=members.load,
        load_todo=todos.load,
        clock=clock,
    )
    yield service
    await service.shutdown()


@pytest.fixture
def connect(realtime):
    """Subscribe a user and discard the connection acknowledgement."""

    async def _connect(user_id: uuid.UUID):
        connection = await realtime.subscribe(str(user_id))
        await _received(connection)
        return connection

    return _connect


@pytest.fixture
def auth_token():
    def _token(user_id: uuid.UUID | str) -> str:
        return create_access_token(settings, str(user_id))

    return _token


@pytest.fixture(scope="function")
async def client(realtime):
    app.dependency_overrides[get_realtime_service] = lambda: realtime
    # Disable rate limiting in tests
    app.state.limiter.enabled = False
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.state.limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(scope="session")
def postgres_container():
    """Share a single PostgreSQL container across the entire test session.

    Use driver=None to avoid greenlet errors during the sync health check.
    The asyncpg driver is specified when getting the connection URL.
    """
    try:
        from testcontainers.postgres import PostgresContainer

        container = PostgresContainer("postgres:16", driver=None)
        container.start()
    except Exception as exc:
        pytest.skip(f"PostgreSQL container unavailable: {exc}")
    try:
        yield container
    finally:
        container.stop()


@pytest.fixture(scope="function")
async def db_engine(postgres_container):
    """Recreate tables for each test to ensure isolation."""
    url = postgres_container.get_connection_url(driver="asyncpg")
    engine = create_async_engine(url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def db_session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture(scope="function")
async def db_session(db_session_factory):
    async with db_session_factory() as session:
        yield session


@pytest.fixture
def received():
    return _received
