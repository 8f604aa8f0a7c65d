"""
Conftest
"""

import os

# Must be set before anything imports app.main (module-level app creation)
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-at-least-32-characters")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PUSH_ENABLED", "false")

from collections import defaultdict
from types import SimpleNamespace
from typing import AsyncGenerator, Dict, List, Optional, Set, Tuple

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from app.context import AppContext, build_context
from app.core.config import Settings
from app.core.security import TokenVerifier, create_access_token
from app.infra.db import create_session_factory
from app.main import create_app
from app.models import Base, MediaType, Product, ProductMedia, User

TEST_SECRET = "test-secret-key-with-at-least-32-characters"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        jwt_secret_key=TEST_SECRET,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        push_enabled=False,
        debug=False,
    )


@pytest.fixture
async def test_engine(settings):
    # File database with one connection per session, so detached
    # notification tasks never share a connection with the test
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return create_session_factory(test_engine)


@pytest.fixture
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seed(test_session) -> SimpleNamespace:
    """alice owns the lamp, carol owns the bike; bob is a buyer"""
    alice = User(first_name="Alice", last_name="Owner", email="alice@example.com")
    bob = User(first_name="Bob", last_name="Buyer", email="bob@example.com")
    carol = User(first_name="Carol", last_name="Seller", email="carol@example.com")
    test_session.add_all([alice, bob, carol])
    await test_session.flush()

    lamp = Product(user_id=alice.id, name="Vintage Lamp", name_slug="vintage-lamp")
    bike = Product(user_id=carol.id, name="Road Bike", name_slug="road-bike")
    test_session.add_all([lamp, bike])
    await test_session.flush()

    test_session.add_all([
        ProductMedia(product_id=lamp.id, media_url="https://cdn.example.com/lamp-video.mp4",
                     type=MediaType.VIDEO.value, sequence=0),
        ProductMedia(product_id=lamp.id, media_url="https://cdn.example.com/lamp.jpg",
                     type=MediaType.IMAGE.value, sequence=1),
    ])
    await test_session.commit()

    return SimpleNamespace(
        alice=alice.id, bob=bob.id, carol=carol.id, lamp=lamp.id, bike=bike.id
    )


@pytest.fixture
def verifier() -> TokenVerifier:
    return TokenVerifier(TEST_SECRET)


@pytest.fixture
def make_token():
    def _make(user_id: int) -> str:
        return create_access_token(user_id, TEST_SECRET)
    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(user_id: int) -> Dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id)}"}
    return _headers


class RecordingNotifier:
    """Collects NotificationCreate payloads instead of persisting them"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.dispatched = []

    def dispatch(self, data):
        if self.fail:
            raise RuntimeError("notification store unavailable")
        self.dispatched.append(data)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> RecordingNotifier:
    return RecordingNotifier(fail=True)


class FakeSocketServer:
    """
    Stand-in for socketio.AsyncServer as seen from a namespace.

    Models rooms (every connection also sits in a room named after its sid)
    and records every delivery per connection.
    """

    def __init__(self):
        self.rooms: Dict[Tuple[Optional[str], str], Set[str]] = defaultdict(set)
        self.delivered: Dict[str, List[Tuple[str, dict]]] = defaultdict(list)

    async def enter_room(self, sid, room, namespace=None):
        self.rooms[(namespace, room)].add(sid)

    async def leave_room(self, sid, room, namespace=None):
        self.rooms[(namespace, room)].discard(sid)

    async def emit(self, event, data=None, to=None, room=None, skip_sid=None,
                   namespace=None, callback=None, ignore_queue=False):
        target = to or room
        for sid in sorted(self.rooms.get((namespace, target), ())):
            if sid != skip_sid:
                self.delivered[sid].append((event, data))

    def events(self, sid: str, name: str) -> List[dict]:
        return [data for event, data in self.delivered[sid] if event == name]

    def drop(self, sid: str) -> None:
        for members in self.rooms.values():
            members.discard(sid)


@pytest.fixture
def fake_server() -> FakeSocketServer:
    return FakeSocketServer()


@pytest.fixture
def connect(fake_server, make_token):
    """Run a namespace's connect handler the way the server would"""

    async def _connect(namespace, sid: str, user_id: Optional[int] = None, auth=None, environ=None):
        await fake_server.enter_room(sid, sid, namespace=namespace.namespace)
        if auth is None and user_id is not None:
            auth = {"token": make_token(user_id)}
        return await namespace.trigger_event("connect", sid, environ or {}, auth)

    return _connect


@pytest.fixture
def disconnect(fake_server):
    async def _disconnect(namespace, sid: str):
        fake_server.drop(sid)
        return await namespace.trigger_event("disconnect", sid, "client disconnect")

    return _disconnect


@pytest.fixture
async def app_context(settings, test_engine) -> AsyncGenerator[AppContext, None]:
    context = build_context(settings, engine=test_engine)
    yield context
    await context.runner.drain()


@pytest.fixture
async def client(app_context) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(app_context.settings, app_context)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
