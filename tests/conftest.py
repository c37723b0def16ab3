"""
Test infrastructure for the comment service.

Strategy
--------
- SQLite via aiosqlite keeps the suite free of a running Postgres.  Each
  test gets its own database *file* (not ``:memory:``): the repository opens
  one session per reply-preview lookup and runs them concurrently, which
  needs real separate connections rather than one shared StaticPool
  connection.
- All tables are created fresh for every test, so tests never see each
  other's rows.
- Redis is replaced by ``FakeRedis``, an in-process double that implements
  just the commands the count cache and the feed producer issue.  Setting
  ``fail = True`` (or naming commands in ``fail_commands``) makes
  commands raise ``redis.ConnectionError`` so the downgrade paths can be
  exercised.
- Owner lookups and the feed producer are replaced by ``StaticOwnerLookup``
  and ``RecordingProducer``.
- The app's ``get_comment_service`` dependency is overridden with a service
  wired to all of the above.
"""
import pytest
import pytest_asyncio
import redis.asyncio as redis
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from bizcomment.background import BackgroundTasks
from bizcomment.cache import cache
from bizcomment.database import Base
from bizcomment.dependencies import get_comment_service
from bizcomment.errors import BizObjectNotFound
from bizcomment.main import app
from bizcomment.middleware import install_query_counter
from bizcomment.schemas import Biz
from bizcomment.services.audience import AudienceResolver
from bizcomment.services.comment_repository import CommentRepository
from bizcomment.services.comment_service import CommentService


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class FakeRedis:
    """In-process stand-in for the handful of Redis commands we issue."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.streams: dict[str, list[dict]] = {}
        self.fail = False
        self.fail_commands: set[str] = set()
        self.calls: list[str] = []

    def _check(self, command: str) -> None:
        self.calls.append(command)
        if self.fail or command in self.fail_commands:
            raise redis.ConnectionError("redis unavailable")

    async def ping(self) -> bool:
        self._check("PING")
        return True

    async def get(self, key: str) -> str | None:
        self._check("GET")
        return self.store.get(key)

    async def set(self, key: str, value, ex: int | None = None) -> bool:
        self._check("SET")
        self.store[key] = str(value)
        self.ttls[key] = ex
        return True

    async def eval(self, script: str, numkeys: int, key: str, delta) -> int | None:
        # Only the increment-if-present script is ever evaluated.
        self._check("EVAL")
        if key not in self.store:
            return None
        value = int(self.store[key]) + int(delta)
        self.store[key] = str(value)
        return value

    async def xadd(self, stream: str, fields: dict, maxlen=None, approximate=True) -> str:
        self._check("XADD")
        entries = self.streams.setdefault(stream, [])
        entries.append(dict(fields))
        return f"0-{len(entries)}"

    async def aclose(self) -> None:
        pass


class StaticOwnerLookup:
    """Owner lookup answering from a fixed {biz_id: uid} table."""

    def __init__(self, biz: Biz, owners: dict[int, int]) -> None:
        self.biz = biz
        self.owners = owners
        self.calls: list[int] = []

    async def get_owner_uid(self, biz_id: int) -> int:
        self.calls.append(biz_id)
        if biz_id not in self.owners:
            raise BizObjectNotFound(self.biz, biz_id)
        return self.owners[biz_id]


class RecordingProducer:
    def __init__(self) -> None:
        self.events = []
        self.fail = False

    async def produce(self, event) -> None:
        if self.fail:
            raise RuntimeError("broker unavailable")
        self.events.append(event)


# Owners of the business objects used throughout the suite.
ANSWER_OWNERS = {42: 1001, 43: 1002, 7: 1003}
EVALUATION_OWNERS = {9: 2001}


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine_test(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'comments.db'}")
    install_query_counter(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine_test) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine_test, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncSession:
    """
    Yield a live AsyncSession for tests that talk to the store directly.

    Store mutations open their own transaction, so tests should not run a
    query on this session right before calling one; use ``session_factory``
    for a fresh session instead.
    """
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Cache, background pool, collaborators
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def count_cache(fake_redis):
    """The module-level cache singleton, pointed at ``FakeRedis``."""
    cache._redis = fake_redis
    cache.reset_stats()
    yield cache
    cache._redis = None


@pytest_asyncio.fixture
async def tasks():
    pool = BackgroundTasks()
    yield pool
    await pool.drain()


@pytest.fixture
def owner_lookups():
    return {
        Biz.ANSWER: StaticOwnerLookup(Biz.ANSWER, dict(ANSWER_OWNERS)),
        Biz.EVALUATION: StaticOwnerLookup(Biz.EVALUATION, dict(EVALUATION_OWNERS)),
    }


@pytest.fixture
def producer():
    return RecordingProducer()


@pytest.fixture
def repo(session_factory, count_cache, tasks):
    return CommentRepository(session_factory, count_cache, tasks, count_strategy="counter")


@pytest.fixture
def service(repo, owner_lookups, session_factory, producer, tasks):
    return CommentService(
        repo=repo,
        audience=AudienceResolver(owner_lookups, session_factory),
        producer=producer,
        tasks=tasks,
    )


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def async_client(service) -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport.

    ASGITransport does not run the lifespan, so the service normally built
    at startup is injected through a dependency override instead.
    """
    app.dependency_overrides[get_comment_service] = lambda: service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_comment_service, None)
