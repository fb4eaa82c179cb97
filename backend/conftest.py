"""Global pytest fixtures for testing."""

import asyncio
import contextlib
import os
import time
from collections.abc import AsyncGenerator, Generator
from typing import Any

import dotenv
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from lingua_api.config import Settings
from lingua_core.languages import Language
from lingua_core.services.translation_providers import (
    TemplateTranslationResult,
    TemplateTranslator,
)
from lingua_database import Base
from lingua_database.session import close_database, init_database

with contextlib.suppress(OSError):
    dotenv.load_dotenv()


class MockArqRedis:
    """In-memory stand-in for ArqRedis covering the commands the app uses."""

    def __init__(self):
        self.enqueued_jobs: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self._job_ids: set[str] = set()
        self._store: dict[str, Any] = {}
        self._lists: dict[str, list[Any]] = {}
        self._ttl: dict[str, int] = {}

    async def enqueue_job(self, func_name: str, *args: Any, **kwargs: Any) -> Any:
        """Record the job; a repeated ``_job_id`` is ignored like arq does."""
        job_id = kwargs.get("_job_id")
        if job_id is not None:
            if job_id in self._job_ids:
                return None
            self._job_ids.add(job_id)
        self.enqueued_jobs.append((func_name, args, kwargs))
        return job_id or func_name

    async def set(
        self, key: str, value: Any, ex: int | None = None, nx: bool = False
    ) -> bool | None:
        if nx and key in self._store:
            return None
        self._store[key] = value
        if ex is not None:
            self._ttl[key] = ex
        return True

    async def get(self, key: str) -> Any:
        return self._store.get(key)

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if key in self._store or key in self._lists:
                deleted += 1
            self._store.pop(key, None)
            self._lists.pop(key, None)
            self._ttl.pop(key, None)
        return deleted

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        if key not in self._store and key not in self._lists:
            return False
        self._ttl[key] = ttl_seconds
        return True

    async def rpush(self, key: str, *values: Any) -> int:
        items = self._lists.setdefault(key, [])
        items.extend(values)
        return len(items)

    async def blpop(self, keys: list[str], timeout: float = 0) -> tuple[str, Any] | None:
        deadline = time.monotonic() + timeout
        while True:
            for key in keys:
                items = self._lists.get(key)
                if items:
                    value = items.pop(0)
                    if not items:
                        self._lists.pop(key, None)
                    return key, value
            if time.monotonic() >= deadline:
                return None
            await asyncio.sleep(0.01)

    async def close(self) -> None:
        return None

    def reset(self) -> None:
        """Reset all in-memory redis state."""
        self.enqueued_jobs.clear()
        self._job_ids.clear()
        self._store.clear()
        self._lists.clear()
        self._ttl.clear()

    def jobs(self, func_name: str) -> list[dict[str, Any]]:
        """Keyword arguments of every recorded job with the given name."""
        return [kwargs for name, _, kwargs in self.enqueued_jobs if name == func_name]

    def list_length(self, key: str) -> int:
        return len(self._lists.get(key, []))

    def has_key(self, key: str) -> bool:
        """Return whether key exists in mock store."""
        return key in self._store or key in self._lists


class StubTemplateTranslator(TemplateTranslator):
    """Deterministic translator; languages listed in ``failures`` raise."""

    def __init__(self, failures: set[str] | None = None):
        self.failures = set(failures or ())
        self.calls: list[dict[str, Any]] = []

    async def translate(
        self,
        html: str,
        subject: str,
        target_language: Language,
        source_language: Language,
        extra_instructions: str | None = None,
    ) -> TemplateTranslationResult:
        self.calls.append(
            {
                "language_code": target_language.code,
                "source_language": source_language.code,
                "html": html,
                "subject": subject,
                "extra_instructions": extra_instructions,
            }
        )
        if target_language.code in self.failures:
            raise RuntimeError(f"Translation provider failed for {target_language.code}")
        return TemplateTranslationResult(
            html=f"[{target_language.code}] {html}",
            subject=f"[{target_language.code}] {subject}",
        )


def _test_database_url(tmp_path: Any) -> str:
    url = os.getenv("TEST_DATABASE_URL")
    if url is None:
        return f"sqlite+aiosqlite:///{tmp_path / 'lingua_test.db'}"

    # Safety check: ensure tests only run on a test database
    if "_test" not in url and "/test" not in url:
        raise RuntimeError(
            f"Safety check failed: TEST_DATABASE_URL must point to a test database "
            f"(name should contain 'test'). Current: {url}"
        )
    return url


@pytest_asyncio.fixture
async def test_engine(tmp_path: Any) -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh database for each test and install it as the global engine."""
    engine = init_database(_test_database_url(tmp_path), echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await close_database()


@pytest_asyncio.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_settings() -> Settings:
    """Settings tuned for fast tests."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        redis_url="redis://localhost:6379/15",
        coordinator_timeout_seconds=1,
        signal_poll_seconds=1,
        completion_settle_delay_seconds=0,
        retry_backoff_seconds=0,
        worker_max_tries=3,
        openai_api_key="",
        sendgrid_api_key="test-sendgrid-key",
    )


@pytest.fixture
def test_mock_redis() -> MockArqRedis:
    """Provide a fresh mock redis instance."""
    return MockArqRedis()


@pytest.fixture
def stub_translator() -> StubTemplateTranslator:
    return StubTemplateTranslator()


@pytest.fixture
def worker_ctx(
    test_engine: AsyncEngine,
    test_mock_redis: MockArqRedis,
    test_settings: Settings,
    stub_translator: StubTemplateTranslator,
) -> dict[str, Any]:
    """arq-style job context wired to the test database and mock redis."""
    return {
        "redis": test_mock_redis,
        "settings": test_settings,
        "translator": stub_translator,
        "job_try": 1,
    }


@pytest.fixture
def test_app(
    db_session: AsyncSession,
    test_mock_redis: MockArqRedis,
    test_settings: Settings,
) -> Generator[FastAPI, None, None]:
    """Create an application with database, redis, and settings overrides."""
    from lingua_api.dependencies import get_redis_pool, get_settings
    from lingua_api.main import create_app
    from lingua_database.session import get_session

    app = create_app()

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_redis_pool] = lambda: test_mock_redis
    app.dependency_overrides[get_settings] = lambda: test_settings

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
