# tests/conftest.py
from __future__ import annotations

import os
from typing import AsyncGenerator, List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

# 在 import pharmastock.main 之前固定配置：测试永远不碰 PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EVENT_DISPATCH", "inline")

from pharmastock.core.config import AppSettings  # noqa: E402
from pharmastock.core.identity import Actor  # noqa: E402
from pharmastock.db.base import Base, init_models  # noqa: E402
from pharmastock.db.session import make_session_maker  # noqa: E402
from pharmastock.main import create_app  # noqa: E402
from pharmastock.services.stock_events import StockSignal  # noqa: E402
from pharmastock.services.wiring import Services, build_services  # noqa: E402

from tests.helpers.inventory import TODAY  # noqa: E402


# =========================================
# 每用例独立 SQLite 文件库（NullPool，避免跨 loop）
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    init_models()
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'pharmastock.db'}",
        poolclass=NullPool,
        future=True,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine):
    return make_session_maker(async_engine)


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """只读断言用 Session（写操作统一走服务层的工作单元）"""
    async with async_session_maker() as sess:
        yield sess


# =========================================
# 通知协作方替身
# =========================================
class RecordingDispatcher:
    def __init__(self) -> None:
        self.signals: List[StockSignal] = []
        self.fail = False

    async def send(self, signal: StockSignal) -> None:
        self.signals.append(signal)
        if self.fail:
            raise RuntimeError("dispatcher down")

    def kinds(self) -> List[str]:
        return [s.kind for s in self.signals]


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        CONCURRENCY_MAX_RETRIES=3,
        CONCURRENCY_RETRY_BACKOFF_MS=0,
        EVENT_DISPATCH="inline",
    )


@pytest.fixture
def services(async_session_maker, settings, dispatcher) -> Services:
    return build_services(
        async_session_maker, settings, dispatcher=dispatcher, today=lambda: TODAY
    )


@pytest.fixture
def actor() -> Actor:
    return Actor(tenant_id=1, actor_id="u-1", name="Tester")


@pytest.fixture
def other_actor() -> Actor:
    return Actor(tenant_id=2, actor_id="u-2", name="Other")


# =========================================
# FastAPI / httpx AsyncClient
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(services: Services) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = create_app(services=services)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
        headers={"X-Tenant-Id": "1", "X-Actor-Id": "u-1", "X-Actor-Name": "Tester"},
        timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=5.0, pool=5.0),
    ) as c:
        yield c
