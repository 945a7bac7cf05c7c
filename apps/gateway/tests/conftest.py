"""apps/gateway 测试配置 -- 演示数据 + 手动初始化的 FastAPI app + httpx AsyncClient"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from crmboard.core.config import BoardConfig
from crmboard.core.store import StaticIdentityProvider, create_document_store
from httpx import ASGITransport, AsyncClient

ACTOR_ID = "u1"

SEED: dict[str, dict[str, dict]] = {
    "users": {
        "u1": {"firstName": "Dana", "lastName": "Levi", "email": "dana@example.com"},
        "u2": {"name": "Avi"},
    },
    "Customers": {
        "c1": {"Name": "Noa", "LastName": "Cohen", "IsDeleted": False},
    },
    "projects": {
        "p1": {"name": "Website", "status": "active"},
    },
    "tasks": {
        "t1": {
            "title": "Call supplier",
            "status": "להתחלה",
            "urgency": "גבוה",
            "dueDate": "2024-03-05T09:00:00+00:00",
            "assignedTo": ["u1"],
            "project": {"id": "p1", "name": "Website"},
            "customers": ["c1"],
            "isDeleted": False,
        },
        "t2": {
            "title": "Send invoice",
            "status": "הושלם",
            "urgency": "נמוכה",
            "assignedTo": "u1",
            "isDeleted": False,
        },
        "t3": {
            "title": "Plan kickoff",
            "status": "in_progress",
            "urgency": "normal",
            "assignedTo": ["u1", "u2"],
            "isDeleted": False,
        },
        "t4": {
            "title": "Someone else's task",
            "status": "todo",
            "assignedTo": ["u2"],
            "isDeleted": False,
        },
        "t5": {
            "title": "Deleted task",
            "status": "todo",
            "assignedTo": ["u1"],
            "isDeleted": True,
        },
    },
}


@pytest_asyncio.fixture
async def seeded_store(tmp_path: Path) -> AsyncGenerator:
    """写入演示数据的临时文档库

    当前操作者 u1 可见 t1/t2/t3；t4 指派给他人，t5 已软删除。
    """
    store = await create_document_store(str(tmp_path / "sqlite" / "test.db"))
    for collection, docs in SEED.items():
        for doc_id, data in docs.items():
            await store.create_document(collection, data, doc_id=doc_id)
    yield store
    await store.close()


@pytest_asyncio.fixture
async def board_config() -> BoardConfig:
    return BoardConfig(actor_id=ACTOR_ID)


@pytest_asyncio.fixture
async def board_session(seeded_store, board_config) -> AsyncGenerator:
    """已启动的 BoardSession"""
    from crmboard.gateway.services.board_hub import BoardHub
    from crmboard.gateway.services.session import BoardSession

    session = BoardSession(
        reader=seeded_store,
        writer=seeded_store,
        identity=StaticIdentityProvider(ACTOR_ID),
        config=board_config,
        hub=BoardHub(),
    )
    await session.start()
    yield session
    await session.stop()


@pytest_asyncio.fixture
async def test_app(seeded_store, board_session, board_config):
    """创建测试用 FastAPI app（绕过 lifespan，手动注入组件）"""
    from crmboard.gateway.main import create_app

    app = create_app()
    app.state.board_config = board_config
    app.state.store = seeded_store
    app.state.board_hub = board_session.hub
    app.state.session = board_session
    return app


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac
