"""集成测试共享 fixture"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from crmboard.core.config import BoardConfig
from crmboard.core.store import StaticIdentityProvider, create_document_store
from httpx import ASGITransport, AsyncClient

ACTOR_ID = "owner"


@pytest_asyncio.fixture
async def integration_store(tmp_path: Path) -> AsyncGenerator:
    """带参考数据的空看板文档库"""
    store = await create_document_store(str(tmp_path / "sqlite" / "board.db"))
    await store.create_document("users", {"firstName": "Dana", "lastName": "Levi"}, doc_id=ACTOR_ID)
    await store.create_document("users", {"name": "Avi"}, doc_id="u2")
    await store.create_document(
        "Customers", {"Name": "Noa", "LastName": "Cohen", "IsDeleted": False}, doc_id="c1"
    )
    await store.create_document("projects", {"name": "Website", "status": "active"}, doc_id="p1")
    yield store
    await store.close()


@pytest_asyncio.fixture
async def integration_app(integration_store):
    """集成测试用 FastAPI app"""
    from crmboard.gateway.main import create_app
    from crmboard.gateway.services.board_hub import BoardHub
    from crmboard.gateway.services.session import BoardSession

    config = BoardConfig(actor_id=ACTOR_ID)
    hub = BoardHub()
    session = BoardSession(
        reader=integration_store,
        writer=integration_store,
        identity=StaticIdentityProvider(ACTOR_ID),
        config=config,
        hub=hub,
    )
    await session.start()

    app = create_app()
    app.state.board_config = config
    app.state.store = integration_store
    app.state.board_hub = hub
    app.state.session = session

    yield app

    await session.stop()


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
