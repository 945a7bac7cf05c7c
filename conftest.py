"""全局 pytest 配置 -- 临时 SQLite 文档库 fixture"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "sqlite" / "test.db"


@pytest_asyncio.fixture
async def document_store(tmp_db_path: Path) -> AsyncGenerator:
    """提供已初始化的临时 SqliteDocumentStore"""
    from crmboard.core.store import create_document_store

    store = await create_document_store(str(tmp_db_path))
    yield store
    await store.close()
