"""crmboard Core Store -- 文档库接口与 SQLite 适配器

提供工厂函数创建 SqliteDocumentStore。
"""

from pathlib import Path

import aiosqlite

from .document_store import SqliteDocumentStore, SqliteSubscription
from .identity import StaticIdentityProvider
from .protocols import (
    DocumentReader,
    DocumentWriter,
    ErrorCallback,
    IdentityProvider,
    SnapshotCallback,
    Subscription,
)
from .sqlite_init import init_db, verify_wal_mode


async def create_document_store(db_path: str) -> SqliteDocumentStore:
    """创建 SqliteDocumentStore

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        已初始化表结构的 SqliteDocumentStore
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return SqliteDocumentStore(conn)


__all__ = [
    "create_document_store",
    "SqliteDocumentStore",
    "SqliteSubscription",
    "StaticIdentityProvider",
    "DocumentReader",
    "DocumentWriter",
    "IdentityProvider",
    "Subscription",
    "SnapshotCallback",
    "ErrorCallback",
    "init_db",
    "verify_wal_mode",
]
