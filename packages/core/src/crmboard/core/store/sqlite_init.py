"""SQLite 数据库初始化

PRAGMA 配置 + 两张表 DDL + 索引创建。
documents 表以 JSON 文本保存文档字段；revisions 表记录每个集合的单调修订号。
"""

import aiosqlite

# documents 表 DDL
_DOCUMENTS_DDL = """
CREATE TABLE IF NOT EXISTS documents (
    collection  TEXT NOT NULL,
    doc_id      TEXT NOT NULL,
    data        TEXT NOT NULL DEFAULT '{}',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,

    PRIMARY KEY (collection, doc_id)
);
"""

_DOCUMENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_documents_created_at ON documents(collection, created_at);",
]

# revisions 表 DDL
_REVISIONS_DDL = """
CREATE TABLE IF NOT EXISTS revisions (
    collection  TEXT PRIMARY KEY,
    revision    INTEGER NOT NULL DEFAULT 0
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    await conn.execute(_DOCUMENTS_DDL)
    await conn.execute(_REVISIONS_DDL)

    for idx_sql in _DOCUMENTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
