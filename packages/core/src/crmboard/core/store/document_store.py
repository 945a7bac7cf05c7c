"""DocumentStore SQLite 实现

本地文档库适配器：文档以 JSON 文本存储，过滤仅支持等值与数组包含，
在 Python 侧对整集合求值（集合规模为数十到数千条）。

每次写入在同一事务内递增集合修订号；提交后对该集合的所有活跃订阅
重新查询并投递完整替换快照。订阅回调在事件循环上同步执行。
写入共享同一连接，读取-合并-提交由写锁串行化。
"""

import asyncio
import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import aiosqlite
import structlog
from ulid import ULID

from ..exceptions import DocumentNotFoundError
from ..models.snapshot import Document, QueryFilter, Snapshot
from .protocols import ErrorCallback, SnapshotCallback

log = structlog.get_logger()


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dumps(data: dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, default=_json_default)


class SqliteSubscription:
    """集合订阅句柄"""

    def __init__(
        self,
        store: "SqliteDocumentStore",
        collection: str,
        filters: list[QueryFilter],
        callback: SnapshotCallback,
        on_error: ErrorCallback | None,
    ) -> None:
        self._store = store
        self.collection = collection
        self.filters = filters
        self.callback = callback
        self.on_error = on_error
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        if not self._active:
            return
        self._active = False
        self._store._remove_subscription(self)


class SqliteDocumentStore:
    """DocumentReader + DocumentWriter 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn
        self._subscriptions: dict[str, list[SqliteSubscription]] = {}
        self._write_lock = asyncio.Lock()

    @property
    def conn(self) -> aiosqlite.Connection:
        return self._conn

    # ============================================================
    # 读取
    # ============================================================

    async def get_revision(self, collection: str) -> int:
        cursor = await self._conn.execute(
            "SELECT revision FROM revisions WHERE collection = ?",
            (collection,),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def query_collection(
        self,
        name: str,
        filters: list[QueryFilter] | None = None,
    ) -> Snapshot:
        """查询集合完整快照，按创建顺序返回"""
        revision = await self.get_revision(name)
        cursor = await self._conn.execute(
            "SELECT doc_id, data FROM documents WHERE collection = ? "
            "ORDER BY created_at, doc_id",
            (name,),
        )
        rows = await cursor.fetchall()
        documents = []
        for row in rows:
            data = json.loads(row[1])
            if filters and not all(f.matches(data) for f in filters):
                continue
            documents.append(Document(id=row[0], data=data))
        return Snapshot(
            collection=name,
            revision=revision,
            documents=tuple(documents),
            taken_at=datetime.now(UTC),
        )

    async def get_document(self, collection: str, doc_id: str) -> Document | None:
        cursor = await self._conn.execute(
            "SELECT doc_id, data FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return Document(id=row[0], data=json.loads(row[1]))

    # ============================================================
    # 订阅
    # ============================================================

    async def subscribe(
        self,
        name: str,
        filters: list[QueryFilter] | None,
        callback: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> SqliteSubscription:
        """注册订阅并投递初始快照

        初始查询失败时经 on_error 报告，订阅保持注册，下一次写入后重新投递。
        """
        subscription = SqliteSubscription(self, name, list(filters or []), callback, on_error)
        self._subscriptions.setdefault(name, []).append(subscription)
        log.debug("subscription_opened", collection=name, filter_count=len(subscription.filters))
        await self._deliver(subscription)
        return subscription

    def _remove_subscription(self, subscription: SqliteSubscription) -> None:
        listeners = self._subscriptions.get(subscription.collection, [])
        if subscription in listeners:
            listeners.remove(subscription)
            log.debug("subscription_closed", collection=subscription.collection)

    def subscription_count(self, collection: str) -> int:
        return len(self._subscriptions.get(collection, []))

    async def _deliver(self, subscription: SqliteSubscription) -> None:
        try:
            snapshot = await self.query_collection(subscription.collection, subscription.filters)
        except Exception as e:
            log.warning(
                "subscription_query_failed",
                collection=subscription.collection,
                error_type=type(e).__name__,
            )
            if subscription.on_error is not None:
                subscription.on_error(e)
            return

        # 查询期间可能已取消订阅
        if not subscription.active:
            return
        try:
            subscription.callback(snapshot)
        except Exception as e:
            log.warning(
                "subscription_callback_failed",
                collection=subscription.collection,
                error_type=type(e).__name__,
            )
            if subscription.on_error is not None:
                subscription.on_error(e)

    async def _notify(self, collection: str) -> None:
        for subscription in list(self._subscriptions.get(collection, [])):
            if subscription.active:
                await self._deliver(subscription)

    # ============================================================
    # 写入
    # ============================================================

    async def _bump_revision(self, collection: str) -> None:
        await self._conn.execute(
            """
            INSERT INTO revisions (collection, revision) VALUES (?, 1)
            ON CONFLICT(collection) DO UPDATE SET revision = revision + 1
            """,
            (collection,),
        )

    async def create_document(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: str | None = None,
    ) -> str:
        """创建文档；未指定 doc_id 时生成 ULID"""
        doc_id = doc_id or str(ULID())
        now = datetime.now(UTC).isoformat()
        async with self._write_lock:
            try:
                await self._conn.execute(
                    """
                    INSERT INTO documents (collection, doc_id, data, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (collection, doc_id, _dumps(data), now, now),
                )
                await self._bump_revision(collection)
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise

        log.info("document_created", collection=collection, doc_id=doc_id)
        await self._notify(collection)
        return doc_id

    async def _merge_and_commit(
        self,
        collection: str,
        doc_id: str,
        merge: Callable[[dict[str, Any]], dict[str, Any]],
    ) -> None:
        """在写锁内读取文档、合并、写回并提交

        Raises:
            DocumentNotFoundError: 文档不存在
        """
        async with self._write_lock:
            try:
                existing = await self.get_document(collection, doc_id)
                if existing is None:
                    raise DocumentNotFoundError(collection, doc_id)
                await self._conn.execute(
                    "UPDATE documents SET data = ?, updated_at = ? "
                    "WHERE collection = ? AND doc_id = ?",
                    (
                        _dumps(merge(dict(existing.data))),
                        datetime.now(UTC).isoformat(),
                        collection,
                        doc_id,
                    ),
                )
                await self._bump_revision(collection)
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise

    async def update_document(
        self,
        collection: str,
        doc_id: str,
        partial: dict[str, Any],
    ) -> None:
        """部分更新：顶层字段合并到已有文档

        Raises:
            DocumentNotFoundError: 文档不存在
        """
        await self._merge_and_commit(collection, doc_id, lambda data: {**data, **partial})
        log.info(
            "document_updated",
            collection=collection,
            doc_id=doc_id,
            fields=sorted(partial),
        )
        await self._notify(collection)

    async def append_to_array(
        self,
        collection: str,
        doc_id: str,
        field: str,
        item: dict[str, Any],
        partial: dict[str, Any] | None = None,
    ) -> None:
        """向数组字段追加一项（按 item["id"] 去重），可附带顶层字段更新

        Raises:
            DocumentNotFoundError: 文档不存在
        """

        def merge(data: dict[str, Any]) -> dict[str, Any]:
            items = list(data.get(field) or [])
            if not any(isinstance(x, dict) and x.get("id") == item.get("id") for x in items):
                items.append(item)
            return {**data, **(partial or {}), field: items}

        await self._merge_and_commit(collection, doc_id, merge)
        log.info(
            "document_array_appended",
            collection=collection,
            doc_id=doc_id,
            field=field,
        )
        await self._notify(collection)

    async def soft_delete_document(
        self,
        collection: str,
        doc_id: str,
        actor_id: str,
    ) -> None:
        """软删除：只设置删除标记，文档保留"""
        await self.update_document(
            collection,
            doc_id,
            {
                "isDeleted": True,
                "deletedAt": datetime.now(UTC).isoformat(),
                "deletedBy": actor_id,
            },
        )

    async def close(self) -> None:
        for listeners in self._subscriptions.values():
            for subscription in list(listeners):
                subscription.close()
        await self._conn.close()
