"""Document Store Protocol 接口定义

看板核心只消费以下接口，不实现持久化引擎或查询规划：
DocumentReader（查询 + 订阅）、DocumentWriter（创建/部分更新/数组追加/软删除）、
IdentityProvider（当前操作者）。使用 Protocol 实现结构化子类型。
"""

from collections.abc import Callable
from typing import Any, Protocol

from ..models.snapshot import QueryFilter, Snapshot

SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]


class Subscription(Protocol):
    """单个集合订阅句柄"""

    @property
    def active(self) -> bool: ...

    def close(self) -> None:
        """释放订阅（幂等）"""
        ...


class DocumentReader(Protocol):
    """文档读取/订阅接口"""

    async def query_collection(
        self,
        name: str,
        filters: list[QueryFilter] | None = None,
    ) -> Snapshot:
        """一次性查询集合，返回完整快照"""
        ...

    async def subscribe(
        self,
        name: str,
        filters: list[QueryFilter] | None,
        callback: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """订阅集合变更

        注册后立即投递一次初始快照，此后每次集合变更投递完整替换快照。
        """
        ...


class DocumentWriter(Protocol):
    """文档写入接口 -- 软删除只更新标记，从不物理删除"""

    async def create_document(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: str | None = None,
    ) -> str:
        """创建文档，返回文档 ID"""
        ...

    async def update_document(
        self,
        collection: str,
        doc_id: str,
        partial: dict[str, Any],
    ) -> None:
        """部分更新（顶层字段合并）"""
        ...

    async def append_to_array(
        self,
        collection: str,
        doc_id: str,
        field: str,
        item: dict[str, Any],
        partial: dict[str, Any] | None = None,
    ) -> None:
        """原子追加数组项（按 id 去重），不覆盖并发追加的其他项"""
        ...

    async def soft_delete_document(
        self,
        collection: str,
        doc_id: str,
        actor_id: str,
    ) -> None:
        """软删除：设置 isDeleted / deletedAt / deletedBy"""
        ...


class IdentityProvider(Protocol):
    """当前操作者身份"""

    def current_actor_id(self) -> str: ...
