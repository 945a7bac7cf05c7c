"""Snapshot 模型 -- 集合的完整时点副本

每次上游变更都会投递整个集合的替换快照（不是 diff）。
revision 在同一集合内单调递增，用于保证同一订阅流内不会出现旧快照覆盖新快照。
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """文档：ID + 原始字段"""

    model_config = ConfigDict(frozen=True)

    id: str
    data: dict[str, Any] = Field(default_factory=dict)


class QueryFilter(BaseModel):
    """集合查询条件（仅支持等值与数组包含）"""

    model_config = ConfigDict(frozen=True)

    field: str = Field(description="文档字段名")
    op: Literal["==", "array-contains"] = Field(default="==")
    value: Any = Field(default=None)

    def matches(self, data: dict[str, Any]) -> bool:
        actual = data.get(self.field)
        if self.op == "array-contains":
            if isinstance(actual, (list, tuple)):
                return self.value in actual
            # 兼容 assignedTo 以标量存储的旧记录
            return actual == self.value
        if actual is None and self.value is False:
            # 缺失的布尔标记视为 False（旧记录没有 isDeleted 字段）
            return True
        return actual == self.value


class Snapshot(BaseModel):
    """集合快照（不可变）"""

    model_config = ConfigDict(frozen=True)

    collection: str = Field(description="集合名")
    revision: int = Field(default=0, description="集合内单调递增的修订号")
    documents: tuple[Document, ...] = Field(default_factory=tuple)
    taken_at: datetime | None = Field(default=None)

    @classmethod
    def empty(cls, collection: str) -> "Snapshot":
        return cls(collection=collection, revision=0)

    def __len__(self) -> int:
        return len(self.documents)

    def ids(self) -> list[str]:
        return [doc.id for doc in self.documents]


class SnapshotSet(BaseModel):
    """Resolver 输入：四个集合快照的不可变组合"""

    model_config = ConfigDict(frozen=True)

    tasks: Snapshot
    customers: Snapshot
    projects: Snapshot
    users: Snapshot

    @property
    def key(self) -> tuple[int, int, int, int]:
        """快照组合标识，用于 Resolver 记忆化"""
        return (
            self.tasks.revision,
            self.customers.revision,
            self.projects.revision,
            self.users.revision,
        )
