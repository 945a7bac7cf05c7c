"""Task 文档模型 -- 远端 tasks 集合中的原始记录

远端文档使用原始 CRM 的 camelCase 字段（assignedTo、dueDate、isDeleted、
subTasks ...）。from_document() 负责容错解析：缺失字段按原始默认值补齐，
assignedTo 标量归一为列表，project / customers 同时接受 id 和内嵌对象两种形态。
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


def parse_datetime(value: Any) -> datetime | None:
    """将文档中的时间值解析为带时区的 datetime

    支持 datetime、ISO 字符串、epoch 秒，以及 {"seconds": ...} 形式的时间戳对象。
    无法解析时返回 None。
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, dict) and "seconds" in value:
        value = value["seconds"]
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def normalize_id_list(value: Any) -> list[str]:
    """归一化 id 列表：标量 -> 单元素列表，去重并保留首次出现顺序

    列表元素可以是 id 字符串，也可以是带 id 字段的内嵌对象。
    """
    if value is None or value == "":
        return []
    items = value if isinstance(value, (list, tuple)) else [value]
    result: list[str] = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("id")
        if item is None or item == "":
            continue
        item_id = str(item)
        if item_id not in result:
            result.append(item_id)
    return result


def _reference_id(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("id")
    if value is None or value == "":
        return None
    return str(value)


class SubTask(BaseModel):
    """子任务 -- 仅作为 Task 的一部分创建/删除"""

    id: str = Field(description="子任务 ID")
    title: str = Field(default="", description="标题")
    description: str = Field(default="")
    status: str = Field(default="todo", description="存储的状态标签")
    urgency: str = Field(default="medium", description="存储的紧急程度标签")
    due_date: datetime | None = Field(default=None)
    completed: bool = Field(default=False)
    created_at: datetime | None = Field(default=None)
    created_by: str = Field(default="")

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "SubTask":
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            description=data.get("description") or "",
            status=data.get("status") or "todo",
            urgency=data.get("urgency") or "medium",
            due_date=parse_datetime(data.get("dueDate")),
            completed=bool(data.get("completed", False)),
            created_at=parse_datetime(data.get("createdAt")),
            created_by=data.get("createdBy") or "",
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "urgency": self.urgency,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "completed": self.completed,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "createdBy": self.created_by,
        }


class Comment(BaseModel):
    """任务评论 -- 追加写入"""

    id: str
    author_id: str = Field(default="", description="作者用户 ID")
    text: str = Field(default="")
    created_at: datetime | None = Field(default=None)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "Comment":
        return cls(
            id=str(data.get("id", "")),
            author_id=data.get("authorId") or data.get("createdBy") or "",
            text=data.get("text") or "",
            created_at=parse_datetime(data.get("createdAt")),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "authorId": self.author_id,
            "text": self.text,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class TaskRecord(BaseModel):
    """远端 Task 记录（未解析引用）

    status / urgency 保留存储时的原始标签，规范化在 Resolver 中进行。
    """

    id: str = Field(description="文档 ID，集合内唯一")
    title: str = Field(default="", description="标题")
    description: str = Field(default="")
    status: str = Field(default="todo", description="存储的状态标签（任意词表）")
    urgency: str = Field(default="low", description="存储的紧急程度标签")
    due_date: datetime | None = Field(default=None, description="截止时间")
    completed_at: datetime | None = Field(default=None, description="完成时间")
    completed: bool = Field(default=False)
    assigned_to: list[str] = Field(default_factory=list, description="负责人用户 ID 列表")
    project_id: str | None = Field(default=None, description="关联项目 ID")
    customer_ids: list[str] = Field(default_factory=list, description="关联客户 ID 列表")
    subtasks: list[SubTask] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)
    repeat: str = Field(default="", description="重复周期：none/daily/weekly/monthly")
    is_favorite: bool = Field(default=False)
    created_at: datetime | None = Field(default=None)
    updated_at: datetime | None = Field(default=None)
    created_by: str = Field(default="")
    updated_by: str = Field(default="")
    is_deleted: bool = Field(default=False, description="软删除标记")
    deleted_at: datetime | None = Field(default=None)
    deleted_by: str | None = Field(default=None)

    @field_validator("assigned_to", "customer_ids", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> list[str]:
        return normalize_id_list(value)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "TaskRecord":
        """从远端文档构建 TaskRecord"""
        return cls(
            id=doc_id,
            title=data.get("title") or "",
            description=data.get("description") or "",
            status=data.get("status") or "todo",
            urgency=data.get("urgency") or "low",
            due_date=parse_datetime(data.get("dueDate")),
            completed_at=parse_datetime(data.get("completedAt")),
            completed=bool(data.get("completed", False)),
            assigned_to=data.get("assignedTo"),
            project_id=_reference_id(data.get("project")) or _reference_id(
                data.get("projectId")
            ),
            customer_ids=data.get("customers"),
            subtasks=[
                SubTask.from_document(item)
                for item in data.get("subTasks") or []
                if isinstance(item, dict)
            ],
            comments=[
                Comment.from_document(item)
                for item in data.get("comments") or []
                if isinstance(item, dict)
            ],
            repeat=data.get("repeat") or "",
            is_favorite=bool(data.get("isFavorite", False)),
            created_at=parse_datetime(data.get("createdAt")),
            updated_at=parse_datetime(data.get("updatedAt")),
            created_by=data.get("createdBy") or "",
            updated_by=data.get("updatedBy") or "",
            is_deleted=bool(data.get("isDeleted", False)),
            deleted_at=parse_datetime(data.get("deletedAt")),
            deleted_by=data.get("deletedBy"),
        )


class TaskDraft(BaseModel):
    """新建任务输入（尚未校验）"""

    title: str
    description: str = ""
    status: str = Field(default="todo", description="任意别名，默认 todo")
    urgency: str = Field(default="medium", description="任意别名，默认 medium")
    due_date: datetime | str | None = None
    assigned_to: list[str] = Field(default_factory=list)
    project_id: str | None = None
    customer_ids: list[str] = Field(default_factory=list)
    repeat: str = ""

    @field_validator("assigned_to", "customer_ids", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> list[str]:
        return normalize_id_list(value)
