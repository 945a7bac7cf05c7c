"""Mutation / Notification 模型 -- 乐观变更记录与用户可见通知

每个在途变更一条 Mutation 记录，状态机 pending -> confirmed | reverted。
previous_value 为乐观应用前视图中的值，用于撤销时的诊断。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import MutationKind, MutationState, NotificationLevel


class Mutation(BaseModel):
    """乐观变更记录"""

    mutation_id: str = Field(description="ULID")
    task_id: str
    kind: MutationKind
    field: str = Field(description="被修改的视图字段")
    previous_value: Any = Field(default=None)
    new_value: Any = Field(default=None)
    state: MutationState = Field(default=MutationState.PENDING)
    created_at: datetime
    settled_at: datetime | None = Field(default=None)
    error_type: str | None = Field(default=None, description="撤销时的异常类型")

    @property
    def is_pending(self) -> bool:
        return self.state == MutationState.PENDING


class Notification(BaseModel):
    """非阻塞的用户通知（撤销、订阅中断等）"""

    notification_id: str
    level: NotificationLevel = NotificationLevel.ERROR
    message: str
    task_id: str | None = None
    field: str | None = None
    mutation_id: str | None = None
    created_at: datetime
