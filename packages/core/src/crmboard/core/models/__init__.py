"""crmboard Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .board import BoardColumn, BoardView, FilterSpec, ResolvedTask, SortSpec
from .enums import (
    STATUS_ORDER,
    TERMINAL_STATES,
    URGENCY_ORDER,
    VALID_TRANSITIONS,
    CanonicalStatus,
    CanonicalUrgency,
    CollectionName,
    Locale,
    MutationKind,
    MutationState,
    NotificationLevel,
    SortDirection,
    SortKey,
    validate_transition,
)
from .mutation import Mutation, Notification
from .reference import (
    AssigneeSummary,
    CustomerRecord,
    CustomerSummary,
    ProjectRecord,
    ProjectSummary,
    UserRecord,
)
from .snapshot import Document, QueryFilter, Snapshot, SnapshotSet
from .task import Comment, SubTask, TaskDraft, TaskRecord

__all__ = [
    # 枚举
    "CanonicalStatus",
    "CanonicalUrgency",
    "CollectionName",
    "Locale",
    "MutationKind",
    "MutationState",
    "NotificationLevel",
    "SortDirection",
    "SortKey",
    "STATUS_ORDER",
    "URGENCY_ORDER",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # Task
    "TaskRecord",
    "TaskDraft",
    "SubTask",
    "Comment",
    # 引用数据
    "CustomerRecord",
    "ProjectRecord",
    "UserRecord",
    "AssigneeSummary",
    "CustomerSummary",
    "ProjectSummary",
    # Snapshot
    "Document",
    "QueryFilter",
    "Snapshot",
    "SnapshotSet",
    # 看板
    "ResolvedTask",
    "FilterSpec",
    "SortSpec",
    "BoardColumn",
    "BoardView",
    # 变更
    "Mutation",
    "Notification",
]
