"""枚举定义 -- 看板领域的规范值

包含 CanonicalStatus / CanonicalUrgency 规范枚举、乐观变更状态机
（MutationState + VALID_TRANSITIONS + TERMINAL_STATES），
以及集合名、排序键、语言区域等辅助枚举。
"""

from enum import StrEnum


class CanonicalStatus(StrEnum):
    """任务规范状态 -- 看板的列，与显示语言无关"""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class CanonicalUrgency(StrEnum):
    """任务规范紧急程度"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# 看板列顺序，同时用作状态排序权重
STATUS_ORDER: tuple[CanonicalStatus, ...] = (
    CanonicalStatus.TODO,
    CanonicalStatus.IN_PROGRESS,
    CanonicalStatus.DONE,
)

URGENCY_ORDER: tuple[CanonicalUrgency, ...] = (
    CanonicalUrgency.LOW,
    CanonicalUrgency.MEDIUM,
    CanonicalUrgency.HIGH,
)


class MutationState(StrEnum):
    """乐观变更状态机：pending -> confirmed | reverted"""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


VALID_TRANSITIONS: dict[MutationState, set[MutationState]] = {
    MutationState.PENDING: {MutationState.CONFIRMED, MutationState.REVERTED},
    # 终态不可再流转
    MutationState.CONFIRMED: set(),
    MutationState.REVERTED: set(),
}

TERMINAL_STATES: set[MutationState] = {
    MutationState.CONFIRMED,
    MutationState.REVERTED,
}


class MutationKind(StrEnum):
    """变更来源"""

    MOVE = "move"
    EDIT = "edit"
    DELETE = "delete"
    APPEND = "append"


class CollectionName(StrEnum):
    """远端文档集合名（沿用原始库中的集合命名）"""

    TASKS = "tasks"
    CUSTOMERS = "Customers"
    PROJECTS = "projects"
    USERS = "users"


class Locale(StrEnum):
    """显示语言区域"""

    HE = "he"
    EN = "en"


class SortKey(StrEnum):
    """看板排序键"""

    TITLE = "title"
    DESCRIPTION = "description"
    STATUS = "status"
    URGENCY = "urgency"
    DUE_DATE = "due_date"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    ASSIGNEES = "assignees"
    CUSTOMERS = "customers"
    PROJECT = "project"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


class NotificationLevel(StrEnum):
    """面向用户的非阻塞通知级别"""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def validate_transition(from_state: MutationState, to_state: MutationState) -> bool:
    """验证变更状态流转是否合法

    Args:
        from_state: 当前状态
        to_state: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_state, set())
    return to_state in allowed
