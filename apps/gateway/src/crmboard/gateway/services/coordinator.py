"""MutationCoordinator -- 乐观变更协调器

所有用户发起的变更（拖拽换列、单元格编辑、删除、追加评论/子任务）的唯一入口：
1. 派发前校验，失败抛 TaskValidationError，不发起任何远端调用
2. 同步叠加乐观覆盖层（第一个 await 之前完成，视图立即可见）
3. 调用 DocumentWriter 写入
4. 成功 -> confirmed；失败 -> reverted，移除覆盖层并记录非阻塞通知

写入异常在此转换为 MutationDispatchError，绝不向展示层抛出；不自动重试。
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from crmboard.core.exceptions import (
    MutationDispatchError,
    SubscriptionError,
    TaskNotFoundError,
    TaskValidationError,
)
from crmboard.core.models import (
    CanonicalStatus,
    CanonicalUrgency,
    CollectionName,
    Comment,
    Mutation,
    MutationKind,
    MutationState,
    Notification,
    NotificationLevel,
    ResolvedTask,
    SubTask,
    TaskDraft,
    validate_transition,
)
from crmboard.core.models.task import normalize_id_list, parse_datetime
from crmboard.core.store import DocumentWriter, IdentityProvider
from crmboard.core.taxonomy import StatusTaxonomy, default_taxonomy
from ulid import ULID

from .board_hub import BoardEvent, BoardHub
from .view_model import TaskBoardViewModel

log = structlog.get_logger()

TASKS = CollectionName.TASKS.value
TITLE_REQUIRED = "title required"
REPEAT_VALUES = ("", "none", "daily", "weekly", "monthly")

# 可内联编辑的字段 -> ResolvedTask 上对应的属性（用于记录变更前的值）
EDITABLE_FIELDS: dict[str, str] = {
    "title": "title",
    "description": "description",
    "status": "status",
    "urgency": "urgency",
    "due_date": "due_date",
    "assigned_to": "assignee_ids",
    "customer_ids": "customer_ids",
    "project_id": "project_id",
    "repeat": "repeat",
    "is_favorite": "is_favorite",
}


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class MutationCoordinator:
    """乐观变更协调器"""

    def __init__(
        self,
        view_model: TaskBoardViewModel,
        writer: DocumentWriter,
        identity: IdentityProvider,
        hub: BoardHub | None = None,
        taxonomy: StatusTaxonomy = default_taxonomy,
        notification_limit: int = 50,
    ) -> None:
        self._view = view_model
        self._writer = writer
        self._identity = identity
        self._hub = hub
        self._taxonomy = taxonomy
        self._mutations: dict[str, Mutation] = {}
        self._notifications: deque[Notification] = deque(maxlen=notification_limit)
        self._background: set[asyncio.Task] = set()

    # ============================================================
    # 查询
    # ============================================================

    def get_mutation(self, mutation_id: str) -> Mutation | None:
        return self._mutations.get(mutation_id)

    def mutations(self) -> list[Mutation]:
        return list(self._mutations.values())

    def pending(self) -> list[Mutation]:
        return [m for m in self._mutations.values() if m.is_pending]

    def notifications(self) -> list[Notification]:
        """最近的通知，最新在前"""
        return list(reversed(self._notifications))

    # ============================================================
    # 校验
    # ============================================================

    def _require_task(self, task_id: str) -> ResolvedTask:
        task = self._view.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    @staticmethod
    def _validate_title(value: Any, field: str = "title") -> str:
        title = value.strip() if isinstance(value, str) else ""
        if not title:
            raise TaskValidationError(field, TITLE_REQUIRED)
        return title

    def _validate_status(self, value: Any) -> CanonicalStatus:
        canonical = self._taxonomy.to_canonical_status(str(value or ""))
        if not isinstance(canonical, CanonicalStatus):
            raise TaskValidationError("status", f"unknown status: {value}")
        return canonical

    def _validate_urgency(self, value: Any) -> CanonicalUrgency:
        canonical = self._taxonomy.to_canonical_urgency(str(value or ""))
        if not isinstance(canonical, CanonicalUrgency):
            raise TaskValidationError("urgency", f"unknown urgency: {value}")
        return canonical

    @staticmethod
    def _validate_due_date(value: Any) -> datetime | None:
        if value is None or value == "":
            return None
        parsed = parse_datetime(value)
        if parsed is None:
            raise TaskValidationError("due_date", "invalid due date")
        return parsed

    def _audit(self) -> dict[str, Any]:
        return {
            "updatedAt": datetime.now(UTC).isoformat(),
            "updatedBy": self._identity.current_actor_id(),
        }

    def _status_partial(self, task: ResolvedTask, canonical: CanonicalStatus) -> dict[str, Any]:
        done = canonical == CanonicalStatus.DONE
        return {
            "status": canonical.value,
            "completed": done,
            "completedAt": datetime.now(UTC).isoformat() if done else None,
            "previousStatus": str(task.status),
            **self._audit(),
        }

    def _edit_partial(self, task: ResolvedTask, field: str, value: Any) -> tuple[Any, dict]:
        """字段校验 + 构建远端部分更新

        Returns:
            (规范化后的新值, 文档部分更新)
        """
        if field == "title":
            title = self._validate_title(value)
            return title, {"title": title}
        if field == "description":
            text = "" if value is None else str(value)
            return text, {"description": text}
        if field == "status":
            canonical = self._validate_status(value)
            return canonical, self._status_partial(task, canonical)
        if field == "urgency":
            canonical = self._validate_urgency(value)
            return canonical, {"urgency": canonical.value}
        if field == "due_date":
            due = self._validate_due_date(value)
            return due, {"dueDate": _iso(due)}
        if field == "assigned_to":
            ids = normalize_id_list(value)
            if not ids:
                # 清空负责人时指派给当前操作者
                ids = [self._identity.current_actor_id()]
            return ids, {"assignedTo": ids}
        if field == "customer_ids":
            ids = normalize_id_list(value)
            return ids, {"customers": ids}
        if field == "project_id":
            project_id = str(value) if value else None
            return project_id, {"project": project_id, "projectId": project_id}
        if field == "repeat":
            repeat = str(value or "")
            if repeat not in REPEAT_VALUES:
                raise TaskValidationError("repeat", f"unknown repeat interval: {repeat}")
            return repeat, {"repeat": repeat}
        if field == "is_favorite":
            flag = bool(value)
            return flag, {"isFavorite": flag}
        raise TaskValidationError(field, f"field {field} is not editable")

    # ============================================================
    # 变更入口
    # ============================================================

    async def move_task(
        self,
        task_id: str,
        to_status: str,
        wait: bool = True,
    ) -> Mutation | None:
        """拖拽换列

        Returns:
            Mutation；放回原列时返回 None（无操作）
        """
        canonical = self._validate_status(to_status)
        task = self._require_task(task_id)
        if task.status == canonical:
            log.debug("move_same_column", task_id=task_id, status=canonical)
            return None

        partial = self._status_partial(task, canonical)
        mutation = self._begin(task, MutationKind.MOVE, "status", task.status, canonical, partial)
        return await self._run(
            mutation,
            lambda: self._writer.update_document(TASKS, task_id, partial),
            wait,
        )

    async def edit_field(
        self,
        task_id: str,
        field: str,
        value: Any,
        wait: bool = True,
    ) -> Mutation:
        """单元格内联编辑，作用域为单个字段"""
        if field not in EDITABLE_FIELDS:
            raise TaskValidationError(field, f"field {field} is not editable")
        task = self._require_task(task_id)
        new_value, partial = self._edit_partial(task, field, value)
        partial = {**partial, **self._audit()}
        previous = getattr(task, EDITABLE_FIELDS[field])

        mutation = self._begin(task, MutationKind.EDIT, field, previous, new_value, partial)
        return await self._run(
            mutation,
            lambda: self._writer.update_document(TASKS, task_id, partial),
            wait,
        )

    async def delete_task(self, task_id: str, wait: bool = True) -> Mutation:
        """软删除：乐观隐藏 + 远端设置删除标记"""
        task = self._require_task(task_id)
        actor_id = self._identity.current_actor_id()
        partial = {
            "isDeleted": True,
            "deletedAt": datetime.now(UTC).isoformat(),
            "deletedBy": actor_id,
        }
        mutation = self._begin(task, MutationKind.DELETE, "is_deleted", False, True, partial)
        return await self._run(
            mutation,
            lambda: self._writer.soft_delete_document(TASKS, task_id, actor_id),
            wait,
        )

    async def add_comment(self, task_id: str, text: str, wait: bool = True) -> Mutation:
        """追加评论"""
        body = text.strip() if isinstance(text, str) else ""
        if not body:
            raise TaskValidationError("comment", "comment text required")
        task = self._require_task(task_id)

        comment = Comment(
            id=str(ULID()),
            author_id=self._identity.current_actor_id(),
            text=body,
            created_at=datetime.now(UTC),
        )
        return await self._append(
            task, "comments", "comments", comment.id, comment.to_document(), wait
        )

    async def add_subtask(
        self,
        task_id: str,
        title: str,
        description: str = "",
        urgency: str = CanonicalUrgency.MEDIUM,
        due_date: datetime | str | None = None,
        wait: bool = True,
    ) -> Mutation:
        """追加子任务"""
        subtask_title = self._validate_title(title, field="subtask_title")
        subtask_urgency = self._validate_urgency(urgency)
        subtask_due = self._validate_due_date(due_date)
        task = self._require_task(task_id)

        subtask = SubTask(
            id=str(ULID()),
            title=subtask_title,
            description=description or "",
            status=CanonicalStatus.TODO.value,
            urgency=subtask_urgency.value,
            due_date=subtask_due,
            created_at=datetime.now(UTC),
            created_by=self._identity.current_actor_id(),
        )
        return await self._append(
            task, "subtasks", "subTasks", subtask.id, subtask.to_document(), wait
        )

    async def _append(
        self,
        task: ResolvedTask,
        field: str,
        array_field: str,
        item_id: str,
        item: dict[str, Any],
        wait: bool,
    ) -> Mutation:
        """数组追加：远端只追加本项，不回写其他 pending 追加"""
        audit = self._audit()
        previous = len(getattr(task, field))
        mutation = self._begin(
            task,
            MutationKind.APPEND,
            field,
            previous,
            item_id,
            audit,
            append=(array_field, item),
        )
        return await self._run(
            mutation,
            lambda: self._writer.append_to_array(TASKS, task.id, array_field, item, audit),
            wait,
        )

    async def create_task(self, draft: TaskDraft) -> str:
        """新建任务（非乐观：文档 ID 由存储分配）

        Returns:
            新任务 ID

        Raises:
            TaskValidationError: 校验失败，未发起远端调用
            MutationDispatchError: 写入失败（已记录通知）
        """
        title = self._validate_title(draft.title)
        status = self._validate_status(draft.status or CanonicalStatus.TODO)
        urgency = self._validate_urgency(draft.urgency or CanonicalUrgency.MEDIUM)
        due = self._validate_due_date(draft.due_date)
        if draft.repeat not in REPEAT_VALUES:
            raise TaskValidationError("repeat", f"unknown repeat interval: {draft.repeat}")

        actor_id = self._identity.current_actor_id()
        now = datetime.now(UTC).isoformat()
        done = status == CanonicalStatus.DONE
        data = {
            "title": title,
            "description": draft.description,
            "status": status.value,
            "urgency": urgency.value,
            "dueDate": _iso(due),
            "completed": done,
            "completedAt": now if done else None,
            "assignedTo": draft.assigned_to or [actor_id],
            "project": draft.project_id,
            "customers": draft.customer_ids,
            "subTasks": [],
            "comments": [],
            "repeat": draft.repeat,
            "isFavorite": False,
            "isDeleted": False,
            "createdAt": now,
            "updatedAt": now,
            "createdBy": actor_id,
            "updatedBy": actor_id,
        }

        try:
            task_id = await self._writer.create_document(TASKS, data)
        except Exception as e:
            error = MutationDispatchError(str(ULID()), "", "task", e)
            log.error("task_create_failed", error_type=type(e).__name__)
            self._notify(
                NotificationLevel.ERROR,
                "Could not create task",
                mutation_id=error.mutation_id,
            )
            raise error from e

        log.info("task_created", task_id=task_id, status=status, urgency=urgency)
        return task_id

    # ============================================================
    # 状态机
    # ============================================================

    def _begin(
        self,
        task: ResolvedTask,
        kind: MutationKind,
        field: str,
        previous: Any,
        new_value: Any,
        partial: dict[str, Any],
        append: tuple[str, dict[str, Any]] | None = None,
    ) -> Mutation:
        """创建 pending 变更并同步叠加覆盖层"""
        mutation = Mutation(
            mutation_id=str(ULID()),
            task_id=task.id,
            kind=kind,
            field=field,
            previous_value=previous,
            new_value=new_value,
            created_at=datetime.now(UTC),
        )
        self._mutations[mutation.mutation_id] = mutation
        self._view.apply_overlay(task.id, field, mutation.mutation_id, partial, append=append)
        log.info(
            "mutation_applied",
            mutation_id=mutation.mutation_id,
            task_id=task.id,
            kind=kind,
            field=field,
        )
        return mutation

    async def _run(
        self,
        mutation: Mutation,
        write: Callable[[], Awaitable[None]],
        wait: bool,
    ) -> Mutation:
        if wait:
            await self._dispatch(mutation, write)
            return self._mutations[mutation.mutation_id]

        # 后台派发：立即返回 pending 记录
        job = asyncio.create_task(self._dispatch(mutation, write))
        self._background.add(job)
        job.add_done_callback(self._background.discard)
        return mutation

    async def _dispatch(
        self,
        mutation: Mutation,
        write: Callable[[], Awaitable[None]],
    ) -> None:
        try:
            await write()
        except Exception as e:
            error = MutationDispatchError(mutation.mutation_id, mutation.task_id, mutation.field, e)
            self._revert(mutation, error)
            return
        self._settle(mutation, MutationState.CONFIRMED)
        self._view.confirm_overlay(mutation.mutation_id)
        log.info(
            "mutation_confirmed",
            mutation_id=mutation.mutation_id,
            task_id=mutation.task_id,
            field=mutation.field,
        )

    def _settle(
        self,
        mutation: Mutation,
        to_state: MutationState,
        error_type: str | None = None,
    ) -> Mutation:
        current = self._mutations[mutation.mutation_id]
        if not validate_transition(current.state, to_state):
            raise ValueError(f"Invalid mutation transition: {current.state} -> {to_state}")
        settled = current.model_copy(
            update={
                "state": to_state,
                "settled_at": datetime.now(UTC),
                "error_type": error_type,
            }
        )
        self._mutations[mutation.mutation_id] = settled
        return settled

    def _revert(self, mutation: Mutation, error: MutationDispatchError) -> None:
        error_type = type(error.cause).__name__
        self._settle(mutation, MutationState.REVERTED, error_type)
        self._view.remove_overlay(mutation.mutation_id)
        log.error(
            "mutation_reverted",
            mutation_id=mutation.mutation_id,
            task_id=mutation.task_id,
            field=mutation.field,
            error_type=error_type,
        )
        self._notify(
            NotificationLevel.ERROR,
            f"Could not update {mutation.field}; the change was reverted",
            task_id=mutation.task_id,
            field=mutation.field,
            mutation_id=mutation.mutation_id,
        )

    # ============================================================
    # 通知
    # ============================================================

    def _notify(
        self,
        level: NotificationLevel,
        message: str,
        task_id: str | None = None,
        field: str | None = None,
        mutation_id: str | None = None,
    ) -> Notification:
        notification = Notification(
            notification_id=str(ULID()),
            level=level,
            message=message,
            task_id=task_id,
            field=field,
            mutation_id=mutation_id,
            created_at=datetime.now(UTC),
        )
        self._notifications.append(notification)
        if self._hub is not None:
            self._hub.publish(
                BoardEvent(
                    event_type="notification",
                    version=self._view.version,
                    data=notification.model_dump(mode="json"),
                )
            )
        return notification

    def notify_stream_error(self, error: SubscriptionError) -> Notification:
        """订阅中断的非阻塞通知"""
        return self._notify(
            NotificationLevel.WARNING,
            f"Live updates for {error.collection} are interrupted; showing last known data",
        )

    async def drain(self) -> None:
        """等待所有后台派发结束（关闭时使用）"""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
