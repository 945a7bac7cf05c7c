"""Reference Resolver -- 任务与客户/项目/用户快照的关联

纯函数：(tasks, customers, projects, users) 四个不可变快照 -> 已解析任务列表。
任一输入快照变化即全量重算，不做增量 patch；ResolverCache 按快照修订号记忆化。
软删除过滤和词表规范化在此层完成，之后的管线只看到规范值。
"""

import time

import structlog

from .models.board import ResolvedTask
from .models.enums import Locale
from .models.reference import (
    AssigneeSummary,
    CustomerRecord,
    CustomerSummary,
    ProjectRecord,
    ProjectSummary,
    UserRecord,
)
from .models.snapshot import Snapshot, SnapshotSet
from .models.task import TaskRecord
from .taxonomy import StatusTaxonomy, default_taxonomy

log = structlog.get_logger()


def resolve_task(
    task: TaskRecord,
    customers: dict[str, CustomerRecord],
    projects: dict[str, ProjectRecord],
    users: dict[str, UserRecord],
    taxonomy: StatusTaxonomy = default_taxonomy,
    locale: Locale = Locale.HE,
) -> ResolvedTask:
    """解析单个任务的引用字段

    Args:
        task: 原始任务记录
        customers / projects / users: id -> 记录 的索引

    Returns:
        ResolvedTask；找不到的用户被丢弃，找不到的项目/客户以占位标记表示
    """
    status = taxonomy.to_canonical_status(task.status)
    urgency = taxonomy.to_canonical_urgency(task.urgency)

    assignees = [
        AssigneeSummary(id=user_id, display_name=users[user_id].label)
        for user_id in task.assigned_to
        if user_id in users
    ]

    project_summary: ProjectSummary | None = None
    project_missing = False
    if task.project_id:
        project = projects.get(task.project_id)
        if project is None:
            project_missing = True
        else:
            project_summary = ProjectSummary(
                id=project.id,
                name=project.name,
                status=project.status,
            )

    customer_summaries: list[CustomerSummary] = []
    missing_customers: list[str] = []
    for customer_id in task.customer_ids:
        customer = customers.get(customer_id)
        if customer is None:
            missing_customers.append(customer_id)
            continue
        customer_summaries.append(
            CustomerSummary(id=customer.id, name=customer.name, last_name=customer.last_name)
        )

    return ResolvedTask(
        id=task.id,
        title=task.title,
        description=task.description,
        status=status,
        urgency=urgency,
        status_label=taxonomy.to_display(status, locale),
        urgency_label=taxonomy.to_display(urgency, locale),
        due_date=task.due_date,
        completed_at=task.completed_at,
        assignee_ids=list(task.assigned_to),
        assignees=assignees,
        project_id=task.project_id,
        project=project_summary,
        project_missing=project_missing,
        customer_ids=list(task.customer_ids),
        customers=customer_summaries,
        missing_customer_ids=missing_customers,
        subtasks=list(task.subtasks),
        comments=list(task.comments),
        repeat=task.repeat,
        is_favorite=task.is_favorite,
        created_at=task.created_at,
        updated_at=task.updated_at,
        created_by=task.created_by,
        updated_by=task.updated_by,
    )


def index_customers(snapshot: Snapshot) -> dict[str, CustomerRecord]:
    records = (CustomerRecord.from_document(doc.id, doc.data) for doc in snapshot.documents)
    return {record.id: record for record in records if not record.is_deleted}


def index_projects(snapshot: Snapshot) -> dict[str, ProjectRecord]:
    return {
        doc.id: ProjectRecord.from_document(doc.id, doc.data) for doc in snapshot.documents
    }


def index_users(snapshot: Snapshot) -> dict[str, UserRecord]:
    return {doc.id: UserRecord.from_document(doc.id, doc.data) for doc in snapshot.documents}


def parse_tasks(snapshot: Snapshot) -> list[TaskRecord]:
    """解析任务快照，并排除软删除记录"""
    records = [TaskRecord.from_document(doc.id, doc.data) for doc in snapshot.documents]
    return [record for record in records if not record.is_deleted]


def resolve_tasks(
    tasks: Snapshot,
    customers: Snapshot,
    projects: Snapshot,
    users: Snapshot,
    *,
    taxonomy: StatusTaxonomy = default_taxonomy,
    locale: Locale = Locale.HE,
) -> list[ResolvedTask]:
    """基于四个不可变快照全量解析任务列表

    输出顺序与任务快照中的文档顺序一致。
    """
    customer_index = index_customers(customers)
    project_index = index_projects(projects)
    user_index = index_users(users)
    return [
        resolve_task(task, customer_index, project_index, user_index, taxonomy, locale)
        for task in parse_tasks(tasks)
    ]


def resolve_snapshot_set(
    snapshots: SnapshotSet,
    taxonomy: StatusTaxonomy = default_taxonomy,
    locale: Locale = Locale.HE,
) -> list[ResolvedTask]:
    return resolve_tasks(
        snapshots.tasks,
        snapshots.customers,
        snapshots.projects,
        snapshots.users,
        taxonomy=taxonomy,
        locale=locale,
    )


class ResolverCache:
    """按快照组合记忆化的 Resolver

    同一 (tasks, customers, projects, users) 修订号组合只计算一次。
    """

    def __init__(
        self,
        taxonomy: StatusTaxonomy = default_taxonomy,
        locale: Locale = Locale.HE,
    ) -> None:
        self._taxonomy = taxonomy
        self._locale = locale
        self._key: tuple[int, int, int, int] | None = None
        self._result: list[ResolvedTask] = []
        self.compute_count = 0

    def resolve(self, snapshots: SnapshotSet) -> list[ResolvedTask]:
        if snapshots.key == self._key:
            return self._result

        start_time = time.monotonic()
        result = resolve_snapshot_set(snapshots, self._taxonomy, self._locale)
        self._key = snapshots.key
        self._result = result
        self.compute_count += 1

        log.debug(
            "tasks_resolved",
            revisions=snapshots.key,
            task_count=len(result),
            elapsed_ms=int((time.monotonic() - start_time) * 1000),
        )
        return result

    def invalidate(self) -> None:
        self._key = None
