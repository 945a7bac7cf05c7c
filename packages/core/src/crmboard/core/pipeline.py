"""Filter-Sort-Group 管线 -- 已解析任务列表 -> 看板视图

纯函数，输入为 Resolver 输出的规范化任务列表：
1. filter_tasks: 各维度合取过滤
2. sort_tasks: 按单一键稳定排序（相等元素保持原相对顺序）
3. group_by_status: 按规范状态分列，无法识别的状态落入默认列
"""

import locale as _locale
from collections.abc import Callable, Iterable
from typing import Any

import structlog

from .models.board import BoardColumn, BoardView, FilterSpec, ResolvedTask, SortSpec
from .models.enums import (
    STATUS_ORDER,
    URGENCY_ORDER,
    CanonicalStatus,
    Locale,
    SortDirection,
    SortKey,
)
from .models.task import parse_datetime
from .taxonomy import StatusTaxonomy, default_taxonomy

log = structlog.get_logger()


# ============================================================
# 过滤
# ============================================================


def _matches_search(task: ResolvedTask, needle: str) -> bool:
    return needle in task.title.casefold() or needle in task.description.casefold()


def filter_tasks(
    tasks: Iterable[ResolvedTask],
    spec: FilterSpec,
    taxonomy: StatusTaxonomy = default_taxonomy,
) -> list[ResolvedTask]:
    """按 FilterSpec 过滤任务

    行为规则:
        - 空维度不生效；非空维度之间为合取
        - search: 标题或描述的大小写不敏感子串
        - statuses / urgencies: 接受任意别名，先规范化再比较
        - due_from / due_to: 闭区间；没有截止时间的任务不满足已启用的区间
        - assignee_ids: 任一负责人命中即可
    """
    needle = spec.search.strip().casefold()
    statuses = {taxonomy.to_canonical_status(label) for label in spec.statuses}
    urgencies = {taxonomy.to_canonical_urgency(label) for label in spec.urgencies}
    due_from = parse_datetime(spec.due_from)
    due_to = parse_datetime(spec.due_to)
    assignees = set(spec.assignee_ids)

    result: list[ResolvedTask] = []
    for task in tasks:
        if needle and not _matches_search(task, needle):
            continue
        if statuses and task.status not in statuses:
            continue
        if urgencies and task.urgency not in urgencies:
            continue
        if due_from or due_to:
            if task.due_date is None:
                continue
            if due_from and task.due_date < due_from:
                continue
            if due_to and task.due_date > due_to:
                continue
        if assignees and not assignees.intersection(task.assignee_ids):
            continue
        result.append(task)
    return result


# ============================================================
# 排序
# ============================================================


def _text_key(value: str) -> str:
    # 区域感知比较：当前进程 LC_COLLATE 下的排序键
    return _locale.strxfrm(value.casefold())


def _rank(order: tuple, value: Any) -> int:
    try:
        return order.index(value)
    except ValueError:
        # 未识别的标签排在所有规范值之后
        return len(order)


def _key_function(key: SortKey) -> Callable[[ResolvedTask], Any]:
    """返回排序键函数；返回 None 表示该任务缺少此键"""
    extractors: dict[SortKey, Callable[[ResolvedTask], Any]] = {
        SortKey.TITLE: lambda task: _text_key(task.title),
        SortKey.DESCRIPTION: lambda task: _text_key(task.description),
        SortKey.STATUS: lambda task: _rank(STATUS_ORDER, task.status),
        SortKey.URGENCY: lambda task: _rank(URGENCY_ORDER, task.urgency),
        SortKey.DUE_DATE: lambda task: task.due_date,
        SortKey.CREATED_AT: lambda task: task.created_at,
        SortKey.UPDATED_AT: lambda task: task.updated_at,
        SortKey.ASSIGNEES: lambda task: len(task.assignees),
        SortKey.CUSTOMERS: lambda task: len(task.customers),
        SortKey.PROJECT: lambda task: _text_key(task.project.name) if task.project else None,
    }
    return extractors[key]


def sort_tasks(tasks: Iterable[ResolvedTask], spec: SortSpec) -> list[ResolvedTask]:
    """稳定排序

    - 字符串键：区域感知比较（casefold 后 strxfrm）
    - 日期键：比较时间点；缺失值在升序和降序下都排在最后
    - 列表键：按元素个数
    - status / urgency：按规范顺序
    降序不反转相等元素的原有顺序。
    """
    items = list(tasks)
    if spec.key is None:
        return items

    extract = _key_function(spec.key)
    present: list[tuple[Any, ResolvedTask]] = []
    missing: list[ResolvedTask] = []
    for task in items:
        value = extract(task)
        if value is None:
            missing.append(task)
        else:
            present.append((value, task))

    # list.sort 在 reverse=True 时仍保持稳定
    present.sort(key=lambda pair: pair[0], reverse=spec.direction == SortDirection.DESC)
    return [task for _, task in present] + missing


# ============================================================
# 分组
# ============================================================


def group_by_status(
    tasks: Iterable[ResolvedTask],
    default_column: CanonicalStatus = CanonicalStatus.TODO,
    locale: Locale | str | None = None,
    taxonomy: StatusTaxonomy = default_taxonomy,
) -> list[BoardColumn]:
    """按规范状态分列，列顺序固定为 todo / in_progress / done

    每个任务恰好落入一列；状态无法识别的任务落入 default_column。
    """
    buckets: dict[CanonicalStatus, list[ResolvedTask]] = {status: [] for status in STATUS_ORDER}
    for task in tasks:
        if task.status in buckets:
            buckets[CanonicalStatus(task.status)].append(task)
        else:
            log.debug(
                "task_in_default_column",
                task_id=task.id,
                status=task.status,
                column=default_column,
            )
            buckets[default_column].append(task)
    return [
        BoardColumn(
            status=status,
            label=taxonomy.to_display(status, locale),
            tasks=buckets[status],
        )
        for status in STATUS_ORDER
    ]


def relabel(
    tasks: Iterable[ResolvedTask],
    locale: Locale | str,
    taxonomy: StatusTaxonomy = default_taxonomy,
) -> list[ResolvedTask]:
    """按指定语言重算显示标签"""
    return [
        task.model_copy(
            update={
                "status_label": taxonomy.to_display(task.status, locale),
                "urgency_label": taxonomy.to_display(task.urgency, locale),
            }
        )
        for task in tasks
    ]


def build_board(
    tasks: Iterable[ResolvedTask],
    filter_spec: FilterSpec | None = None,
    sort_spec: SortSpec | None = None,
    locale: Locale | str | None = None,
    default_column: CanonicalStatus = CanonicalStatus.TODO,
    taxonomy: StatusTaxonomy = default_taxonomy,
) -> BoardView:
    """filter -> sort -> group，生成看板视图

    total 等于过滤后的任务数，也等于各列任务数之和。
    """
    filter_spec = filter_spec or FilterSpec()
    sort_spec = sort_spec or SortSpec()

    selected = filter_tasks(tasks, filter_spec, taxonomy)
    ordered = sort_tasks(selected, sort_spec)
    if locale:
        ordered = relabel(ordered, locale, taxonomy)
    columns = group_by_status(ordered, default_column, locale, taxonomy)

    return BoardView(
        columns=columns,
        total=len(ordered),
        filter=filter_spec,
        sort=sort_spec,
    )
