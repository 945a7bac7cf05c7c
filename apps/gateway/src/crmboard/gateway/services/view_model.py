"""TaskBoardViewModel -- 看板视图状态持有者

持有四个集合的最新快照，每次快照到达时基于捕获的不可变 SnapshotSet 全量重算
已解析任务列表；乐观变更以覆盖层（overlay）形式叠加在任务文档上，再经 Resolver
解析，因此覆盖后的负责人/项目/客户摘要与快照一致。

覆盖层规则:
- 以 (task_id, field) 为键，按应用顺序堆叠；生效值为最后一次应用
- 撤销只移除对应变更自己的覆盖项
- pending 覆盖项跨快照保留；confirmed 覆盖项在下一次 tasks 快照到达时丢弃，
  若确认前已有更新的 tasks 快照（携带本次写入）则确认时立即丢弃
- 数组追加（评论、子任务）每项单独成栈，合并时按 id 去重追加到快照数组之后
某个流出错时继续提供最后一次有效结果，直到该流送达新快照。
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from itertools import count
from typing import Any

import structlog
from crmboard.core.config import BoardConfig
from crmboard.core.exceptions import SubscriptionError
from crmboard.core.models import (
    BoardView,
    CollectionName,
    Document,
    FilterSpec,
    Locale,
    ResolvedTask,
    Snapshot,
    SnapshotSet,
    SortSpec,
)
from crmboard.core.pipeline import build_board
from crmboard.core.resolver import ResolverCache, resolve_snapshot_set
from crmboard.core.taxonomy import StatusTaxonomy, default_taxonomy

log = structlog.get_logger()

ViewListener = Callable[["TaskBoardViewModel"], None]


@dataclass
class _OverlayEntry:
    mutation_id: str
    partial: dict[str, Any]
    seq: int
    applied_revision: int
    append: tuple[str, dict[str, Any]] | None = None
    confirmed: bool = False


@dataclass
class _OverlayStack:
    entries: list[_OverlayEntry] = field(default_factory=list)

    @property
    def top(self) -> _OverlayEntry | None:
        return self.entries[-1] if self.entries else None


class TaskBoardViewModel:
    """看板视图模型"""

    def __init__(
        self,
        config: BoardConfig | None = None,
        taxonomy: StatusTaxonomy = default_taxonomy,
    ) -> None:
        self._config = config or BoardConfig()
        self._taxonomy = taxonomy
        self._cache = ResolverCache(taxonomy, self._config.locale)
        self._snapshots: dict[str, Snapshot] = {
            name: Snapshot.empty(str(name))
            for name in (
                CollectionName.TASKS,
                CollectionName.CUSTOMERS,
                CollectionName.PROJECTS,
                CollectionName.USERS,
            )
        }
        self._overlays: dict[tuple[str, str], _OverlayStack] = {}
        self._seq = count(1)
        self._resolved: list[ResolvedTask] = []
        self._by_id: dict[str, ResolvedTask] = {}
        self._stream_errors: dict[str, SubscriptionError] = {}
        self._listeners: list[ViewListener] = []
        self._version = 0

    # ============================================================
    # 快照输入
    # ============================================================

    def on_tasks_changed(self, snapshot: Snapshot) -> None:
        self._snapshots[CollectionName.TASKS] = snapshot
        self._stream_errors.pop(CollectionName.TASKS, None)
        self._drop_confirmed_overlays()
        self.recompute()

    def on_customers_changed(self, snapshot: Snapshot) -> None:
        self._snapshots[CollectionName.CUSTOMERS] = snapshot
        self._stream_errors.pop(CollectionName.CUSTOMERS, None)
        self.recompute()

    def on_projects_changed(self, snapshot: Snapshot) -> None:
        self._snapshots[CollectionName.PROJECTS] = snapshot
        self._stream_errors.pop(CollectionName.PROJECTS, None)
        self.recompute()

    def on_users_changed(self, snapshot: Snapshot) -> None:
        self._snapshots[CollectionName.USERS] = snapshot
        self.recompute()

    def on_stream_error(self, error: SubscriptionError) -> None:
        """记录流错误；视图保持最后一次有效结果"""
        self._stream_errors[error.collection] = error
        log.warning(
            "board_serving_last_known_good",
            collection=error.collection,
            task_count=len(self._resolved),
        )

    @property
    def stream_errors(self) -> dict[str, SubscriptionError]:
        return dict(self._stream_errors)

    @property
    def is_degraded(self) -> bool:
        return bool(self._stream_errors)

    # ============================================================
    # 乐观覆盖层
    # ============================================================

    def apply_overlay(
        self,
        task_id: str,
        field_name: str,
        mutation_id: str,
        partial: dict[str, Any],
        append: tuple[str, dict[str, Any]] | None = None,
    ) -> None:
        """叠加乐观覆盖项并立即重算

        Args:
            append: (文档数组字段, 追加项)；追加项不与同字段的其他追加互相覆盖
        """
        key = (task_id, f"{field_name}:{mutation_id}" if append else field_name)
        stack = self._overlays.setdefault(key, _OverlayStack())
        stack.entries.append(
            _OverlayEntry(
                mutation_id,
                dict(partial),
                next(self._seq),
                applied_revision=self._snapshots[CollectionName.TASKS].revision,
                append=append,
            )
        )
        self.recompute()

    def confirm_overlay(self, mutation_id: str) -> None:
        """标记覆盖项已确认

        应用之后已到达更新的 tasks 快照时立即丢弃并重算；
        否则保留到下一次 tasks 快照。
        """
        revision = self._snapshots[CollectionName.TASKS].revision
        dropped = False
        for key in list(self._overlays):
            stack = self._overlays[key]
            kept = []
            for entry in stack.entries:
                if entry.mutation_id == mutation_id:
                    if revision > entry.applied_revision:
                        dropped = True
                        continue
                    entry.confirmed = True
                kept.append(entry)
            if kept:
                stack.entries = kept
            else:
                del self._overlays[key]
        if dropped:
            log.debug("overlay_converged", mutation_id=mutation_id, revision=revision)
            self.recompute()

    def remove_overlay(self, mutation_id: str) -> bool:
        """移除指定变更的覆盖项并重算

        Returns:
            True 如果找到并移除了覆盖项
        """
        removed = False
        for key in list(self._overlays):
            stack = self._overlays[key]
            kept = [entry for entry in stack.entries if entry.mutation_id != mutation_id]
            if len(kept) != len(stack.entries):
                removed = True
                if kept:
                    stack.entries = kept
                else:
                    del self._overlays[key]
        if removed:
            self.recompute()
        return removed

    def _drop_confirmed_overlays(self) -> None:
        for key in list(self._overlays):
            stack = self._overlays[key]
            stack.entries = [entry for entry in stack.entries if not entry.confirmed]
            if not stack.entries:
                del self._overlays[key]

    def overlay_count(self) -> int:
        return sum(len(stack.entries) for stack in self._overlays.values())

    def _effective_entries(self) -> dict[str, list[_OverlayEntry]]:
        """task_id -> 生效覆盖项（各栈栈顶，按应用顺序）"""
        tops = sorted(
            ((task_id, stack.top) for (task_id, _), stack in self._overlays.items() if stack.top),
            key=lambda pair: pair[1].seq,
        )
        merged: dict[str, list[_OverlayEntry]] = {}
        for task_id, entry in tops:
            merged.setdefault(task_id, []).append(entry)
        return merged

    @staticmethod
    def _patch(data: dict[str, Any], entries: list[_OverlayEntry]) -> dict[str, Any]:
        patched = dict(data)
        for entry in entries:
            patched.update(entry.partial)
            if entry.append is None:
                continue
            array_field, item = entry.append
            items = list(patched.get(array_field) or [])
            if not any(isinstance(x, dict) and x.get("id") == item.get("id") for x in items):
                items.append(item)
            patched[array_field] = items
        return patched

    # ============================================================
    # 重算
    # ============================================================

    def _capture(self) -> SnapshotSet:
        return SnapshotSet(
            tasks=self._snapshots[CollectionName.TASKS],
            customers=self._snapshots[CollectionName.CUSTOMERS],
            projects=self._snapshots[CollectionName.PROJECTS],
            users=self._snapshots[CollectionName.USERS],
        )

    def recompute(self) -> None:
        """基于当前快照组合与覆盖层重算，然后通知监听器"""
        snapshots = self._capture()
        overlays = self._effective_entries()
        if overlays:
            tasks = snapshots.tasks
            patched = Snapshot(
                collection=tasks.collection,
                revision=tasks.revision,
                documents=tuple(
                    Document(id=doc.id, data=self._patch(doc.data, overlays[doc.id]))
                    if doc.id in overlays
                    else doc
                    for doc in tasks.documents
                ),
                taken_at=tasks.taken_at,
            )
            resolved = resolve_snapshot_set(
                snapshots.model_copy(update={"tasks": patched}),
                self._taxonomy,
                self._config.locale,
            )
        else:
            resolved = self._cache.resolve(snapshots)

        self._resolved = resolved
        self._by_id = {task.id: task for task in resolved}
        self._version += 1
        log.debug(
            "board_recomputed",
            version=self._version,
            task_count=len(resolved),
            overlay_count=len(overlays),
        )
        for listener in list(self._listeners):
            listener(self)

    # ============================================================
    # 读取
    # ============================================================

    @property
    def version(self) -> int:
        return self._version

    @property
    def config(self) -> BoardConfig:
        return self._config

    def tasks(self) -> list[ResolvedTask]:
        return list(self._resolved)

    def get_task(self, task_id: str) -> ResolvedTask | None:
        return self._by_id.get(task_id)

    def snapshot(self, collection: str) -> Snapshot:
        return self._snapshots[collection]

    def board(
        self,
        filter_spec: FilterSpec | None = None,
        sort_spec: SortSpec | None = None,
        locale: Locale | str | None = None,
    ) -> BoardView:
        """当前看板视图（filter -> sort -> group）"""
        return build_board(
            self._resolved,
            filter_spec,
            sort_spec,
            locale or self._config.locale,
            default_column=self._config.default_column,
            taxonomy=self._taxonomy,
        )

    # ============================================================
    # 监听
    # ============================================================

    def add_listener(self, listener: ViewListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ViewListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
