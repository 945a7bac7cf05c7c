"""CollectionWatcher -- 三路集合订阅

维护 tasks / customers / projects 三个独立订阅，每次上游变更投递整集合快照：
- tasks: 指派给当前操作者且未软删除
- customers: 未软删除
- projects: 不过滤

保证:
1. 同一流内快照新鲜度单调（修订号不大于上次投递的快照被丢弃）
2. 不同流之间没有顺序保证
3. 单流出错经 on_error 报告为 SubscriptionError，不影响其他流；不自动重试
4. WatchHandle.unsubscribe() 释放全部订阅，可重复调用
"""

from collections.abc import Callable

import structlog
from crmboard.core.exceptions import SubscriptionError
from crmboard.core.models import CollectionName, QueryFilter, Snapshot
from crmboard.core.store import DocumentReader, Subscription

log = structlog.get_logger()

SnapshotHandler = Callable[[Snapshot], None]
SubscriptionErrorHandler = Callable[[SubscriptionError], None]


def tasks_filters(actor_id: str) -> list[QueryFilter]:
    return [
        QueryFilter(field="assignedTo", op="array-contains", value=actor_id),
        QueryFilter(field="isDeleted", op="==", value=False),
    ]


def customers_filters(deleted_field: str = "IsDeleted") -> list[QueryFilter]:
    return [QueryFilter(field=deleted_field, op="==", value=False)]


class WatchHandle:
    """三路订阅的统一释放句柄"""

    def __init__(self, actor_id: str) -> None:
        self.actor_id = actor_id
        self._subscriptions: list[Subscription] = []
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def _attach(self, subscription: Subscription) -> None:
        if self._active:
            self._subscriptions.append(subscription)
        else:
            subscription.close()

    def unsubscribe(self) -> None:
        """释放全部订阅（幂等）"""
        if not self._active:
            return
        self._active = False
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions.clear()
        log.info("watch_released", actor_id=self.actor_id)


class _StreamGuard:
    """单流投递守卫：新鲜度检查 + 回调异常隔离"""

    def __init__(
        self,
        collection: str,
        handle: WatchHandle,
        handler: SnapshotHandler,
        on_error: SubscriptionErrorHandler | None,
    ) -> None:
        self.collection = collection
        self._handle = handle
        self._handler = handler
        self._on_error = on_error
        self.last_revision = -1

    def deliver(self, snapshot: Snapshot) -> None:
        if not self._handle.active:
            return
        if snapshot.revision <= self.last_revision:
            log.debug(
                "stale_snapshot_dropped",
                collection=self.collection,
                revision=snapshot.revision,
                last_revision=self.last_revision,
            )
            return
        self.last_revision = snapshot.revision
        log.debug(
            "snapshot_received",
            collection=self.collection,
            revision=snapshot.revision,
            size=len(snapshot),
        )
        try:
            self._handler(snapshot)
        except Exception as e:
            self.fail(e)

    def fail(self, cause: Exception) -> None:
        if not self._handle.active:
            return
        error = cause if isinstance(cause, SubscriptionError) else SubscriptionError(
            self.collection, cause
        )
        log.warning(
            "subscription_error",
            collection=self.collection,
            error_type=type(error.cause).__name__,
        )
        if self._on_error is not None:
            self._on_error(error)


class CollectionWatcher:
    """远端集合监听器"""

    def __init__(
        self,
        reader: DocumentReader,
        customer_deleted_field: str = "IsDeleted",
    ) -> None:
        self._reader = reader
        self._customer_deleted_field = customer_deleted_field

    async def subscribe(
        self,
        actor_id: str,
        on_tasks_changed: SnapshotHandler,
        on_customers_changed: SnapshotHandler,
        on_projects_changed: SnapshotHandler,
        on_error: SubscriptionErrorHandler | None = None,
    ) -> WatchHandle:
        """建立三路订阅

        Args:
            actor_id: 当前操作者，用于限定 tasks 订阅
            on_*_changed: 各集合的快照回调
            on_error: 订阅错误回调（可选）

        Returns:
            WatchHandle
        """
        handle = WatchHandle(actor_id)
        streams = [
            (CollectionName.TASKS, tasks_filters(actor_id), on_tasks_changed),
            (
                CollectionName.CUSTOMERS,
                customers_filters(self._customer_deleted_field),
                on_customers_changed,
            ),
            (CollectionName.PROJECTS, [], on_projects_changed),
        ]

        for collection, filters, handler in streams:
            guard = _StreamGuard(str(collection), handle, handler, on_error)
            try:
                subscription = await self._reader.subscribe(
                    str(collection),
                    filters,
                    guard.deliver,
                    guard.fail,
                )
            except Exception as e:
                # 单流建立失败不影响其余流
                guard.fail(e)
                continue
            handle._attach(subscription)

        log.info("watch_started", actor_id=actor_id)
        return handle

    async def load_users(self) -> Snapshot:
        """一次性读取 users 集合"""
        return await self._reader.query_collection(str(CollectionName.USERS))
