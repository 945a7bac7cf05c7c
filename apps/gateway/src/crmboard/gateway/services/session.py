"""BoardSession -- 看板组件装配

Watcher -> ViewModel -> BoardHub 的数据流，以及 Coordinator 的写入路径。
当前操作者显式传入 Watcher.subscribe，不依赖全局状态。
"""

import structlog
from crmboard.core.config import BoardConfig
from crmboard.core.exceptions import SubscriptionError
from crmboard.core.models import FilterSpec, SortSpec
from crmboard.core.store import DocumentReader, DocumentWriter, IdentityProvider
from crmboard.core.taxonomy import StatusTaxonomy, default_taxonomy

from .board_hub import BoardEvent, BoardHub
from .coordinator import MutationCoordinator
from .view_model import TaskBoardViewModel
from .watcher import CollectionWatcher, WatchHandle

log = structlog.get_logger()


def board_summary_event(view_model: TaskBoardViewModel) -> BoardEvent:
    """看板摘要事件：总数 + 各列任务数（不含过滤）"""
    board = view_model.board(FilterSpec(), SortSpec())
    return BoardEvent(
        event_type="board",
        version=view_model.version,
        data={
            "total": board.total,
            "columns": {column.status.value: column.count for column in board.columns},
        },
    )


class BoardSession:
    """单个操作者的看板会话"""

    def __init__(
        self,
        reader: DocumentReader,
        writer: DocumentWriter,
        identity: IdentityProvider,
        config: BoardConfig | None = None,
        hub: BoardHub | None = None,
        taxonomy: StatusTaxonomy = default_taxonomy,
    ) -> None:
        self.config = config or BoardConfig()
        self.identity = identity
        self.hub = hub or BoardHub()
        self.view_model = TaskBoardViewModel(self.config, taxonomy)
        self.watcher = CollectionWatcher(reader)
        self.coordinator = MutationCoordinator(
            self.view_model,
            writer,
            identity,
            hub=self.hub,
            taxonomy=taxonomy,
            notification_limit=self.config.notification_limit,
        )
        self._handle: WatchHandle | None = None
        self.view_model.add_listener(self._publish_board)

    @property
    def started(self) -> bool:
        return self._handle is not None and self._handle.active

    async def start(self) -> None:
        """加载用户并建立三路订阅"""
        if self.started:
            return
        await self.refresh_users()
        actor_id = self.identity.current_actor_id()
        self._handle = await self.watcher.subscribe(
            actor_id,
            self.view_model.on_tasks_changed,
            self.view_model.on_customers_changed,
            self.view_model.on_projects_changed,
            on_error=self._on_stream_error,
        )
        log.info("board_session_started", actor_id=actor_id, task_count=len(self.view_model.tasks()))

    async def refresh_users(self) -> None:
        """一次性重新读取 users 集合"""
        try:
            users = await self.watcher.load_users()
        except Exception as e:
            self._on_stream_error(SubscriptionError("users", e))
            return
        self.view_model.on_users_changed(users)

    async def stop(self) -> None:
        if self._handle is not None:
            self._handle.unsubscribe()
        await self.coordinator.drain()
        log.info("board_session_stopped")

    def _on_stream_error(self, error: SubscriptionError) -> None:
        self.view_model.on_stream_error(error)
        self.coordinator.notify_stream_error(error)

    def _publish_board(self, view_model: TaskBoardViewModel) -> None:
        self.hub.publish(board_summary_event(view_model))
