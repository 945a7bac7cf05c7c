"""BoardHub -- 内存中看板事件广播器

每个订阅者持有一个 asyncio.Queue，支持 subscribe/unsubscribe/broadcast。
看板是单一主题：视图重算后广播 board 事件，变更撤销后广播 notification 事件。
"""

import asyncio
from datetime import UTC, datetime
from typing import Any, Literal

import structlog
from crmboard.core.config import BOARD_HUB_QUEUE_SIZE
from pydantic import BaseModel, Field

log = structlog.get_logger()

BoardEventType = Literal["board", "notification"]


class BoardEvent(BaseModel):
    """推送给展示适配器的事件"""

    event_type: BoardEventType
    version: int = Field(default=0, description="视图版本号（每次重算递增）")
    data: dict[str, Any] = Field(default_factory=dict)
    ts: datetime = Field(default_factory=lambda: datetime.now(UTC))


class BoardHub:
    """看板事件广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = BOARD_HUB_QUEUE_SIZE) -> None:
        self._subscribers: set[asyncio.Queue] = set()
        self._queue_maxsize = queue_maxsize

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self) -> asyncio.Queue:
        """订阅看板事件流

        Returns:
            asyncio.Queue 实例，新事件会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers.add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, event: BoardEvent) -> None:
        """同步广播（视图监听器在事件循环上同步调用）

        已满的队列视为消费者失联，直接移除。
        """
        dead_queues = []
        for queue in self._subscribers:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        for q in dead_queues:
            self._subscribers.discard(q)
        if dead_queues:
            log.warning("board_hub_dropped_subscribers", count=len(dead_queues))

    async def broadcast(self, event: BoardEvent) -> None:
        """向所有订阅者广播事件

        Args:
            event: 要广播的事件
        """
        self.publish(event)
