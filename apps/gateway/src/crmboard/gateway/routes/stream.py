"""SSE 看板事件流路由

GET /api/stream/board: 连接后先推送一次当前看板摘要，
此后推送 board（视图重算）与 notification（撤销/订阅中断）事件，空闲时心跳保活。
"""

import asyncio
import json

from crmboard.core.config import SSE_HEARTBEAT_INTERVAL
from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from ..deps import get_board_hub, get_view_model
from ..services.board_hub import BoardEvent, BoardHub
from ..services.session import board_summary_event
from ..services.view_model import TaskBoardViewModel

router = APIRouter()


def _event_to_sse(event: BoardEvent) -> dict:
    """将 BoardEvent 转换为 SSE 消息"""
    return {
        "id": str(event.version),
        "event": event.event_type,
        "data": json.dumps(event.model_dump(mode="json"), ensure_ascii=False),
    }


@router.get("/api/stream/board")
async def stream_board(
    request: Request,
    view_model: TaskBoardViewModel = Depends(get_view_model),
    board_hub: BoardHub = Depends(get_board_hub),
):
    """SSE 事件流端点

    1. 推送当前看板摘要
    2. 注册到 BoardHub 监听新事件
    3. SSE_HEARTBEAT_INTERVAL 秒心跳保活
    """

    async def event_generator():
        queue = await board_hub.subscribe()
        try:
            yield _event_to_sse(board_summary_event(view_model))
            while True:
                if await request.is_disconnected():
                    return
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=SSE_HEARTBEAT_INTERVAL)
                    yield _event_to_sse(event)
                except TimeoutError:
                    yield {"comment": "heartbeat"}
        finally:
            await board_hub.unsubscribe(queue)

    return EventSourceResponse(event_generator())
