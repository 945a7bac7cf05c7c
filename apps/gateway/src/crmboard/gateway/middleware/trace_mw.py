"""TraceMiddleware -- 任务级追踪

从 /api/tasks/{task_id}/... 路径中提取 task_id 并绑定到 structlog contextvars，
使该请求内的乐观变更日志都带上任务标识。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


def extract_task_id(path: str) -> str | None:
    """/api/tasks/{task_id}[/...] -> task_id"""
    parts = [part for part in path.split("/") if part]
    for i, part in enumerate(parts):
        if part == "tasks" and i + 1 < len(parts):
            return parts[i + 1]
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件 -- 为任务操作绑定 task_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        task_id = extract_task_id(request.url.path)
        if task_id:
            structlog.contextvars.bind_contextvars(task_id=task_id)

        return await call_next(request)
