"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、订阅状态、磁盘空间。
"""

import shutil

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 文档库连通性
    2. subscriptions: 三路订阅是否在线（流中断时为 degraded，仍返回 200）
    3. disk_space_mb: 磁盘剩余空间
    """
    checks = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        store = request.app.state.store
        cursor = await store.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        log.warning("ready_check_failed", check="sqlite", error_type=type(e).__name__)
        checks["sqlite"] = f"error: {type(e).__name__}"
        all_ok = False

    # 2. 订阅状态
    session = getattr(request.app.state, "session", None)
    if session is None or not session.started:
        checks["subscriptions"] = "not_started"
        all_ok = False
    elif session.view_model.is_degraded:
        checks["subscriptions"] = "degraded: " + ",".join(sorted(session.view_model.stream_errors))
    else:
        checks["subscriptions"] = "ok"

    # 3. 磁盘空间检查
    try:
        disk_usage = shutil.disk_usage("/")
        checks["disk_space_mb"] = disk_usage.free // (1024 * 1024)
    except OSError:
        checks["disk_space_mb"] = 0
        all_ok = False

    status_code = 200 if all_ok else 503
    status_text = "ready" if all_ok else "not_ready"

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_text,
            "checks": checks,
        },
    )
