"""FastAPI 应用主文件

app 创建 + lifespan 管理：文档库初始化/关闭 + 看板会话启动/停止 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from crmboard.core.config import get_db_path, load_board_config
from crmboard.core.store import StaticIdentityProvider, create_document_store
from fastapi import FastAPI

from .middleware.logging_config import setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import board, health, notifications, stream, tasks
from .services.board_hub import BoardHub
from .services.session import BoardSession

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时打开文档库并订阅，关闭时释放订阅和连接"""
    config = load_board_config()
    app.state.board_config = config

    store = await create_document_store(get_db_path())
    app.state.store = store

    board_hub = BoardHub()
    app.state.board_hub = board_hub

    session = BoardSession(
        reader=store,
        writer=store,
        identity=StaticIdentityProvider(config.actor_id),
        config=config,
        hub=board_hub,
    )
    await session.start()
    app.state.session = session
    log.info(
        "board_gateway_started",
        actor_id=config.actor_id,
        locale=config.locale,
        db_path=get_db_path(),
    )

    yield

    # 关闭：释放订阅，等待在途写入，关闭连接
    if getattr(app.state, "session", None):
        await app.state.session.stop()
    if getattr(app.state, "store", None):
        await app.state.store.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="crmboard Gateway",
        version="0.1.0",
        description="CRM 任务看板视图 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()

    app.include_router(board.router, tags=["board"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(notifications.router, tags=["notifications"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
