"""依赖注入模块 -- 通过 FastAPI Depends 注入看板组件

组件实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request

from .services.board_hub import BoardHub
from .services.coordinator import MutationCoordinator
from .services.session import BoardSession
from .services.view_model import TaskBoardViewModel


def get_session(request: Request) -> BoardSession:
    """从 app.state 获取 BoardSession 实例"""
    return request.app.state.session


def get_view_model(request: Request) -> TaskBoardViewModel:
    return request.app.state.session.view_model


def get_coordinator(request: Request) -> MutationCoordinator:
    return request.app.state.session.coordinator


def get_board_hub(request: Request) -> BoardHub:
    """从 app.state 获取 BoardHub 实例"""
    return request.app.state.board_hub
