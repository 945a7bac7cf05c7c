"""配置模块 -- 可通过环境变量覆盖

包含数据库路径、当前操作者、显示语言、默认看板列等可配置项。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

from .models.enums import CanonicalStatus, Locale

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("CRMBOARD_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 文档库路径"""
    return os.environ.get(
        "CRMBOARD_DB_PATH",
        str(_get_base_dir() / "sqlite" / "crmboard.db"),
    )


# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("CRMBOARD_SSE_HEARTBEAT_INTERVAL", "15")
)

# 每个 SSE 订阅者的队列长度
BOARD_HUB_QUEUE_SIZE: int = 100


class BoardConfig(BaseModel):
    """看板配置 -- 从环境变量加载

    环境变量:
        CRMBOARD_ACTOR_ID: 当前操作者（HTTP 适配器使用）
        CRMBOARD_LOCALE: 显示语言（he/en）
        CRMBOARD_DEFAULT_COLUMN: 无法识别状态的任务落入的列
        CRMBOARD_NOTIFICATION_LIMIT: 保留的通知条数
    """

    actor_id: str = Field(default="owner", description="当前操作者 ID")
    locale: Locale = Field(default=Locale.HE, description="显示语言")
    default_column: CanonicalStatus = Field(
        default=CanonicalStatus.TODO,
        description="无法确定规范状态时的默认列",
    )
    notification_limit: int = Field(default=50, ge=1, description="保留的通知条数")


def load_board_config() -> BoardConfig:
    """从环境变量加载看板配置

    非法值记录 warning 并回退默认值，不阻塞启动。
    """
    kwargs: dict = {}

    if val := os.environ.get("CRMBOARD_ACTOR_ID"):
        kwargs["actor_id"] = val

    if val := os.environ.get("CRMBOARD_LOCALE"):
        try:
            kwargs["locale"] = Locale(val.lower())
        except ValueError:
            log.warning("invalid_locale_config", env_var="CRMBOARD_LOCALE", value=val)

    if val := os.environ.get("CRMBOARD_DEFAULT_COLUMN"):
        try:
            kwargs["default_column"] = CanonicalStatus(val.lower())
        except ValueError:
            log.warning(
                "invalid_default_column_config",
                env_var="CRMBOARD_DEFAULT_COLUMN",
                value=val,
            )

    if val := os.environ.get("CRMBOARD_NOTIFICATION_LIMIT"):
        try:
            limit = int(val)
            if limit < 1:
                raise ValueError(val)
            kwargs["notification_limit"] = limit
        except ValueError:
            log.warning(
                "invalid_notification_limit_config",
                env_var="CRMBOARD_NOTIFICATION_LIMIT",
                value=val,
                fallback=50,
            )

    return BoardConfig(**kwargs)
