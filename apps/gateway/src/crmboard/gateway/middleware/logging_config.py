"""structlog 配置 -- dev 控制台渲染 / json 结构化输出

CRMBOARD_LOG_FORMAT 选择渲染器，CRMBOARD_LOG_LEVEL 选择根日志级别。
非法取值回退默认值并记录 warning，不阻塞启动。
"""

import logging
import os

import structlog

LOG_FORMATS = ("dev", "json")
DEFAULT_LOG_LEVEL = "INFO"

# 第三方库日志降噪
_QUIET_LOGGERS = ("aiosqlite", "sse_starlette", "uvicorn.access")


def _resolve_format() -> tuple[str, str | None]:
    value = os.environ.get("CRMBOARD_LOG_FORMAT", "dev").strip().lower()
    if value in LOG_FORMATS:
        return value, None
    return "dev", value


def _resolve_level() -> tuple[int, str | None]:
    value = os.environ.get("CRMBOARD_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
    level = logging.getLevelName(value)
    if isinstance(level, int):
        return level, None
    return logging.INFO, value


def _add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", "crmboard")
    return event_dict


def setup_logging() -> None:
    """初始化 structlog + stdlib logging

    structlog 事件与第三方库的 stdlib 日志共用同一处理链，
    由根 handler 上的 ProcessorFormatter 统一渲染。
    """
    log_format, bad_format = _resolve_format()
    log_level, bad_level = _resolve_level()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        # 希伯来语标签原样输出
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(
            ensure_ascii=False
        )
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    log = structlog.get_logger()
    if bad_format is not None:
        log.warning(
            "invalid_log_format_config",
            env_var="CRMBOARD_LOG_FORMAT",
            value=bad_format,
            fallback="dev",
        )
    if bad_level is not None:
        log.warning(
            "invalid_log_level_config",
            env_var="CRMBOARD_LOG_LEVEL",
            value=bad_level,
            fallback=DEFAULT_LOG_LEVEL,
        )
