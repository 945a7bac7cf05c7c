"""看板查询路由

GET /api/board: 当前看板视图（过滤 + 排序 + 按状态分列）。
status / urgency / assignee 可重复传参，也可用逗号分隔。
"""

from crmboard.core.models import FilterSpec, Locale, SortDirection, SortKey, SortSpec
from crmboard.core.models.task import parse_datetime
from fastapi import APIRouter, Depends, Query
from starlette.responses import JSONResponse

from ..deps import get_view_model
from ..services.view_model import TaskBoardViewModel

router = APIRouter()


def _split(values: list[str] | None) -> list[str]:
    result: list[str] = []
    for value in values or []:
        result.extend(item.strip() for item in value.split(",") if item.strip())
    return result


def _invalid_query(field: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "INVALID_QUERY",
                "message": message,
                "field": field,
            }
        },
    )


@router.get("/api/board")
async def get_board(
    search: str = Query(default="", description="标题/描述子串"),
    status: list[str] | None = Query(default=None, description="状态（任意别名）"),
    urgency: list[str] | None = Query(default=None, description="紧急程度（任意别名）"),
    due_from: str | None = Query(default=None, description="截止时间下界（含）"),
    due_to: str | None = Query(default=None, description="截止时间上界（含）"),
    assignee: list[str] | None = Query(default=None, description="负责人 ID"),
    sort: str | None = Query(default=None, description="排序键"),
    direction: str = Query(default="asc", description="asc / desc"),
    locale: str | None = Query(default=None, description="显示语言 he / en"),
    view_model: TaskBoardViewModel = Depends(get_view_model),
):
    """返回当前看板视图"""
    bounds = {}
    for name, raw in (("due_from", due_from), ("due_to", due_to)):
        if raw:
            parsed = parse_datetime(raw)
            if parsed is None:
                return _invalid_query(name, f"invalid date: {raw}")
            bounds[name] = parsed

    try:
        sort_key = SortKey(sort) if sort else None
    except ValueError:
        return _invalid_query("sort", f"unknown sort key: {sort}")
    try:
        sort_direction = SortDirection(direction.lower())
    except ValueError:
        return _invalid_query("direction", f"unknown sort direction: {direction}")
    try:
        display_locale = Locale(locale.lower()) if locale else view_model.config.locale
    except ValueError:
        return _invalid_query("locale", f"unknown locale: {locale}")

    filter_spec = FilterSpec(
        search=search,
        statuses=_split(status),
        urgencies=_split(urgency),
        assignee_ids=_split(assignee),
        **bounds,
    )
    sort_spec = SortSpec(key=sort_key, direction=sort_direction)
    board = view_model.board(filter_spec, sort_spec, display_locale)
    board_data = board.model_dump(mode="json")
    for column, column_data in zip(board.columns, board_data["columns"], strict=True):
        column_data["count"] = column.count

    return {
        "version": view_model.version,
        "degraded": view_model.is_degraded,
        "stale_collections": sorted(view_model.stream_errors),
        "board": board_data,
    }
