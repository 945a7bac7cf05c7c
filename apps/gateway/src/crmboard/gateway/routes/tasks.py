"""任务路由 -- 查询与变更

所有变更都经 MutationCoordinator：乐观应用后在后台派发写入，立即返回 202 与
pending 变更记录；派发结果可通过 GET /api/mutations/{mutation_id} 查询。

GET    /api/tasks/{task_id}: 已解析任务详情
POST   /api/tasks: 新建任务（201）
POST   /api/tasks/{task_id}/move: 拖拽换列
PATCH  /api/tasks/{task_id}: 单字段内联编辑
DELETE /api/tasks/{task_id}: 软删除
POST   /api/tasks/{task_id}/comments: 追加评论
POST   /api/tasks/{task_id}/subtasks: 追加子任务
GET    /api/mutations/{mutation_id}: 变更状态
"""

from typing import Any

from crmboard.core.exceptions import (
    MutationDispatchError,
    TaskNotFoundError,
    TaskValidationError,
)
from crmboard.core.models import Mutation, TaskDraft
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from ..deps import get_coordinator, get_view_model
from ..services.coordinator import MutationCoordinator
from ..services.view_model import TaskBoardViewModel

router = APIRouter()


class CreateTaskRequest(BaseModel):
    """新建任务请求体"""

    title: str = Field(default="", description="标题（去除首尾空白后不能为空）")
    description: str = Field(default="")
    status: str = Field(default="todo", description="状态（任意别名）")
    urgency: str = Field(default="medium", description="紧急程度（任意别名）")
    due_date: str | None = Field(default=None, description="ISO 8601 截止时间")
    assigned_to: list[str] = Field(default_factory=list, description="为空时指派给当前操作者")
    project_id: str | None = Field(default=None)
    customer_ids: list[str] = Field(default_factory=list)
    repeat: str = Field(default="")


class CreateTaskResponse(BaseModel):
    task_id: str


class MoveRequest(BaseModel):
    """拖拽换列请求体"""

    to_status: str = Field(description="目标列（任意状态别名）")


class EditRequest(BaseModel):
    """单字段编辑请求体"""

    field: str = Field(description="字段名")
    value: Any = Field(default=None, description="新值")


class CommentRequest(BaseModel):
    text: str = Field(default="")


class SubtaskRequest(BaseModel):
    title: str = Field(default="")
    description: str = Field(default="")
    urgency: str = Field(default="medium")
    due_date: str | None = Field(default=None)


def _error(status_code: int, code: str, message: str, field: str | None = None) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if field is not None:
        error["field"] = field
    return JSONResponse(status_code=status_code, content={"error": error})


def _validation_error(e: TaskValidationError) -> JSONResponse:
    return _error(422, "VALIDATION_ERROR", e.message, e.field)


def _not_found(e: TaskNotFoundError) -> JSONResponse:
    return _error(404, "TASK_NOT_FOUND", e.message)


def _accepted(mutation: Mutation) -> JSONResponse:
    return JSONResponse(
        status_code=202,
        content={"mutation": mutation.model_dump(mode="json")},
    )


@router.get("/api/tasks/{task_id}")
async def get_task_detail(
    task_id: str,
    view_model: TaskBoardViewModel = Depends(get_view_model),
):
    """查询已解析任务（含乐观覆盖）"""
    task = view_model.get_task(task_id)
    if task is None:
        return _not_found(TaskNotFoundError(task_id))
    return {"task": task.model_dump(mode="json")}


@router.post("/api/tasks")
async def create_task(
    body: CreateTaskRequest,
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    """新建任务

    - 成功返回 201 + task_id
    - 校验失败返回 422（字段级）
    - 写入失败返回 502
    """
    draft = TaskDraft(**body.model_dump())
    try:
        task_id = await coordinator.create_task(draft)
    except TaskValidationError as e:
        return _validation_error(e)
    except MutationDispatchError as e:
        return _error(502, "DISPATCH_FAILED", e.message)

    return JSONResponse(
        status_code=201,
        content=CreateTaskResponse(task_id=task_id).model_dump(),
    )


@router.post("/api/tasks/{task_id}/move")
async def move_task(
    task_id: str,
    body: MoveRequest,
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    """拖拽换列；放回原列返回 200 且 mutation 为 null"""
    try:
        mutation = await coordinator.move_task(task_id, body.to_status, wait=False)
    except TaskValidationError as e:
        return _validation_error(e)
    except TaskNotFoundError as e:
        return _not_found(e)

    if mutation is None:
        return JSONResponse(status_code=200, content={"mutation": None})
    return _accepted(mutation)


@router.patch("/api/tasks/{task_id}")
async def edit_task_field(
    task_id: str,
    body: EditRequest,
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    """单字段内联编辑"""
    try:
        mutation = await coordinator.edit_field(task_id, body.field, body.value, wait=False)
    except TaskValidationError as e:
        return _validation_error(e)
    except TaskNotFoundError as e:
        return _not_found(e)
    return _accepted(mutation)


@router.delete("/api/tasks/{task_id}")
async def delete_task(
    task_id: str,
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    """软删除任务"""
    try:
        mutation = await coordinator.delete_task(task_id, wait=False)
    except TaskNotFoundError as e:
        return _not_found(e)
    return _accepted(mutation)


@router.post("/api/tasks/{task_id}/comments")
async def add_comment(
    task_id: str,
    body: CommentRequest,
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    try:
        mutation = await coordinator.add_comment(task_id, body.text, wait=False)
    except TaskValidationError as e:
        return _validation_error(e)
    except TaskNotFoundError as e:
        return _not_found(e)
    return _accepted(mutation)


@router.post("/api/tasks/{task_id}/subtasks")
async def add_subtask(
    task_id: str,
    body: SubtaskRequest,
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    try:
        mutation = await coordinator.add_subtask(
            task_id,
            body.title,
            description=body.description,
            urgency=body.urgency,
            due_date=body.due_date,
            wait=False,
        )
    except TaskValidationError as e:
        return _validation_error(e)
    except TaskNotFoundError as e:
        return _not_found(e)
    return _accepted(mutation)


@router.get("/api/mutations/{mutation_id}")
async def get_mutation(
    mutation_id: str,
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    """查询变更状态（pending / confirmed / reverted）"""
    mutation = coordinator.get_mutation(mutation_id)
    if mutation is None:
        return _error(404, "MUTATION_NOT_FOUND", f"Mutation with id {mutation_id} does not exist")
    return {"mutation": mutation.model_dump(mode="json")}
