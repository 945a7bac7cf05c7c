"""通知路由

GET /api/notifications: 最近的非阻塞通知（变更撤销、订阅中断），最新在前。
"""

from fastapi import APIRouter, Depends, Query

from ..deps import get_coordinator
from ..services.coordinator import MutationCoordinator

router = APIRouter()


@router.get("/api/notifications")
async def list_notifications(
    limit: int | None = Query(default=None, ge=1, description="最多返回条数"),
    coordinator: MutationCoordinator = Depends(get_coordinator),
):
    notifications = coordinator.notifications()
    if limit is not None:
        notifications = notifications[:limit]
    return {
        "notifications": [n.model_dump(mode="json") for n in notifications],
        "pending_mutations": len(coordinator.pending()),
    }
