"""看板端到端集成测试

HTTP 新建任务 -> 快照回流 -> 拖拽换列 -> 其他客户端写入 -> 视图收敛 完整链路
"""

from crmboard.core.models import CanonicalStatus
from crmboard.core.store import StaticIdentityProvider
from crmboard.gateway.services.board_hub import BoardHub
from crmboard.gateway.services.session import BoardSession
from httpx import AsyncClient

ACTOR_ID = "owner"


async def _board(client: AsyncClient, **params) -> dict:
    resp = await client.get("/api/board", params=params)
    assert resp.status_code == 200
    return resp.json()


def _column_ids(body: dict, status: str) -> list[str]:
    column = next(c for c in body["board"]["columns"] if c["status"] == status)
    return [task["id"] for task in column["tasks"]]


class TestDragFlow:
    """新建 -> 换列 -> 收敛"""

    async def test_create_move_converge(self, client: AsyncClient, integration_app):
        coordinator = integration_app.state.session.coordinator

        # 1. 新建两个任务
        ids = []
        for title, urgency in (("Call supplier", "גבוה"), ("Send invoice", "low")):
            resp = await client.post(
                "/api/tasks",
                json={"title": title, "urgency": urgency, "customer_ids": ["c1"], "project_id": "p1"},
            )
            assert resp.status_code == 201
            ids.append(resp.json()["task_id"])

        body = await _board(client)
        assert _column_ids(body, "todo") == ids

        # 2. 拖拽到 done（后台派发）
        resp = await client.post(f"/api/tasks/{ids[0]}/move", json={"to_status": "הושלם"})
        assert resp.status_code == 202
        body = await _board(client)
        assert _column_ids(body, "done") == [ids[0]]

        await coordinator.drain()
        body = await _board(client)
        assert _column_ids(body, "done") == [ids[0]]
        assert _column_ids(body, "todo") == [ids[1]]
        assert coordinator.pending() == []

        # 3. 远端文档与视图一致
        store = integration_app.state.store
        doc = await store.get_document("tasks", ids[0])
        assert doc.data["status"] == "done"
        assert doc.data["completed"] is True
        assert doc.data["previousStatus"] == "todo"

    async def test_external_writes_converge(self, client: AsyncClient, integration_app):
        """其他客户端直接写入文档库，视图随快照更新"""
        store = integration_app.state.store
        resp = await client.post(
            "/api/tasks", json={"title": "Review contract", "customer_ids": ["c1"]}
        )
        task_id = resp.json()["task_id"]

        # 旧客户端以历史希伯来语标签写入状态
        await store.update_document("tasks", task_id, {"status": "בביצוע"})
        body = await _board(client)
        assert _column_ids(body, "in_progress") == [task_id]

        # 仅客户集合变化：任务上的客户摘要随之更新
        await store.update_document("Customers", "c1", {"LastName": "Levi"})
        task = (await client.get(f"/api/tasks/{task_id}")).json()["task"]
        assert task["customers"][0]["last_name"] == "Levi"

        # 客户被软删除：列入缺失列表
        await store.update_document("Customers", "c1", {"IsDeleted": True})
        task = (await client.get(f"/api/tasks/{task_id}")).json()["task"]
        assert task["customers"] == []
        assert task["missing_customer_ids"] == ["c1"]

        # 任务改派给他人：从当前操作者的看板消失
        await store.update_document("tasks", task_id, {"assignedTo": ["u2"]})
        assert (await client.get(f"/api/tasks/{task_id}")).status_code == 404

    async def test_new_session_sees_persisted_state(self, client: AsyncClient, integration_app):
        """重新建立会话后看到已持久化的看板"""
        resp = await client.post("/api/tasks", json={"title": "Plan kickoff", "status": "done"})
        task_id = resp.json()["task_id"]
        store = integration_app.state.store

        session = BoardSession(
            reader=store,
            writer=store,
            identity=StaticIdentityProvider(ACTOR_ID),
            hub=BoardHub(),
        )
        await session.start()
        try:
            board = session.view_model.board()
            assert board.column_of(task_id) == CanonicalStatus.DONE
            assert board.total == 1
        finally:
            await session.stop()
