"""SqliteDocumentStore 集成测试

测试内容：
1. 创建/部分更新/软删除
2. 查询过滤：等值、数组包含（含标量旧记录）、缺失布尔标记
3. 每次写入递增集合修订号
4. 订阅：初始投递 + 写入后重新投递，取消订阅后不再投递
5. 回调异常经 on_error 报告
6. 并发写入不丢失字段，数组追加互不覆盖
"""

import asyncio

import pytest
from crmboard.core.exceptions import DocumentNotFoundError
from crmboard.core.models import QueryFilter
from crmboard.core.store import verify_wal_mode


class TestWrites:
    """写入"""

    async def test_create_generates_id(self, document_store):
        doc_id = await document_store.create_document("tasks", {"title": "Call"})
        assert len(doc_id) == 26  # ULID
        doc = await document_store.get_document("tasks", doc_id)
        assert doc.data == {"title": "Call"}

    async def test_update_merges_top_level_fields(self, document_store):
        await document_store.create_document(
            "tasks", {"title": "Call", "status": "todo"}, doc_id="t1"
        )
        await document_store.update_document("tasks", "t1", {"status": "done"})
        doc = await document_store.get_document("tasks", "t1")
        assert doc.data == {"title": "Call", "status": "done"}

    async def test_update_missing_document_raises(self, document_store):
        with pytest.raises(DocumentNotFoundError) as exc_info:
            await document_store.update_document("tasks", "nope", {"title": "x"})
        assert exc_info.value.doc_id == "nope"
        assert exc_info.value.recoverable is False
        assert await document_store.get_revision("tasks") == 0

    async def test_soft_delete_keeps_document(self, document_store):
        await document_store.create_document("tasks", {"title": "Call"}, doc_id="t1")
        await document_store.soft_delete_document("tasks", "t1", "u1")
        doc = await document_store.get_document("tasks", "t1")
        assert doc.data["isDeleted"] is True
        assert doc.data["deletedBy"] == "u1"
        assert doc.data["deletedAt"]

    async def test_unicode_round_trip(self, document_store):
        await document_store.create_document("tasks", {"status": "הושלם"}, doc_id="t1")
        doc = await document_store.get_document("tasks", "t1")
        assert doc.data["status"] == "הושלם"


class TestConcurrentWrites:
    """并发写入串行化"""

    async def test_concurrent_updates_to_different_fields(self, document_store):
        await document_store.create_document(
            "tasks", {"title": "Call", "urgency": "high"}, doc_id="t1"
        )
        await asyncio.gather(
            document_store.update_document("tasks", "t1", {"title": "Renamed"}),
            document_store.update_document("tasks", "t1", {"urgency": "low"}),
        )
        doc = await document_store.get_document("tasks", "t1")
        assert doc.data == {"title": "Renamed", "urgency": "low"}
        assert await document_store.get_revision("tasks") == 3

    async def test_failed_update_does_not_discard_concurrent_write(self, document_store):
        await document_store.create_document("tasks", {"title": "Call"}, doc_id="t1")
        results = await asyncio.gather(
            document_store.update_document("tasks", "t1", {"status": "done"}),
            document_store.update_document("tasks", "missing", {"status": "done"}),
            return_exceptions=True,
        )
        assert results[0] is None
        assert isinstance(results[1], DocumentNotFoundError)
        doc = await document_store.get_document("tasks", "t1")
        assert doc.data["status"] == "done"

    async def test_concurrent_appends_keep_both_items(self, document_store):
        await document_store.create_document("tasks", {"comments": []}, doc_id="t1")
        await asyncio.gather(
            document_store.append_to_array("tasks", "t1", "comments", {"id": "c1"}),
            document_store.append_to_array(
                "tasks", "t1", "comments", {"id": "c2"}, {"updatedBy": "u1"}
            ),
        )
        doc = await document_store.get_document("tasks", "t1")
        assert [c["id"] for c in doc.data["comments"]] == ["c1", "c2"]
        assert doc.data["updatedBy"] == "u1"

    async def test_append_is_idempotent_by_id(self, document_store):
        await document_store.create_document("tasks", {}, doc_id="t1")
        for _ in range(2):
            await document_store.append_to_array("tasks", "t1", "subTasks", {"id": "s1"})
        doc = await document_store.get_document("tasks", "t1")
        assert doc.data["subTasks"] == [{"id": "s1"}]

    async def test_append_missing_document_raises(self, document_store):
        with pytest.raises(DocumentNotFoundError):
            await document_store.append_to_array("tasks", "nope", "comments", {"id": "c1"})


class TestQuery:
    """查询与修订号"""

    async def test_filters(self, document_store):
        await document_store.create_document(
            "tasks", {"assignedTo": ["u1", "u2"], "isDeleted": False}, doc_id="a"
        )
        await document_store.create_document("tasks", {"assignedTo": "u1"}, doc_id="b")
        await document_store.create_document(
            "tasks", {"assignedTo": ["u1"], "isDeleted": True}, doc_id="c"
        )
        await document_store.create_document("tasks", {"assignedTo": ["u3"]}, doc_id="d")

        snapshot = await document_store.query_collection(
            "tasks",
            [
                QueryFilter(field="assignedTo", op="array-contains", value="u1"),
                QueryFilter(field="isDeleted", op="==", value=False),
            ],
        )
        assert snapshot.ids() == ["a", "b"]
        assert snapshot.collection == "tasks"
        assert snapshot.taken_at is not None

    async def test_revision_bumps_per_collection(self, document_store):
        assert await document_store.get_revision("tasks") == 0
        await document_store.create_document("tasks", {"title": "A"}, doc_id="t1")
        await document_store.update_document("tasks", "t1", {"title": "B"})
        await document_store.create_document("projects", {"name": "P"})

        assert await document_store.get_revision("tasks") == 2
        assert await document_store.get_revision("projects") == 1
        snapshot = await document_store.query_collection("tasks")
        assert snapshot.revision == 2

    async def test_empty_collection(self, document_store):
        snapshot = await document_store.query_collection("Customers")
        assert len(snapshot) == 0
        assert snapshot.revision == 0

    async def test_wal_mode(self, document_store):
        assert await verify_wal_mode(document_store.conn)


class TestSubscribe:
    """订阅投递"""

    async def test_initial_and_subsequent_delivery(self, document_store):
        await document_store.create_document("tasks", {"title": "A"}, doc_id="t1")
        received = []
        subscription = await document_store.subscribe("tasks", None, received.append)

        assert [s.ids() for s in received] == [["t1"]]
        await document_store.create_document("tasks", {"title": "B"}, doc_id="t2")
        assert [s.ids() for s in received] == [["t1"], ["t1", "t2"]]
        assert received[1].revision > received[0].revision
        assert subscription.active

    async def test_other_collection_writes_not_delivered(self, document_store):
        received = []
        await document_store.subscribe("tasks", None, received.append)
        await document_store.create_document("projects", {"name": "P"})
        assert len(received) == 1

    async def test_filtered_subscription(self, document_store):
        received = []
        await document_store.subscribe(
            "tasks",
            [QueryFilter(field="isDeleted", op="==", value=False)],
            received.append,
        )
        await document_store.create_document("tasks", {"title": "A"}, doc_id="t1")
        await document_store.soft_delete_document("tasks", "t1", "u1")
        assert received[-2].ids() == ["t1"]
        assert received[-1].ids() == []

    async def test_close_stops_delivery_and_is_idempotent(self, document_store):
        received = []
        subscription = await document_store.subscribe("tasks", None, received.append)
        subscription.close()
        subscription.close()
        assert not subscription.active
        assert document_store.subscription_count("tasks") == 0

        await document_store.create_document("tasks", {"title": "A"})
        assert len(received) == 1

    async def test_callback_error_reported(self, document_store):
        errors = []

        def broken(snapshot):
            raise RuntimeError("render failed")

        await document_store.subscribe("tasks", None, broken, on_error=errors.append)
        assert len(errors) == 1
        assert isinstance(errors[0], RuntimeError)
        # 订阅仍然有效，写入本身不受影响
        await document_store.create_document("tasks", {"title": "A"}, doc_id="t1")
        assert len(errors) == 2
        assert await document_store.get_document("tasks", "t1") is not None
