"""packages/core 测试配置 -- 快照构造 fixture"""

from collections.abc import Callable
from typing import Any

import pytest
from crmboard.core.models import Document, Snapshot, SnapshotSet


def _snapshot(collection: str, docs: dict[str, dict[str, Any]], revision: int = 1) -> Snapshot:
    return Snapshot(
        collection=collection,
        revision=revision,
        documents=tuple(Document(id=doc_id, data=data) for doc_id, data in docs.items()),
    )


@pytest.fixture
def make_snapshot() -> Callable[..., Snapshot]:
    """构造集合快照：make_snapshot("tasks", {"t1": {...}}, revision=1)"""
    return _snapshot


@pytest.fixture
def make_snapshot_set() -> Callable[..., SnapshotSet]:
    """构造四集合快照组合，未提供的集合为空快照"""

    def factory(
        tasks: dict[str, dict[str, Any]] | None = None,
        customers: dict[str, dict[str, Any]] | None = None,
        projects: dict[str, dict[str, Any]] | None = None,
        users: dict[str, dict[str, Any]] | None = None,
        revisions: tuple[int, int, int, int] = (1, 1, 1, 1),
    ) -> SnapshotSet:
        return SnapshotSet(
            tasks=_snapshot("tasks", tasks or {}, revisions[0]),
            customers=_snapshot("Customers", customers or {}, revisions[1]),
            projects=_snapshot("projects", projects or {}, revisions[2]),
            users=_snapshot("users", users or {}, revisions[3]),
        )

    return factory
