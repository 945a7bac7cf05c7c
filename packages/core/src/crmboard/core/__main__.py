"""CLI 入口模块 -- python -m crmboard.core <command>

支持的命令：
  seed        写入演示数据（用户/客户/项目/任务，含历史希伯来语标签）
  dump-board  打印当前操作者的看板
"""

import asyncio
import sys
from datetime import UTC, datetime, timedelta

from .config import get_db_path, load_board_config

USAGE = """用法: python -m crmboard.core <command>
命令:
  seed        写入演示数据
  dump-board  打印当前操作者的看板"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "seed":
        asyncio.run(seed())
    elif command == "dump-board":
        asyncio.run(dump_board())
    else:
        print(f"未知命令: {command}")
        print("可用命令: seed, dump-board")
        sys.exit(1)


async def seed() -> None:
    """写入演示数据；任务指派给配置的当前操作者"""
    from .models import CollectionName
    from .store import create_document_store

    config = load_board_config()
    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store = await create_document_store(db_path)
    try:
        actor = config.actor_id
        if await store.get_document(CollectionName.USERS.value, actor) is not None:
            print("已存在演示数据，跳过")
            return
        await store.create_document(
            CollectionName.USERS.value,
            {"firstName": "Dana", "lastName": "Levi", "email": "dana@example.com"},
            doc_id=actor,
        )
        colleague = await store.create_document(
            CollectionName.USERS.value,
            {"name": "Avi", "email": "avi@example.com"},
        )
        customer = await store.create_document(
            CollectionName.CUSTOMERS.value,
            {"Name": "Noa", "LastName": "Cohen", "CompanyName": "Cohen Ltd", "IsDeleted": False},
        )
        project = await store.create_document(
            CollectionName.PROJECTS.value,
            {"name": "Website", "status": "active", "customerId": customer},
        )

        now = datetime.now(UTC)
        tasks = [
            ("Call supplier", "להתחלה", "גבוה", [actor], 1),
            ("Prepare quote", "בביצוע", "בינונית", [actor, colleague], 3),
            ("Send invoice", "הושלם", "נמוכה", actor, None),
            ("Plan kickoff", "in_progress", "normal", [actor], 7),
            ("Review contract", "todo", "high", [actor], 2),
        ]
        for title, status, urgency, assigned, due_in in tasks:
            await store.create_document(
                CollectionName.TASKS.value,
                {
                    "title": title,
                    "description": "",
                    "status": status,
                    "urgency": urgency,
                    "dueDate": (now + timedelta(days=due_in)).isoformat() if due_in else None,
                    "assignedTo": assigned,
                    "project": {"id": project, "name": "Website"},
                    "customers": [customer],
                    "isDeleted": False,
                    "createdAt": now.isoformat(),
                    "createdBy": actor,
                },
            )
        print(f"写入完成：{len(tasks)} 条任务")
    finally:
        await store.close()


async def dump_board() -> None:
    """打印看板：每列标题 + 任务"""
    from .models import CollectionName, QueryFilter
    from .pipeline import build_board
    from .resolver import resolve_tasks
    from .store import create_document_store

    config = load_board_config()
    store = await create_document_store(get_db_path())
    try:
        tasks = await store.query_collection(
            CollectionName.TASKS.value,
            [
                QueryFilter(field="assignedTo", op="array-contains", value=config.actor_id),
                QueryFilter(field="isDeleted", op="==", value=False),
            ],
        )
        customers = await store.query_collection(
            CollectionName.CUSTOMERS.value,
            [QueryFilter(field="IsDeleted", op="==", value=False)],
        )
        projects = await store.query_collection(CollectionName.PROJECTS.value)
        users = await store.query_collection(CollectionName.USERS.value)
    finally:
        await store.close()

    resolved = resolve_tasks(tasks, customers, projects, users, locale=config.locale)
    board = build_board(resolved, locale=config.locale, default_column=config.default_column)

    print(f"操作者: {config.actor_id}  任务总数: {board.total}")
    for column in board.columns:
        print(f"\n[{column.label}] ({column.count})")
        for task in column.tasks:
            assignees = ", ".join(a.display_name for a in task.assignees) or "-"
            project = task.project.name if task.project else "-"
            due = task.due_date.date().isoformat() if task.due_date else "-"
            print(f"  {task.title} | {task.urgency_label} | {due} | {assignees} | {project}")


if __name__ == "__main__":
    main()
