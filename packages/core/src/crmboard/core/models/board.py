"""看板视图模型 -- ResolvedTask、过滤/排序规格、看板列

ResolvedTask 是已与最新 customer/project/user 快照关联后的可渲染记录；
BoardView 是过滤 + 排序 + 按规范状态分组后的输出，供展示适配器只读消费。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import CanonicalStatus, CanonicalUrgency, SortDirection, SortKey
from .reference import AssigneeSummary, CustomerSummary, ProjectSummary
from .task import Comment, SubTask


class ResolvedTask(BaseModel):
    """已解析的 Task

    status / urgency 为规范值；遇到无法识别的存储标签时保留原始字符串，
    分组阶段会将其落入默认列。
    """

    id: str
    title: str
    description: str = ""
    status: CanonicalStatus | str = Field(description="规范状态（无法识别时为原始标签）")
    urgency: CanonicalUrgency | str = Field(description="规范紧急程度")
    status_label: str = Field(default="", description="本地化状态显示标签")
    urgency_label: str = Field(default="", description="本地化紧急程度显示标签")
    due_date: datetime | None = None
    completed_at: datetime | None = None
    assignee_ids: list[str] = Field(default_factory=list, description="负责人 ID（归一化列表）")
    assignees: list[AssigneeSummary] = Field(
        default_factory=list,
        description="可显示的负责人（快照中不存在的用户被丢弃）",
    )
    project_id: str | None = None
    project: ProjectSummary | None = None
    project_missing: bool = Field(default=False, description="设置了项目但快照中找不到")
    customer_ids: list[str] = Field(default_factory=list)
    customers: list[CustomerSummary] = Field(default_factory=list)
    missing_customer_ids: list[str] = Field(default_factory=list)
    subtasks: list[SubTask] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)
    repeat: str = ""
    is_favorite: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str = ""
    updated_by: str = ""

    @property
    def is_unassigned(self) -> bool:
        return not self.assignees


class FilterSpec(BaseModel):
    """过滤规格 -- 各维度之间为合取（AND），空维度不生效"""

    search: str = Field(default="", description="标题/描述子串，大小写不敏感")
    statuses: list[str] = Field(default_factory=list, description="状态集合（接受任意别名）")
    urgencies: list[str] = Field(default_factory=list, description="紧急程度集合")
    due_from: datetime | None = Field(default=None, description="截止时间下界（含）")
    due_to: datetime | None = Field(default=None, description="截止时间上界（含）")
    assignee_ids: list[str] = Field(default_factory=list, description="任一负责人命中即可")

    @property
    def is_empty(self) -> bool:
        return not (
            self.search.strip()
            or self.statuses
            or self.urgencies
            or self.due_from
            or self.due_to
            or self.assignee_ids
        )


class SortSpec(BaseModel):
    """排序规格；key 为 None 时保持输入顺序"""

    key: SortKey | None = None
    direction: SortDirection = SortDirection.ASC


class BoardColumn(BaseModel):
    """看板列（每个规范状态一列）"""

    status: CanonicalStatus
    label: str
    tasks: list[ResolvedTask] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.tasks)


class BoardView(BaseModel):
    """看板输出"""

    columns: list[BoardColumn] = Field(default_factory=list)
    total: int = Field(default=0, description="过滤后任务总数（等于各列之和）")
    filter: FilterSpec = Field(default_factory=FilterSpec)
    sort: SortSpec = Field(default_factory=SortSpec)

    def column(self, status: CanonicalStatus | str) -> BoardColumn | None:
        for column in self.columns:
            if column.status == status:
                return column
        return None

    def column_of(self, task_id: str) -> CanonicalStatus | None:
        """返回任务所在列"""
        for column in self.columns:
            if any(task.id == task_id for task in column.tasks):
                return column.status
        return None
