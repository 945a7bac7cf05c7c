"""引用数据模型 -- Customer / Project / User

这些集合只读：看板只读取 id、显示名和少量联系字段用于反规范化，
生命周期由 CRM 其他部分负责。
"""

from typing import Any

from pydantic import BaseModel, Field


def _pick(data: dict[str, Any], *keys: str, default: Any = "") -> Any:
    """按顺序取第一个非空字段（兼容 PascalCase 与 camelCase 两种写法）"""
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return default


class CustomerRecord(BaseModel):
    """客户记录（远端 Customers 集合使用 PascalCase 字段）"""

    id: str
    name: str = Field(default="", description="名")
    last_name: str = Field(default="", description="姓")
    company_name: str = Field(default="")
    email: str = Field(default="")
    phone: str = Field(default="")
    is_deleted: bool = Field(default=False)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "CustomerRecord":
        return cls(
            id=doc_id,
            name=str(_pick(data, "Name", "name", "firstName")),
            last_name=str(_pick(data, "LastName", "lastName")),
            company_name=str(_pick(data, "CompanyName", "companyName")),
            email=str(_pick(data, "Email", "email")),
            phone=str(_pick(data, "Phone", "phone")),
            is_deleted=bool(_pick(data, "IsDeleted", "isDeleted", default=False)),
        )


class ProjectRecord(BaseModel):
    """项目记录"""

    id: str
    name: str = Field(default="")
    status: str = Field(default="", description="存储的项目状态标签")
    customer_id: str = Field(default="")

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "ProjectRecord":
        return cls(
            id=doc_id,
            name=str(_pick(data, "name", "Name")),
            status=str(_pick(data, "status")),
            customer_id=str(_pick(data, "customerId")),
        )


class UserRecord(BaseModel):
    """用户记录"""

    id: str
    email: str = Field(default="")
    name: str = Field(default="")
    first_name: str = Field(default="")
    last_name: str = Field(default="")
    display_name: str = Field(default="")

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "UserRecord":
        return cls(
            id=doc_id,
            email=str(_pick(data, "email")),
            name=str(_pick(data, "name")),
            first_name=str(_pick(data, "firstName")),
            last_name=str(_pick(data, "lastName")),
            display_name=str(_pick(data, "displayName")),
        )

    @property
    def label(self) -> str:
        """显示名：名+姓，否则 name，否则 email，否则 id"""
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.name or self.display_name or self.email or self.id


class AssigneeSummary(BaseModel):
    id: str
    display_name: str


class ProjectSummary(BaseModel):
    id: str
    name: str
    status: str


class CustomerSummary(BaseModel):
    id: str
    name: str
    last_name: str

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.last_name}".strip()
