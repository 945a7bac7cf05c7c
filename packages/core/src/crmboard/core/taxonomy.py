"""StatusTaxonomy -- 状态/紧急程度词表映射

规范值 <-> 本地化显示标签的双向查找表。历史标签（旧版希伯来语标签、
内部短码）作为表项登记，映射到同一规范值；新增别名只需加表项，不加分支。

查找是全函数：无法识别的输入原样返回并记录 warning（数据质量信号），
保证 UI 仍能渲染。
"""

from typing import Literal

import structlog
from pydantic import BaseModel, Field

from .models.enums import CanonicalStatus, CanonicalUrgency, Locale

log = structlog.get_logger()

AliasKind = Literal["status", "urgency"]


class AliasEntry(BaseModel):
    """单个别名表项"""

    label: str = Field(description="输入标签（任意词表）")
    canonical: str = Field(description="对应规范值")
    kind: AliasKind = Field(description="status / urgency")


def _get_default_aliases() -> list[AliasEntry]:
    """默认别名表：规范短码、英文变体、现行与历史希伯来语标签"""
    table: dict[AliasKind, dict[str, tuple[str, ...]]] = {
        "status": {
            CanonicalStatus.TODO: ("todo", "to_do", "pending", "לביצוע", "להתחלה", "ממתין"),
            CanonicalStatus.IN_PROGRESS: (
                "in_progress",
                "in-progress",
                "doing",
                "בתהליך",
                "בביצוע",
            ),
            CanonicalStatus.DONE: ("done", "completed", "complete", "הושלם"),
        },
        "urgency": {
            CanonicalUrgency.LOW: ("low", "נמוכה", "נמוך"),
            CanonicalUrgency.MEDIUM: ("medium", "normal", "בינונית", "בינוני"),
            CanonicalUrgency.HIGH: ("high", "גבוהה", "גבוה"),
        },
    }
    return [
        AliasEntry(label=label, canonical=canonical, kind=kind)
        for kind, groups in table.items()
        for canonical, labels in groups.items()
        for label in labels
    ]


# 显示标签：locale -> 规范值 -> 标签
DEFAULT_DISPLAY_LABELS: dict[Locale, dict[str, str]] = {
    Locale.HE: {
        CanonicalStatus.TODO: "לביצוע",
        CanonicalStatus.IN_PROGRESS: "בתהליך",
        CanonicalStatus.DONE: "הושלם",
        CanonicalUrgency.LOW: "נמוכה",
        CanonicalUrgency.MEDIUM: "בינונית",
        CanonicalUrgency.HIGH: "גבוהה",
    },
    Locale.EN: {
        CanonicalStatus.TODO: "To do",
        CanonicalStatus.IN_PROGRESS: "In progress",
        CanonicalStatus.DONE: "Done",
        CanonicalUrgency.LOW: "Low",
        CanonicalUrgency.MEDIUM: "Medium",
        CanonicalUrgency.HIGH: "High",
    },
}

DEFAULT_LOCALE = Locale.HE


class StatusTaxonomy:
    """状态/紧急程度词表 -- 纯查找，无 I/O、无可变状态

    构造后查找表不再变化。
    """

    def __init__(
        self,
        aliases: list[AliasEntry] | None = None,
        display_labels: dict[Locale, dict[str, str]] | None = None,
        default_locale: Locale = DEFAULT_LOCALE,
    ) -> None:
        """初始化词表

        Args:
            aliases: 别名表项，None 时使用默认表
            display_labels: 显示标签表，None 时使用默认表
            default_locale: 未知 locale 时的回退语言
        """
        alias_list = aliases if aliases is not None else _get_default_aliases()
        self._status: dict[str, CanonicalStatus] = {}
        self._urgency: dict[str, CanonicalUrgency] = {}
        for entry in alias_list:
            if entry.kind == "status":
                self._status[self._key(entry.label)] = CanonicalStatus(entry.canonical)
            else:
                self._urgency[self._key(entry.label)] = CanonicalUrgency(entry.canonical)
        self._display = display_labels if display_labels is not None else DEFAULT_DISPLAY_LABELS
        self._default_locale = default_locale

    @staticmethod
    def _key(label: str) -> str:
        # ASCII 短码大小写不敏感；希伯来语无大小写，casefold 不影响
        return label.strip().casefold()

    def to_canonical_status(self, label: str) -> CanonicalStatus | str:
        """状态标签 -> 规范状态；无法识别时原样返回"""
        if isinstance(label, CanonicalStatus):
            return label
        canonical = self._status.get(self._key(str(label)))
        if canonical is None:
            log.warning("unknown_status_label", label=label)
            return label
        return canonical

    def to_canonical_urgency(self, label: str) -> CanonicalUrgency | str:
        """紧急程度标签 -> 规范值；无法识别时原样返回"""
        if isinstance(label, CanonicalUrgency):
            return label
        canonical = self._urgency.get(self._key(str(label)))
        if canonical is None:
            log.warning("unknown_urgency_label", label=label)
            return label
        return canonical

    def to_canonical(self, label: str) -> CanonicalStatus | CanonicalUrgency | str:
        """任意标签 -> 规范值（先查状态表，再查紧急程度表）

        行为规则:
            1. 状态表命中 -> CanonicalStatus
            2. 紧急程度表命中 -> CanonicalUrgency
            3. 都不匹配 -> 原样返回并记录 warning
        """
        if isinstance(label, (CanonicalStatus, CanonicalUrgency)):
            return label
        key = self._key(str(label))
        if key in self._status:
            return self._status[key]
        if key in self._urgency:
            return self._urgency[key]
        log.warning("unknown_taxonomy_label", label=label)
        return label

    def is_status(self, label: str) -> bool:
        return self._key(str(label)) in self._status

    def is_urgency(self, label: str) -> bool:
        return self._key(str(label)) in self._urgency

    def to_display(self, canonical: str, locale: Locale | str | None = None) -> str:
        """规范值 -> 本地化显示标签

        未知 locale 回退到默认语言；未知规范值原样返回。
        """
        try:
            effective = Locale(locale) if locale else self._default_locale
        except ValueError:
            log.warning("unknown_locale_fallback", locale=locale)
            effective = self._default_locale
        labels = self._display.get(effective) or self._display.get(self._default_locale, {})
        return labels.get(str(canonical), str(canonical))

    def labels_for(self, canonical: str) -> list[str]:
        """列出映射到同一规范值的所有输入标签（等价类）"""
        table: dict = self._status if canonical in set(CanonicalStatus) else self._urgency
        return sorted(label for label, value in table.items() if value == canonical)


# 模块级默认实例
default_taxonomy = StatusTaxonomy()
