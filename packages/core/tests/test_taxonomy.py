"""StatusTaxonomy 单元测试

测试内容：
1. 所有已知别名映射到唯一规范值
2. 未知标签原样返回（幂等透传）
3. 规范值 -> 本地化显示标签，未知 locale 回退
4. 自定义别名表
"""

import pytest
from crmboard.core.models.enums import CanonicalStatus, CanonicalUrgency, Locale
from crmboard.core.taxonomy import AliasEntry, StatusTaxonomy, default_taxonomy


class TestToCanonical:
    """标签 -> 规范值"""

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("todo", CanonicalStatus.TODO),
            ("לביצוע", CanonicalStatus.TODO),
            ("להתחלה", CanonicalStatus.TODO),
            ("ממתין", CanonicalStatus.TODO),
            ("in_progress", CanonicalStatus.IN_PROGRESS),
            ("בתהליך", CanonicalStatus.IN_PROGRESS),
            ("בביצוע", CanonicalStatus.IN_PROGRESS),
            ("done", CanonicalStatus.DONE),
            ("completed", CanonicalStatus.DONE),
            ("הושלם", CanonicalStatus.DONE),
        ],
    )
    def test_status_aliases(self, label: str, expected: CanonicalStatus):
        """历史与现行状态标签映射到同一规范值"""
        assert default_taxonomy.to_canonical_status(label) == expected
        assert default_taxonomy.to_canonical(label) == expected

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("low", CanonicalUrgency.LOW),
            ("נמוכה", CanonicalUrgency.LOW),
            ("נמוך", CanonicalUrgency.LOW),
            ("medium", CanonicalUrgency.MEDIUM),
            ("normal", CanonicalUrgency.MEDIUM),
            ("בינונית", CanonicalUrgency.MEDIUM),
            ("בינוני", CanonicalUrgency.MEDIUM),
            ("high", CanonicalUrgency.HIGH),
            ("גבוהה", CanonicalUrgency.HIGH),
            ("גבוה", CanonicalUrgency.HIGH),
        ],
    )
    def test_urgency_aliases(self, label: str, expected: CanonicalUrgency):
        assert default_taxonomy.to_canonical_urgency(label) == expected
        assert default_taxonomy.to_canonical(label) == expected

    def test_ascii_codes_case_insensitive_and_trimmed(self):
        assert default_taxonomy.to_canonical_status("  DONE ") == CanonicalStatus.DONE
        assert default_taxonomy.to_canonical_urgency("High") == CanonicalUrgency.HIGH

    def test_canonical_value_is_fixed_point(self):
        """规范值再次映射不变"""
        for status in CanonicalStatus:
            assert default_taxonomy.to_canonical_status(status) is status
        for urgency in CanonicalUrgency:
            assert default_taxonomy.to_canonical_urgency(urgency) is urgency

    @pytest.mark.parametrize("label", ["archived", "בארכיון", ""])
    def test_unknown_label_passes_through(self, label: str):
        """未知标签原样返回，不抛异常"""
        assert default_taxonomy.to_canonical(label) == label
        assert default_taxonomy.to_canonical_status(label) == label
        # 透传结果再次映射仍不变
        assert default_taxonomy.to_canonical(default_taxonomy.to_canonical(label)) == label

    def test_status_and_urgency_tables_are_disjoint(self):
        assert default_taxonomy.is_status("הושלם")
        assert not default_taxonomy.is_urgency("הושלם")
        assert default_taxonomy.is_urgency("גבוה")
        assert not default_taxonomy.is_status("גבוה")

    def test_labels_for_lists_equivalence_class(self):
        labels = default_taxonomy.labels_for(CanonicalStatus.IN_PROGRESS)
        assert {"in_progress", "בתהליך", "בביצוע"} <= set(labels)
        assert "הושלם" not in labels


class TestToDisplay:
    """规范值 -> 显示标签"""

    def test_hebrew_is_default(self):
        assert default_taxonomy.to_display(CanonicalStatus.TODO) == "לביצוע"
        assert default_taxonomy.to_display(CanonicalUrgency.MEDIUM) == "בינונית"

    def test_english_labels(self):
        assert default_taxonomy.to_display(CanonicalStatus.DONE, Locale.EN) == "Done"
        assert default_taxonomy.to_display("high", "en") == "High"

    def test_unknown_locale_falls_back_to_default(self):
        assert default_taxonomy.to_display(CanonicalStatus.DONE, "fr") == "הושלם"

    def test_unknown_canonical_passes_through(self):
        assert default_taxonomy.to_display("archived", Locale.EN) == "archived"

    def test_round_trip_through_display_label(self):
        """显示标签本身也是已登记的别名"""
        for status in CanonicalStatus:
            label = default_taxonomy.to_display(status, Locale.HE)
            assert default_taxonomy.to_canonical_status(label) == status


class TestCustomTable:
    """自定义别名表"""

    def test_new_alias_is_a_table_entry(self):
        aliases = [
            AliasEntry(label="open", canonical="todo", kind="status"),
            AliasEntry(label="closed", canonical="done", kind="status"),
            AliasEntry(label="urgent", canonical="high", kind="urgency"),
        ]
        taxonomy = StatusTaxonomy(aliases=aliases)
        assert taxonomy.to_canonical_status("closed") == CanonicalStatus.DONE
        assert taxonomy.to_canonical_urgency("urgent") == CanonicalUrgency.HIGH
        # 默认表项不再生效
        assert taxonomy.to_canonical_status("הושלם") == "הושלם"

    def test_invalid_canonical_rejected_at_construction(self):
        with pytest.raises(ValueError):
            StatusTaxonomy(aliases=[AliasEntry(label="x", canonical="nope", kind="status")])
