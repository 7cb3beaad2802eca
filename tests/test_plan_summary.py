"""Tests for plan detail statistics and text summaries."""

from servers.portrait_engine.plan_summary import (
    AnswerStats,
    aggregate_stats,
    build_plan_summary,
    compute_local_stats,
    format_student_info,
    truncate_text,
)

PLAN = [
    {
        "node_id": "n1",
        "node_name": "煤矸石",
        "conversations": ["煤矸石为什么会自燃？"],
        "answer_details": [
            {"stem": "单选", "opts": ["A", "B"], "ans": ["A"], "user_ans": ["A"], "score": 1},
            {"stem": "多选", "ans": ["A", "C"], "user_ans": ["C", " A "]},
            {"stem": "错题", "ans": ["B"], "user_ans": ["D"], "feedback": "概念混淆"},
        ],
        "plan_detail": [
            {
                "node_name": "煤矸石的组分",
                "answer_details": [
                    {"stem": "主观", "user_ans": ["回答"]},
                    {"ans": ["B"], "user_ans": []},
                ],
            }
        ],
    }
]


class TestStats:
    def test_local_stats_use_set_equality(self) -> None:
        assert compute_local_stats(PLAN[0]) == AnswerStats(total=3, answered=3, correct=2)

    def test_aggregate_is_recursive(self) -> None:
        assert aggregate_stats(PLAN) == AnswerStats(total=4, answered=4, correct=2)

    def test_accuracy(self) -> None:
        assert AnswerStats(total=3, answered=3, correct=2).accuracy == "66.7%"
        assert AnswerStats().accuracy == "无可比对"

    def test_missing_node(self) -> None:
        assert compute_local_stats(None) == AnswerStats()


class TestBuildPlanSummary:
    def test_header_and_nested_lines(self) -> None:
        lines = build_plan_summary(PLAN).split("\n")

        assert lines[0] == "整体答题统计: 标准题目4题，已作答4题，参考答案完全匹配2题，正确率50.0%"
        assert lines[1] == "- 节点: 煤矸石 (ID: n1)"
        assert lines[2] == "  路径: 煤矸石"
        assert lines[3].startswith("  答题统计: 标准题目3题")
        assert lines[4] == "  提问记录: 煤矸石为什么会自燃？"
        assert "    选项: A | B" in lines
        assert "    得分或评价: 1" in lines
        assert "    反馈: 概念混淆" in lines
        assert "  - 节点: 煤矸石的组分" in lines
        assert "    路径: 煤矸石 > 煤矸石的组分" in lines
        assert "    练习1: 主观" in lines
        assert "    练习2: 未提供题干" in lines

    def test_unnamed_node(self) -> None:
        summary = build_plan_summary([{"node_id": "7"}])
        assert "- 节点: 未命名节点7 (ID: 7)" in summary
        assert "答题统计" not in summary.split("\n", 1)[1]

    def test_empty_plan(self) -> None:
        assert build_plan_summary([]) == "未提供学习计划与作答数据。"
        assert build_plan_summary(None) == "未提供学习计划与作答数据。"


class TestFormatStudentInfo:
    def test_present_fields(self) -> None:
        assert format_student_info({"grade": "大三", "grasp_level": "中等"}) == "年级: 大三； 自评掌握程度: 中等"

    def test_missing(self) -> None:
        assert format_student_info(None) == "未提供学生信息。"
        assert format_student_info({"user_id": "42"}) == "未提供详细的学生背景。"


class TestTruncateText:
    def test_marks_full_length(self) -> None:
        result = truncate_text("x" * 12, 5)
        assert result == "xxxxx\n...[已截断，原始长度 12 字符]"

    def test_short_text_untouched(self) -> None:
        assert truncate_text("短文本") == "短文本"
        assert truncate_text("") == ""
