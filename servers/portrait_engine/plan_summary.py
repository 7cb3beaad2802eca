"""
학습 계획/답안 기록 요약 (LLM 입력용 텍스트)
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import utils

TEXT_SUMMARY_MAX_LENGTH = 50000
NO_PLAN_DATA = "未提供学习计划与作答数据。"

PlanDetailNode = Dict[str, Any]


@dataclass
class AnswerStats:
    total: int = 0
    answered: int = 0
    correct: int = 0

    def __add__(self, other: "AnswerStats") -> "AnswerStats":
        return AnswerStats(
            total=self.total + other.total,
            answered=self.answered + other.answered,
            correct=self.correct + other.correct,
        )

    @property
    def accuracy(self) -> str:
        if self.total == 0:
            return "无可比对"
        return f"{self.correct / self.total * 100:.1f}%"

    def describe(self) -> str:
        return (
            f"标准题目{self.total}题，已作答{self.answered}题，"
            f"参考答案完全匹配{self.correct}题，正确率{self.accuracy}"
        )


def truncate_text(value: str, max_length: int = TEXT_SUMMARY_MAX_LENGTH) -> str:
    return utils.truncate_text(value, max_length)


def _normalized_answers(values: Optional[List[Any]]) -> List[str]:
    return [text for text in (utils.normalize_value(value) for value in values or []) if text]


def compute_local_stats(node: Optional[PlanDetailNode]) -> AnswerStats:
    """노드 자신의 답안만 집계 (정답 판정은 집합 완전 일치)"""
    stats = AnswerStats()
    for detail in (node or {}).get("answer_details") or []:
        standard = _normalized_answers(detail.get("ans"))
        user = _normalized_answers(detail.get("user_ans"))
        if standard:
            stats.total += 1
        if user:
            stats.answered += 1
        if standard and user and set(standard) == set(user):
            stats.correct += 1
    return stats


def aggregate_stats(nodes: Optional[List[PlanDetailNode]]) -> AnswerStats:
    """하위 계획까지 재귀 집계"""
    stats = AnswerStats()
    for node in nodes or []:
        stats = stats + compute_local_stats(node) + aggregate_stats(node.get("plan_detail"))
    return stats


def _join_values(values: List[Any]) -> str:
    return " | ".join(utils.normalize_value(value) for value in values)


def _answer_detail_lines(indent: str, index: int, detail: Dict[str, Any]) -> List[str]:
    lines = [f"{indent}  练习{index}: {detail.get('stem') or '未提供题干'}"]
    if detail.get("opts"):
        lines.append(f"{indent}    选项: {_join_values(detail['opts'])}")
    if detail.get("ans"):
        lines.append(f"{indent}    参考答案: {_join_values(detail['ans'])}")
    if detail.get("user_ans"):
        lines.append(f"{indent}    学生作答: {_join_values(detail['user_ans'])}")
    if detail.get("score") not in (None, ""):
        lines.append(f"{indent}    得分或评价: {detail['score']}")
    if detail.get("analysis"):
        lines.append(f"{indent}    解析: {detail['analysis']}")
    if detail.get("feedback"):
        lines.append(f"{indent}    反馈: {detail['feedback']}")
    if detail.get("knowledge_points"):
        lines.append(f"{indent}    涉及知识点: {' | '.join(detail['knowledge_points'])}")
    return lines


def summarize_plan_nodes(
    nodes: Optional[List[PlanDetailNode]],
    depth: int = 0,
    path: Optional[List[str]] = None
) -> List[str]:
    """계획 트리를 들여쓰기된 줄 목록으로 변환"""
    path = path or []
    lines: List[str] = []

    for node in nodes or []:
        indent = "  " * depth
        node_id = node.get("node_id")
        display_name = node.get("node_name") or f"未命名节点{node_id or ''}"
        node_path = path + [display_name]

        lines.append(f"{indent}- 节点: {display_name}{f' (ID: {node_id})' if node_id else ''}")
        lines.append(f"{indent}  路径: {' > '.join(node_path)}")

        stats = compute_local_stats(node)
        if stats.total > 0 or stats.answered > 0:
            lines.append(f"{indent}  答题统计: {stats.describe()}")

        if node.get("conversations"):
            lines.append(f"{indent}  提问记录: {'； '.join(node['conversations'])}")

        for index, detail in enumerate(node.get("answer_details") or [], start=1):
            lines.extend(_answer_detail_lines(indent, index, detail))

        if node.get("plan_detail"):
            lines.extend(summarize_plan_nodes(node["plan_detail"], depth + 1, node_path))

    return lines


def build_plan_summary(nodes: Optional[List[PlanDetailNode]]) -> str:
    if not nodes:
        return NO_PLAN_DATA

    header = f"整体答题统计: {aggregate_stats(nodes).describe()}"
    return "\n".join([header, *summarize_plan_nodes(nodes)])


def format_student_info(info: Optional[Dict[str, Any]]) -> str:
    if not info:
        return "未提供学生信息。"

    parts = [
        f"年级: {info['grade']}" if info.get("grade") else "",
        f"专业: {info['major']}" if info.get("major") else "",
        f"专业背景: {info['major_background']}" if info.get("major_background") else "",
        f"自评掌握程度: {info['grasp_level']}" if info.get("grasp_level") else "",
    ]
    parts = [part for part in parts if part]
    return "； ".join(parts) if parts else "未提供详细的学生背景。"
