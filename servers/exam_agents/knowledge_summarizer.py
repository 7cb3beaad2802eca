"""
Knowledge Tree Summarizer - 지식 트리 JSON을 프롬프트용 요약으로 변환
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import json
import logging
import re

logger = logging.getLogger(__name__)

# 노드 이름 후보 필드 (우선순위 순)
TITLE_KEYS = ("id", "name", "title", "label")
# 노드 설명 후보 필드 (우선순위 순)
DESCRIPTION_KEYS = ("知识点描述", "描述", "description")
# 이 접두어로 시작하는 키는 모두 예시 문제로 취급
SAMPLE_QUESTION_PREFIX = "考试题目"
CHILDREN_KEY = "children"

PATH_SEPARATOR = " > "
MAX_HIGHLIGHT_LEAVES = 60
MAX_BRANCH_EXAMPLES = 3
RAW_CONDENSE_LENGTH = 1800
DESCRIPTION_CONDENSE_LENGTH = 240
SAMPLE_QUESTION_CONDENSE_LENGTH = 160

_WHITESPACE = re.compile(r"\s+")

RawKnowledgeNode = Dict[str, Any]


@dataclass(frozen=True)
class FlattenedLeaf:
    """말단 지식점 (트리 순회 중 한 번만 생성)"""
    path: Tuple[str, ...]
    title: str
    description: str = ""
    sample_questions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BranchSummary:
    """하위 노드를 가진 지식점"""
    path: Tuple[str, ...]
    title: str
    child_count: int


@dataclass
class KnowledgeSummary:
    """summarize_knowledge_content 결과"""
    outline: str = ""
    leaf_highlights: str = ""
    detail_map: Dict[str, str] = field(default_factory=dict)
    condensed_raw: str = ""


def condense_text(text: str, max_length: int = 220) -> str:
    """공백을 하나로 합친 뒤 max_length 이내로 자름 (초과 시 말줄임표)"""
    cleaned = _WHITESPACE.sub(" ", text).strip()
    if len(cleaned) <= max_length:
        return cleaned
    return f"{cleaned[:max_length - 1]}…"


def strip_whitespace(text: str) -> str:
    return _WHITESPACE.sub("", text)


def safe_to_string(value: Any) -> str:
    """임의 값을 문자열로 변환 (직렬화 불가 시 빈 문자열)"""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return ""


def first_present(node: RawKnowledgeNode, keys: Tuple[str, ...]) -> str:
    """우선순위 키 중 비어있지 않은 첫 번째 값"""
    for key in keys:
        text = safe_to_string(node.get(key)).strip()
        if text:
            return text
    return ""


def extract_sample_questions(node: RawKnowledgeNode) -> Tuple[str, ...]:
    snippets = []
    for key in node:
        if not key.startswith(SAMPLE_QUESTION_PREFIX):
            continue
        text = safe_to_string(node[key])
        snippet = condense_text(text.split("\n")[0], SAMPLE_QUESTION_CONDENSE_LENGTH)
        if snippet:
            snippets.append(snippet)
    return tuple(snippets)


def flatten_knowledge_tree(
    nodes: List[Any],
) -> Tuple[List[FlattenedLeaf], List[BranchSummary]]:
    """깊이 우선 전위 순회로 말단/분기 노드를 수집 (명시적 스택, 깊이 제한 없음)"""
    leaves: List[FlattenedLeaf] = []
    branches: List[BranchSummary] = []

    stack: List[Tuple[Any, Tuple[str, ...]]] = [(node, ()) for node in reversed(nodes)]
    while stack:
        node, path = stack.pop()
        if not isinstance(node, dict):
            continue

        title = first_present(node, TITLE_KEYS) or f"未命名节点{len(path) + 1}"
        current_path = path + (title,)
        children = node.get(CHILDREN_KEY)
        children = children if isinstance(children, list) else []

        if children:
            branches.append(BranchSummary(path=current_path, title=title, child_count=len(children)))
            stack.extend((child, current_path) for child in reversed(children))
            continue

        leaves.append(FlattenedLeaf(
            path=current_path,
            title=title,
            description=condense_text(first_present(node, DESCRIPTION_KEYS), DESCRIPTION_CONDENSE_LENGTH),
            sample_questions=extract_sample_questions(node),
        ))

    return leaves, branches


def _build_outline(leaves: List[FlattenedLeaf], branches: List[BranchSummary]) -> str:
    lines = [f"知识结构共计 {len(leaves)} 个末级知识点。"]

    # 두 번째 계층만 개요에 포함 (트리 깊이와 무관하게 크기 유지)
    second_tier = [branch for branch in branches if len(branch.path) == 2]
    for index, branch in enumerate(second_tier, start=1):
        depth = len(branch.path)
        under_branch = [leaf for leaf in leaves if leaf.path[:depth] == branch.path]
        examples = "、".join(leaf.title for leaf in under_branch[:MAX_BRANCH_EXAMPLES])
        line = f"{index}. {PATH_SEPARATOR.join(branch.path)}（叶子知识点 {len(under_branch)} 个）"
        if examples:
            line += f"，示例：{examples}"
        lines.append(line)

    return "\n".join(lines)


def _register(detail_map: Dict[str, str], key: str, detail: str):
    """먼저 등록된 값 우선 (덮어쓰지 않음)"""
    normalized = strip_whitespace(key)
    if key and key not in detail_map:
        detail_map[key] = detail
    if normalized and normalized not in detail_map:
        detail_map[normalized] = detail


def _leaf_detail(index: int, leaf: FlattenedLeaf) -> str:
    parts = [f"{index}. {PATH_SEPARATOR.join(leaf.path)}"]
    if leaf.description:
        parts.append(f"描述：{leaf.description}")
    if leaf.sample_questions:
        parts.append(f"典型考题：{leaf.sample_questions[0]}")
    return " | ".join(parts)


def summarize_knowledge_content(raw: Optional[str]) -> KnowledgeSummary:
    """
    지식 트리 JSON 문자열을 개요, 말단 지식점 발췌, 상세 조회표로 변환합니다.

    JSON 파싱에 실패하면 원문을 1800자로 압축해 개요와 발췌에 그대로 사용합니다.

    Args:
        raw (Optional[str]): 지식 트리 JSON (단일 객체 또는 배열)

    Returns:
        KnowledgeSummary: outline, leaf_highlights, detail_map, condensed_raw
    """
    if not raw:
        return KnowledgeSummary()

    condensed_raw = condense_text(raw, RAW_CONDENSE_LENGTH)

    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, RecursionError) as e:
        logger.debug(f"Knowledge tree is not valid JSON, using text fallback: {e}")
        return KnowledgeSummary(
            outline=condensed_raw,
            leaf_highlights=condensed_raw,
            detail_map={},
            condensed_raw=condensed_raw,
        )

    nodes = parsed if isinstance(parsed, list) else [parsed]
    leaves, branches = flatten_knowledge_tree(nodes)

    detail_map: Dict[str, str] = {}
    highlight_entries = []
    for index, leaf in enumerate(leaves[:MAX_HIGHLIGHT_LEAVES], start=1):
        detail = _leaf_detail(index, leaf)
        variants = dict.fromkeys([
            leaf.title.strip(),
            PATH_SEPARATOR.join(leaf.path).strip(),
            PATH_SEPARATOR.join(leaf.path[-2:]).strip(),
        ])
        for key in variants:
            _register(detail_map, key, detail)
        highlight_entries.append(detail)

    for branch in branches:
        path_text = PATH_SEPARATOR.join(branch.path)
        _register(detail_map, path_text.strip(), f"{path_text}（子节点 {branch.child_count} 个）")

    if highlight_entries:
        leaf_highlights = (
            f"重点叶子知识点节选（共 {len(leaves)} 个，展示 {len(highlight_entries)} 个）：\n"
            + "\n".join(highlight_entries)
        )
    else:
        leaf_highlights = f"知识点原始数据：{condensed_raw}"

    logger.debug(f"Knowledge tree flattened: {len(leaves)} leaves, {len(branches)} branches")

    return KnowledgeSummary(
        outline=_build_outline(leaves, branches),
        leaf_highlights=leaf_highlights,
        detail_map=detail_map,
        condensed_raw=condensed_raw,
    )


def lookup_knowledge_detail(detail_map: Dict[str, str], point: str) -> Optional[str]:
    """
    지식점 이름으로 상세 설명 조회.

    정확히 일치 → 공백 제거 후 일치 → 부분 포함(양방향) → 대소문자 무시 포함 순서로 시도하며,
    처음 찾은 결과를 반환합니다.
    """
    trimmed = point.strip()
    if not trimmed:
        return None

    normalized = strip_whitespace(trimmed)
    if trimmed in detail_map:
        return detail_map[trimmed]
    if normalized in detail_map:
        return detail_map[normalized]

    for key, detail in detail_map.items():
        if key == trimmed:
            return detail

    for key, detail in detail_map.items():
        if trimmed in key or key in trimmed:
            return detail

    lowered = trimmed.lower()
    for key, detail in detail_map.items():
        if lowered in key.lower():
            return detail

    return None
