"""
Neo4j 지식 그래프 저장소 (개념 경로 조회, 학습 경로 노드/관계 병합)
"""
from typing import Any, Dict, List, Optional
import asyncio
import logging

from langchain_neo4j import Neo4jGraph

from config import Config

logger = logging.getLogger(__name__)

NO_DATA = "No data found"
PATH_LIMIT = 200
QUESTION_PATH_LIMIT = 30
LEARNING_PATH_TAG = "learning_path"

CONCEPT_PATHS_QUERY = """
CALL db.index.fulltext.queryNodes("concept_fulltext_index", $content)
YIELD node, score
WITH node, score
ORDER BY score DESC
LIMIT 1
OPTIONAL MATCH p1 = (:Concept)-[r1:HAS_PART]->(n)-[*1..5]-()
WHERE n.id = node.id
OPTIONAL MATCH p2 = (m)-[*1..3]-()-[]-()
WHERE m.id = node.id
RETURN COALESCE(p1, p2, '') AS result LIMIT $limit
"""

QUESTION_PATHS_QUERY = """
CALL db.index.fulltext.queryNodes("concept_fulltext_index", $content)
YIELD node, score
WITH node, score
ORDER BY score DESC
LIMIT 1
MATCH p = (:Concept)-[r1:HAS_PART]->(n)-[*1..2]->()
WHERE n.id = node.id
RETURN p AS result LIMIT $limit
"""

MERGE_CONCEPTS_QUERY = """
UNWIND $list AS item
MERGE (n:Concept {id: item})
ON CREATE SET n.tag = $tag
RETURN n.id AS name, elementId(n) AS id
"""

LINK_CONCEPTS_QUERY = """
MATCH (a {id: $start_name})
UNWIND $end_names AS end_name
MATCH (b:Concept {id: end_name})
WITH a, collect(b) AS related_nodes
UNWIND related_nodes AS b
MERGE (a)-[r:HAS_PART]->(b)
ON CREATE SET r.tag = $tag
"""


def path_to_text(path: Any, separator: str = ">") -> str:
    """경로를 'CATEGORY'와 'id'를 가진 노드 id 순서 문자열로 변환 (기본 '>' 구분)"""
    if not path:
        return NO_DATA

    ids: List[str] = []
    # 경로는 노드(dict)와 관계(tuple)가 교대로 나열됨
    for element in path if isinstance(path, list) else []:
        if isinstance(element, dict) and element.get("CATEGORY") and element.get("id"):
            node_id = str(element["id"])
            if node_id not in ids:
                ids.append(node_id)
    return separator.join(ids)


class KnowledgeGraphStore:
    """Neo4jGraph 래퍼. 드라이버 호출은 스레드에서 실행합니다."""

    def __init__(self, graph: Optional[Neo4jGraph] = None):
        self._graph = graph

    @property
    def graph(self) -> Neo4jGraph:
        if self._graph is None:
            self._graph = Neo4jGraph(
                url=Config.NEO4J_URI,
                username=Config.NEO4J_USERNAME,
                password=Config.NEO4J_PASSWORD,
                refresh_schema=False,
            )
            logger.info("Neo4j connection established")
        return self._graph

    async def _query(self, query: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.graph.query, query, params)

    async def query_concept_paths(self, content: str) -> str:
        """전문 검색 최상위 개념 주변의 경로 목록 (줄바꿈 구분)"""
        records = await self._query(CONCEPT_PATHS_QUERY, {"content": content, "limit": PATH_LIMIT})
        logger.debug(f"Concept path query for {content!r} returned {len(records)} rows")
        return "\n".join(path_to_text(record.get("result")) for record in records)

    async def query_question_paths(self, content: str) -> str:
        """출제용 하위 개념 경로 (HAS_PART 아래 1-2단계, '->' 구분)"""
        records = await self._query(QUESTION_PATHS_QUERY, {"content": content, "limit": QUESTION_PATH_LIMIT})
        logger.debug(f"Question path query for {content!r} returned {len(records)} rows")
        return "\n".join(path_to_text(record.get("result"), separator="->") for record in records)

    async def merge_concepts(self, names: List[str]) -> List[Dict[str, str]]:
        """Concept 노드 병합 후 [{name, id}] 반환 (id는 elementId)"""
        if not names:
            return []
        records = await self._query(MERGE_CONCEPTS_QUERY, {"list": names, "tag": LEARNING_PATH_TAG})
        return [{"name": record["name"], "id": record["id"]} for record in records]

    async def link_concepts(self, start_name: str, end_names: List[str]):
        """start_name 노드에서 각 개념으로 HAS_PART 관계 병합"""
        if not end_names:
            return
        await self._query(LINK_CONCEPTS_QUERY, {
            "start_name": start_name,
            "end_names": end_names,
            "tag": LEARNING_PATH_TAG,
        })
