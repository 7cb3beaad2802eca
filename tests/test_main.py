"""HTTP surface tests (workflows replaced with mocks, lifespan not started)."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from main import app
from servers.exam_agents.state import ProcessingPhase
from servers.exam_agents.workflow import save_progress

AUTH = {"email": "t@example.com", "password": "pw", "authorization": "token"}


@pytest.fixture
def services():
    services = MagicMock()
    services.exam.generate_exam = AsyncMock(return_value=[{"Type": "SingleChoice"}])
    services.quiz.generate_quiz = AsyncMock(return_value=[{"Type": "ShortAnswer"}])
    services.data_synthesis.synthesize = AsyncMock(return_value=[{"question": "问"}])
    services.graph_questions.generate = AsyncMock(return_value=[{"Type": "ShortAnswer", "TypeText": "主观题"}])
    services.single_question.generate = AsyncMock(return_value={"Type": "MultipleChoice", "Difficulty": 2})
    services.learning_path.generate_path = AsyncMock(return_value=[{"name": "甲", "id": "1"}])
    services.sub_path.expand = AsyncMock(return_value=[{"name": "乙", "id": "2"}])
    services.portrait.generate_portrait = AsyncMock(return_value={"portrait": None, "portrait_markdown": "# 画像"})
    app.state.services = services
    yield services
    del app.state.services


@pytest.fixture
def client(services) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestExamEndpoint:
    def test_generates_exam(self, client: TestClient, services) -> None:
        tree = [{"name": "煤矸石"}]
        response = client.post("/api/exam", json={
            "session_id": "abc",
            "course_title": "环境工程",
            "knowledge_tree": tree,
        })

        assert response.status_code == 200
        assert response.json() == {"session_id": "abc", "questions": [{"Type": "SingleChoice"}]}
        services.exam.generate_exam.assert_awaited_once_with(
            session_id="abc",
            course_title="环境工程",
            knowledge_tree=json.dumps(tree, ensure_ascii=False),
            student_profile={},
        )

    def test_session_id_is_generated(self, client: TestClient) -> None:
        response = client.post("/api/exam", json={"course_title": "课", "knowledge_tree": "{}"})
        assert len(response.json()["session_id"]) == 8

    def test_value_error_maps_to_422(self, client: TestClient, services) -> None:
        services.exam.generate_exam.side_effect = ValueError("plan_item missing")

        response = client.post("/api/exam", json={"course_title": "课", "knowledge_tree": "{}"})

        assert response.status_code == 422
        assert response.json() == {"error": "plan_item missing"}

    def test_unexpected_error_maps_to_500(self, client: TestClient, services) -> None:
        services.exam.generate_exam.side_effect = RuntimeError("model unavailable")

        response = client.post("/api/exam", json={"course_title": "课", "knowledge_tree": "{}"})

        assert response.status_code == 500
        assert response.json() == {"error": "RuntimeError: model unavailable"}


class TestOtherEndpoints:
    def test_quiz(self, client: TestClient, services) -> None:
        response = client.post("/api/quiz", json={
            "knowledge_point_name": "煤矸石",
            "sample_questions": ["一", "二", "三"],
        })
        assert response.json() == {"questions": [{"Type": "ShortAnswer"}]}

    def test_data_synthesis(self, client: TestClient, services) -> None:
        response = client.post("/api/data-synthesis", json={"input": "煤矸石", "supabase_auth": AUTH})

        assert response.json() == {"chunk_analysis": [{"question": "问"}]}
        query, auth = services.data_synthesis.synthesize.call_args.args
        assert query == "煤矸石"
        assert auth.authorization == "token"

    def test_graph_questions(self, client: TestClient, services) -> None:
        response = client.post("/api/graph-questions", json={"input": "煤矸石", "user_data": {"grade": "大三"}})

        assert response.json() == {"questions": [{"Type": "ShortAnswer", "TypeText": "主观题"}]}
        services.graph_questions.generate.assert_awaited_once_with(
            topic="煤矸石", descriptions="", user_data={"grade": "大三"}
        )

    def test_single_question(self, client: TestClient, services) -> None:
        response = client.post("/api/single-question", json={
            "knowledge_point": "煤矸石",
            "question_history": [{"question": "旧题"}],
            "difficulty": 2,
        })

        assert response.json() == {"question": {"Type": "MultipleChoice", "Difficulty": 2}}
        services.single_question.generate.assert_awaited_once_with(
            knowledge_point="煤矸石",
            knowledge_descriptions="",
            question_history=[{"question": "旧题", "complete": ""}],
            question_type=1,
            difficulty=2,
        )

    def test_learning_path(self, client: TestClient) -> None:
        response = client.post("/api/learning-path", json={"content": "煤矸石", "supabase_auth": AUTH})
        assert response.json() == {"path": [{"name": "甲", "id": "1"}]}

    def test_learning_path_expand(self, client: TestClient, services) -> None:
        response = client.post("/api/learning-path/expand", json={
            "content": "煤矸石",
            "knowledge_point": "甲",
            "learning_path": [{"name": "甲", "id": "1"}],
            "supabase_auth": AUTH,
        })

        assert response.json() == {"path": [{"name": "乙", "id": "2"}]}
        assert services.sub_path.expand.call_args.kwargs["knowledge_point"] == "甲"

    def test_student_portrait(self, client: TestClient) -> None:
        response = client.post("/api/student-portrait", json={"theme": "煤矸石"})
        assert response.json() == {"portrait": None, "portrait_markdown": "# 画像"}

    def test_missing_field_is_rejected(self, client: TestClient) -> None:
        response = client.post("/api/data-synthesis", json={"input": "煤矸石"})
        assert response.status_code == 422


class TestProgressEndpoint:
    def test_waiting_when_no_record(self, client: TestClient) -> None:
        body = client.get("/api/progress/none").json()
        assert body["current_phase"] == "waiting"
        assert body["progress_percent"] == 0

    def test_returns_saved_record(self, client: TestClient) -> None:
        save_progress("s1", ProcessingPhase.EXAM_PLANNING, "命题蓝图设计", "进行中", 30)

        body = client.get("/api/progress/s1").json()

        assert body["current_phase"] == "exam_planning"
        assert body["progress_percent"] == 30
        assert body["phase_info"]["name"] == "命题蓝图设计"

    def test_invalid_session_id_is_rejected(self, client: TestClient) -> None:
        response = client.get("/api/progress/bad.id")

        assert response.status_code == 422
        assert "invalid session_id" in response.json()["error"]


class TestSessionIdValidation:
    def test_exam_rejects_traversal_session_id(self, client: TestClient, services) -> None:
        response = client.post("/api/exam", json={
            "session_id": "../../etc/passwd",
            "course_title": "课",
            "knowledge_tree": "{}",
        })

        assert response.status_code == 422
        services.exam.generate_exam.assert_not_awaited()
