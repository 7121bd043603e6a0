from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


@pytest.fixture(autouse=True)
def fresh_db(tmp_path):
    """Use a temp file DB for each test."""
    from quizpath import db
    db_path = tmp_path / "test.db"
    db.DB_PATH = db_path
    db.init_db()
    yield
    if db_path.exists():
        db_path.unlink()


from quizpath.app import create_app
from quizpath.notifications import InMemoryNotificationSink
from quizpath.question_bank import QuestionBank

RAW_BANK = {
    "subjects": [
        {
            "subject_name": "Math",
            "slug": "math",
            "topics": [
                {
                    "topic_id": "math_add",
                    "title": "Addition",
                    "questions": [
                        {"q": "1+1?", "options": ["A. 2", "B. 3"], "answer": "A"},
                        {"q": "2+2?", "options": ["A. 3", "B. 4"], "answer": "B"},
                    ],
                },
            ],
        },
        {
            "subject_name": "Physics",
            "slug": "physics",
            "topics": [
                {
                    "topic_id": "phys_units",
                    "title": "Units",
                    "questions": [{"q": "SI unit of force?", "options": ["A. N", "B. J"], "answer": "A"}],
                }
            ],
        },
    ]
}


@pytest.fixture
def sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()


@pytest.fixture
def client(sink) -> TestClient:
    return TestClient(create_app(bank=QuestionBank.from_dict(RAW_BANK), sink=sink))


def _register(client: TestClient, name: str = "Ada") -> dict[str, str]:
    response = client.post("/api/users", json={"name": name})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


def _submit(client: TestClient, headers: dict[str, str], answer: str = "A", question_id: str = "math_add_Q1"):
    return client.post(
        "/api/progress/submit-answer",
        json={"topic_id": "math_add", "question_id": question_id, "user_answer": answer, "time_taken": 3},
        headers=headers,
    )


def test_health(client: TestClient) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"


def test_register_returns_user_and_token(client: TestClient) -> None:
    response = client.post("/api/users", json={"name": "Ada"})
    assert response.status_code == 201
    body = response.json()
    assert body["user"]["name"] == "Ada"
    assert body["user"]["role"] == "user"
    assert body["token"]


def test_register_rejects_empty_name(client: TestClient) -> None:
    response = client.post("/api/users", json={"name": ""})
    assert response.status_code == 422


def test_protected_route_without_token(client: TestClient) -> None:
    response = client.get("/api/quiz/subjects")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "AUTH_REQUIRED"


def test_protected_route_with_bad_token(client: TestClient) -> None:
    response = client.get("/api/quiz/subjects", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_subjects_and_topics(client: TestClient) -> None:
    headers = _register(client)
    subjects = client.get("/api/quiz/subjects", headers=headers).json()["subjects"]
    assert [item["slug"] for item in subjects] == ["math", "physics"]

    subject = client.get("/api/quiz/subjects/math", headers=headers).json()["subject"]
    assert subject["topics"][0] == {"topic_id": "math_add", "title": "Addition", "question_count": 2}

    topic = client.get("/api/quiz/topics/math_add", headers=headers).json()["topic"]
    assert topic["questions"][1]["answer"] == "B"


def test_unknown_subject_and_topic(client: TestClient) -> None:
    headers = _register(client)
    response = client.get("/api/quiz/subjects/chemistry", headers=headers)
    assert response.status_code == 404
    assert response.json()["error"] == "SUBJECT_NOT_FOUND"
    response = client.get("/api/quiz/topics/chemistry", headers=headers)
    assert response.status_code == 404
    assert response.json()["error"] == "TOPIC_NOT_FOUND"


def test_next_question_hides_answer_and_completes(client: TestClient) -> None:
    headers = _register(client)
    response = client.get("/api/quiz/topics/math_add/question?answered=math_add_Q1", headers=headers)
    question = response.json()["question"]
    assert question["id"] == "math_add_Q2"
    assert "answer" not in question

    response = client.get(
        "/api/quiz/topics/math_add/question?answered=math_add_Q1,math_add_Q2",
        headers=headers,
    )
    assert response.json()["completed"] is True


def test_submit_answer(client: TestClient, sink: InMemoryNotificationSink) -> None:
    headers = _register(client)
    response = _submit(client, headers, answer="a ")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["is_correct"] is True
    assert data["correct_answer"] == "A"
    assert data["progress"]["mastery"] == pytest.approx(0.44)
    assert data["progress"]["attempts"] == 1
    assert data["user_stats"]["total_attempts"] == 1
    assert len(sink.events) == 1


def test_submit_unknown_question(client: TestClient) -> None:
    headers = _register(client)
    response = _submit(client, headers, question_id="math_add_Q7")
    assert response.status_code == 404
    assert response.json()["error"] == "QUESTION_NOT_FOUND"


def test_submit_negative_time_rejected(client: TestClient) -> None:
    headers = _register(client)
    response = client.post(
        "/api/progress/submit-answer",
        json={"topic_id": "math_add", "question_id": "math_add_Q1", "user_answer": "A", "time_taken": -1},
        headers=headers,
    )
    assert response.status_code == 422


def test_progress_views_and_reset(client: TestClient) -> None:
    headers = _register(client)
    _submit(client, headers)
    _submit(client, headers, answer="A", question_id="math_add_Q2")

    overview = client.get("/api/progress/my-progress", headers=headers).json()["data"]
    assert overview["total_topics"] == 1
    assert overview["progress"][0]["attempts"] == 2
    assert len(overview["recent_attempts"]) == 2

    topic = client.get("/api/progress/topic/math_add", headers=headers).json()["data"]
    assert topic["progress"]["corrects"] == 1
    assert len(topic["attempts"]) == 2

    response = client.delete("/api/progress/topic/math_add/reset", headers=headers)
    assert response.json()["success"] is True
    overview = client.get("/api/progress/my-progress", headers=headers).json()["data"]
    assert overview["progress"] == []


def test_recommendations(client: TestClient) -> None:
    headers = _register(client)
    _submit(client, headers)
    ranked = client.get("/api/recommendations", headers=headers).json()["recommendations"]
    assert [item["topic_id"] for item in ranked] == ["phys_units", "math_add"]
    assert client.get("/api/recommendations?n=0", headers=headers).status_code == 422
    assert client.get("/api/recommendations/weak-areas", headers=headers).json()["weak_topics"] == []
    assert client.get("/api/recommendations/ready-for-review", headers=headers).json()["review_topics"] == []


def test_stats_and_leaderboard(client: TestClient) -> None:
    headers = _register(client)
    for _ in range(10):
        _submit(client, headers)
    stats = client.get("/api/users/stats", headers=headers).json()["stats"]
    assert stats["total_attempts"] == 10
    assert stats["overall_accuracy"] == 100
    assert stats["daily_performance"][0]["total"] == 10

    board = client.get("/api/users/leaderboard", headers=headers).json()["leaderboard"]
    assert board[0]["name"] == "Ada"
    assert board[0]["rank"] == 1
