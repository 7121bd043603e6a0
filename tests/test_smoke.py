from __future__ import annotations

import sys
from pathlib import Path

from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from quizpath import db  # noqa: E402  (import after sys.path update)
from quizpath.app import create_app  # noqa: E402


def test_bundled_bank_serves_subjects(tmp_path) -> None:
    db.DB_PATH = tmp_path / "smoke.db"
    client = TestClient(create_app(bank_path=PROJECT_ROOT / "data" / "subjects.yaml"))

    assert client.get("/api/health").status_code == 200

    token = client.post("/api/users", json={"name": "Smoke"}).json()["token"]
    response = client.get("/api/quiz/subjects", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert [item["slug"] for item in response.json()["subjects"]] == ["data-structures", "algorithms"]
