from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def isolated_db(tmp_path, monkeypatch):
    from sqlmodel import SQLModel

    import dsegrader.models  # noqa: F401  registers the tables
    from dsegrader import db
    from dsegrader.settings import settings

    monkeypatch.setattr(settings, "data_dir", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "sqlite_path", str(tmp_path / "test.db"))
    monkeypatch.delenv("BACKEND_API_KEY", raising=False)

    engine = db.build_engine(settings.sqlite_url)
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(db, "engine", engine)
    return engine


@pytest.fixture
def mock_chat():
    from dsegrader.ai.chat import MockChatClient

    return MockChatClient()


@pytest.fixture
def client(isolated_db, mock_chat):
    pytest.importorskip("httpx")
    from fastapi.testclient import TestClient

    from dsegrader.ai.chat import get_chat_client
    from dsegrader.main import app

    app.dependency_overrides[get_chat_client] = lambda: mock_chat
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from dsegrader.auth import STUDENT_ROLE, issue_token

    def _headers(user_id: str = "student-1", role: str = STUDENT_ROLE) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_token(user_id, role)}"}

    return _headers
