from __future__ import annotations

import json

import pytest

pytest.importorskip("httpx")

from sqlmodel import Session, select

from dsegrader import repository
from dsegrader.auth import TEACHER_ROLE
from dsegrader.errors import RateLimitError
from dsegrader.models import Feedback

ESSAY = {
    "title": "My School Library",
    "prompt": "Describe a place in your school that you like.",
    "content": "My school has a library. Students reads there every day. It help them learn.",
}


def _create_essay(client, headers) -> int:
    response = client.post("/essays", json=ESSAY, headers=headers)
    assert response.status_code == 201
    return response.json()["id"]


def test_requests_without_a_token_are_rejected(client) -> None:
    assert client.get("/essays").status_code == 401
    assert client.get("/essays", headers={"Authorization": "Bearer nonsense"}).status_code == 401


def test_create_and_list_own_essays(client, auth_headers) -> None:
    headers = auth_headers("student-1")
    essay_id = _create_essay(client, headers)
    _create_essay(client, auth_headers("student-2"))

    response = client.get("/essays", headers=headers)

    assert response.status_code == 200
    payload = response.json()
    assert [essay["id"] for essay in payload] == [essay_id]
    assert payload[0]["authorId"] == "student-1"
    assert payload[0]["feedback"] is None


def test_grade_returns_and_persists_detailed_feedback(client, auth_headers, isolated_db) -> None:
    headers = auth_headers("student-1")
    essay_id = _create_essay(client, headers)

    response = client.post(f"/essays/{essay_id}/grade", headers=headers)

    assert response.status_code == 200
    payload = response.json()
    assert payload["scores"] == {"content": 71, "language": 57, "organization": 71, "overall": 66}
    assert [item["segment"] for item in payload["feedbackItems"]] == [
        "My school has a library",
        "Students reads there every day",
        "It help them learn",
    ]
    assert [item["ordinal"] for item in payload["feedbackItems"]] == [1, 2, 3]
    assert payload["feedbackItems"][0]["category"] == "Grammar"
    assert payload["highlightedContent"].startswith('<p><span class="highlight-language" data-highlight-id="1">')

    with Session(isolated_db) as session:
        row = repository.get_feedback(session, essay_id)
        assert row.total_score == 66
        assert json.loads(row.feedback_json)["feedbackItems"][1]["segment"] == "Students reads there every day"

    detail = client.get(f"/essays/{essay_id}", headers=headers).json()
    assert detail["feedback"]["totalScore"] == 66


def test_grading_twice_is_a_conflict(client, auth_headers) -> None:
    headers = auth_headers()
    essay_id = _create_essay(client, headers)

    assert client.post(f"/essays/{essay_id}/grade", headers=headers).status_code == 200
    assert client.post(f"/essays/{essay_id}/grade", headers=headers).status_code == 409


def test_detailed_feedback_is_served_from_storage(client, auth_headers, mock_chat) -> None:
    headers = auth_headers()
    essay_id = _create_essay(client, headers)
    graded = client.post(f"/essays/{essay_id}/grade", headers=headers).json()
    calls_after_grading = len(mock_chat.calls)

    response = client.get(f"/essays/{essay_id}/detailed-feedback", headers=headers)

    assert response.status_code == 200
    assert response.json() == graded
    assert len(mock_chat.calls) == calls_after_grading


def test_detailed_feedback_regenerates_legacy_records_with_stored_scores(client, auth_headers, isolated_db, mock_chat) -> None:
    headers = auth_headers()
    essay_id = _create_essay(client, headers)
    with Session(isolated_db) as session:
        session.add(
            Feedback(
                essay_id=essay_id,
                content_score=80,
                language_score=60,
                organization_score=70,
                total_score=70,
                feedback_json=json.dumps({"overall_score": 70, "feedback": "Old single-call feedback"}),
            )
        )
        session.commit()

    response = client.get(f"/essays/{essay_id}/detailed-feedback", headers=headers)

    assert response.status_code == 200
    payload = response.json()
    assert payload["scores"] == {"content": 80, "language": 60, "organization": 70, "overall": 70}
    assert len(payload["feedbackItems"]) == 3
    assert "scores" not in [call["purpose"] for call in mock_chat.calls]

    with Session(isolated_db) as session:
        stored = repository.load_detailed_feedback(repository.get_feedback(session, essay_id))
        assert stored is not None
        assert stored.scores.overall == 70


def test_detailed_feedback_for_ungraded_essay_grades_it(client, auth_headers) -> None:
    headers = auth_headers()
    essay_id = _create_essay(client, headers)

    response = client.get(f"/essays/{essay_id}/detailed-feedback", headers=headers)

    assert response.status_code == 200
    assert response.json()["scores"]["overall"] == 66
    assert client.post(f"/essays/{essay_id}/grade", headers=headers).status_code == 409


def test_regenerate_overwrites_with_percentage_scores(client, auth_headers, isolated_db) -> None:
    headers = auth_headers()
    essay_id = _create_essay(client, headers)
    client.post(f"/essays/{essay_id}/grade", headers=headers)

    response = client.post(f"/essays/{essay_id}/regenerate-feedback", headers=headers)

    assert response.status_code == 200
    assert response.json()["scores"] == {"content": 72, "language": 65, "organization": 70, "overall": 69}
    with Session(isolated_db) as session:
        rows = session.exec(select(Feedback).where(Feedback.essay_id == essay_id)).all()
        assert len(rows) == 1
        assert rows[0].total_score == 69


def test_access_rules_for_other_students_and_teachers(client, auth_headers) -> None:
    author = auth_headers("student-1")
    stranger = auth_headers("student-2")
    teacher = auth_headers("teacher-1", TEACHER_ROLE)
    essay_id = _create_essay(client, author)

    assert client.get(f"/essays/{essay_id}", headers=stranger).status_code == 403
    assert client.post(f"/essays/{essay_id}/grade", headers=stranger).status_code == 403
    assert client.get(f"/essays/{essay_id}", headers=teacher).status_code == 200
    assert client.post(f"/essays/{essay_id}/grade", headers=teacher).status_code == 200
    assert client.get(f"/essays/{essay_id}/detailed-feedback", headers=teacher).status_code == 200
    assert client.post(f"/essays/{essay_id}/regenerate-feedback", headers=teacher).status_code == 403
    assert client.get("/essays/9999", headers=author).status_code == 404


def test_delete_removes_essay_and_feedback(client, auth_headers, isolated_db) -> None:
    headers = auth_headers()
    essay_id = _create_essay(client, headers)
    client.post(f"/essays/{essay_id}/grade", headers=headers)

    response = client.delete(f"/essays/{essay_id}", headers=headers)

    assert response.status_code == 204
    assert client.get(f"/essays/{essay_id}", headers=headers).status_code == 404
    with Session(isolated_db) as session:
        assert repository.get_feedback(session, essay_id) is None


def test_teacher_list_requires_teacher_role(client, auth_headers) -> None:
    _create_essay(client, auth_headers("student-1"))
    _create_essay(client, auth_headers("student-2"))

    assert client.get("/teacher/essays", headers=auth_headers("student-1")).status_code == 403

    response = client.get("/teacher/essays", headers=auth_headers("teacher-1", TEACHER_ROLE))
    assert response.status_code == 200
    assert {essay["authorId"] for essay in response.json()} == {"student-1", "student-2"}


def test_evaluate_does_not_persist(client, auth_headers) -> None:
    headers = auth_headers()

    response = client.post(
        "/evaluate",
        json={"question": ESSAY["prompt"], "content": ESSAY["content"]},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["scores"]["overall"] == 66
    assert client.get("/essays", headers=headers).json() == []


def test_rate_limit_surfaces_as_429_with_retry_after(client, auth_headers, mock_chat, monkeypatch) -> None:
    headers = auth_headers()
    essay_id = _create_essay(client, headers)

    def throttled(*args, **kwargs):
        raise RateLimitError("Rate limit reached for the grading model. Please try again in a few minutes.", retry_after=None)

    monkeypatch.setattr(mock_chat, "complete", throttled)

    response = client.post(f"/essays/{essay_id}/grade", headers=headers)

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "30"
    assert "try again" in response.json()["detail"]
    assert client.get(f"/essays/{essay_id}", headers=headers).json()["feedback"] is None


def test_unconfigured_llm_returns_503(client, auth_headers, monkeypatch) -> None:
    from dsegrader.ai.chat import OpenRouterChatClient, get_chat_client
    from dsegrader.main import app
    from dsegrader.settings import Settings

    headers = auth_headers()
    essay_id = _create_essay(client, headers)
    app.dependency_overrides[get_chat_client] = lambda: OpenRouterChatClient(Settings(OPENROUTER_API_KEY=""))

    response = client.post(f"/essays/{essay_id}/grade", headers=headers)

    assert response.status_code == 503
