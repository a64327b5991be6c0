from datetime import timedelta
from uuid import UUID

from fastapi.testclient import TestClient
from sqlalchemy import update

from examroom.models.exam import Attempt
from examroom.services import sweep_service
from examroom.utils.time import utcnow
from tests.conftest import (
    ADMIN,
    INSTRUCTOR,
    STUDENT,
    TestingSessionLocal,
    auth_header,
    choice_question,
    create_exam,
    start_attempt,
)


def _expire(attempt_id: str, minutes_ago: int = 10) -> None:
    db = TestingSessionLocal()
    try:
        db.execute(
            update(Attempt)
            .where(Attempt.id == UUID(attempt_id))
            .values(deadline_at=utcnow() - timedelta(minutes=minutes_ago))
        )
        db.commit()
    finally:
        db.close()


def _exam_with_draft(client: TestClient) -> tuple[dict, dict]:
    authored = create_exam(client, questions=[choice_question('A'), choice_question('B')])
    first_question, _ = authored['questions']
    attempt = start_attempt(client, authored['exam']['id'])
    response = client.put(
        f"/api/v1/attempts/{attempt['id']}/draft",
        headers=auth_header(STUDENT),
        json={'answers': [{'question_id': first_question['id'], 'selected_option': 'A'}]},
    )
    assert response.status_code == 200, response.text
    return authored, attempt


def test_late_submit_uses_last_draft(client: TestClient) -> None:
    authored, attempt = _exam_with_draft(client)
    _, second_question = authored['questions']
    _expire(attempt['id'])

    response = client.post(
        f"/api/v1/attempts/{attempt['id']}/submit",
        headers=auth_header(STUDENT),
        json={'answers': [{'question_id': second_question['id'], 'selected_option': 'B'}]},
    )
    assert response.status_code == 200, response.text
    result = response.json()
    assert result['status'] == 'auto_graded'
    assert result['submission_trigger'] == 'deadline_sweep'
    assert result['score'] == 10


def test_submit_within_grace_window_is_accepted(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question('A')])
    attempt = start_attempt(client, authored['exam']['id'])
    db = TestingSessionLocal()
    try:
        db.execute(
            update(Attempt)
            .where(Attempt.id == UUID(attempt['id']))
            .values(deadline_at=utcnow() - timedelta(seconds=5))
        )
        db.commit()
    finally:
        db.close()

    response = client.post(
        f"/api/v1/attempts/{attempt['id']}/submit",
        headers=auth_header(STUDENT),
        json={'answers': [{'question_id': authored['questions'][0]['id'], 'selected_option': 'A'}]},
    )
    assert response.status_code == 200, response.text
    assert response.json()['submission_trigger'] == 'manual'
    assert response.json()['score'] == 10


def test_expired_attempt_rejects_drafts_and_delivery(client: TestClient) -> None:
    authored, attempt = _exam_with_draft(client)
    _expire(attempt['id'])
    headers = auth_header(STUDENT)

    draft = client.put(f"/api/v1/attempts/{attempt['id']}/draft", headers=headers, json={'answers': []})
    assert draft.status_code == 409, draft.text

    paper = client.get(f"/api/v1/exams/{authored['exam']['id']}/questions", headers=headers)
    assert paper.status_code == 404, paper.text


def test_sweep_finalizes_overdue_attempts(client: TestClient) -> None:
    authored, attempt = _exam_with_draft(client)
    fresh = create_exam(client, questions=[choice_question('A')])
    untouched = start_attempt(client, fresh['exam']['id'])
    _expire(attempt['id'])

    db = TestingSessionLocal()
    try:
        assert sweep_service.expire_overdue_attempts(db) == 1
        db.commit()
        assert sweep_service.expire_overdue_attempts(db) == 0
        db.commit()
    finally:
        db.close()

    swept = client.get(f"/api/v1/attempts/{attempt['id']}", headers=auth_header(STUDENT)).json()
    assert swept['status'] == 'auto_graded'
    assert swept['submission_trigger'] == 'deadline_sweep'
    assert swept['score'] == 10
    assert len(swept['answers']) == 2

    still_open = client.get(f"/api/v1/attempts/{untouched['id']}", headers=auth_header(STUDENT)).json()
    assert still_open['status'] == 'in_progress'

    again = client.post(
        f"/api/v1/attempts/{attempt['id']}/submit",
        headers=auth_header(STUDENT),
        json={'answers': [{'question_id': authored['questions'][1]['id'], 'selected_option': 'B'}]},
    )
    assert again.status_code == 200, again.text
    assert again.json()['score'] == 10


def test_admin_can_trigger_sweep(client: TestClient) -> None:
    _, attempt = _exam_with_draft(client)
    _expire(attempt['id'])

    forbidden = client.post('/api/v1/admin/sweep-overdue-attempts', headers=auth_header(INSTRUCTOR))
    assert forbidden.status_code == 403, forbidden.text

    response = client.post('/api/v1/admin/sweep-overdue-attempts', headers=auth_header(ADMIN))
    assert response.status_code == 200, response.text
    assert response.json() == {'finalized': 1}


def test_run_sweep_uses_its_own_session(client: TestClient) -> None:
    _, attempt = _exam_with_draft(client)
    _expire(attempt['id'])

    assert sweep_service.run_sweep() == 1
    assert sweep_service.run_sweep() == 0
