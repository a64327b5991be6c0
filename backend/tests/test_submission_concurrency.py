import threading
from uuid import UUID

from fastapi.testclient import TestClient
from sqlalchemy import func, select

from examroom.models.exam import Answer, Attempt
from examroom.services import submission_service
from tests.conftest import TestingSessionLocal, choice_question, create_exam, start_attempt


def _answer_count(attempt_id: UUID) -> int:
    db = TestingSessionLocal()
    try:
        return db.scalar(select(func.count()).select_from(Answer).where(Answer.attempt_id == attempt_id))
    finally:
        db.close()


def test_stale_session_loses_the_claim(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question('A'), choice_question('B')])
    first_question, second_question = authored['questions']
    attempt_id = UUID(start_attempt(client, authored['exam']['id'])['id'])

    stale = TestingSessionLocal()
    fresh = TestingSessionLocal()
    try:
        stale_attempt = stale.get(Attempt, attempt_id)
        assert stale_attempt.status == 'in_progress'
        stale.commit()

        _, claimed = submission_service.complete_submission(
            fresh,
            attempt_id=attempt_id,
            answers=[{'question_id': first_question['id'], 'selected_option': 'A'}],
            trigger='manual',
        )
        fresh.commit()
        assert claimed is True

        # The stale identity map still says in_progress; only the conditional update can refuse it.
        assert stale_attempt.status == 'in_progress'
        attempt, claimed = submission_service.complete_submission(
            stale,
            attempt_id=attempt_id,
            answers=[
                {'question_id': first_question['id'], 'selected_option': 'A'},
                {'question_id': second_question['id'], 'selected_option': 'B'},
            ],
            trigger='timer',
        )
        stale.commit()
    finally:
        stale.close()
        fresh.close()

    assert claimed is False
    assert attempt.status == 'auto_graded'
    assert attempt.score == 10
    assert attempt.submission_trigger == 'manual'
    assert _answer_count(attempt_id) == 2


def test_concurrent_submits_write_one_answer_set(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question('A'), choice_question('B')])
    question_ids = [question['id'] for question in authored['questions']]
    attempt_id = UUID(start_attempt(client, authored['exam']['id'])['id'])

    barrier = threading.Barrier(4)
    outcomes: list[bool] = []
    errors: list[BaseException] = []
    lock = threading.Lock()

    def _submit(trigger: str) -> None:
        db = TestingSessionLocal()
        try:
            barrier.wait()
            _, claimed = submission_service.complete_submission(
                db,
                attempt_id=attempt_id,
                answers=[{'question_id': question_id, 'selected_option': 'A'} for question_id in question_ids],
                trigger=trigger,
            )
            db.commit()
            with lock:
                outcomes.append(claimed)
        except BaseException as exc:  # noqa: BLE001
            db.rollback()
            with lock:
                errors.append(exc)
        finally:
            db.close()

    threads = [
        threading.Thread(target=_submit, args=(trigger,))
        for trigger in ('manual', 'timer', 'proctoring', 'manual')
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert errors == []
    assert sorted(outcomes) == [False, False, False, True]
    assert _answer_count(attempt_id) == 2

    db = TestingSessionLocal()
    try:
        attempt = db.get(Attempt, attempt_id)
        assert attempt.status == 'auto_graded'
        assert attempt.score == 10
        assert attempt.submitted_at is not None
    finally:
        db.close()
