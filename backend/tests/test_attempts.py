from fastapi.testclient import TestClient

from tests.conftest import (
    OTHER_STUDENT,
    STUDENT,
    auth_header,
    choice_question,
    create_exam,
    free_text_question,
    start_attempt,
)


def test_start_attempt_returns_server_deadline(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question()], duration_minutes=45)

    response = client.post(f"/api/v1/exams/{authored['exam']['id']}/attempts", headers=auth_header(STUDENT))
    assert response.status_code == 201, response.text
    payload = response.json()

    assert payload['attempt']['status'] == 'in_progress'
    assert payload['attempt']['tab_switch_count'] == 0
    assert payload['deadline_at'] == payload['attempt']['deadline_at']


def test_second_start_is_rejected(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question()])
    exam_id = authored['exam']['id']
    start_attempt(client, exam_id)

    response = client.post(f'/api/v1/exams/{exam_id}/attempts', headers=auth_header(STUDENT))
    assert response.status_code == 409, response.text
    assert 'already attempted' in response.json()['detail']

    other = client.post(f'/api/v1/exams/{exam_id}/attempts', headers=auth_header(OTHER_STUDENT))
    assert other.status_code == 201, other.text


def test_start_requires_active_exam(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question()], activate=False)

    response = client.post(f"/api/v1/exams/{authored['exam']['id']}/attempts", headers=auth_header(STUDENT))
    assert response.status_code == 409, response.text


def test_start_unknown_exam_is_not_found(client: TestClient) -> None:
    response = client.post(
        '/api/v1/exams/00000000-0000-0000-0000-000000000000/attempts', headers=auth_header(STUDENT)
    )
    assert response.status_code == 404, response.text


def test_delivery_never_includes_answer_key(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question('C'), free_text_question()])
    exam_id = authored['exam']['id']
    attempt = start_attempt(client, exam_id)

    response = client.get(f'/api/v1/exams/{exam_id}/questions', headers=auth_header(STUDENT))
    assert response.status_code == 200, response.text
    paper = response.json()

    assert paper['attempt_id'] == attempt['id']
    assert [question['question_type'] for question in paper['questions']] == ['single_choice', 'free_text']
    assert [option['key'] for option in paper['questions'][0]['options']] == ['A', 'B', 'C', 'D']
    assert 'correct_option' not in response.text
    assert 'is_correct' not in response.text


def test_delivery_requires_open_attempt(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question()])

    response = client.get(f"/api/v1/exams/{authored['exam']['id']}/questions", headers=auth_header(STUDENT))
    assert response.status_code == 404, response.text


def test_student_exam_view_hides_questions(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question()])

    response = client.get(f"/api/v1/exams/{authored['exam']['id']}", headers=auth_header(STUDENT))
    assert response.status_code == 200, response.text
    assert response.json()['questions'] == []


def test_draft_answers_are_validated_and_merged(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question(), free_text_question()])
    choice, free_text = authored['questions']
    attempt = start_attempt(client, authored['exam']['id'])
    headers = auth_header(STUDENT)

    response = client.put(
        f"/api/v1/attempts/{attempt['id']}/draft",
        headers=headers,
        json={'answers': [{'question_id': choice['id'], 'selected_option': 'b'}]},
    )
    assert response.status_code == 200, response.text

    response = client.put(
        f"/api/v1/attempts/{attempt['id']}/draft",
        headers=headers,
        json={'answers': [{'question_id': free_text['id'], 'response_text': 'draft text'}]},
    )
    assert response.status_code == 200, response.text

    invalid = client.put(
        f"/api/v1/attempts/{attempt['id']}/draft",
        headers=headers,
        json={'answers': [{'question_id': choice['id'], 'selected_option': 'E'}]},
    )
    assert invalid.status_code == 422, invalid.text

    other = client.put(
        f"/api/v1/attempts/{attempt['id']}/draft",
        headers=auth_header(OTHER_STUDENT),
        json={'answers': []},
    )
    assert other.status_code == 403, other.text


def test_submit_scores_single_choice_exam(client: TestClient) -> None:
    marks = [25, 20, 15, 10, 10, 10, 5, 5]
    authored = create_exam(
        client,
        questions=[choice_question('A', marks=mark) for mark in marks],
        passing_marks=40,
    )
    assert authored['exam']['total_marks'] == 100
    attempt = start_attempt(client, authored['exam']['id'])

    answers = [
        {'question_id': question['id'], 'selected_option': 'A' if index < 2 else 'D'}
        for index, question in enumerate(authored['questions'])
    ]
    response = client.post(
        f"/api/v1/attempts/{attempt['id']}/submit",
        headers=auth_header(STUDENT),
        json={'answers': answers, 'trigger': 'manual'},
    )
    assert response.status_code == 200, response.text
    result = response.json()

    assert result['status'] == 'auto_graded'
    assert result['score'] == 45
    assert result['total_marks'] == 100
    assert result['percentage'] == 45.0
    assert result['passed'] is True
    assert result['submission_trigger'] == 'manual'


def test_submit_stores_unrounded_percentage(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question('A', marks=1) for _ in range(3)])
    attempt = start_attempt(client, authored['exam']['id'])

    answers = [
        {'question_id': question['id'], 'selected_option': 'A' if index == 0 else 'B'}
        for index, question in enumerate(authored['questions'])
    ]
    response = client.post(
        f"/api/v1/attempts/{attempt['id']}/submit", headers=auth_header(STUDENT), json={'answers': answers}
    )
    assert response.status_code == 200, response.text
    assert response.json()['score'] == 1
    assert response.json()['percentage'] == 100 * 1 / 3


def test_repeat_submit_returns_first_result(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question('A'), choice_question('B')])
    first_question, second_question = authored['questions']
    attempt = start_attempt(client, authored['exam']['id'])
    headers = auth_header(STUDENT)

    first = client.post(
        f"/api/v1/attempts/{attempt['id']}/submit",
        headers=headers,
        json={'answers': [{'question_id': first_question['id'], 'selected_option': 'A'}], 'trigger': 'timer'},
    )
    assert first.status_code == 200, first.text

    second = client.post(
        f"/api/v1/attempts/{attempt['id']}/submit",
        headers=headers,
        json={
            'answers': [
                {'question_id': first_question['id'], 'selected_option': 'A'},
                {'question_id': second_question['id'], 'selected_option': 'B'},
            ],
            'trigger': 'manual',
        },
    )
    assert second.status_code == 200, second.text
    assert second.json()['score'] == first.json()['score'] == 10
    assert second.json()['submitted_at'] == first.json()['submitted_at']
    assert second.json()['submission_trigger'] == 'timer'

    detail = client.get(f"/api/v1/attempts/{attempt['id']}", headers=headers)
    assert detail.status_code == 200, detail.text
    answers = detail.json()['answers']
    assert len(answers) == 2
    assert {answer['selected_option'] for answer in answers} == {'A', None}


def test_submit_rejects_foreign_questions(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question()])
    other = create_exam(client, questions=[choice_question()])
    attempt = start_attempt(client, authored['exam']['id'])

    response = client.post(
        f"/api/v1/attempts/{attempt['id']}/submit",
        headers=auth_header(STUDENT),
        json={'answers': [{'question_id': other['questions'][0]['id'], 'selected_option': 'A'}]},
    )
    assert response.status_code == 422, response.text

    state = client.get(f"/api/v1/attempts/{attempt['id']}", headers=auth_header(STUDENT))
    assert state.json()['status'] == 'in_progress'


def test_focus_loss_counts_until_submitted(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question()])
    attempt = start_attempt(client, authored['exam']['id'])
    headers = auth_header(STUDENT)

    counts = []
    for _ in range(3):
        response = client.post(f"/api/v1/attempts/{attempt['id']}/focus-loss", headers=headers)
        assert response.status_code == 200, response.text
        assert response.json()['accepted'] is True
        counts.append(response.json()['tab_switch_count'])
    assert counts == [1, 2, 3]

    submitted = client.post(
        f"/api/v1/attempts/{attempt['id']}/submit", headers=headers, json={'answers': [], 'trigger': 'proctoring'}
    )
    assert submitted.status_code == 200, submitted.text
    assert submitted.json()['tab_switch_count'] == 3

    late = client.post(f"/api/v1/attempts/{attempt['id']}/focus-loss", headers=headers)
    assert late.status_code == 200, late.text
    assert late.json() == {'attempt_id': attempt['id'], 'tab_switch_count': 3, 'accepted': False}


def test_students_only_see_their_own_attempts(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question()])
    attempt = start_attempt(client, authored['exam']['id'])

    response = client.get(f"/api/v1/attempts/{attempt['id']}", headers=auth_header(OTHER_STUDENT))
    assert response.status_code == 403, response.text

    mine = client.get('/api/v1/me/attempts', headers=auth_header(STUDENT))
    assert mine.status_code == 200, mine.text
    assert [item['id'] for item in mine.json()['items']] == [attempt['id']]

    theirs = client.get('/api/v1/me/attempts', headers=auth_header(OTHER_STUDENT))
    assert theirs.json()['items'] == []


def test_in_progress_detail_hides_answers_from_student(client: TestClient) -> None:
    authored = create_exam(client, questions=[choice_question(), free_text_question()])
    attempt = start_attempt(client, authored['exam']['id'])
    headers = auth_header(STUDENT)

    client.post(f"/api/v1/attempts/{attempt['id']}/submit", headers=headers, json={'answers': []})

    detail = client.get(f"/api/v1/attempts/{attempt['id']}", headers=headers)
    assert detail.status_code == 200, detail.text
    assert detail.json()['status'] == 'pending_manual_grading'
    assert detail.json()['answers'] == []
