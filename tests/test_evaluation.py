from conftest import make_user, make_quiz, make_attempt
from models import db, Question, QuizAttempt


def evaluate(admin, quiz_id, key):
    return admin.client.post(
        "/api/admin/quiz-evaluation",
        json={"quizId": quiz_id, "correctAnswers": {str(qid): opt for qid, opt in key.items()}},
        headers=admin.headers,
    )


def test_scores_match_rounded_percentage(app, admin):
    quiz_id, q = make_quiz(app, questions=3)
    key = {q[0]: 0, q[1]: 1, q[2]: 2}
    selections = [
        {q[0]: 0, q[1]: 1, q[2]: 2},  # 3/3
        {q[0]: 0, q[1]: 1, q[2]: 0},  # 2/3
        {q[0]: 0, q[1]: 0, q[2]: 0},  # 1/3
        {q[0]: 1, q[1]: 0, q[2]: 0},  # 0/3
    ]
    for index, picks in enumerate(selections):
        make_attempt(app, make_user(app, f"p{index}"), quiz_id, picks)

    response = evaluate(admin, quiz_id, key)
    assert response.status_code == 200
    body = response.get_json()
    assert body["evaluatedAttempts"] == 4
    assert sorted(r["percentage"] for r in body["results"]) == [0, 33, 67, 100]

    with app.app_context():
        for attempt in QuizAttempt.query.all():
            correct = sum(1 for a in attempt.answers if a.is_correct)
            assert attempt.is_evaluated
            assert attempt.score == int(100 * correct / 3 + 0.5)
        assert all(question.has_correct_answer for question in Question.query.all())


def test_half_scores_round_up(app, admin):
    quiz_id, q = make_quiz(app, questions=8)
    key = {qid: 0 for qid in q}
    picks = {qid: (0 if i < 1 else 1) for i, qid in enumerate(q)}  # 1/8 = 12.5%
    make_attempt(app, make_user(app, "p1"), quiz_id, picks)

    evaluate(admin, quiz_id, key)
    with app.app_context():
        assert QuizAttempt.query.one().score == 13


def test_missing_key_writes_nothing(app, admin):
    quiz_id, q = make_quiz(app, questions=3)
    make_attempt(app, make_user(app, "p1"), quiz_id, {qid: 0 for qid in q})

    response = evaluate(admin, quiz_id, {q[0]: 0, q[1]: 0})
    assert response.status_code == 400
    assert response.get_json()["missingQuestions"] == [q[2]]

    with app.app_context():
        attempt = QuizAttempt.query.one()
        assert attempt.is_evaluated is False
        assert all(a.is_correct is None for a in attempt.answers)
        assert all(question.correct_option is None for question in Question.query.all())
        assert not any(question.has_correct_answer for question in Question.query.all())


def test_key_with_foreign_question_or_bad_option(app, admin):
    quiz_id, q = make_quiz(app, questions=2)
    _, other = make_quiz(app, questions=1, title="Other")

    response = evaluate(admin, quiz_id, {q[0]: 0, q[1]: 0, other[0]: 0})
    assert response.status_code == 400
    assert response.get_json()["unknownQuestions"] == other

    response = evaluate(admin, quiz_id, {q[0]: 0, q[1]: 7})
    assert response.status_code == 400
    assert response.get_json()["invalidOptions"] == [q[1]]


def test_quiz_without_questions(app, admin):
    quiz_id, _ = make_quiz(app, questions=0)
    response = evaluate(admin, quiz_id, {1: 0})
    assert response.status_code == 400


def test_unknown_quiz(admin):
    assert evaluate(admin, 999, {1: 0}).status_code == 404


def test_evaluated_attempts_are_not_rescored(app, admin):
    quiz_id, q = make_quiz(app, questions=2)
    make_attempt(app, make_user(app, "p1"), quiz_id, {q[0]: 0, q[1]: 0})
    evaluate(admin, quiz_id, {q[0]: 0, q[1]: 0})

    make_attempt(app, make_user(app, "p2"), quiz_id, {q[0]: 1, q[1]: 1})
    response = evaluate(admin, quiz_id, {q[0]: 1, q[1]: 1})
    assert [r["userEmail"] for r in response.get_json()["results"]] == ["p2@example.com"]

    with app.app_context():
        scores = {a.user.username: a.score for a in QuizAttempt.query.all()}
    assert scores == {"p1": 100, "p2": 100}


def test_evaluation_status(app, admin):
    quiz_id, q = make_quiz(app, questions=2)
    make_attempt(app, make_user(app, "p1"), quiz_id, {q[0]: 0, q[1]: 0})

    status = admin.client.get(f"/api/admin/quiz-evaluation?quizId={quiz_id}").get_json()
    assert status["evaluation"]["pendingAttempts"] == 1
    assert status["evaluation"]["isFullyEvaluated"] is False

    evaluate(admin, quiz_id, {q[0]: 0, q[1]: 1})
    status = admin.client.get(f"/api/admin/quiz-evaluation?quizId={quiz_id}").get_json()
    assert status["evaluation"]["evaluatedAttempts"] == 1
    assert status["quiz"]["questionsWithAnswers"] == 2
    assert status["evaluation"]["isFullyEvaluated"] is True


def test_evaluation_status_requires_quiz_id(admin):
    assert admin.client.get("/api/admin/quiz-evaluation").status_code == 400
