from datetime import timedelta
import pytest
from sqlalchemy.exc import OperationalError
from conftest import make_user, make_quiz, make_attempt
from classes.points_allocator import cohort_size
from models import db, User, Quiz, QuizAttempt
from utils.helpers import utcnow


def allocate(admin, quiz_id, **options):
    return admin.client.post(
        "/api/admin/points-allocation",
        json={"quizId": quiz_id, **options},
        headers=admin.headers,
    )


def seed_scores(app, quiz_id, scores, start=None):
    """One evaluated attempt per score, submitted a minute apart in the given order."""
    start = start or utcnow() - timedelta(hours=1)
    user_ids = []
    for index, score in enumerate(scores):
        user_id = make_user(app, f"p{index}")
        make_attempt(
            app, user_id, quiz_id, {}, evaluated=True, score=score,
            created_at=start + timedelta(minutes=index),
        )
        user_ids.append(user_id)
    return user_ids


@pytest.mark.parametrize("total, percentage, expected", [
    (7, 10, 1),
    (23, 10, 3),
    (10, 10, 1),
    (3, 0.01, 1),
    (100, 33.3, 34),
    (5, 100, 5),
])
def test_cohort_size(total, percentage, expected):
    assert cohort_size(total, percentage) == expected


def test_top_cohort_gets_points(app, admin):
    quiz_id, _ = make_quiz(app, questions=0)
    scores = [50, 90, 10, 70, 30, 80, 60, 40, 20, 100, 55, 65, 75, 85, 95, 45, 35, 25, 15, 5, 1, 2, 3]
    user_ids = seed_scores(app, quiz_id, scores)

    response = allocate(admin, quiz_id, pointsPerWinner=25, percentageThreshold=10)
    assert response.status_code == 200
    body = response.get_json()
    assert body["allocation"]["totalAttempts"] == 23
    assert body["allocation"]["topPercentageCount"] == 3
    assert [w["score"] for w in body["winners"]] == [100, 95, 90]
    assert body["allocation"]["totalPointsDistributed"] == 75

    with app.app_context():
        points = {u.id: u.points for u in User.query.filter(User.id.in_(user_ids))}
        assert sorted(points.values(), reverse=True)[:4] == [25, 25, 25, 0]
        assert db.session.get(Quiz, quiz_id).points_allocated_at is not None
        awarded = QuizAttempt.query.filter(QuizAttempt.points > 0).count()
        assert awarded == 3


def test_zero_scores_never_credited(app, admin):
    quiz_id, _ = make_quiz(app, questions=0)
    seed_scores(app, quiz_id, [40, 0, 0, 0])

    body = allocate(admin, quiz_id, percentageThreshold=100).get_json()
    assert [w["score"] for w in body["winners"]] == [40]

    with app.app_context():
        assert User.query.filter(User.points > 0).count() == 1


def test_all_zero_cohort_has_no_winners(app, admin):
    quiz_id, _ = make_quiz(app, questions=0)
    seed_scores(app, quiz_id, [0, 0, 0])

    response = allocate(admin, quiz_id)
    assert response.status_code == 400
    with app.app_context():
        assert db.session.get(Quiz, quiz_id).points_allocated_at is None


def test_earlier_submission_wins_ties(app, admin):
    quiz_id, _ = make_quiz(app, questions=0)
    user_ids = seed_scores(app, quiz_id, [80, 80, 80])

    body = allocate(admin, quiz_id, percentageThreshold=10).get_json()
    assert [w["userId"] for w in body["winners"]] == [user_ids[0]]


def test_no_evaluated_attempts(app, admin):
    quiz_id, _ = make_quiz(app, questions=0)
    make_attempt(app, make_user(app, "p1"), quiz_id, {}, evaluated=False)
    assert allocate(admin, quiz_id).status_code == 404
    assert allocate(admin, 999).status_code == 404


def test_rerun_requires_force(app, admin):
    quiz_id, _ = make_quiz(app, questions=0)
    user_ids = seed_scores(app, quiz_id, [90])

    assert allocate(admin, quiz_id, pointsPerWinner=10).status_code == 200
    response = allocate(admin, quiz_id, pointsPerWinner=10)
    assert response.status_code == 409
    assert response.get_json()["allocatedAt"]

    with app.app_context():
        assert db.session.get(User, user_ids[0]).points == 10

    assert allocate(admin, quiz_id, pointsPerWinner=10, force=True).status_code == 200
    with app.app_context():
        assert db.session.get(User, user_ids[0]).points == 20


def test_parameter_bounds(app, admin):
    quiz_id, _ = make_quiz(app, questions=0)
    seed_scores(app, quiz_id, [90])
    assert allocate(admin, quiz_id, pointsPerWinner=0).status_code == 400
    assert allocate(admin, quiz_id, pointsPerWinner=1001).status_code == 400
    assert allocate(admin, quiz_id, percentageThreshold=0).status_code == 400
    assert allocate(admin, quiz_id, percentageThreshold=100.5).status_code == 400


def test_history_is_cached_until_ttl(app, admin):
    quiz_id, _ = make_quiz(app, questions=0)
    seed_scores(app, quiz_id, [90, 80])

    before = admin.client.get(f"/api/admin/points-allocation?quizId={quiz_id}").get_json()
    assert before["attempts"] == []

    allocate(admin, quiz_id, percentageThreshold=100)
    stale = admin.client.get(f"/api/admin/points-allocation?quizId={quiz_id}").get_json()
    assert stale["attempts"] == []

    app.extensions["history_cache"].clear()
    fresh = admin.client.get(f"/api/admin/points-allocation?quizId={quiz_id}").get_json()
    assert len(fresh["attempts"]) == 2
    assert fresh["pagination"]["totalCount"] == 2


def test_failed_credit_leaves_no_winner_paid(app, admin, monkeypatch):
    quiz_id, _ = make_quiz(app, questions=0)
    user_ids = seed_scores(app, quiz_id, [90, 80, 70, 60, 50, 40, 30, 20, 10, 5])

    real_flush = db.session.flush
    flushes = []

    def flush_then_fail(*args, **kwargs):
        flushes.append(1)
        if len(flushes) == 1:
            return real_flush(*args, **kwargs)
        raise OperationalError("UPDATE users", {}, Exception("lock wait timeout exceeded"))

    monkeypatch.setattr(db.session, "flush", flush_then_fail)
    response = allocate(admin, quiz_id, percentageThreshold=20)
    monkeypatch.undo()

    assert response.status_code == 503
    assert len(flushes) == 1 + app.config["TRANSACTION_MAX_RETRIES"] + 1
    with app.app_context():
        assert all(u.points == 0 for u in User.query.filter(User.id.in_(user_ids)))
        assert QuizAttempt.query.filter(QuizAttempt.points > 0).count() == 0
        assert db.session.get(Quiz, quiz_id).points_allocated_at is None

    assert allocate(admin, quiz_id, percentageThreshold=20).status_code == 200
