from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace
import pytest
from app import create_app
from models import db, User, Quiz, Question, QuizAttempt, Answer, Prize, DailyPayment
from utils.helpers import utcnow

PASSWORD = "s3cret-pass"


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def csrf_headers(client):
    token = client.get("/api/auth/csrf-token").get_json()["csrfToken"]
    return {"X-CSRF-Token": token}


def make_user(app, username="player1", role="player", points=0, email=None):
    with app.app_context():
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            full_name=username.title(),
            role=role,
            points=points,
        )
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user.id


def login(client, username):
    headers = csrf_headers(client)
    response = client.post(
        "/api/auth/login",
        json={"usernameOrEmail": username, "password": PASSWORD},
        headers=headers,
    )
    assert response.status_code == 200, response.get_json()
    return headers


def make_quiz(app, questions=3, status="active", title="Weekly predictions"):
    """A quiz with ``questions`` three-option questions. Returns (quiz_id, [question_ids])."""
    with app.app_context():
        quiz = Quiz(title=title, status=status)
        db.session.add(quiz)
        db.session.flush()
        for index in range(questions):
            db.session.add(Question(
                quiz_id=quiz.id,
                text=f"Question {index + 1}?",
                options=["Yes", "No", "Maybe"],
                order=index + 1,
            ))
        db.session.commit()
        return quiz.id, [q.id for q in quiz.questions]


def add_question(app, quiz_id, text="Late question?"):
    with app.app_context():
        question = Question(quiz_id=quiz_id, text=text, options=["Yes", "No"], order=99)
        db.session.add(question)
        db.session.commit()
        return question.id


def give_access(app, user_id, hours=24):
    with app.app_context():
        now = utcnow()
        payment = DailyPayment(
            user_id=user_id,
            amount=Decimal("2.00"),
            expires_at=now + timedelta(hours=hours),
            created_at=now,
        )
        db.session.add(payment)
        db.session.commit()
        return payment.id


def make_attempt(app, user_id, quiz_id, selections, evaluated=False, score=0, created_at=None):
    """Completed attempt with answers ``{question_id: option}``."""
    with app.app_context():
        attempt = QuizAttempt(
            user_id=user_id,
            quiz_id=quiz_id,
            is_completed=True,
            is_evaluated=evaluated,
            score=score,
            points=0,
            completed_at=utcnow(),
        )
        if created_at is not None:
            attempt.created_at = created_at
        for question_id, option in selections.items():
            attempt.answers.append(Answer(user_id=user_id, question_id=question_id, selected_option=option))
        db.session.add(attempt)
        db.session.commit()
        return attempt.id


def make_prize(app, points_required=80, stock=5, **kwargs):
    with app.app_context():
        prize = Prize(name=kwargs.pop("name", "Wireless earbuds"), points_required=points_required, stock=stock, **kwargs)
        db.session.add(prize)
        db.session.commit()
        return prize.id


@pytest.fixture
def player(app):
    client = app.test_client()
    user_id = make_user(app, "player1")
    headers = login(client, "player1")
    return SimpleNamespace(id=user_id, client=client, headers=headers)


@pytest.fixture
def admin(app):
    client = app.test_client()
    user_id = make_user(app, "admin1", role="admin")
    headers = login(client, "admin1")
    return SimpleNamespace(id=user_id, client=client, headers=headers)
