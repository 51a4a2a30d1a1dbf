from models import db
from utils.helpers import utcnow, format_datetime, format_decimal

QUIZ_STATUSES = ("draft", "active", "paused")

# status -> statuses it may move to
QUIZ_TRANSITIONS = {
    "draft": {"active"},
    "active": {"paused"},
    "paused": {"active"},
}


class Quiz(db.Model):
    __tablename__ = "quizzes"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="draft")
    duration = db.Column(db.Integer, nullable=True, default=30)  # minutes
    passing_score = db.Column(db.Integer, nullable=False, default=50)
    access_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    points_allocated_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    questions = db.relationship(
        "Question", back_populates="quiz", cascade="all, delete-orphan",
        order_by="Question.order, Question.id",
    )
    attempts = db.relationship("QuizAttempt", back_populates="quiz", cascade="all, delete-orphan")

    @property
    def active_questions(self):
        return [q for q in self.questions if q.status == "active"]

    @property
    def total_questions(self):
        """Dynamically count total questions without storing in the database"""
        return len(self.questions)

    def can_transition_to(self, status):
        return status in QUIZ_TRANSITIONS.get(self.status, set())

    def __repr__(self):
        return f"<Quiz {self.title} ({self.status})>"

    def to_dict(self, include_questions=False, include_answers=False):
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "duration": self.duration,
            "passingScore": self.passing_score,
            "accessPrice": format_decimal(self.access_price),
            "totalQuestions": self.total_questions,
            "pointsAllocatedAt": format_datetime(self.points_allocated_at),
            "createdAt": format_datetime(self.created_at),
            "updatedAt": format_datetime(self.updated_at),
        }
        if include_questions:
            data["questions"] = [q.to_dict(include_answer=include_answers) for q in self.questions]
        return data
