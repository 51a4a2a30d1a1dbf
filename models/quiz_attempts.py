from models import db
from utils.helpers import utcnow, format_datetime


class QuizAttempt(db.Model):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        db.UniqueConstraint("user_id", "quiz_id", name="uq_quiz_attempts_user_quiz"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    is_evaluated = db.Column(db.Boolean, nullable=False, default=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    points = db.Column(db.Integer, nullable=False, default=0)
    daily_payment_id = db.Column(db.Integer, db.ForeignKey("daily_payments.id", ondelete="SET NULL"), nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    quiz = db.relationship("Quiz", back_populates="attempts")
    user = db.relationship("User", back_populates="attempts")
    answers = db.relationship("Answer", back_populates="attempt", cascade="all, delete-orphan")

    @property
    def answered_question_ids(self):
        return {answer.question_id for answer in self.answers}

    def to_dict(self, include_answers=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "quizId": self.quiz_id,
            "isCompleted": self.is_completed,
            "isEvaluated": self.is_evaluated,
            "score": self.score if self.is_evaluated else None,
            "points": self.points,
            "completedAt": format_datetime(self.completed_at),
            "createdAt": format_datetime(self.created_at),
            "updatedAt": format_datetime(self.updated_at),
        }
        if include_answers:
            data["answers"] = [answer.to_dict() for answer in self.answers]
        return data
