from models import db
from utils.helpers import utcnow, format_datetime

QUESTION_STATUSES = ("active", "inactive")


class Question(db.Model):
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    text = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON, nullable=False)
    correct_option = db.Column(db.Integer, nullable=True)
    has_correct_answer = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(20), nullable=False, default="active")
    order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    quiz = db.relationship("Quiz", back_populates="questions")
    answers = db.relationship("Answer", back_populates="question", cascade="all, delete-orphan")

    def accepts_option(self, option):
        return isinstance(option, int) and 0 <= option < len(self.options or [])

    def to_dict(self, include_answer=True):
        data = {
            "id": self.id,
            "quizId": self.quiz_id,
            "text": self.text,
            "options": self.options,
            "status": self.status,
            "order": self.order,
            "createdAt": format_datetime(self.created_at),
        }
        if include_answer:
            data["correctOption"] = self.correct_option
            data["hasCorrectAnswer"] = self.has_correct_answer
        return data
