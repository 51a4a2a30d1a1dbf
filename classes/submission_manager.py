import logging
from models import db, Quiz, QuizAttempt, Answer, DailyPayment
from classes.errors import ValidationError, NotFoundError, AlreadyCompletedError, PaymentRequiredError
from utils.helpers import utcnow
from utils.transactions import run_critical_transaction

logger = logging.getLogger(__name__)


class SubmissionManager:
    """Stores a player's answers for later evaluation.

    A player gets one attempt row per quiz. When an admin adds questions to a
    quiz the player already completed, the same row is reused for the new
    questions only and goes back to unevaluated.
    """

    @staticmethod
    def parse_answers(data):
        answers = data.get("answers")
        if not isinstance(answers, list) or not answers:
            raise ValidationError(
                "answers must be a non-empty list",
                details=[{"field": "answers", "message": "required"}],
            )
        parsed = {}
        for index, item in enumerate(answers):
            if not isinstance(item, dict):
                raise ValidationError(
                    "Each answer must be an object",
                    details=[{"field": f"answers[{index}]", "message": "expected object"}],
                )
            question_id = item.get("questionId")
            option = item.get("selectedOption")
            for field, value in (("questionId", question_id), ("selectedOption", option)):
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ValidationError(
                        f"{field} must be an integer",
                        details=[{"field": f"answers[{index}].{field}", "message": "expected integer"}],
                    )
            if question_id in parsed:
                raise ValidationError(
                    "Duplicate answer for the same question",
                    details=[{"field": f"answers[{index}].questionId", "message": "duplicate"}],
                )
            parsed[question_id] = option
        return parsed

    @staticmethod
    def get_open_quiz(quiz_id):
        quiz = db.session.get(Quiz, quiz_id)
        if not quiz or quiz.status != "active":
            raise NotFoundError("Quiz not found or inactive")
        return quiz

    @staticmethod
    def find_attempt(user_id, quiz_id):
        return QuizAttempt.query.filter_by(user_id=user_id, quiz_id=quiz_id).first()

    @staticmethod
    def pending_questions(quiz, attempt):
        """Active questions the player still has to answer."""
        if attempt is None or not attempt.is_completed:
            return quiz.active_questions
        answered = attempt.answered_question_ids
        return [q for q in quiz.active_questions if q.id not in answered]

    @staticmethod
    def submit(user_id, quiz_id, answers):
        """Validate ``answers`` ({question_id: option}) and store them unevaluated."""
        quiz = SubmissionManager.get_open_quiz(quiz_id)

        payment = DailyPayment.find_active(user_id)
        if not payment:
            raise PaymentRequiredError()

        active = {q.id: q for q in quiz.active_questions}
        unknown = sorted(qid for qid in answers if qid not in active)
        if unknown:
            raise ValidationError("Answers reference questions outside this quiz", unknownQuestions=unknown)

        out_of_range = sorted(qid for qid, option in answers.items() if not active[qid].accepts_option(option))
        if out_of_range:
            raise ValidationError("Selected option out of range", invalidOptions=out_of_range)

        attempt = SubmissionManager.find_attempt(user_id, quiz_id)
        is_reattempt = bool(attempt and attempt.is_completed)
        pending = SubmissionManager.pending_questions(quiz, attempt)

        if is_reattempt:
            if not pending:
                raise AlreadyCompletedError()
            answered = attempt.answered_question_ids
            already = sorted(qid for qid in answers if qid in answered)
            if already:
                raise ValidationError(
                    "Some questions were already answered in your previous submission",
                    invalidAnswers=already,
                )

        missing = sorted(q.id for q in pending if q.id not in answers)
        if missing:
            raise ValidationError("All questions must be answered", missingQuestions=missing)

        existing = attempt

        def operation(session):
            target = existing
            if target is None:
                target = QuizAttempt(user_id=user_id, quiz_id=quiz_id, score=0, points=0)
                session.add(target)
            target.is_completed = True
            target.is_evaluated = False
            target.completed_at = utcnow()
            target.daily_payment_id = payment.id
            for question_id, option in answers.items():
                target.answers.append(Answer(
                    user_id=user_id,
                    question_id=question_id,
                    selected_option=option,
                ))
            session.flush()
            return target

        attempt = run_critical_transaction(
            operation,
            context="quiz_submission",
            user_id=user_id,
            description=f"Quiz submission for quiz {quiz_id}",
        )

        logger.info(
            "User %s submitted %d answers for quiz %s (attempt %s, reattempt=%s)",
            user_id, len(answers), quiz_id, attempt.id, is_reattempt,
        )
        return {
            "attemptId": attempt.id,
            "score": None,
            "points": None,
            "totalQuestions": len(active),
            "submittedAnswers": len(answers),
            "status": "pending_evaluation",
            "isReattempt": is_reattempt,
        }
