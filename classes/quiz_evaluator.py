import logging
from models import db, Quiz, Question, QuizAttempt
from classes.errors import ValidationError, NotFoundError
from utils.helpers import percentage_score
from utils.transactions import run_critical_transaction

logger = logging.getLogger(__name__)


class QuizEvaluator:
    @staticmethod
    def parse_answer_key(data):
        """``{"<questionId>": option}`` from JSON into ``{int: int}``."""
        raw = data.get("correctAnswers")
        if not isinstance(raw, dict) or not raw:
            raise ValidationError(
                "correctAnswers must be a non-empty object",
                details=[{"field": "correctAnswers", "message": "required"}],
            )
        key = {}
        for question_id, option in raw.items():
            try:
                qid = int(question_id)
            except (TypeError, ValueError):
                raise ValidationError(
                    "correctAnswers keys must be question ids",
                    details=[{"field": f"correctAnswers.{question_id}", "message": "invalid question id"}],
                )
            if isinstance(option, bool) or not isinstance(option, int) or option < 0:
                raise ValidationError(
                    "Correct options must be non-negative integers",
                    details=[{"field": f"correctAnswers.{question_id}", "message": "expected option index"}],
                )
            key[qid] = option
        return key

    @staticmethod
    def validate_answer_key(quiz, answer_key):
        questions = quiz.questions
        if not questions:
            raise ValidationError("Quiz has no questions to evaluate")

        by_id = {q.id: q for q in questions}
        missing = sorted(qid for qid in by_id if qid not in answer_key)
        if missing:
            raise ValidationError("Missing correct answers for some questions", missingQuestions=missing)

        unknown = sorted(qid for qid in answer_key if qid not in by_id)
        if unknown:
            raise ValidationError("Correct answers reference questions outside this quiz", unknownQuestions=unknown)

        out_of_range = sorted(qid for qid, option in answer_key.items() if not by_id[qid].accepts_option(option))
        if out_of_range:
            raise ValidationError("Correct option out of range", invalidOptions=out_of_range)

    @staticmethod
    def evaluate(quiz_id, answer_key, admin_id=None):
        """Store the answer key and score every attempt still waiting for evaluation.

        All-or-nothing: the key must cover every question of the quiz or
        nothing is written. Attempts evaluated by an earlier run keep their
        score even if the key has changed since.
        """
        quiz = db.session.get(Quiz, quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")

        QuizEvaluator.validate_answer_key(quiz, answer_key)

        def operation(session):
            total = len(answer_key)
            for question in Question.query.filter_by(quiz_id=quiz_id).all():
                question.correct_option = answer_key[question.id]
                question.has_correct_answer = True

            pending = (
                QuizAttempt.query
                .filter_by(quiz_id=quiz_id, is_evaluated=False, is_completed=True)
                .order_by(QuizAttempt.id)
                .all()
            )
            logger.info("Starting evaluation for quiz %s with %d attempts", quiz_id, len(pending))

            results = []
            for attempt in pending:
                correct = 0
                for answer in attempt.answers:
                    answer.is_correct = answer.selected_option == answer_key.get(answer.question_id)
                    if answer.is_correct:
                        correct += 1
                attempt.score = percentage_score(correct, total)
                attempt.is_evaluated = True
                results.append({
                    "attemptId": attempt.id,
                    "userId": attempt.user_id,
                    "userEmail": attempt.user.email,
                    "score": correct,
                    "totalQuestions": total,
                    "percentage": attempt.score,
                })
                logger.debug("Attempt %s scored %d/%d (%d%%)", attempt.id, correct, total, attempt.score)
            return results

        results = run_critical_transaction(
            operation,
            context="quiz_evaluation",
            user_id=admin_id,
            description=f"Quiz evaluation for quiz {quiz_id}",
        )
        logger.info("Completed evaluation for quiz %s: %d attempts scored", quiz_id, len(results))
        return results

    @staticmethod
    def status(quiz_id):
        quiz = db.session.get(Quiz, quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")

        attempts = QuizAttempt.query.filter_by(quiz_id=quiz_id).order_by(QuizAttempt.created_at).all()
        evaluated = sum(1 for a in attempts if a.is_evaluated)
        pending = len(attempts) - evaluated
        with_answers = sum(1 for q in quiz.questions if q.has_correct_answer)
        return {
            "quiz": {
                "id": quiz.id,
                "title": quiz.title,
                "totalQuestions": quiz.total_questions,
                "questionsWithAnswers": with_answers,
            },
            "evaluation": {
                "totalAttempts": len(attempts),
                "evaluatedAttempts": evaluated,
                "pendingAttempts": pending,
                "isFullyEvaluated": pending == 0 and with_answers == quiz.total_questions,
            },
            "questions": [q.to_dict() for q in quiz.questions],
            "attempts": [
                {**a.to_dict(), "user": a.user.to_summary()} for a in attempts
            ],
        }
