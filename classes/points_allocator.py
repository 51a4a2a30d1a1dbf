import logging
import math
from decimal import Decimal
from models import db, Quiz, QuizAttempt, User
from classes.errors import NotFoundError, NoEligibleWinnersError, AlreadyAllocatedError
from utils.helpers import utcnow, format_datetime, pagination_meta
from utils.transactions import run_critical_transaction

logger = logging.getLogger(__name__)

DEFAULT_POINTS_PER_WINNER = 10
DEFAULT_PERCENTAGE_THRESHOLD = 10


def cohort_size(total, percentage):
    """``max(1, ceil(total * percentage / 100))`` without float rounding noise."""
    exact = Decimal(total) * Decimal(str(percentage)) / Decimal(100)
    return max(1, math.ceil(exact))


def ranked_attempts(quiz_id):
    """Evaluated attempts, best score first; earlier submissions win ties."""
    return (
        QuizAttempt.query
        .filter_by(quiz_id=quiz_id, is_evaluated=True)
        .order_by(QuizAttempt.score.desc(), QuizAttempt.created_at.asc(), QuizAttempt.id.asc())
        .all()
    )


class PointsAllocator:
    @staticmethod
    def select_winners(attempts, percentage):
        size = cohort_size(len(attempts), percentage)
        cohort = attempts[:size]
        return size, [a for a in cohort if a.score > 0]

    @staticmethod
    def allocate(quiz_id, points_per_winner=DEFAULT_POINTS_PER_WINNER,
                 percentage_threshold=DEFAULT_PERCENTAGE_THRESHOLD, force=False, admin_id=None):
        quiz = db.session.get(Quiz, quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")

        if quiz.points_allocated_at and not force:
            raise AlreadyAllocatedError(allocatedAt=format_datetime(quiz.points_allocated_at))

        attempts = ranked_attempts(quiz_id)
        if not attempts:
            raise NotFoundError("No evaluated quiz attempts found for this quiz")

        size, winners = PointsAllocator.select_winners(attempts, percentage_threshold)
        if not winners:
            raise NoEligibleWinnersError()

        winner_ids = [a.id for a in winners]
        if quiz.points_allocated_at:
            logger.warning("Re-running points allocation for quiz %s (forced by admin %s)", quiz_id, admin_id)

        def operation(session):
            allocations = []
            for attempt in QuizAttempt.query.filter(QuizAttempt.id.in_(winner_ids)).all():
                user = attempt.user
                user.points = User.points + points_per_winner
                attempt.points = points_per_winner
                session.flush()
                allocations.append({
                    "attemptId": attempt.id,
                    "userId": user.id,
                    "userEmail": user.email,
                    "userName": user.full_name,
                    "score": attempt.score,
                    "pointsAwarded": points_per_winner,
                    "newTotalPoints": user.points,
                })
            target = session.get(Quiz, quiz_id)
            target.points_allocated_at = utcnow()
            order = {attempt_id: index for index, attempt_id in enumerate(winner_ids)}
            allocations.sort(key=lambda a: order[a["attemptId"]])
            return allocations

        allocations = run_critical_transaction(
            operation,
            context="points_allocation",
            user_id=admin_id,
            description=f"Points allocation for quiz {quiz_id}",
        )

        logger.info(
            "Allocated %d points to %d winners of quiz %s", points_per_winner, len(allocations), quiz_id
        )
        return {
            "quiz": {"id": quiz.id, "title": quiz.title},
            "allocation": {
                "totalAttempts": len(attempts),
                "topPercentageCount": size,
                "eligibleWinners": len(allocations),
                "pointsPerWinner": points_per_winner,
                "totalPointsDistributed": len(allocations) * points_per_winner,
                "percentageThreshold": percentage_threshold,
            },
            "winners": allocations,
        }

    @staticmethod
    def history(quiz_id=None, page=1, limit=20, offset=0):
        query = QuizAttempt.query.filter(QuizAttempt.points > 0)
        if quiz_id:
            query = query.filter(QuizAttempt.quiz_id == quiz_id)
        total = query.count()
        attempts = query.order_by(QuizAttempt.updated_at.desc(), QuizAttempt.id.desc()).offset(offset).limit(limit).all()
        return {
            "attempts": [
                {
                    "id": a.id,
                    "userId": a.user_id,
                    "quizId": a.quiz_id,
                    "score": a.score,
                    "pointsAwarded": a.points,
                    "completedAt": format_datetime(a.updated_at),
                    "user": a.user.to_summary(),
                    "quiz": {"id": a.quiz.id, "title": a.quiz.title},
                }
                for a in attempts
            ],
            "pagination": pagination_meta(page, limit, total),
        }
