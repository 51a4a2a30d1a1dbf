from flask import Blueprint, request, jsonify, current_app
from models import db, Quiz, Question, QuizAttempt, Prize, WalletTransaction
from models.quizzes import QUIZ_STATUSES
from models.quiz_questions import QUESTION_STATUSES
from models.prizes import PRIZE_CATEGORIES, PRIZE_STATUSES
from models.prize_redemptions import CLAIM_STATUSES
from models.wallet_transactions import WALLET_STATUSES
from classes.errors import NotFoundError, BusinessRuleError, InvalidTransitionError, ValidationError
from classes.validators import (
    require_json,
    clean_text,
    parse_int,
    parse_number,
    parse_choice,
    parse_bool,
    validate_options,
)
from classes.quiz_evaluator import QuizEvaluator
from classes.points_allocator import PointsAllocator, DEFAULT_POINTS_PER_WINNER, DEFAULT_PERCENTAGE_THRESHOLD
from classes.redemption_manager import RedemptionManager
from classes.wallet_manager import WalletManager
from utils.utils import admin_required, csrf_protected, current_user_id
from utils.helpers import get_pagination, get_history_cache

admin_bp = Blueprint("admin", __name__)


def get_quiz_or_404(quiz_id):
    quiz = db.session.get(Quiz, quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found")
    return quiz


def get_question_or_404(question_id):
    question = db.session.get(Question, question_id)
    if not question:
        raise NotFoundError("Question not found")
    return question


def get_prize_or_404(prize_id):
    prize = db.session.get(Prize, prize_id)
    if not prize:
        raise NotFoundError("Prize not found")
    return prize


# Quizzes

@admin_bp.route("/quizzes", methods=["GET"])
@admin_required
def get_quizzes():
    status = parse_choice(request.args, "status", QUIZ_STATUSES)
    query = Quiz.query
    if status:
        query = query.filter_by(status=status)
    quizzes = query.order_by(Quiz.created_at.desc(), Quiz.id.desc()).all()
    return jsonify({
        "quizzes": [
            {**quiz.to_dict(), "attemptCount": len(quiz.attempts)}
            for quiz in quizzes
        ]
    }), 200


@admin_bp.route("/quizzes", methods=["POST"])
@admin_required
@csrf_protected
def create_quiz():
    data = require_json(request.get_json(silent=True))

    quiz = Quiz(
        title=clean_text(data, "title", required=True, min_length=1, max_length=200),
        description=clean_text(data, "description", max_length=2000),
        duration=parse_int(data, "duration", default=30, min_value=1, max_value=180),
        passing_score=parse_int(data, "passingScore", default=50, min_value=0, max_value=100),
        access_price=parse_number(data, "accessPrice", default=0, min_value=0, max_value=1000),
        status=parse_choice(data, "status", ("draft", "active"), default="draft"),
    )
    db.session.add(quiz)
    db.session.commit()

    current_app.logger.info("Admin %s created quiz %s", current_user_id(), quiz.id)
    return jsonify({"message": "Quiz created successfully", "quiz": quiz.to_dict()}), 201


@admin_bp.route("/quizzes/<int:quiz_id>", methods=["GET"])
@admin_required
def get_quiz(quiz_id):
    quiz = get_quiz_or_404(quiz_id)
    return jsonify({"quiz": quiz.to_dict(include_questions=True, include_answers=True)}), 200


@admin_bp.route("/quizzes/<int:quiz_id>", methods=["PUT"])
@admin_required
@csrf_protected
def update_quiz(quiz_id):
    quiz = get_quiz_or_404(quiz_id)
    data = require_json(request.get_json(silent=True))

    if "title" in data:
        quiz.title = clean_text(data, "title", required=True, min_length=1, max_length=200)
    if "description" in data:
        quiz.description = clean_text(data, "description", max_length=2000)
    if "duration" in data:
        quiz.duration = parse_int(data, "duration", required=True, min_value=1, max_value=180)
    if "passingScore" in data:
        quiz.passing_score = parse_int(data, "passingScore", required=True, min_value=0, max_value=100)
    if "accessPrice" in data:
        quiz.access_price = parse_number(data, "accessPrice", required=True, min_value=0, max_value=1000)

    db.session.commit()
    current_app.logger.info("Admin %s updated quiz %s", current_user_id(), quiz.id)
    return jsonify({"message": "Quiz updated successfully", "quiz": quiz.to_dict()}), 200


@admin_bp.route("/quizzes/<int:quiz_id>/status", methods=["PUT"])
@admin_required
@csrf_protected
def update_quiz_status(quiz_id):
    quiz = get_quiz_or_404(quiz_id)
    data = require_json(request.get_json(silent=True))
    status = parse_choice(data, "status", QUIZ_STATUSES, required=True)

    if status == quiz.status:
        return jsonify({"message": f"Quiz is already {status}", "quiz": quiz.to_dict()}), 200

    if not quiz.can_transition_to(status):
        raise InvalidTransitionError(
            f"Cannot change quiz status from {quiz.status} to {status}",
            currentStatus=quiz.status,
            requestedStatus=status,
        )

    previous = quiz.status
    quiz.status = status
    db.session.commit()

    current_app.logger.info("Admin %s moved quiz %s from %s to %s", current_user_id(), quiz.id, previous, status)
    return jsonify({"message": f"Quiz {status}", "quiz": quiz.to_dict()}), 200


@admin_bp.route("/quizzes/<int:quiz_id>", methods=["DELETE"])
@admin_required
@csrf_protected
def delete_quiz(quiz_id):
    quiz = get_quiz_or_404(quiz_id)
    db.session.delete(quiz)
    db.session.commit()

    current_app.logger.info("Admin %s deleted quiz %s", current_user_id(), quiz_id)
    return jsonify({"message": "Quiz deleted successfully"}), 200


# Questions

@admin_bp.route("/quizzes/<int:quiz_id>/questions", methods=["POST"])
@admin_required
@csrf_protected
def add_question(quiz_id):
    quiz = get_quiz_or_404(quiz_id)
    data = require_json(request.get_json(silent=True))

    next_order = max((q.order for q in quiz.questions), default=0) + 1
    question = Question(
        quiz_id=quiz.id,
        text=clean_text(data, "text", required=True, min_length=1, max_length=1000),
        options=validate_options(data.get("options")),
        status=parse_choice(data, "status", QUESTION_STATUSES, default="active"),
        order=parse_int(data, "order", default=next_order, min_value=0),
    )
    db.session.add(question)
    db.session.commit()

    current_app.logger.info("Admin %s added question %s to quiz %s", current_user_id(), question.id, quiz.id)
    return jsonify({"message": "Question added successfully", "question": question.to_dict()}), 201


@admin_bp.route("/questions/<int:question_id>", methods=["PUT"])
@admin_required
@csrf_protected
def update_question(question_id):
    question = get_question_or_404(question_id)
    data = require_json(request.get_json(silent=True))

    if "text" in data:
        question.text = clean_text(data, "text", required=True, min_length=1, max_length=1000)
    if "options" in data:
        options = validate_options(data.get("options"))
        if question.answers and options != question.options:
            raise BusinessRuleError("Options cannot be changed once players have answered this question")
        question.options = options
    if "status" in data:
        question.status = parse_choice(data, "status", QUESTION_STATUSES, required=True)
    if "order" in data:
        question.order = parse_int(data, "order", required=True, min_value=0)

    db.session.commit()
    current_app.logger.info("Admin %s updated question %s", current_user_id(), question.id)
    return jsonify({"message": "Question updated successfully", "question": question.to_dict()}), 200


@admin_bp.route("/questions/<int:question_id>", methods=["DELETE"])
@admin_required
@csrf_protected
def delete_question(question_id):
    question = get_question_or_404(question_id)
    db.session.delete(question)
    db.session.commit()

    current_app.logger.info("Admin %s deleted question %s", current_user_id(), question_id)
    return jsonify({"message": "Question deleted successfully"}), 200


# Prizes

@admin_bp.route("/prizes", methods=["GET"])
@admin_required
def get_prizes():
    prizes = Prize.query.order_by(Prize.created_at.desc(), Prize.id.desc()).all()
    return jsonify({"prizes": [p.to_dict() for p in prizes]}), 200


@admin_bp.route("/prizes", methods=["POST"])
@admin_required
@csrf_protected
def create_prize():
    data = require_json(request.get_json(silent=True))

    prize = Prize(
        name=clean_text(data, "name", required=True, min_length=1, max_length=100),
        description=clean_text(data, "description", max_length=500),
        type=clean_text(data, "type", max_length=50) or "physical",
        category=parse_choice(data, "category", PRIZE_CATEGORIES, default="general"),
        points_required=parse_int(data, "pointsRequired", required=True, min_value=1),
        stock=parse_int(data, "stock", min_value=0),
        is_active=parse_bool(data, "isActive", default=True),
        status=parse_choice(data, "status", PRIZE_STATUSES, default="published"),
    )
    db.session.add(prize)
    db.session.commit()

    current_app.logger.info("Admin %s created prize %s", current_user_id(), prize.id)
    return jsonify({"message": "Prize created successfully", "prize": prize.to_dict()}), 201


@admin_bp.route("/prizes/<int:prize_id>", methods=["PUT"])
@admin_required
@csrf_protected
def update_prize(prize_id):
    prize = get_prize_or_404(prize_id)
    data = require_json(request.get_json(silent=True))

    if "name" in data:
        prize.name = clean_text(data, "name", required=True, min_length=1, max_length=100)
    if "description" in data:
        prize.description = clean_text(data, "description", max_length=500)
    if "type" in data:
        prize.type = clean_text(data, "type", required=True, max_length=50)
    if "category" in data:
        prize.category = parse_choice(data, "category", PRIZE_CATEGORIES, required=True)
    if "pointsRequired" in data:
        prize.points_required = parse_int(data, "pointsRequired", required=True, min_value=1)
    if "stock" in data:
        prize.stock = parse_int(data, "stock", min_value=0)
    if "isActive" in data:
        prize.is_active = parse_bool(data, "isActive")
    if "status" in data:
        prize.status = parse_choice(data, "status", PRIZE_STATUSES, required=True)

    db.session.commit()
    current_app.logger.info("Admin %s updated prize %s", current_user_id(), prize.id)
    return jsonify({"message": "Prize updated successfully", "prize": prize.to_dict()}), 200


@admin_bp.route("/prizes/<int:prize_id>", methods=["DELETE"])
@admin_required
@csrf_protected
def delete_prize(prize_id):
    prize = get_prize_or_404(prize_id)

    # Claims keep pointing at the prize, so a claimed prize is only deactivated.
    if prize.redemptions:
        prize.is_active = False
        db.session.commit()
        current_app.logger.info("Admin %s deactivated claimed prize %s", current_user_id(), prize_id)
        return jsonify({"message": "Prize has claims and was deactivated instead", "prize": prize.to_dict()}), 200

    db.session.delete(prize)
    db.session.commit()
    current_app.logger.info("Admin %s deleted prize %s", current_user_id(), prize_id)
    return jsonify({"message": "Prize deleted successfully"}), 200


# Evaluation and points

@admin_bp.route("/quiz-evaluation", methods=["GET"])
@admin_required
def get_evaluation_status():
    quiz_id = request.args.get("quizId", type=int)
    if not quiz_id:
        raise ValidationError("quizId is required", details=[{"field": "quizId", "message": "required"}])
    return jsonify(QuizEvaluator.status(quiz_id)), 200


@admin_bp.route("/quiz-evaluation", methods=["POST"])
@admin_required
@csrf_protected
def evaluate_quiz():
    data = require_json(request.get_json(silent=True))
    quiz_id = parse_int(data, "quizId", required=True, min_value=1)
    answer_key = QuizEvaluator.parse_answer_key(data)

    results = QuizEvaluator.evaluate(quiz_id, answer_key, admin_id=current_user_id())
    current_app.logger.info("Admin %s evaluated quiz %s", current_user_id(), quiz_id)
    return jsonify({
        "message": "Quiz evaluated successfully",
        "evaluatedAttempts": len(results),
        "results": results,
    }), 200


@admin_bp.route("/points-allocation", methods=["GET"])
@admin_required
def get_points_history():
    quiz_id = request.args.get("quizId", type=int)
    page, limit, offset = get_pagination(request.args)

    cache = get_history_cache()
    cache_key = f"points_allocation_{quiz_id or 'all'}_{page}_{limit}"
    cached = cache.get(cache_key)
    if cached is not None:
        return jsonify(cached), 200

    data = PointsAllocator.history(quiz_id=quiz_id, page=page, limit=limit, offset=offset)
    cache.set(cache_key, data)
    return jsonify(data), 200


@admin_bp.route("/points-allocation", methods=["POST"])
@admin_required
@csrf_protected
def allocate_points():
    data = require_json(request.get_json(silent=True))
    quiz_id = parse_int(data, "quizId", required=True, min_value=1)
    points_per_winner = parse_int(
        data, "pointsPerWinner", default=DEFAULT_POINTS_PER_WINNER, min_value=1, max_value=1000
    )
    percentage_threshold = parse_number(
        data, "percentageThreshold", default=DEFAULT_PERCENTAGE_THRESHOLD, min_value=0.01, max_value=100
    )
    force = parse_bool(data, "force", default=False)

    result = PointsAllocator.allocate(
        quiz_id,
        points_per_winner=points_per_winner,
        percentage_threshold=percentage_threshold,
        force=force,
        admin_id=current_user_id(),
    )
    current_app.logger.info(
        "Admin %s allocated points for quiz %s to %d winners",
        current_user_id(), quiz_id, len(result["winners"]),
    )
    return jsonify({
        "message": f"Points allocated successfully to {len(result['winners'])} winners",
        **result,
    }), 200


# Claims

@admin_bp.route("/claims", methods=["GET"])
@admin_required
def get_claims():
    status = parse_choice(request.args, "status", CLAIM_STATUSES)
    page, limit, offset = get_pagination(request.args)
    return jsonify(RedemptionManager.list_claims(status=status, page=page, limit=limit, offset=offset)), 200


@admin_bp.route("/claims", methods=["PUT"])
@admin_required
@csrf_protected
def update_claim():
    data = require_json(request.get_json(silent=True))
    update = RedemptionManager.parse_update(data)

    result = RedemptionManager.update_claim(admin_id=current_user_id(), **update)
    return jsonify({"message": "Claim updated successfully", **result}), 200


# Wallet

@admin_bp.route("/wallet-transactions", methods=["GET"])
@admin_required
def get_wallet_transactions():
    status = parse_choice(request.args, "status", ("all",) + WALLET_STATUSES, default="all")
    page, limit, offset = get_pagination(request.args, default_limit=50)
    return jsonify(WalletManager.list_transactions(status=status, page=page, limit=limit, offset=offset)), 200


@admin_bp.route("/wallet-transactions", methods=["PATCH"])
@admin_required
@csrf_protected
def review_wallet_transaction():
    data = require_json(request.get_json(silent=True))
    review = WalletManager.parse_review(data)

    result = WalletManager.review(admin_id=current_user_id(), **review)
    return jsonify({"message": f"Transaction {result['transaction']['status']}", **result}), 200


@admin_bp.route("/stats", methods=["GET"])
@admin_required
def get_stats():
    return jsonify({
        "quizzes": Quiz.query.count(),
        "activeQuizzes": Quiz.query.filter_by(status="active").count(),
        "attempts": QuizAttempt.query.count(),
        "pendingEvaluation": QuizAttempt.query.filter_by(is_completed=True, is_evaluated=False).count(),
        "prizes": Prize.query.count(),
        "pendingDeposits": WalletTransaction.query.filter_by(status="pending").count(),
    }), 200
