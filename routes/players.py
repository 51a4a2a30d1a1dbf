from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import func
from models import db, User, Quiz, QuizAttempt, Prize, DailyPayment
from classes.errors import NotFoundError, AlreadyCompletedError, BusinessRuleError, ValidationError
from classes.validators import require_json, clean_text, parse_secret, validate_email, validate_phone
from classes.submission_manager import SubmissionManager
from classes.redemption_manager import RedemptionManager
from classes.payment_manager import PaymentManager
from classes.wallet_manager import WalletManager
from utils.utils import login_required, csrf_protected, current_user_id
from utils.helpers import get_history_cache, format_decimal

player_bp = Blueprint("player", __name__)


@player_bp.route("/quizzes", methods=["GET"])
@login_required
def get_quizzes():
    """Active quizzes with the player's progress on each."""
    user_id = current_user_id()
    quizzes = Quiz.query.filter_by(status="active").order_by(Quiz.created_at.desc()).all()
    attempts = {a.quiz_id: a for a in QuizAttempt.query.filter_by(user_id=user_id).all()}
    payment = DailyPayment.find_active(user_id)

    result = []
    for quiz in quizzes:
        attempt = attempts.get(quiz.id)
        is_completed = bool(attempt and attempt.is_completed)
        new_questions = SubmissionManager.pending_questions(quiz, attempt) if is_completed else []
        result.append({
            **quiz.to_dict(),
            "questionCount": len(quiz.active_questions),
            "isCompleted": is_completed,
            "hasNewQuestions": bool(new_questions),
            "newQuestionsCount": len(new_questions),
            "lastAttemptDate": attempt.completed_at.isoformat() if attempt and attempt.completed_at else None,
        })

    return jsonify({
        "quizzes": result,
        "hasAccess": payment is not None,
        "paymentInfo": payment.to_dict() if payment else None,
    }), 200


@player_bp.route("/quizzes/<int:quiz_id>", methods=["GET"])
@login_required
def get_quiz(quiz_id):
    """Questions the player still has to answer; correct options are never included."""
    user_id = current_user_id()
    quiz = SubmissionManager.get_open_quiz(quiz_id)
    attempt = SubmissionManager.find_attempt(user_id, quiz_id)
    questions = SubmissionManager.pending_questions(quiz, attempt)
    is_reattempt = bool(attempt and attempt.is_completed)

    if is_reattempt and not questions:
        raise AlreadyCompletedError()

    return jsonify({
        "quiz": {
            **quiz.to_dict(),
            "questions": [q.to_dict(include_answer=False) for q in questions],
        },
        "isReattempt": is_reattempt,
        "hasAccess": DailyPayment.find_active(user_id) is not None,
    }), 200


@player_bp.route("/quizzes/<int:quiz_id>/submit", methods=["POST"])
@login_required
@csrf_protected
def submit_quiz(quiz_id):
    user_id = current_user_id()
    data = require_json(request.get_json(silent=True))
    answers = SubmissionManager.parse_answers(data)

    result = SubmissionManager.submit(user_id, quiz_id, answers)
    current_app.logger.info("Quiz %s submitted by user %s", quiz_id, user_id)

    message = (
        "New answers submitted successfully. Results will be available after evaluation."
        if result["isReattempt"]
        else "Quiz submitted successfully. Results will be available after evaluation."
    )
    return jsonify({"message": message, **result}), 201


@player_bp.route("/quizzes/<int:quiz_id>/results", methods=["GET"])
@login_required
def get_quiz_results(quiz_id):
    user_id = current_user_id()
    quiz = db.session.get(Quiz, quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found")

    attempt = SubmissionManager.find_attempt(user_id, quiz_id)
    if not attempt or not attempt.is_completed:
        raise NotFoundError("No completed attempt found for this quiz")

    data = {
        "quiz": {"id": quiz.id, "title": quiz.title, "passingScore": quiz.passing_score},
        "attempt": attempt.to_dict(include_answers=attempt.is_evaluated),
        "totalQuestions": quiz.total_questions,
        "status": "evaluated" if attempt.is_evaluated else "pending_evaluation",
    }
    if attempt.is_evaluated:
        data["correctAnswers"] = sum(1 for a in attempt.answers if a.is_correct)
        data["passed"] = attempt.score >= quiz.passing_score
    return jsonify(data), 200


@player_bp.route("/daily-payment", methods=["POST"])
@login_required
@csrf_protected
def create_daily_payment():
    user_id = current_user_id()
    data = require_json(request.get_json(silent=True))
    details = PaymentManager.parse_request(data)

    payment, created = PaymentManager.purchase(user_id, **details)
    if not created:
        return jsonify({
            "message": "You already have active quiz access",
            "payment": payment.to_dict(),
            "hasAccess": True,
        }), 200

    current_app.logger.info("Daily payment %s created for user %s", payment.id, user_id)
    return jsonify({
        "message": "Daily payment successful! You now have 24-hour quiz access.",
        "payment": payment.to_dict(),
        "hasAccess": True,
    }), 201


@player_bp.route("/daily-payment", methods=["GET"])
@login_required
def get_daily_payment():
    return jsonify(PaymentManager.status(current_user_id())), 200


@player_bp.route("/daily-payment/wallet", methods=["POST"])
@login_required
@csrf_protected
def create_wallet_daily_payment():
    user_id = current_user_id()
    data = require_json(request.get_json(silent=True))
    amount = PaymentManager.parse_request(data)["amount"]

    payment, created = PaymentManager.purchase_with_wallet(user_id, amount)
    balance = format_decimal(db.session.get(User, user_id).wallet_balance)
    if not created:
        return jsonify({
            "message": "You already have active quiz access",
            "payment": payment.to_dict(),
            "hasAccess": True,
            "walletBalance": balance,
        }), 200

    return jsonify({
        "message": "Payment successful! You now have 24-hour quiz access.",
        "payment": payment.to_dict(),
        "hasAccess": True,
        "walletBalance": balance,
    }), 201


@player_bp.route("/wallet", methods=["GET"])
@login_required
def get_wallet():
    return jsonify(WalletManager.wallet_for_user(current_user_id())), 200


@player_bp.route("/wallet/deposits", methods=["POST"])
@login_required
@csrf_protected
def request_deposit():
    data = require_json(request.get_json(silent=True))
    details = WalletManager.parse_deposit(data)

    deposit = WalletManager.request_deposit(current_user_id(), **details)
    return jsonify({
        "message": "Deposit request submitted. Your balance updates once an admin approves it.",
        "transaction": deposit.to_dict(),
    }), 201


@player_bp.route("/prizes", methods=["GET"])
@login_required
def get_prizes():
    prizes = (
        Prize.query
        .filter_by(is_active=True, status="published")
        .order_by(Prize.points_required.asc(), Prize.id.asc())
        .all()
    )
    return jsonify({"prizes": [p.to_dict() for p in prizes]}), 200


@player_bp.route("/prize-redemption", methods=["POST"])
@login_required
@csrf_protected
def redeem_prize():
    user_id = current_user_id()
    data = require_json(request.get_json(silent=True))
    details = RedemptionManager.parse_request(data)

    result = RedemptionManager.redeem(user_id, **details)
    current_app.logger.info("User %s redeemed prize %s", user_id, details["prize_id"])
    return jsonify({"message": "Prize claimed successfully! Our team will contact you soon.", **result}), 201


@player_bp.route("/prize-redemption", methods=["GET"])
@login_required
def get_redemptions():
    return jsonify({"claims": RedemptionManager.claims_for_user(current_user_id())}), 200


@player_bp.route("/leaderboard", methods=["GET"])
@login_required
def get_leaderboard():
    """Top players by points. Served from the history cache, so it can lag behind new credits."""
    try:
        limit = int(request.args.get("limit", 10))
    except (TypeError, ValueError):
        limit = 10
    limit = min(max(limit, 1), 100)

    cache = get_history_cache()
    cache_key = f"leaderboard_{limit}"
    cached = cache.get(cache_key)
    if cached is not None:
        return jsonify(cached), 200

    completed = (
        db.session.query(QuizAttempt.user_id, func.count(QuizAttempt.id).label("completed"))
        .filter(QuizAttempt.is_completed.is_(True))
        .group_by(QuizAttempt.user_id)
        .subquery()
    )
    rows = (
        db.session.query(User, func.coalesce(completed.c.completed, 0))
        .outerjoin(completed, completed.c.user_id == User.id)
        .filter(User.role == "player")
        .order_by(User.points.desc(), User.id.asc())
        .limit(limit)
        .all()
    )
    data = {
        "leaderboard": [
            {
                "rank": index,
                "userId": user.id,
                "username": user.username,
                "fullName": user.full_name,
                "points": user.points,
                "quizzesCompleted": quizzes_completed,
            }
            for index, (user, quizzes_completed) in enumerate(rows, start=1)
        ],
        "limit": limit,
    }
    cache.set(cache_key, data)
    return jsonify(data), 200


@player_bp.route("/profile", methods=["GET"])
@login_required
def get_profile():
    user = db.session.get(User, current_user_id())
    if not user:
        raise NotFoundError("User not found")

    completed = QuizAttempt.query.filter_by(user_id=user.id, is_completed=True).count()
    payment = DailyPayment.find_active(user.id)
    return jsonify({
        "user": user.to_dict(),
        "stats": {
            "quizzesCompleted": completed,
            "claims": len(user.redemptions),
        },
        "hasAccess": payment is not None,
    }), 200


@player_bp.route("/profile", methods=["PUT"])
@login_required
@csrf_protected
def update_profile():
    user = db.session.get(User, current_user_id())
    if not user:
        raise NotFoundError("User not found")
    data = require_json(request.get_json(silent=True))

    if "fullName" in data:
        user.full_name = clean_text(data, "fullName", required=True, min_length=2, max_length=100)
    if "phone" in data:
        user.phone = validate_phone("phone", clean_text(data, "phone"))
    if "email" in data:
        email = validate_email("email", (clean_text(data, "email", required=True, max_length=100) or "").lower())
        taken = User.query.filter(User.email == email, User.id != user.id).first()
        if taken:
            raise BusinessRuleError("Email already in use", status_code=409)
        user.email = email

    db.session.commit()
    current_app.logger.info("User %s updated their profile", user.id)
    return jsonify({"message": "Profile updated successfully", "user": user.to_dict()}), 200


@player_bp.route("/profile/change-password", methods=["POST"])
@login_required
@csrf_protected
def change_password():
    user = db.session.get(User, current_user_id())
    if not user:
        raise NotFoundError("User not found")
    data = require_json(request.get_json(silent=True))

    current_password = parse_secret(data, "currentPassword")
    new_password = parse_secret(data, "newPassword", min_length=8, max_length=128)

    if not current_password or not user.check_password(current_password):
        current_app.logger.warning("Failed password change for user %s", user.id)
        raise ValidationError(
            "Current password is incorrect",
            details=[{"field": "currentPassword", "message": "incorrect"}],
        )
    if new_password == current_password:
        raise ValidationError(
            "New password must be different from the current password",
            details=[{"field": "newPassword", "message": "unchanged"}],
        )

    user.set_password(new_password)
    db.session.commit()
    current_app.logger.info("User %s changed their password", user.id)
    return jsonify({"message": "Password changed successfully"}), 200
