import logging
from decimal import Decimal
from flask import current_app
from models import db, User, WalletTransaction
from models.wallet_transactions import DEPOSIT_METHODS
from classes.errors import NotFoundError, BusinessRuleError, InvalidTransitionError
from classes.validators import parse_int, parse_number, parse_choice, clean_text
from utils.helpers import utcnow, format_decimal, pagination_meta
from utils.transactions import run_critical_transaction

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = {"approve": "approved", "reject": "rejected"}


class WalletManager:
    """Wallet deposits and their admin review.

    A deposit is recorded as pending and only reaches the balance once an
    admin approves it. Quiz access deductions live in ``PaymentManager``.
    """

    @staticmethod
    def parse_deposit(data):
        return {
            "amount": parse_number(
                data, "amount", required=True,
                min_value=current_app.config.get("WALLET_MIN_DEPOSIT", 5), max_value=100000,
            ),
            "payment_method": parse_choice(data, "paymentMethod", DEPOSIT_METHODS, required=True),
            "transaction_id": clean_text(data, "transactionId", required=True, min_length=4, max_length=100),
        }

    @staticmethod
    def request_deposit(user_id, amount, payment_method, transaction_id):
        def operation(session):
            if WalletTransaction.query.filter_by(transaction_id=transaction_id).first():
                raise BusinessRuleError("This transaction ID has already been submitted", status_code=409)
            deposit = WalletTransaction(
                user_id=user_id,
                amount=Decimal(str(amount)),
                payment_method=payment_method,
                transaction_id=transaction_id,
                status="pending",
            )
            session.add(deposit)
            session.flush()
            return deposit

        deposit = run_critical_transaction(
            operation,
            context="wallet_deposit",
            user_id=user_id,
            description=f"Deposit request of {amount} via {payment_method}",
        )
        logger.info("User %s requested a deposit of %s (transaction %s)", user_id, amount, deposit.id)
        return deposit

    @staticmethod
    def wallet_for_user(user_id):
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        transactions = (
            WalletTransaction.query
            .filter_by(user_id=user_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .all()
        )
        return {
            "balance": format_decimal(user.wallet_balance),
            "transactions": [t.to_dict() for t in transactions],
        }

    @staticmethod
    def list_transactions(status=None, page=1, limit=50, offset=0):
        query = WalletTransaction.query
        if status and status != "all":
            query = query.filter_by(status=status)
        total = query.count()
        transactions = (
            query.order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "transactions": [t.to_dict(include_user=True) for t in transactions],
            "pagination": pagination_meta(page, limit, total),
        }

    @staticmethod
    def parse_review(data):
        return {
            "transaction_id": parse_int(data, "transactionId", required=True, min_value=1),
            "action": parse_choice(data, "action", tuple(REVIEW_ACTIONS), required=True),
            "notes": clean_text(data, "notes", max_length=500),
        }

    @staticmethod
    def review(transaction_id, action, notes=None, admin_id=None):
        """Approve or reject a pending deposit. Approval credits the balance in the same commit."""
        status = REVIEW_ACTIONS[action]

        def operation(session):
            transaction = session.get(WalletTransaction, transaction_id, with_for_update=True)
            if not transaction:
                raise NotFoundError("Transaction not found")
            if transaction.status != "pending":
                raise InvalidTransitionError(
                    f"Transaction is already {transaction.status}",
                    currentStatus=transaction.status,
                    requestedStatus=status,
                )

            transaction.status = status
            transaction.admin_notes = notes
            transaction.processed_at = utcnow()
            transaction.processed_by = admin_id
            if status == "approved":
                transaction.user.wallet_balance = User.wallet_balance + transaction.amount
            session.flush()
            session.refresh(transaction.user)
            return transaction

        transaction = run_critical_transaction(
            operation,
            context="wallet_review",
            user_id=admin_id,
            description=f"Wallet transaction {transaction_id} {action}",
        )
        logger.info("Admin %s %s wallet transaction %s", admin_id, status, transaction.id)
        return {
            "transaction": transaction.to_dict(include_user=True),
            "walletBalance": format_decimal(transaction.user.wallet_balance),
        }
