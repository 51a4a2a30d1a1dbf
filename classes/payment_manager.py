import logging
import secrets
from datetime import timedelta
from decimal import Decimal
from flask import current_app
from models import User, DailyPayment, WalletTransaction
from classes.errors import NotFoundError, InsufficientBalanceError
from classes.validators import parse_number, clean_text
from utils.helpers import utcnow, format_decimal
from utils.transactions import run_critical_transaction

logger = logging.getLogger(__name__)


class PaymentManager:
    """Daily-access payments, demo or wallet-funded. A completed payment opens every active quiz for a day."""

    @staticmethod
    def parse_request(data):
        return {
            "amount": parse_number(data, "amount", required=True, min_value=0.01, max_value=1000),
            "payment_method": clean_text(data, "paymentMethod", max_length=50) or "demo",
            "transaction_id": clean_text(data, "transactionId", max_length=100),
        }

    @staticmethod
    def purchase(user_id, amount, payment_method="demo", transaction_id=None):
        """Returns ``(payment, created)``; an unexpired payment is returned as is."""
        existing = DailyPayment.find_active(user_id)
        if existing:
            logger.info("User %s already has access until %s", user_id, existing.expires_at)
            return existing, False

        hours = current_app.config.get("DAILY_ACCESS_HOURS", 24)

        def operation(session):
            now = utcnow()
            payment = DailyPayment(
                user_id=user_id,
                amount=Decimal(str(amount)),
                status="completed",
                payment_method=payment_method,
                transaction_id=transaction_id or f"daily_txn_{now:%Y%m%d%H%M%S}_{user_id}_{secrets.token_hex(4)}",
                expires_at=now + timedelta(hours=hours),
                created_at=now,
            )
            session.add(payment)
            session.flush()
            return payment

        payment = run_critical_transaction(
            operation,
            context="daily_payment",
            user_id=user_id,
            description=f"Daily access payment of {amount}",
        )
        logger.info("User %s bought daily access until %s (payment %s)", user_id, payment.expires_at, payment.id)
        return payment, True

    @staticmethod
    def purchase_with_wallet(user_id, amount):
        """Pay for daily access from the wallet balance.

        The deduction, its wallet record and the access payment commit
        together. Returns ``(payment, created)`` like ``purchase``.
        """
        existing = DailyPayment.find_active(user_id)
        if existing:
            logger.info("User %s already has access until %s", user_id, existing.expires_at)
            return existing, False

        hours = current_app.config.get("DAILY_ACCESS_HOURS", 24)
        fee = Decimal(str(amount))

        def operation(session):
            user = session.get(User, user_id, with_for_update=True, populate_existing=True)
            if not user:
                raise NotFoundError("User not found")
            if user.wallet_balance < fee:
                raise InsufficientBalanceError(
                    insufficientBalance=True,
                    requiredAmount=format_decimal(fee),
                    currentBalance=format_decimal(user.wallet_balance),
                )

            now = utcnow()
            stamp = f"{now:%Y%m%d%H%M%S}_{user_id}_{secrets.token_hex(4)}"
            user.wallet_balance = User.wallet_balance - fee
            session.add(WalletTransaction(
                user_id=user_id,
                amount=-fee,
                payment_method="QuizAccess",
                transaction_id=f"quiz_access_{stamp}",
                status="approved",
                admin_notes=f"{hours}-hour quiz access payment",
                processed_at=now,
            ))
            payment = DailyPayment(
                user_id=user_id,
                amount=fee,
                status="completed",
                payment_method="wallet",
                transaction_id=f"wallet_{stamp}",
                expires_at=now + timedelta(hours=hours),
                created_at=now,
            )
            session.add(payment)
            session.flush()
            return payment

        payment = run_critical_transaction(
            operation,
            context="wallet_daily_payment",
            user_id=user_id,
            description=f"Wallet deduction of {amount} for daily access",
        )
        logger.info("User %s paid %s from wallet for access until %s", user_id, amount, payment.expires_at)
        return payment, True

    @staticmethod
    def status(user_id):
        payment = DailyPayment.find_active(user_id)
        return {
            "hasAccess": payment is not None,
            "payment": payment.to_dict() if payment else None,
        }
