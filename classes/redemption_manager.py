import logging
from models import db, User, Prize, PrizeRedemption
from models.prize_redemptions import CLAIM_STATUSES
from classes.errors import (
    NotFoundError,
    BusinessRuleError,
    InsufficientPointsError,
    OutOfStockError,
    InvalidTransitionError,
)
from classes.validators import clean_text, parse_int, parse_choice, validate_phone
from utils.helpers import utcnow, pagination_meta
from utils.transactions import run_critical_transaction
from utils.email import notify_claim_status

logger = logging.getLogger(__name__)


class RedemptionManager:
    """Prize redemption and the admin side of the claim workflow."""

    @staticmethod
    def parse_request(data):
        return {
            "prize_id": parse_int(data, "prizeId", required=True, min_value=1),
            "full_name": clean_text(data, "fullName", min_length=2, max_length=100),
            "whatsapp_number": validate_phone("whatsappNumber", clean_text(data, "whatsappNumber")),
            "address": clean_text(data, "address", min_length=10, max_length=500),
        }

    @staticmethod
    def redeem(user_id, prize_id, full_name=None, whatsapp_number=None, address=None):
        """Debit the prize cost, take one unit of stock and open a pending claim.

        Every check runs inside the transaction before the first write, so a
        failed check leaves balance, stock and claims untouched.
        The user and prize rows are locked for the balance and stock checks.
        """

        def operation(session):
            user = session.get(User, user_id, with_for_update=True, populate_existing=True)
            if not user:
                raise NotFoundError("User not found")

            prize = session.get(Prize, prize_id, with_for_update=True, populate_existing=True)
            if not prize or not prize.is_available:
                raise NotFoundError("Prize not found or not available")

            if user.points < prize.points_required:
                raise InsufficientPointsError(required=prize.points_required, available=user.points)

            if not prize.in_stock:
                raise OutOfStockError()

            duplicate = PrizeRedemption.query.filter_by(
                user_id=user_id, prize_id=prize_id, status="pending"
            ).first()
            if duplicate:
                raise BusinessRuleError("You already have a pending claim for this prize")

            cost = prize.points_required
            user.points = User.points - cost
            if prize.stock is not None:
                prize.stock = Prize.stock - 1

            claim = PrizeRedemption(
                user_id=user_id,
                prize_id=prize_id,
                points_used=cost,
                status="pending",
                full_name=full_name,
                whatsapp_number=whatsapp_number,
                address=address,
            )
            session.add(claim)
            session.flush()
            session.refresh(user)
            return claim, user.points

        claim, remaining = run_critical_transaction(
            operation,
            context="prize_redemption",
            user_id=user_id,
            description=f"Prize redemption for prize {prize_id}",
        )
        logger.info(
            "User %s redeemed prize %s for %d points (claim %s, %d left)",
            user_id, prize_id, claim.points_used, claim.id, remaining,
        )
        return {"claim": claim.to_dict(), "remainingPoints": remaining}

    @staticmethod
    def claims_for_user(user_id):
        claims = (
            PrizeRedemption.query
            .filter_by(user_id=user_id)
            .order_by(PrizeRedemption.requested_at.desc(), PrizeRedemption.id.desc())
            .all()
        )
        return [c.to_dict() for c in claims]

    @staticmethod
    def list_claims(status=None, page=1, limit=20, offset=0):
        query = PrizeRedemption.query
        if status:
            query = query.filter_by(status=status)
        total = query.count()
        claims = (
            query.order_by(PrizeRedemption.requested_at.desc(), PrizeRedemption.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "claims": [c.to_dict(include_user=True) for c in claims],
            "pagination": pagination_meta(page, limit, total),
        }

    @staticmethod
    def parse_update(data):
        return {
            "claim_id": parse_int(data, "claimId", required=True, min_value=1),
            "status": parse_choice(data, "status", CLAIM_STATUSES, required=True),
            "notes": clean_text(data, "notes", max_length=500),
        }

    @staticmethod
    def update_claim(claim_id, status, notes=None, admin_id=None):
        """Move a claim along its workflow.

        Entering ``rejected`` returns the points to the player in the same
        commit. A claim that is already rejected can't be rejected again, so
        the refund happens at most once.
        """

        def operation(session):
            claim = session.get(PrizeRedemption, claim_id)
            if not claim:
                raise NotFoundError("Claim not found")

            previous = claim.status
            if status != previous and not claim.can_transition_to(status):
                raise InvalidTransitionError(
                    f"Cannot change claim status from {previous} to {status}",
                    currentStatus=previous,
                    requestedStatus=status,
                )

            if notes is not None:
                claim.notes = notes

            changed = status != previous
            if changed:
                claim.status = status
                claim.processed_at = utcnow()
                if status == "rejected":
                    claim.user.points = User.points + claim.points_used
            session.flush()
            return claim, previous, changed

        claim, previous, changed = run_critical_transaction(
            operation,
            context="claim_update",
            user_id=admin_id,
            description=f"Claim {claim_id} status update to {status}",
        )

        notified = False
        if changed:
            logger.info("Claim %s moved from %s to %s by admin %s", claim.id, previous, status, admin_id)
            if status == "rejected":
                logger.info("Refunded %d points to user %s for claim %s", claim.points_used, claim.user_id, claim.id)
            notified = notify_claim_status(claim)
        else:
            logger.info("Claim %s already %s; status left unchanged", claim.id, status)

        return {"claim": claim.to_dict(include_user=True), "notified": notified}
