from models import db
from utils.helpers import utcnow, format_datetime

CLAIM_STATUSES = ("pending", "approved", "rejected", "fulfilled")

# Rejected and fulfilled claims are terminal.
CLAIM_TRANSITIONS = {
    "pending": {"approved", "rejected", "fulfilled"},
    "approved": {"fulfilled", "rejected"},
    "rejected": set(),
    "fulfilled": set(),
}


class PrizeRedemption(db.Model):
    __tablename__ = "prize_redemptions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    prize_id = db.Column(db.Integer, db.ForeignKey("prizes.id"), nullable=False, index=True)
    points_used = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    full_name = db.Column(db.String(100), nullable=True)
    whatsapp_number = db.Column(db.String(20), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.String(500), nullable=True)
    requested_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    processed_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship("User", back_populates="redemptions")
    prize = db.relationship("Prize", back_populates="redemptions")

    def can_transition_to(self, status):
        return status in CLAIM_TRANSITIONS[self.status]

    def to_dict(self, include_user=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "prizeId": self.prize_id,
            "pointsUsed": self.points_used,
            "status": self.status,
            "fullName": self.full_name,
            "whatsappNumber": self.whatsapp_number,
            "address": self.address,
            "notes": self.notes,
            "requestedAt": format_datetime(self.requested_at),
            "processedAt": format_datetime(self.processed_at),
            "prize": self.prize.to_summary() if self.prize else None,
        }
        if include_user:
            data["user"] = self.user.to_summary() if self.user else None
        return data
