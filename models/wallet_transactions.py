from models import db
from utils.helpers import utcnow, format_datetime, format_decimal

DEPOSIT_METHODS = ("Easypaisa", "Jazzcash", "Bank")
WALLET_STATUSES = ("pending", "approved", "rejected")


class WalletTransaction(db.Model):
    """A signed wallet movement: deposits are positive, quiz access deductions negative."""

    __tablename__ = "wallet_transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)  # deposit method or 'QuizAccess'
    transaction_id = db.Column(db.String(100), nullable=False, unique=True)
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    admin_notes = db.Column(db.String(500), nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)
    processed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = db.relationship("User", foreign_keys=[user_id], back_populates="wallet_transactions")

    @property
    def kind(self):
        return "deposit" if self.amount > 0 else "deduction"

    def to_dict(self, include_user=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "amount": format_decimal(self.amount),
            "type": self.kind,
            "paymentMethod": self.payment_method,
            "transactionId": self.transaction_id,
            "status": self.status,
            "adminNotes": self.admin_notes,
            "processedAt": format_datetime(self.processed_at),
            "processedBy": self.processed_by,
            "createdAt": format_datetime(self.created_at),
        }
        if include_user:
            data["user"] = self.user.to_summary() if self.user else None
        return data
