from models import db
from utils.helpers import utcnow, format_datetime, format_decimal


class DailyPayment(db.Model):
    __tablename__ = "daily_payments"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="completed")
    payment_method = db.Column(db.String(50), nullable=False, default="demo")
    transaction_id = db.Column(db.String(100), nullable=True, unique=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    user = db.relationship("User", back_populates="payments")

    @classmethod
    def find_active(cls, user_id, now=None):
        """Latest completed payment for the user that has not expired yet."""
        now = now or utcnow()
        return (
            cls.query
            .filter(cls.user_id == user_id, cls.status == "completed", cls.expires_at > now)
            .order_by(cls.expires_at.desc())
            .first()
        )

    def to_dict(self):
        remaining = (self.expires_at - utcnow()).total_seconds()
        return {
            "id": self.id,
            "amount": format_decimal(self.amount),
            "status": self.status,
            "paymentMethod": self.payment_method,
            "transactionId": self.transaction_id,
            "expiresAt": format_datetime(self.expires_at),
            "timeRemaining": max(0, int(remaining)),
            "createdAt": format_datetime(self.created_at),
        }
