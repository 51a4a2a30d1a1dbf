from models import db
from utils.helpers import utcnow, format_datetime

PRIZE_CATEGORIES = ("electronics", "vehicles", "accessories", "general")
PRIZE_STATUSES = ("draft", "published")


class Prize(db.Model):
    __tablename__ = "prizes"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    type = db.Column(db.String(50), nullable=False, default="physical")
    category = db.Column(db.String(30), nullable=False, default="general")
    points_required = db.Column(db.Integer, nullable=False)
    stock = db.Column(db.Integer, nullable=True)  # None means unlimited
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    status = db.Column(db.String(20), nullable=False, default="published")
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    redemptions = db.relationship("PrizeRedemption", back_populates="prize")

    @property
    def is_available(self):
        return self.is_active and self.status == "published"

    @property
    def in_stock(self):
        return self.stock is None or self.stock > 0

    def __repr__(self):
        return f"<Prize {self.name} ({self.points_required} pts)>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "category": self.category,
            "pointsRequired": self.points_required,
            "stock": self.stock,
            "isActive": self.is_active,
            "status": self.status,
            "createdAt": format_datetime(self.created_at),
        }

    def to_summary(self):
        return {"id": self.id, "name": self.name, "type": self.type, "pointsRequired": self.points_required}
