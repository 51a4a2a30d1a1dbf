from models import db
from utils.helpers import utcnow, format_datetime, format_decimal
from werkzeug.security import generate_password_hash, check_password_hash


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), nullable=False, unique=True)
    email = db.Column(db.String(100), nullable=False, unique=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="player")  # 'player', 'admin'
    points = db.Column(db.Integer, nullable=False, default=0)
    wallet_balance = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    attempts = db.relationship("QuizAttempt", back_populates="user", cascade="all, delete-orphan")
    redemptions = db.relationship("PrizeRedemption", back_populates="user", cascade="all, delete-orphan")
    payments = db.relationship("DailyPayment", back_populates="user", cascade="all, delete-orphan")
    wallet_transactions = db.relationship(
        "WalletTransaction", back_populates="user", foreign_keys="WalletTransaction.user_id",
        cascade="all, delete-orphan"
    )

    def set_password(self, password):
        """Hashes the password before storing."""
        self.password_hash = generate_password_hash(password, method="pbkdf2:sha256")

    def check_password(self, password):
        """Checks if a given password matches the stored hash."""
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == "admin"

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "fullName": self.full_name,
            "phone": self.phone,
            "role": self.role,
            "points": self.points,
            "walletBalance": format_decimal(self.wallet_balance),
            "createdAt": format_datetime(self.created_at),
        }

    def to_summary(self):
        return {"id": self.id, "username": self.username, "email": self.email, "fullName": self.full_name}
