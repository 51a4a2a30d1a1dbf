from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy
db = SQLAlchemy()

# Import models
from models.users import User

from models.quizzes import Quiz
from models.quiz_questions import Question
from models.quiz_attempts import QuizAttempt
from models.quiz_attempts_answers import Answer

from models.prizes import Prize
from models.prize_redemptions import PrizeRedemption

from models.daily_payments import DailyPayment
from models.wallet_transactions import WalletTransaction
