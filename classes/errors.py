class AppError(Exception):
    """Base class for errors that map onto an HTTP response.

    ``payload`` carries extra JSON fields (``missingQuestions``,
    ``invalidAnswers``, ``required`` ...) rendered next to ``error``.
    """

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None, status_code=None, **payload):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        return {"error": self.message, **self.payload}


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid input data"


class AuthError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(AuthError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class BusinessRuleError(AppError):
    status_code = 400
    default_message = "Operation not allowed"


class InsufficientPointsError(BusinessRuleError):
    default_message = "Insufficient points"


class InsufficientBalanceError(BusinessRuleError):
    default_message = "Insufficient wallet balance"


class OutOfStockError(BusinessRuleError):
    default_message = "This prize is out of stock"


class NoEligibleWinnersError(BusinessRuleError):
    default_message = "No eligible winners found (all top performers scored 0)"


class InvalidTransitionError(BusinessRuleError):
    default_message = "Invalid status transition"


class AlreadyCompletedError(BusinessRuleError):
    status_code = 403
    default_message = "You have already completed this quiz"


class PaymentRequiredError(BusinessRuleError):
    status_code = 403
    default_message = "No active payment found. Please make a payment to access quizzes."


class AlreadyAllocatedError(BusinessRuleError):
    status_code = 409
    default_message = "Points have already been allocated for this quiz"


class TransientStoreError(AppError):
    status_code = 503
    default_message = "Service temporarily unavailable, please try again"
