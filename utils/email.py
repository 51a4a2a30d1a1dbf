import logging
from flask_mail import Mail, Message

mail = Mail()
logger = logging.getLogger(__name__)

CLAIM_STATUS_MESSAGES = {
    "approved": "Your claim for {prize} has been approved and is being prepared.",
    "rejected": "Your claim for {prize} was rejected. {points} points have been returned to your balance.",
    "fulfilled": "Your claim for {prize} has been fulfilled. Enjoy your prize!",
    "pending": "Your claim for {prize} is pending review.",
}


def send_email(to, subject, body):
    """Sends an email using Flask-Mail."""
    msg = Message(subject=subject, recipients=[to], body=body)
    try:
        mail.send(msg)
        return True
    except Exception as e:
        logger.error("Failed to send email to %s: %s", to, e)
        return False


def notify_claim_status(claim):
    """Tell the player their claim changed status. Returns False if sending failed."""
    body = CLAIM_STATUS_MESSAGES[claim.status].format(prize=claim.prize.name, points=claim.points_used)
    if claim.notes:
        body += f"\n\nNotes from our team: {claim.notes}"
    return send_email(claim.user.email, f"Prize claim {claim.status}", body)
