import logging
import smtplib
from urllib.parse import quote

from flask_mail import BadHeaderError, Message

from .errors import DeliveryError

logger = logging.getLogger(__name__)

OTP_SUBJECT = 'Your Hackathon Registration OTP'
DEFAULT_SIGNATURE = 'Android Club VITAP'


def build_otp_message(email: str, code: str, sender: str, ttl_minutes: int = 10) -> Message:
    body = (
        f"Your one-time password for hackathon registration is {code}.\n\n"
        f"It expires in {ttl_minutes} minutes. If you did not request it, ignore this email."
    )
    return Message(subject=OTP_SUBJECT, sender=sender, recipients=[email], body=body)


class OtpMailer:
    """Delivers OTP codes through a Flask-Mail ``Mail`` instance.

    Must be called inside an application context.
    """

    def __init__(self, mail, sender=None, ttl_minutes=10):
        self.mail = mail
        self.sender = sender
        self.ttl_minutes = ttl_minutes

    def __call__(self, email: str, code: str):
        if not self.sender:
            logger.error('MAIL_DEFAULT_SENDER not set; cannot send OTP email')
            raise DeliveryError('Email service is not configured.')
        msg = build_otp_message(email, code, self.sender, self.ttl_minutes)
        try:
            self.mail.send(msg)
        except (smtplib.SMTPException, OSError, BadHeaderError) as e:
            logger.error(f'Could not send OTP email to {email}: {e}')
            raise DeliveryError() from e


def certificate_mailto(record: dict, signature: str = DEFAULT_SIGNATURE) -> str:
    """Compose the mail-client link used when a certificate is sent."""
    subject = f"Certificate of Participation - {record.get('teamName', '')}"
    body = (
        f"Hello {record.get('headName', '')},\n\n"
        "Congratulations! Please find your participation certificate attached.\n\n"
        f"- {signature}"
    )
    return f"mailto:{record.get('headEmail', '')}?subject={quote(subject, safe='')}&body={quote(body, safe='')}"
