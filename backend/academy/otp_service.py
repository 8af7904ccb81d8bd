# backend/academy/otp_service.py
"""
One-time passcode issuance, delivery and verification.

Per (identifier, type) a code moves Unrequested -> Issued -> Verified | Expired |
Superseded. Issuing a new code supersedes every earlier unused one, and both
issuance and verification are rate limited per identifier. Phone identifiers
are keyed in E.164 form so every spelling of one number is one identity.

Delivery goes through Twilio (phone) or SMTP (email). A configured channel that
fails raises DependencyError and nothing is persisted; an unconfigured channel
logs the code instead so local development keeps working.
"""

import logging
import secrets
import smtplib
from dataclasses import dataclass
from datetime import timedelta
from email.message import EmailMessage
from typing import Optional

from sqlalchemy.orm import Session
from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

from . import config, models, progress
from .errors import AuthenticationError, DependencyError, RateLimitError, ValidationError
from .models import utcnow
from .ratelimit import IdentifierRateLimiter
from .utils import is_valid_email, is_valid_phone, normalize_identifier, normalize_phone, to_e164

logger = logging.getLogger(__name__)

OTP_MIN = 100000
OTP_SPAN = 900000
DEFAULT_STUDENT_NAME = "Student"
INVALID_OTP_MESSAGE = "Invalid or expired OTP"

request_limiter = IdentifierRateLimiter(config.OTP_REQUEST_LIMIT, "otp-request")
verify_limiter = IdentifierRateLimiter(config.OTP_VERIFY_LIMIT, "otp-verify")


@dataclass
class OtpIssue:
    code: str
    delivered: bool


def generate_otp() -> str:
    # randbelow rejection-samples internally, so the range carries no modulo bias
    return str(OTP_MIN + secrets.randbelow(OTP_SPAN))


def _otp_message(code: str, name: str) -> str:
    return (
        f"Hello {name}! Your {config.ACADEMY_NAME} login OTP is: {code}. "
        f"This OTP will expire in {config.OTP_TTL_MINUTES} minutes. Do not share this code with anyone."
    )


def send_sms_otp(phone: str, code: str, name: str) -> bool:
    """Send the code by SMS. Returns False when Twilio is not configured."""
    if not config.sms_configured():
        logger.warning("Twilio not configured; OTP for %s is %s", phone, code)
        return False
    to_number = to_e164(phone, config.DEFAULT_COUNTRY_CODE)
    try:
        client = TwilioClient(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)
        message = client.messages.create(
            body=_otp_message(code, name),
            from_=config.TWILIO_PHONE_NUMBER,
            to=to_number,
        )
    except (TwilioException, OSError) as e:
        logger.error("Failed to send SMS OTP to %s: %s", to_number, e)
        raise DependencyError("Failed to send OTP, please try again later") from e
    logger.info("SMS OTP sent to %s (sid=%s)", to_number, message.sid)
    return True


def send_email_otp(email: str, code: str, name: str) -> bool:
    """Send the code by email over SMTP (STARTTLS). Returns False when SMTP is not configured."""
    if not config.smtp_configured():
        logger.warning("SMTP not configured; OTP for %s is %s", email, code)
        return False

    msg = EmailMessage()
    msg["Subject"] = f"Your {config.ACADEMY_NAME} Login OTP"
    msg["From"] = config.SMTP_FROM
    msg["To"] = email
    msg.set_content(_otp_message(code, name) + "\n\nIf you didn't request this, ignore this message.\n")
    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=10) as smtp:
            smtp.starttls()
            if config.SMTP_USER and config.SMTP_PASS:
                smtp.login(config.SMTP_USER, config.SMTP_PASS)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email OTP to %s: %s", email, e)
        raise DependencyError("Failed to send OTP, please try again later") from e
    logger.info("Email OTP sent to %s", email)
    return True


def dispatch_otp(identifier: str, code: str, otp_type: str, name: str) -> bool:
    if otp_type == "phone":
        return send_sms_otp(identifier, code, name)
    if otp_type == "email":
        return send_email_otp(identifier, code, name)
    raise ValidationError.for_field("type", f"Invalid OTP type: {otp_type}")


def canonical_identifier(identifier: str, otp_type: str) -> str:
    return normalize_identifier(identifier, otp_type, config.DEFAULT_COUNTRY_CODE)


def validate_identifier(identifier: str, otp_type: str) -> str:
    if otp_type == "email" and not is_valid_email(identifier.strip()):
        raise ValidationError.for_field("identifier", "Please enter a valid email address")
    if otp_type == "phone" and not is_valid_phone(normalize_phone(identifier)):
        raise ValidationError.for_field("identifier", "Please enter a valid phone number")
    return canonical_identifier(identifier, otp_type)


# ---------- store operations ----------

def supersede_prior_otps(db: Session, identifier: str, otp_type: str) -> int:
    return (
        db.query(models.Otp)
        .filter(
            models.Otp.identifier == identifier,
            models.Otp.type == otp_type,
            models.Otp.is_used.is_(False),
        )
        .update({models.Otp.is_used: True, models.Otp.superseded: True}, synchronize_session=False)
    )


def get_valid_otp(db: Session, identifier: str, code: str, otp_type: str) -> Optional[models.Otp]:
    return (
        db.query(models.Otp)
        .filter(
            models.Otp.identifier == identifier,
            models.Otp.code == code,
            models.Otp.type == otp_type,
            models.Otp.is_used.is_(False),
            models.Otp.expires_at > utcnow(),
        )
        .order_by(models.Otp.created_at.desc())
        .first()
    )


def mark_otp_used(db: Session, otp_id: int) -> bool:
    """Conditional update: only one concurrent verifier can flip is_used."""
    updated = (
        db.query(models.Otp)
        .filter(models.Otp.id == otp_id, models.Otp.is_used.is_(False))
        .update({models.Otp.is_used: True}, synchronize_session=False)
    )
    return updated == 1


def remember_pending(db: Session, identifier: str, otp_type: str, name: str) -> models.PendingVerification:
    pending = (
        db.query(models.PendingVerification)
        .filter_by(identifier=identifier, type=otp_type)
        .first()
    )
    expires_at = utcnow() + timedelta(minutes=config.OTP_TTL_MINUTES)
    if pending is None:
        pending = models.PendingVerification(identifier=identifier, type=otp_type, name=name, expires_at=expires_at)
        db.add(pending)
    else:
        pending.name = name
        pending.expires_at = expires_at
    return pending


def pop_pending_name(db: Session, identifier: str, otp_type: str) -> Optional[str]:
    pending = (
        db.query(models.PendingVerification)
        .filter_by(identifier=identifier, type=otp_type)
        .first()
    )
    if pending is None:
        return None
    name = pending.name if pending.expires_at > utcnow() else None
    db.delete(pending)
    return name


def cleanup_expired_otps(db: Session) -> int:
    now = utcnow()
    removed = db.query(models.Otp).filter(models.Otp.expires_at <= now).delete(synchronize_session=False)
    db.query(models.PendingVerification).filter(
        models.PendingVerification.expires_at <= now
    ).delete(synchronize_session=False)
    db.commit()
    return removed


def find_student(db: Session, identifier: str, otp_type: str) -> Optional[models.StudentUser]:
    column = models.StudentUser.email if otp_type == "email" else models.StudentUser.phone
    return db.query(models.StudentUser).filter(column == identifier).first()


# ---------- operations ----------

def request_otp(db: Session, identifier: str, name: Optional[str], otp_type: str) -> OtpIssue:
    identifier = validate_identifier(identifier, otp_type)
    if not request_limiter.hit(otp_type, identifier):
        raise RateLimitError("Too many OTP requests, please wait before trying again")

    display_name = (name or "").strip() or DEFAULT_STUDENT_NAME
    supersede_prior_otps(db, identifier, otp_type)
    code = generate_otp()
    db.add(models.Otp(
        identifier=identifier,
        code=code,
        type=otp_type,
        expires_at=utcnow() + timedelta(minutes=config.OTP_TTL_MINUTES),
    ))
    remember_pending(db, identifier, otp_type, display_name)
    db.flush()

    try:
        delivered = dispatch_otp(identifier, code, otp_type, display_name)
    except DependencyError:
        db.rollback()
        raise
    db.commit()
    return OtpIssue(code=code, delivered=delivered)


def verify_otp(db: Session, identifier: str, code: str, otp_type: str) -> models.StudentUser:
    """
    Consume a valid code and resolve (or create) the student behind it.
    Wrong, expired, superseded and already-used codes all fail the same way.
    """
    identifier = canonical_identifier(identifier, otp_type)
    if not verify_limiter.hit(otp_type, identifier):
        raise RateLimitError("Too many verification attempts, please request a new OTP later")

    record = get_valid_otp(db, identifier, code, otp_type)
    if record is None or not mark_otp_used(db, record.id):
        db.rollback()
        raise AuthenticationError(INVALID_OTP_MESSAGE)

    pending_name = pop_pending_name(db, identifier, otp_type)
    student = find_student(db, identifier, otp_type)
    if student is None:
        student = models.StudentUser(name=pending_name or DEFAULT_STUDENT_NAME)
        if otp_type == "email":
            student.email = identifier
        else:
            student.phone = identifier
        db.add(student)
        db.flush()
        logger.info("Created student id=%s from %s OTP", student.id, otp_type)
    elif not student.is_active:
        db.rollback()
        raise AuthenticationError(INVALID_OTP_MESSAGE)

    student.last_login = utcnow()
    progress.touch_login_streak(db, student.id)
    db.commit()
    db.refresh(student)
    return student
