# backend/academy/utils.py
import re
from datetime import timezone

from email_validator import EmailNotValidError, validate_email

PHONE_RE = re.compile(r"^\+?[0-9]{10,15}$")


def normalize_email(e: str) -> str:
    if not e:
        return ""
    return e.strip().lower()


def normalize_phone(p: str) -> str:
    """Strip spaces, dashes and brackets; keep a leading '+'."""
    if not p:
        return ""
    p = p.strip()
    prefix = "+" if p.startswith("+") else ""
    return prefix + re.sub(r"\D", "", p)


def normalize_identifier(identifier: str, kind: str, country_code: str) -> str:
    """Canonical key for an OTP identity: lowercased email, or E.164 phone."""
    if kind == "email":
        return normalize_email(identifier)
    return to_e164(identifier, country_code)


def is_valid_email(e: str) -> bool:
    try:
        validate_email(e or "", check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_valid_phone(p: str) -> bool:
    return bool(PHONE_RE.match(p or ""))


def to_e164(phone: str, country_code: str) -> str:
    """Format a phone number for SMS; numbers without a country code get the default one."""
    phone = normalize_phone(phone)
    if not phone or phone.startswith("+"):
        return phone
    if phone.startswith(country_code) and len(phone) > 10:
        return f"+{phone}"
    # drop a national trunk prefix
    return f"+{country_code}{phone.lstrip('0')}"


def is_password_valid(pw: str) -> bool:
    if len(pw) < 8:
        return False
    if not any(c.isdigit() for c in pw):
        return False
    if not any(c.isalpha() for c in pw):
        return False
    return True


def as_naive_utc(dt):
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
