# backend/academy/auth.py
"""
Authentication helpers for the academy portal.

Provides:
 - get_password_hash(password) -> str
 - verify_password(plain_password, hashed_password) -> bool
 - sign_session_id(session_id) -> str / read_session_id(token) -> str | None
 - authenticate_admin(db, username, password) -> AdminUser or None
 - authenticate_student(db, email, password) -> StudentUser or None

Passwords are pre-hashed with SHA-256 (hex) to avoid the bcrypt 72-byte limit,
then stored with passlib's CryptContext (bcrypt_sha256 preferred).
"""

import hashlib
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import config, models
from .utils import normalize_email

pwd_context = CryptContext(schemes=["bcrypt_sha256", "bcrypt"], deprecated="auto", default="bcrypt_sha256")

ALGORITHM = "HS256"
SESSION_TOKEN_TYPE = "session"


def _sha256_hex(s: str) -> str:
    """Return SHA-256 hex digest of the given string (deterministic, 64 hex chars)."""
    if isinstance(s, bytes):
        b = s
    else:
        b = s.encode("utf-8", errors="surrogatepass")
    return hashlib.sha256(b).hexdigest()


def get_password_hash(password: str) -> str:
    digest = _sha256_hex(password)
    return pwd_context.hash(digest)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a plaintext password against a stored hash.
    Accounts without a password (OTP-only students) never verify.
    """
    if not hashed_password:
        return False
    digest = _sha256_hex(plain_password)
    try:
        return pwd_context.verify(digest, hashed_password)
    except (ValueError, TypeError):
        # malformed hash in storage
        return False


def sign_session_id(session_id: str) -> str:
    """
    Sign a server-side session id for the cookie. Expiry is enforced by the
    session row, so the token itself carries no exp claim.
    """
    return jwt.encode({"sid": session_id, "typ": SESSION_TOKEN_TYPE}, config.SESSION_SECRET, algorithm=ALGORITHM)


def read_session_id(token: Optional[str]) -> Optional[str]:
    """Return the session id from a cookie value, or None if missing or tampered with."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, config.SESSION_SECRET, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("typ") != SESSION_TOKEN_TYPE:
        return None
    return payload.get("sid")


def authenticate_admin(db: Session, username: str, password: str) -> Optional[models.AdminUser]:
    admin = (
        db.query(models.AdminUser)
        .filter(models.AdminUser.username == normalize_email(username), models.AdminUser.is_active.is_(True))
        .first()
    )
    if not admin:
        return None
    if not verify_password(password, admin.hashed_password):
        return None
    return admin


def authenticate_student(db: Session, email: str, password: str) -> Optional[models.StudentUser]:
    student = db.query(models.StudentUser).filter(models.StudentUser.email == normalize_email(email)).first()
    if not student or not student.is_active:
        return None
    if not verify_password(password, student.hashed_password):
        return None
    return student
