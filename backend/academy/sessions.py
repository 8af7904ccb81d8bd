# backend/academy/sessions.py
"""
Server-side sessions and the two authentication gates.

A session is a row in `sessions` pointing at either a student or an admin. The
browser holds only a signed session id in an HTTP-only cookie. Every
authenticated request slides the expiry forward by SESSION_TTL_HOURS and
re-issues the cookie.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Union

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from . import auth, config, models
from .database import get_db
from .errors import AuthenticationError
from .models import utcnow

logger = logging.getLogger(__name__)

STUDENT_LOGIN_PATH = "/login"
ADMIN_LOGIN_PATH = "/admin/login"


@dataclass
class StudentIdentity:
    id: int
    name: str
    email: Optional[str]
    phone: Optional[str]

    kind = "student"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "phone": self.phone}


@dataclass
class AdminIdentity:
    id: int
    username: str
    full_name: str
    role: str

    kind = "admin"

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "fullName": self.full_name, "role": self.role}


Identity = Union[StudentIdentity, AdminIdentity]


def _ttl() -> timedelta:
    return timedelta(hours=config.SESSION_TTL_HOURS)


def set_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=auth.sign_session_id(session_id),
        max_age=int(_ttl().total_seconds()),
        httponly=True,
        samesite="lax",
        secure=config.IS_PRODUCTION,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=config.SESSION_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=config.IS_PRODUCTION,
        path="/",
    )


def create_session(db: Session, response: Response, student: models.StudentUser = None,
                   admin: models.AdminUser = None) -> models.SessionRecord:
    """
    Establish a session for exactly one identity and attach the cookie.
    A new login always gets a fresh session id.
    """
    if (student is None) == (admin is None):
        raise ValueError("create_session needs exactly one of student or admin")
    record = models.SessionRecord(
        id=secrets.token_urlsafe(32),
        kind="student" if student is not None else "admin",
        student_id=student.id if student is not None else None,
        admin_id=admin.id if admin is not None else None,
        expires_at=utcnow() + _ttl(),
    )
    db.add(record)
    db.commit()
    set_session_cookie(response, record.id)
    logger.info("Created %s session for id=%s", record.kind, record.student_id or record.admin_id)
    return record


def destroy_session(db: Session, request: Request, response: Response) -> bool:
    """Delete the current session (if any) and clear the cookie. Safe without a session."""
    session_id = auth.read_session_id(request.cookies.get(config.SESSION_COOKIE_NAME))
    removed = False
    if session_id:
        removed = db.query(models.SessionRecord).filter(models.SessionRecord.id == session_id).delete() > 0
        db.commit()
    clear_session_cookie(response)
    return removed


def load_session(db: Session, request: Request) -> Optional[models.SessionRecord]:
    session_id = auth.read_session_id(request.cookies.get(config.SESSION_COOKIE_NAME))
    if not session_id:
        return None
    record = db.get(models.SessionRecord, session_id)
    if record is None:
        return None
    if record.expires_at <= utcnow():
        db.delete(record)
        db.commit()
        return None
    return record


def touch_session(db: Session, record: models.SessionRecord, response: Response) -> None:
    record.expires_at = utcnow() + _ttl()
    db.commit()
    set_session_cookie(response, record.id)


def identity_for(record: models.SessionRecord) -> Optional[Identity]:
    if record.kind == "student" and record.student is not None and record.student.is_active:
        s = record.student
        return StudentIdentity(id=s.id, name=s.name, email=s.email, phone=s.phone)
    if record.kind == "admin" and record.admin is not None and record.admin.is_active:
        a = record.admin
        return AdminIdentity(id=a.id, username=a.username, full_name=a.full_name, role=a.role)
    return None


def get_identity(request: Request, response: Response, db: Session = Depends(get_db)) -> Optional[Identity]:
    """Resolve the caller's identity without requiring one; slides expiry when present."""
    record = load_session(db, request)
    if record is None:
        return None
    identity = identity_for(record)
    if identity is None:
        return None
    touch_session(db, record, response)
    return identity


def require_student(identity: Optional[Identity] = Depends(get_identity)) -> StudentIdentity:
    if not isinstance(identity, StudentIdentity):
        raise AuthenticationError("Unauthorized", redirect_to=STUDENT_LOGIN_PATH)
    return identity


def require_admin(identity: Optional[Identity] = Depends(get_identity)) -> AdminIdentity:
    if not isinstance(identity, AdminIdentity):
        raise AuthenticationError("Unauthorized", redirect_to=ADMIN_LOGIN_PATH)
    return identity


def purge_expired_sessions(db: Session) -> int:
    count = db.query(models.SessionRecord).filter(models.SessionRecord.expires_at <= utcnow()).delete()
    db.commit()
    return count
