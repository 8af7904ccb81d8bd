# backend/academy/notifications.py
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)


def broadcast(db: Session, type: str, title: str, message: str, class_id: Optional[str] = None,
              priority: str = "normal", data: Optional[dict] = None) -> models.Notification:
    """Persist a notification for one class, or for every student when class_id is None."""
    notification = models.Notification(
        type=type,
        title=title,
        message=message,
        class_id=class_id,
        priority=priority,
        data=data,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    logger.info("Broadcast %s notification %s to class=%s", type, notification.id, class_id or "*")
    return notification


def notify_result_published(db: Session, publication: models.ResultPublication) -> Optional[models.Notification]:
    """
    Best-effort announcement of a published result. The publication is already
    committed; a failure here is logged and never propagates.
    """
    try:
        return broadcast(
            db,
            type="result_published",
            title=f"{publication.exam_name} Results Published!",
            message=f"Results for {publication.subject} are now available. Check your performance!",
            class_id=publication.class_id,
            priority="high",
            data={
                "publicationId": publication.id,
                "examName": publication.exam_name,
                "subject": publication.subject,
                "classId": publication.class_id,
            },
        )
    except Exception:
        logger.exception("Failed to broadcast result notification for publication %s", publication.id)
        db.rollback()
        return None


def for_student(db: Session, student: models.StudentUser, limit: int = 50) -> List[models.Notification]:
    query = db.query(models.Notification)
    if student.class_id:
        query = query.filter(or_(models.Notification.class_id.is_(None),
                                 models.Notification.class_id == student.class_id))
    else:
        query = query.filter(models.Notification.class_id.is_(None))
    return query.order_by(models.Notification.created_at.desc(), models.Notification.id.desc()).limit(limit).all()
