# backend/academy/attendance.py
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, progress
from .errors import NotFoundError
from .grading import round2

logger = logging.getLogger(__name__)


def _find(db: Session, student_id: int, day: date) -> Optional[models.AttendanceRecord]:
    return db.query(models.AttendanceRecord).filter_by(student_id=student_id, date=day).first()


def mark_attendance(db: Session, admin_id: int, student_id: int, day: date, status: str,
                    remarks: Optional[str] = None) -> models.AttendanceRecord:
    """
    Upsert the (student, date) record. The unique constraint settles concurrent
    first marks: the loser retries as an update.
    A transition into "present" counts one perfect-attendance day.
    """
    if db.get(models.StudentUser, student_id) is None:
        raise NotFoundError("Student not found")

    record = _find(db, student_id, day)
    was_present = record is not None and record.status == "present"
    if record is None:
        record = models.AttendanceRecord(
            student_id=student_id, date=day, status=status, remarks=remarks, marked_by=admin_id
        )
        db.add(record)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            record = _find(db, student_id, day)
            was_present = record.status == "present"
            record.status, record.remarks, record.marked_by = status, remarks, admin_id
            db.commit()
    else:
        record.status, record.remarks, record.marked_by = status, remarks, admin_id
        db.commit()
    db.refresh(record)

    if status == "present" and not was_present:
        progress.record_activity(db, student_id, "perfect_attendance")
    logger.info("Attendance %s for student %s on %s by admin %s", status, student_id, day, admin_id)
    return record


def class_attendance(db: Session, class_id: str, day: date) -> List[models.AttendanceRecord]:
    return (
        db.query(models.AttendanceRecord)
        .join(models.StudentUser, models.StudentUser.id == models.AttendanceRecord.student_id)
        .filter(models.StudentUser.class_id == class_id, models.AttendanceRecord.date == day)
        .order_by(models.StudentUser.name, models.AttendanceRecord.id)
        .all()
    )


def student_summary(db: Session, student_id: int) -> dict:
    records = (
        db.query(models.AttendanceRecord)
        .filter_by(student_id=student_id)
        .order_by(models.AttendanceRecord.date.desc())
        .all()
    )
    present = sum(1 for r in records if r.status == "present")
    absent = len(records) - present
    percentage = round2(present / len(records) * 100) if records else 0.0
    return {
        "present": present,
        "absent": absent,
        "total": len(records),
        "percentage": percentage,
        "records": records,
    }
