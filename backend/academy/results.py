# backend/academy/results.py
"""
Result publishing: validate marks, rank and grade them on the server, persist the
publication in one commit, then run best-effort follow-ups (notification,
progress rewards) that never undo the publish.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from . import grading, models, notifications, progress, schemas
from .errors import NotFoundError, ValidationError
from .models import utcnow
from .utils import as_naive_utc

logger = logging.getLogger(__name__)

TOPPER_ACHIEVEMENT = "topper"


def validate_publish(db: Session, payload: schemas.ResultPublish) -> dict:
    """Reject bad input before anything is written. Returns students by id."""
    errors = []
    seen = set()
    for i, entry in enumerate(payload.results):
        if entry.student_id in seen:
            errors.append({"field": f"results.{i}.studentId", "message": "Student appears more than once"})
        seen.add(entry.student_id)
        if entry.marks > payload.total_marks:
            errors.append({"field": f"results.{i}.marks", "message": "Marks cannot exceed total marks"})
    if errors:
        raise ValidationError("Validation error", errors=errors)

    if db.get(models.SchoolClass, payload.class_id) is None:
        raise NotFoundError("Class not found")
    students = {
        s.id: s
        for s in db.query(models.StudentUser).filter(models.StudentUser.id.in_(seen)).all()
    }
    missing = sorted(seen - set(students))
    if missing:
        raise NotFoundError(f"Students not found: {', '.join(str(m) for m in missing)}")
    return students


def publish_results(db: Session, admin_id: int, payload: schemas.ResultPublish) -> models.ResultPublication:
    validate_publish(db, payload)
    ranked = grading.rank_results(
        [grading.MarkEntry(student_id=r.student_id, marks=r.marks) for r in payload.results],
        payload.total_marks,
    )

    publication = models.ResultPublication(
        class_id=payload.class_id,
        exam_name=payload.exam_name,
        subject=payload.subject,
        exam_date=payload.exam_date,
        total_marks=payload.total_marks,
        published_by=admin_id,
        published_at=as_naive_utc(payload.published_at) or utcnow(),
        entries=[
            models.ResultEntry(
                student_id=r.student_id,
                marks=r.marks,
                rank=r.rank,
                percentage=r.percentage,
                grade=r.grade,
            )
            for r in ranked
        ],
    )
    db.add(publication)
    db.commit()
    db.refresh(publication)
    logger.info("Published %s results for %s (%s entries)", publication.exam_name,
                publication.class_id, len(ranked))

    notifications.notify_result_published(db, publication)
    reward_results(db, ranked)
    return publication


def reward_results(db: Session, ranked: List[grading.RankedResult]) -> None:
    """Passing grades earn the tests-passed activity and rank 1 earns the topper badge. Best-effort."""
    topper = db.query(models.Achievement).filter_by(code=TOPPER_ACHIEVEMENT).first()
    for r in ranked:
        try:
            if grading.is_passing(r.grade):
                progress.record_activity(db, r.student_id, "test_passed")
            if r.rank == 1 and topper is not None:
                progress.award_achievement(db, r.student_id, topper.id)
        except Exception:
            logger.exception("Failed to record result rewards for student %s", r.student_id)
            db.rollback()


def publication_out(publication: models.ResultPublication) -> dict:
    return {
        "id": publication.id,
        "class_id": publication.class_id,
        "exam_name": publication.exam_name,
        "subject": publication.subject,
        "exam_date": publication.exam_date,
        "total_marks": publication.total_marks,
        "published_at": publication.published_at,
        "results": [
            {
                "student_id": e.student_id,
                "student_name": e.student.name if e.student else None,
                "marks": e.marks,
                "rank": e.rank,
                "percentage": e.percentage,
                "grade": e.grade,
            }
            for e in publication.entries
        ],
    }


def list_publications(db: Session, class_id: Optional[str] = None) -> List[models.ResultPublication]:
    query = db.query(models.ResultPublication)
    if class_id:
        query = query.filter(models.ResultPublication.class_id == class_id)
    return query.order_by(models.ResultPublication.published_at.desc(), models.ResultPublication.id.desc()).all()


def results_for_student(db: Session, student_id: int) -> List[dict]:
    rows = (
        db.query(models.ResultEntry, models.ResultPublication)
        .join(models.ResultPublication, models.ResultPublication.id == models.ResultEntry.publication_id)
        .filter(models.ResultEntry.student_id == student_id)
        .order_by(models.ResultPublication.published_at.desc(), models.ResultPublication.id.desc())
        .all()
    )
    return [
        {
            "publication_id": pub.id,
            "exam_name": pub.exam_name,
            "subject": pub.subject,
            "exam_date": pub.exam_date,
            "total_marks": pub.total_marks,
            "published_at": pub.published_at,
            "marks": entry.marks,
            "rank": entry.rank,
            "percentage": entry.percentage,
            "grade": entry.grade,
        }
        for entry, pub in rows
    ]
