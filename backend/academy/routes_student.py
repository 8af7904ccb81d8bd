# backend/academy/routes_student.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import attendance, models, notifications, progress, results, schemas
from .database import get_db
from .errors import AuthenticationError, ValidationError
from .sessions import STUDENT_LOGIN_PATH, StudentIdentity, require_student

router = APIRouter(prefix="/api/student", tags=["student"])


def current_student(db: Session, identity: StudentIdentity) -> models.StudentUser:
    student = db.get(models.StudentUser, identity.id)
    if student is None:
        raise AuthenticationError("Unauthorized", redirect_to=STUDENT_LOGIN_PATH)
    return student


def _apply_profile(db: Session, student: models.StudentUser, updates: dict) -> None:
    class_id = updates.get("class_id")
    if class_id and db.get(models.SchoolClass, class_id) is None:
        raise ValidationError.for_field("classId", "Unknown class")
    for field, value in updates.items():
        setattr(student, field, value)


@router.get("/profile", response_model=schemas.ProfileOut)
def get_profile(identity: StudentIdentity = Depends(require_student), db: Session = Depends(get_db)):
    return current_student(db, identity)


@router.put("/profile", response_model=schemas.ProfileOut)
def update_profile(
    payload: schemas.ProfileUpdate,
    identity: StudentIdentity = Depends(require_student),
    db: Session = Depends(get_db),
):
    student = current_student(db, identity)
    _apply_profile(db, student, payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(student)
    return student


@router.post("/complete-profile", response_model=schemas.ProfileOut)
def complete_profile(
    payload: schemas.ProfileCompletion,
    identity: StudentIdentity = Depends(require_student),
    db: Session = Depends(get_db),
):
    student = current_student(db, identity)
    _apply_profile(db, student, payload.model_dump(exclude_unset=True))
    student.state = payload.state
    student.profile_completed = True
    db.commit()
    db.refresh(student)
    return student


@router.get("/attendance", response_model=schemas.AttendanceSummary)
def my_attendance(identity: StudentIdentity = Depends(require_student), db: Session = Depends(get_db)):
    return attendance.student_summary(db, identity.id)


@router.get("/results", response_model=List[schemas.StudentResultOut])
def my_results(identity: StudentIdentity = Depends(require_student), db: Session = Depends(get_db)):
    return results.results_for_student(db, identity.id)


@router.get("/progress", response_model=schemas.ProgressOut)
def my_progress(identity: StudentIdentity = Depends(require_student), db: Session = Depends(get_db)):
    row = progress.get_or_create_progress(db, identity.id)
    db.commit()
    return progress.summarize(row)


@router.get("/achievements", response_model=List[schemas.EarnedAchievementOut])
def my_achievements(identity: StudentIdentity = Depends(require_student), db: Session = Depends(get_db)):
    return progress.earned_achievements(db, identity.id)


@router.get("/notifications", response_model=List[schemas.NotificationOut])
def my_notifications(identity: StudentIdentity = Depends(require_student), db: Session = Depends(get_db)):
    return notifications.for_student(db, current_student(db, identity))
