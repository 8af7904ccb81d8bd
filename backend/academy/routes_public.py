# backend/academy/routes_public.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import StreamingResponse
from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import models, progress, schemas, storage
from .database import get_db
from .errors import NotFoundError
from .models import utcnow
from .sessions import Identity, StudentIdentity, get_identity

router = APIRouter(prefix="/api", tags=["public"])


# ---------- Catalog ----------

@router.get("/classes", response_model=List[schemas.ClassOut])
def list_classes(db: Session = Depends(get_db)):
    return db.query(models.SchoolClass).order_by(models.SchoolClass.price).all()


@router.get("/classes/{class_id}", response_model=schemas.ClassOut)
def get_class(class_id: str, db: Session = Depends(get_db)):
    school_class = db.get(models.SchoolClass, class_id)
    if not school_class:
        raise NotFoundError("Class not found")
    return school_class


@router.get("/classes/{class_id}/subjects", response_model=List[schemas.SubjectOut])
def list_class_subjects(class_id: str, stream: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(models.Subject).filter(models.Subject.class_id == class_id)
    if stream:
        query = query.filter(or_(models.Subject.stream == stream, models.Subject.stream == "both"))
    return query.order_by(models.Subject.name).all()


@router.get("/subjects/{subject_id}", response_model=schemas.SubjectOut)
def get_subject(subject_id: str, db: Session = Depends(get_db)):
    subject = db.get(models.Subject, subject_id)
    if not subject:
        raise NotFoundError("Subject not found")
    return subject


@router.get("/subjects/{subject_id}/chapters", response_model=List[schemas.ChapterOut])
def list_subject_chapters(subject_id: str, db: Session = Depends(get_db)):
    return (
        db.query(models.Chapter)
        .filter(models.Chapter.subject_id == subject_id)
        .order_by(models.Chapter.order)
        .all()
    )


@router.post("/contact", status_code=201)
def submit_contact(payload: schemas.ContactCreate, db: Session = Depends(get_db)):
    submission = models.ContactSubmission(**payload.model_dump())
    db.add(submission)
    db.commit()
    return {"message": "Contact form submitted successfully", "id": submission.id}


@router.post("/enrollments", status_code=201)
def create_enrollment(payload: schemas.EnrollmentCreate, db: Session = Depends(get_db)):
    if db.get(models.Subject, payload.subject_id) is None:
        raise NotFoundError("Subject not found")
    enrollment = models.Enrollment(**payload.model_dump())
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    return {
        "message": "Enrollment created successfully",
        "enrollment": schemas.EnrollmentOut.model_validate(enrollment).model_dump(by_alias=True, mode="json"),
    }


# ---------- Content ----------

@router.get("/content", response_model=List[schemas.ContentOut])
def list_published_content(
    type: schemas.ContentType,
    class_id: Optional[str] = Query(None, alias="classId"),
    subject_id: Optional[str] = Query(None, alias="subjectId"),
    db: Session = Depends(get_db),
):
    now = utcnow()
    query = db.query(models.Content).filter(
        models.Content.type == type,
        models.Content.is_published.is_(True),
        models.Content.publish_date <= now,
        or_(models.Content.expiry_date.is_(None), models.Content.expiry_date > now),
    )
    if class_id:
        query = query.filter(models.Content.class_id == class_id)
    if subject_id:
        query = query.filter(models.Content.subject_id == subject_id)
    return query.order_by(models.Content.priority.desc(), models.Content.created_at.desc(), models.Content.id.desc()).all()


def _carry_session_cookie(out: Response, response: Response) -> Response:
    # responses returned directly skip the headers dependencies set on `response`
    for value in response.headers.getlist("set-cookie"):
        out.headers.append("set-cookie", value)
    return out


@router.get("/files/{file_id}/download")
def download_file(
    file_id: int,
    request: Request,
    response: Response,
    identity: Optional[Identity] = Depends(get_identity),
    db: Session = Depends(get_db),
):
    """Stream a stored file; honours a single `Range: bytes=` header with 206 responses."""
    content_file = db.get(models.ContentFile, file_id)
    if content_file is None or not content_file.content.is_published:
        raise NotFoundError("File not found")
    try:
        path = storage.object_path(content_file.file_path)
        size = path.stat().st_size
    except FileNotFoundError:
        raise NotFoundError("File not found")

    try:
        byte_range = storage.parse_range(request.headers.get("range"), size)
    except storage.RangeNotSatisfiable:
        return _carry_session_cookie(
            Response(status_code=416, headers={"Content-Range": f"bytes */{size}", "Accept-Ranges": "bytes"}),
            response,
        )

    if byte_range is None or byte_range[0] == 0:
        content_file.download_count += 1
        db.commit()
        if isinstance(identity, StudentIdentity) and content_file.content.type == "notes":
            progress.record_activity(db, identity.id, "note_downloaded")

    headers = {
        "Accept-Ranges": "bytes",
        "Content-Disposition": f'inline; filename="{storage.safe_name(content_file.original_file_name)}"',
    }
    if byte_range is None:
        headers["Content-Length"] = str(size)
        return _carry_session_cookie(
            StreamingResponse(storage.iter_object(path), media_type=content_file.mime_type, headers=headers),
            response,
        )

    start, end = byte_range
    headers["Content-Range"] = f"bytes {start}-{end}/{size}"
    headers["Content-Length"] = str(end - start + 1)
    out = StreamingResponse(
        storage.iter_object(path, start, end),
        status_code=206,
        media_type=content_file.mime_type,
        headers=headers,
    )
    return _carry_session_cookie(out, response)


# ---------- Gamification ----------

@router.get("/achievements", response_model=List[schemas.AchievementOut])
def list_achievements(db: Session = Depends(get_db)):
    return db.query(models.Achievement).order_by(models.Achievement.category, models.Achievement.points).all()


@router.get("/leaderboard", response_model=List[schemas.LeaderboardEntry])
def get_leaderboard(
    limit: int = Query(progress.DEFAULT_LEADERBOARD_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return progress.leaderboard(db, limit=limit)
