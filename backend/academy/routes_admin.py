# backend/academy/routes_admin.py
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from . import attendance, models, notifications, results, schemas, storage
from .database import get_db
from .errors import NotFoundError
from .models import utcnow
from .sessions import AdminIdentity, require_admin
from .utils import as_naive_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


# ---------- Students ----------

@router.get("/students", response_model=List[schemas.ProfileOut])
def list_students(admin: AdminIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    return db.query(models.StudentUser).order_by(models.StudentUser.name, models.StudentUser.id).all()


@router.get("/students/{class_id}", response_model=List[schemas.ProfileOut])
def list_class_students(class_id: str, admin: AdminIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    return (
        db.query(models.StudentUser)
        .filter(models.StudentUser.class_id == class_id)
        .order_by(models.StudentUser.name, models.StudentUser.id)
        .all()
    )


# ---------- Chapters ----------

def _sync_chapter_count(db: Session, subject_id: str) -> None:
    subject = db.get(models.Subject, subject_id)
    if subject is not None:
        subject.chapter_count = db.query(models.Chapter).filter_by(subject_id=subject_id).count()


@router.post("/chapters", response_model=schemas.ChapterOut, status_code=201)
def create_chapter(payload: schemas.ChapterCreate, admin: AdminIdentity = Depends(require_admin),
                   db: Session = Depends(get_db)):
    if db.get(models.Subject, payload.subject_id) is None:
        raise NotFoundError("Subject not found")
    order = payload.order
    if order is None:
        order = db.query(models.Chapter).filter_by(subject_id=payload.subject_id).count() + 1
    chapter = models.Chapter(**payload.model_dump(exclude={"order"}), order=order)
    db.add(chapter)
    db.flush()
    _sync_chapter_count(db, payload.subject_id)
    db.commit()
    db.refresh(chapter)
    return chapter


@router.put("/chapters/{chapter_id}", response_model=schemas.ChapterOut)
def update_chapter(chapter_id: int, payload: schemas.ChapterUpdate, admin: AdminIdentity = Depends(require_admin),
                   db: Session = Depends(get_db)):
    chapter = db.get(models.Chapter, chapter_id)
    if chapter is None:
        raise NotFoundError("Chapter not found")
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(chapter, field, value)
    db.commit()
    db.refresh(chapter)
    return chapter


@router.delete("/chapters/{chapter_id}", response_model=schemas.Message)
def delete_chapter(chapter_id: int, admin: AdminIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    chapter = db.get(models.Chapter, chapter_id)
    if chapter is None:
        raise NotFoundError("Chapter not found")
    subject_id = chapter.subject_id
    db.delete(chapter)
    db.flush()
    _sync_chapter_count(db, subject_id)
    db.commit()
    return {"message": "Chapter deleted"}


# ---------- Content ----------

def _get_content(db: Session, content_id: int) -> models.Content:
    content = db.get(models.Content, content_id)
    if content is None:
        raise NotFoundError("Content not found")
    return content


@router.post("/content", response_model=schemas.ContentOut, status_code=201)
def create_content(payload: schemas.ContentCreate, admin: AdminIdentity = Depends(require_admin),
                   db: Session = Depends(get_db)):
    data = payload.model_dump()
    data["publish_date"] = as_naive_utc(data["publish_date"]) or utcnow()
    data["expiry_date"] = as_naive_utc(data["expiry_date"])
    content = models.Content(**data, created_by=admin.id)
    db.add(content)
    db.commit()
    db.refresh(content)
    return content


@router.get("/content", response_model=List[schemas.ContentOut])
def list_content(type: Optional[schemas.ContentType] = None, admin: AdminIdentity = Depends(require_admin),
                 db: Session = Depends(get_db)):
    query = db.query(models.Content)
    if type:
        query = query.filter(models.Content.type == type)
    return query.order_by(models.Content.priority.desc(), models.Content.created_at.desc(), models.Content.id.desc()).all()


@router.get("/content/{content_id}", response_model=schemas.ContentOut)
def get_content(content_id: int, admin: AdminIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    return _get_content(db, content_id)


@router.put("/content/{content_id}", response_model=schemas.ContentOut)
def update_content(content_id: int, payload: schemas.ContentUpdate, admin: AdminIdentity = Depends(require_admin),
                   db: Session = Depends(get_db)):
    content = _get_content(db, content_id)
    updates = payload.model_dump(exclude_unset=True)
    if "expiry_date" in updates:
        updates["expiry_date"] = as_naive_utc(updates["expiry_date"])
    for field, value in updates.items():
        setattr(content, field, value)
    db.commit()
    db.refresh(content)
    return content


@router.delete("/content/{content_id}", response_model=schemas.Message)
def delete_content(content_id: int, admin: AdminIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    content = _get_content(db, content_id)
    keys = [f.file_path for f in content.files]
    db.delete(content)
    db.commit()
    for key in keys:
        storage.delete_object(key)
    return {"message": "Content deleted"}


@router.post("/upload", response_model=schemas.ContentFileOut, status_code=201)
def upload_file(
    content_id: int = Form(..., alias="contentId"),
    file: UploadFile = File(...),
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    _get_content(db, content_id)
    key, size = storage.save_object(file.file, file.filename)
    content_file = models.ContentFile(
        content_id=content_id,
        file_name=key.rsplit("/", 1)[-1],
        original_file_name=file.filename or "file",
        file_size=size,
        mime_type=file.content_type or "application/octet-stream",
        file_path=key,
    )
    db.add(content_file)
    db.commit()
    db.refresh(content_file)
    logger.info("Admin %s uploaded %s (%s bytes) to content %s", admin.id, key, size, content_id)
    return content_file


@router.get("/content-files/{content_id}", response_model=List[schemas.ContentFileOut])
def list_content_files(content_id: int, admin: AdminIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    return _get_content(db, content_id).files


@router.delete("/content-files/{file_id}", response_model=schemas.Message)
def delete_content_file(file_id: int, admin: AdminIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    content_file = db.get(models.ContentFile, file_id)
    if content_file is None:
        raise NotFoundError("File not found")
    key = content_file.file_path
    db.delete(content_file)
    db.commit()
    storage.delete_object(key)
    return {"message": "File deleted"}


# ---------- Attendance ----------

@router.post("/attendance/mark", response_model=schemas.AttendanceOut)
def mark_attendance(payload: schemas.AttendanceMark, admin: AdminIdentity = Depends(require_admin),
                    db: Session = Depends(get_db)):
    return attendance.mark_attendance(db, admin.id, payload.student_id, payload.date, payload.status, payload.remarks)


@router.get("/attendance/class/{class_id}/date/{day}", response_model=List[schemas.AttendanceOut])
def get_class_attendance(class_id: str, day: date, admin: AdminIdentity = Depends(require_admin),
                         db: Session = Depends(get_db)):
    return attendance.class_attendance(db, class_id, day)


# ---------- Results ----------

@router.post("/results/publish", response_model=schemas.ResultPublicationOut, status_code=201)
def publish_results(payload: schemas.ResultPublish, admin: AdminIdentity = Depends(require_admin),
                    db: Session = Depends(get_db)):
    publication = results.publish_results(db, admin.id, payload)
    return results.publication_out(publication)


@router.get("/results", response_model=List[schemas.ResultPublicationOut])
def list_results(class_id: Optional[str] = Query(None, alias="classId"),
                 admin: AdminIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    return [results.publication_out(p) for p in results.list_publications(db, class_id)]


@router.get("/results/latest", response_model=schemas.ResultPublicationOut)
def latest_result(class_id: Optional[str] = Query(None, alias="classId"),
                  admin: AdminIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    publications = results.list_publications(db, class_id)
    if not publications:
        raise NotFoundError("No results published yet")
    return results.publication_out(publications[0])


# ---------- Notifications ----------

@router.post("/notifications/broadcast", response_model=schemas.NotificationOut, status_code=201)
def broadcast_notification(payload: schemas.BroadcastCreate, admin: AdminIdentity = Depends(require_admin),
                           db: Session = Depends(get_db)):
    return notifications.broadcast(db, **payload.model_dump())
