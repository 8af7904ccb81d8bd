# backend/academy/models.py
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    """Naive UTC now; SQLite drops tzinfo, so every stored timestamp is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ---------- Identity ----------

class StudentUser(Base):
    __tablename__ = "student_users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    phone = Column(String, unique=True, index=True, nullable=True)
    hashed_password = Column(String, nullable=True)
    class_id = Column(String, ForeignKey("classes.id"), nullable=True, index=True)
    stream = Column(String, nullable=True)

    date_of_birth = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    pincode = Column(String, nullable=True)
    father_name = Column(String, nullable=True)
    mother_name = Column(String, nullable=True)
    parent_phone = Column(String, nullable=True)
    parent_email = Column(String, nullable=True)
    parent_occupation = Column(String, nullable=True)
    emergency_contact = Column(String, nullable=True)

    profile_completed = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    role = "student"

    progress = relationship("StudentProgress", back_populates="student", uselist=False)


class AdminUser(Base):
    __tablename__ = "admin_users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    role = Column(String, default="admin", nullable=False)  # admin, super_admin
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Otp(Base):
    __tablename__ = "otps"
    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String, index=True, nullable=False)
    code = Column(String, nullable=False)
    type = Column(String, nullable=False)  # email, phone
    expires_at = Column(DateTime, nullable=False)
    is_used = Column(Boolean, default=False, nullable=False)
    superseded = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PendingVerification(Base):
    __tablename__ = "pending_verifications"
    __table_args__ = (UniqueConstraint("identifier", "type", name="uq_pending_identifier_type"),)
    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String, nullable=False)
    type = Column(String, nullable=False)
    name = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False)


class SessionRecord(Base):
    __tablename__ = "sessions"
    id = Column(String, primary_key=True)
    kind = Column(String, nullable=False)  # student, admin
    student_id = Column(Integer, ForeignKey("student_users.id", ondelete="CASCADE"), nullable=True)
    admin_id = Column(Integer, ForeignKey("admin_users.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    student = relationship("StudentUser")
    admin = relationship("AdminUser")


# ---------- Catalog ----------

class SchoolClass(Base):
    __tablename__ = "classes"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=False)
    price = Column(Integer, nullable=False)
    streams = Column(JSON, nullable=False, default=list)


class Subject(Base):
    __tablename__ = "subjects"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    class_id = Column(String, ForeignKey("classes.id"), nullable=False, index=True)
    stream = Column(String, nullable=False)  # science, commerce, both
    price = Column(Integer, nullable=False)
    icon = Column(String, nullable=False)
    chapter_count = Column(Integer, default=0, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)


class Chapter(Base):
    __tablename__ = "chapters"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    subject_id = Column(String, ForeignKey("subjects.id"), nullable=False, index=True)
    order = Column(Integer, nullable=False)
    has_notes = Column(Boolean, default=False, nullable=False)
    has_pyqs = Column(Boolean, default=False, nullable=False)
    has_videos = Column(Boolean, default=False, nullable=False)


class ContactSubmission(Base):
    __tablename__ = "contact_submissions"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    selected_class = Column(String, nullable=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Enrollment(Base):
    __tablename__ = "enrollments"
    id = Column(Integer, primary_key=True, index=True)
    student_name = Column(String, nullable=False)
    student_email = Column(String, nullable=False)
    subject_id = Column(String, ForeignKey("subjects.id"), nullable=False)
    amount = Column(Integer, nullable=False)
    payment_status = Column(String, default="pending", nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


# ---------- Content ----------

class Content(Base):
    __tablename__ = "content"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String, nullable=False, index=True)  # notes, test, pyq, result, announcement, video
    class_id = Column(String, nullable=True)
    subject_id = Column(String, nullable=True)
    chapter_id = Column(Integer, nullable=True)
    is_published = Column(Boolean, default=True, nullable=False)
    publish_date = Column(DateTime, default=utcnow, nullable=False)
    expiry_date = Column(DateTime, nullable=True)
    priority = Column(Integer, default=0, nullable=False)
    created_by = Column(Integer, ForeignKey("admin_users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    files = relationship("ContentFile", back_populates="content", cascade="all, delete-orphan")


class ContentFile(Base):
    __tablename__ = "content_files"
    id = Column(Integer, primary_key=True, index=True)
    content_id = Column(Integer, ForeignKey("content.id"), nullable=False, index=True)
    file_name = Column(String, nullable=False)
    original_file_name = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False)
    file_path = Column(String, nullable=False)  # key inside object storage
    download_count = Column(Integer, default=0, nullable=False)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)

    content = relationship("Content", back_populates="files")


# ---------- Attendance & results ----------

class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (UniqueConstraint("student_id", "date", name="uq_attendance_student_date"),)
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("student_users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    status = Column(String, nullable=False)  # present, absent
    remarks = Column(String, nullable=True)
    marked_by = Column(Integer, ForeignKey("admin_users.id"), nullable=False)
    marked_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    student = relationship("StudentUser")


class ResultPublication(Base):
    __tablename__ = "result_publications"
    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(String, nullable=False, index=True)
    exam_name = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    exam_date = Column(Date, nullable=True)
    total_marks = Column(Float, nullable=False)
    published_by = Column(Integer, ForeignKey("admin_users.id"), nullable=False)
    published_at = Column(DateTime, default=utcnow, nullable=False)

    entries = relationship(
        "ResultEntry",
        back_populates="publication",
        cascade="all, delete-orphan",
        order_by="ResultEntry.rank",
    )


class ResultEntry(Base):
    __tablename__ = "result_entries"
    __table_args__ = (UniqueConstraint("publication_id", "student_id", name="uq_result_publication_student"),)
    id = Column(Integer, primary_key=True, index=True)
    publication_id = Column(Integer, ForeignKey("result_publications.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("student_users.id"), nullable=False, index=True)
    marks = Column(Float, nullable=False)
    rank = Column(Integer, nullable=False)
    percentage = Column(Float, nullable=False)
    grade = Column(String, nullable=False)

    publication = relationship("ResultPublication", back_populates="entries")
    student = relationship("StudentUser")


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, index=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    class_id = Column(String, nullable=True)  # None means every student
    priority = Column(String, default="normal", nullable=False)
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


# ---------- Gamification ----------

class StudentProgress(Base):
    __tablename__ = "student_progress"
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("student_users.id"), unique=True, nullable=False)
    experience_points = Column(Integer, default=0, nullable=False)
    level = Column(Integer, default=1, nullable=False)
    login_streak = Column(Integer, default=0, nullable=False)
    last_active_date = Column(Date, nullable=True)
    tests_passed = Column(Integer, default=0, nullable=False)
    notes_downloaded = Column(Integer, default=0, nullable=False)
    perfect_attendance_days = Column(Integer, default=0, nullable=False)
    completed_assignments = Column(Integer, default=0, nullable=False)
    total_points = Column(Integer, default=0, nullable=False)

    student = relationship("StudentUser", back_populates="progress")


class Achievement(Base):
    __tablename__ = "achievements"
    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    category = Column(String, nullable=False)  # attendance, academic, engagement, milestone
    tier = Column(String, nullable=False)  # bronze, silver, gold, platinum
    points = Column(Integer, nullable=False)
    icon = Column(String, nullable=False)
    # earned automatically once student_progress.<criteria_counter> >= criteria_threshold
    criteria_counter = Column(String, nullable=True)
    criteria_threshold = Column(Integer, nullable=True)


class EarnedAchievement(Base):
    __tablename__ = "earned_achievements"
    __table_args__ = (UniqueConstraint("student_id", "achievement_id", name="uq_earned_student_achievement"),)
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("student_users.id"), nullable=False, index=True)
    achievement_id = Column(Integer, ForeignKey("achievements.id"), nullable=False)
    earned_at = Column(DateTime, default=utcnow, nullable=False)

    achievement = relationship("Achievement")
