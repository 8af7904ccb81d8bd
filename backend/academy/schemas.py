# backend/academy/schemas.py
from datetime import date, datetime
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

OtpType = Literal["email", "phone"]
PersonName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2)]


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python; readable from ORM rows."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Message(ApiModel):
    message: str


def _not_null(v):
    # partial updates may omit a field but not clear a NOT NULL column
    if v is None:
        raise ValueError("may not be null")
    return v


# ---------- Auth ----------

class OtpRequest(ApiModel):
    identifier: str = Field(..., min_length=3)
    name: Optional[str] = None
    type: OtpType


class OtpRequestResult(ApiModel):
    message: str
    debug: Optional[str] = None


class OtpVerify(ApiModel):
    identifier: str = Field(..., min_length=3)
    otp: str = Field(..., pattern=r"^[0-9]{6}$")
    type: OtpType


class CheckEmail(ApiModel):
    email: EmailStr


class CheckEmailResult(ApiModel):
    exists: bool
    is_admin: bool


class EmailLogin(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class EmailRegister(ApiModel):
    email: EmailStr
    name: PersonName
    password: str


class AdminLogin(ApiModel):
    username: str
    password: str = Field(..., min_length=1)


class StudentOut(ApiModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    class_id: Optional[str] = None
    profile_completed: bool


class AdminOut(ApiModel):
    id: int
    username: str
    full_name: str
    role: str


class StudentAuthResult(ApiModel):
    user: StudentOut
    profile_completed: bool


class LoginResult(ApiModel):
    role: Literal["student", "admin"]
    user: Optional[StudentOut] = None
    admin: Optional[AdminOut] = None
    profile_completed: Optional[bool] = None


# ---------- Profile ----------

class ProfileUpdate(ApiModel):
    name: Optional[PersonName] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = Field(None, pattern=r"^[0-9]{6}$")
    class_id: Optional[str] = None
    stream: Optional[str] = None
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    parent_phone: Optional[str] = Field(None, pattern=r"^\+?[0-9]{10,15}$")
    parent_email: Optional[EmailStr] = None
    parent_occupation: Optional[str] = None
    emergency_contact: Optional[str] = Field(None, pattern=r"^\+?[0-9]{10,15}$")

    @field_validator("parent_email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        return v or None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, v):
        return _not_null(v)


class ProfileCompletion(ProfileUpdate):
    date_of_birth: str = Field(..., min_length=1)
    gender: str = Field(..., min_length=1)
    address: str = Field(..., min_length=10)
    city: str = Field(..., min_length=2)
    state: str = "Delhi"
    pincode: str = Field(..., pattern=r"^[0-9]{6}$")
    class_id: str = Field(..., min_length=1)
    stream: str = Field(..., min_length=1)
    father_name: str = Field(..., min_length=2)
    mother_name: str = Field(..., min_length=2)
    parent_phone: str = Field(..., pattern=r"^\+?[0-9]{10,15}$")
    parent_occupation: str = Field(..., min_length=2)
    emergency_contact: str = Field(..., pattern=r"^\+?[0-9]{10,15}$")


class ProfileOut(StudentOut):
    stream: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[str] = None
    parent_occupation: Optional[str] = None
    emergency_contact: Optional[str] = None
    last_login: Optional[datetime] = None


# ---------- Catalog ----------

class ClassOut(ApiModel):
    id: str
    name: str
    description: str
    price: int
    streams: List[str]


class SubjectOut(ApiModel):
    id: str
    name: str
    class_id: str
    stream: str
    price: int
    icon: str
    chapter_count: int
    is_available: bool


class ChapterCreate(ApiModel):
    name: str = Field(..., min_length=1)
    subject_id: str
    order: Optional[int] = Field(None, ge=1)
    has_notes: bool = False
    has_pyqs: bool = False
    has_videos: bool = False


class ChapterUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1)
    order: Optional[int] = Field(None, ge=1)
    has_notes: Optional[bool] = None
    has_pyqs: Optional[bool] = None
    has_videos: Optional[bool] = None

    @field_validator("name", "order", "has_notes", "has_pyqs", "has_videos")
    @classmethod
    def fields_not_null(cls, v):
        return _not_null(v)


class ChapterOut(ApiModel):
    id: int
    name: str
    subject_id: str
    order: int
    has_notes: bool
    has_pyqs: bool
    has_videos: bool


class ContactCreate(ApiModel):
    name: PersonName
    email: EmailStr
    phone: str = Field(..., pattern=r"^\+?[0-9]{10,15}$")
    selected_class: Optional[str] = None
    message: str = Field(..., min_length=1)


class EnrollmentCreate(ApiModel):
    student_name: PersonName
    student_email: EmailStr
    subject_id: str
    amount: int = Field(..., ge=0)


class EnrollmentOut(ApiModel):
    id: int
    student_name: str
    student_email: str
    subject_id: str
    amount: int
    payment_status: str
    created_at: datetime


# ---------- Content ----------

ContentType = Literal["notes", "test", "pyq", "result", "announcement", "video"]


class ContentCreate(ApiModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: ContentType
    class_id: Optional[str] = None
    subject_id: Optional[str] = None
    chapter_id: Optional[int] = None
    is_published: bool = True
    publish_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    priority: int = 0


class ContentUpdate(ApiModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    class_id: Optional[str] = None
    subject_id: Optional[str] = None
    chapter_id: Optional[int] = None
    is_published: Optional[bool] = None
    expiry_date: Optional[datetime] = None
    priority: Optional[int] = None

    @field_validator("title", "is_published", "priority")
    @classmethod
    def fields_not_null(cls, v):
        return _not_null(v)


class ContentFileOut(ApiModel):
    id: int
    content_id: int
    file_name: str
    original_file_name: str
    file_size: int
    mime_type: str
    download_count: int
    uploaded_at: datetime


class ContentOut(ApiModel):
    id: int
    title: str
    description: Optional[str] = None
    type: str
    class_id: Optional[str] = None
    subject_id: Optional[str] = None
    chapter_id: Optional[int] = None
    is_published: bool
    publish_date: datetime
    expiry_date: Optional[datetime] = None
    priority: int
    created_by: int
    created_at: datetime
    files: List[ContentFileOut] = []


# ---------- Attendance ----------

class AttendanceMark(ApiModel):
    student_id: int
    date: date
    status: Literal["present", "absent"]
    remarks: Optional[str] = None


class AttendanceOut(ApiModel):
    id: int
    student_id: int
    date: date
    status: str
    remarks: Optional[str] = None
    marked_by: int
    marked_at: datetime


class AttendanceSummary(ApiModel):
    present: int
    absent: int
    total: int
    percentage: float
    records: List[AttendanceOut]


# ---------- Results ----------

class ResultEntryIn(ApiModel):
    student_id: int
    marks: float = Field(..., ge=0)


class ResultPublish(ApiModel):
    class_id: str = Field(..., min_length=1)
    exam_name: str = Field(..., min_length=3)
    subject: str = Field(..., min_length=1)
    exam_date: Optional[date] = None
    total_marks: float = Field(..., gt=0)
    results: List[ResultEntryIn] = Field(..., min_length=1)
    published_at: Optional[datetime] = None


class ResultEntryOut(ApiModel):
    student_id: int
    student_name: Optional[str] = None
    marks: float
    rank: int
    percentage: float
    grade: str


class ResultPublicationOut(ApiModel):
    id: int
    class_id: str
    exam_name: str
    subject: str
    exam_date: Optional[date] = None
    total_marks: float
    published_at: datetime
    results: List[ResultEntryOut]


class StudentResultOut(ApiModel):
    publication_id: int
    exam_name: str
    subject: str
    exam_date: Optional[date] = None
    total_marks: float
    published_at: datetime
    marks: float
    rank: int
    percentage: float
    grade: str


# ---------- Notifications ----------

class BroadcastCreate(ApiModel):
    type: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    class_id: Optional[str] = None
    priority: Literal["low", "normal", "high"] = "normal"
    data: Optional[dict] = None


class NotificationOut(ApiModel):
    id: int
    type: str
    title: str
    message: str
    class_id: Optional[str] = None
    priority: str
    data: Optional[dict] = None
    created_at: datetime


# ---------- Progress ----------

class ProgressOut(ApiModel):
    student_id: int
    experience_points: int
    level: int
    progress_to_next_level: float
    xp_to_next_level: int
    login_streak: int
    tests_passed: int
    notes_downloaded: int
    perfect_attendance_days: int
    completed_assignments: int
    total_points: int


class AchievementOut(ApiModel):
    id: int
    code: str
    title: str
    description: str
    category: str
    tier: str
    points: int
    icon: str


class EarnedAchievementOut(ApiModel):
    id: int
    achievement_id: int
    earned_at: datetime
    achievement: AchievementOut


class LeaderboardEntry(ApiModel):
    rank: int
    student_id: int
    name: str
    level: int
    total_points: int
