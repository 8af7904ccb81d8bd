# backend/academy/seed.py
"""Seed the database with the class catalog, achievements and the bootstrap admin."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from . import auth, config, models
from .utils import normalize_email

logger = logging.getLogger(__name__)

CLASSES = [
    ("class-9", "Class 9", "Science & Mathematics", 2999, ["both"]),
    ("class-10", "Class 10", "Science & Mathematics", 3499, ["both"]),
    ("class-11", "Class 11", "Science & Commerce", 4999, ["science", "commerce"]),
    ("class-12", "Class 12", "Science & Commerce", 5999, ["science", "commerce"]),
]

# (id, name, class_id, stream, price, icon, is_available)
SUBJECTS = [
    ("science-9", "Science", "class-9", "both", 1199, "fas fa-atom", True),
    ("mathematics-9", "Mathematics", "class-9", "both", 899, "fas fa-calculator", True),
    ("science-10", "Science", "class-10", "both", 1299, "fas fa-atom", True),
    ("mathematics-10", "Mathematics", "class-10", "both", 899, "fas fa-calculator", True),
    ("physics-11", "Physics", "class-11", "science", 1299, "fas fa-atom", True),
    ("chemistry-11", "Chemistry", "class-11", "science", 1299, "fas fa-flask", True),
    ("mathematics-11", "Mathematics", "class-11", "science", 1199, "fas fa-calculator", True),
    ("biology-11", "Biology", "class-11", "science", 1199, "fas fa-dna", False),
    ("economics-11", "Economics", "class-11", "commerce", 1099, "fas fa-chart-line", True),
    ("accounts-11", "Accounts", "class-11", "commerce", 1099, "fas fa-file-invoice-dollar", True),
    ("physics-12", "Physics", "class-12", "science", 1399, "fas fa-atom", True),
    ("chemistry-12", "Chemistry", "class-12", "science", 1399, "fas fa-flask", True),
    ("mathematics-12", "Mathematics", "class-12", "science", 1299, "fas fa-calculator", True),
    ("biology-12", "Biology", "class-12", "science", 1299, "fas fa-dna", False),
    ("economics-12", "Economics", "class-12", "commerce", 1199, "fas fa-chart-line", True),
    ("accounts-12", "Accounts", "class-12", "commerce", 1199, "fas fa-file-invoice-dollar", True),
]

# subject_id -> [(name, has_notes, has_pyqs, has_videos)]
CHAPTERS = {
    "science-9": [
        ("Matter in Our Surroundings", True, True, True),
        ("Is Matter Around Us Pure", True, True, False),
        ("Atoms and Molecules", True, False, True),
        ("Structure of Atom", False, True, False),
        ("The Fundamental Unit of Life", True, True, True),
        ("Tissues", True, False, False),
    ],
    "mathematics-9": [
        ("Number Systems", True, True, True),
        ("Polynomials", True, True, False),
        ("Coordinate Geometry", False, True, True),
    ],
    "science-10": [
        ("Chemical Reactions and Equations", True, True, True),
        ("Acids, Bases and Salts", True, True, False),
        ("Metals and Non-metals", True, False, True),
        ("Carbon and its Compounds", False, True, False),
        ("Life Processes", True, True, True),
        ("Control and Coordination", True, False, False),
    ],
    "mathematics-10": [
        ("Real Numbers", True, True, True),
        ("Polynomials", True, True, False),
        ("Pair of Linear Equations", False, True, True),
    ],
}

# (code, title, description, category, tier, points, icon, counter, threshold)
ACHIEVEMENTS = [
    ("first_login", "Welcome Aboard", "Log in to the student portal", "milestone", "bronze", 10, "🎉", "login_streak", 1),
    ("streak_7", "Week Warrior", "Log in 7 days in a row", "engagement", "silver", 50, "🔥", "login_streak", 7),
    ("streak_30", "Unstoppable", "Log in 30 days in a row", "engagement", "gold", 200, "⚡", "login_streak", 30),
    ("first_note", "Note Taker", "Download your first notes", "engagement", "bronze", 10, "📒", "notes_downloaded", 1),
    ("notes_25", "Bookworm", "Download 25 notes", "engagement", "silver", 75, "📚", "notes_downloaded", 25),
    ("first_pass", "First Victory", "Pass your first test", "academic", "bronze", 25, "✅", "tests_passed", 1),
    ("tests_10", "Test Champion", "Pass 10 tests", "academic", "gold", 150, "🏆", "tests_passed", 10),
    ("attendance_10", "Regular", "10 days of perfect attendance", "attendance", "silver", 50, "📅", "perfect_attendance_days", 10),
    ("attendance_50", "Never Miss", "50 days of perfect attendance", "attendance", "platinum", 300, "💎", "perfect_attendance_days", 50),
    ("assignments_5", "Diligent", "Complete 5 assignments", "academic", "silver", 50, "📝", "completed_assignments", 5),
    ("topper", "Topper", "Rank first in a published result", "academic", "platinum", 250, "👑", None, None),
]


def is_seeded(db: Session) -> bool:
    """Check whether the catalog has already been seeded."""
    return db.query(models.SchoolClass).count() > 0


def seed_catalog(db: Session) -> None:
    """Insert classes, subjects and sample chapters."""
    for class_id, name, description, price, streams in CLASSES:
        db.add(models.SchoolClass(id=class_id, name=name, description=description, price=price, streams=streams))
    for subject_id, name, class_id, stream, price, icon, available in SUBJECTS:
        chapters = CHAPTERS.get(subject_id, [])
        db.add(models.Subject(
            id=subject_id,
            name=name,
            class_id=class_id,
            stream=stream,
            price=price,
            icon=icon,
            chapter_count=len(chapters),
            is_available=available,
        ))
        for order, (chapter_name, notes, pyqs, videos) in enumerate(chapters, start=1):
            db.add(models.Chapter(
                name=chapter_name,
                subject_id=subject_id,
                order=order,
                has_notes=notes,
                has_pyqs=pyqs,
                has_videos=videos,
            ))
    db.commit()


def seed_achievements(db: Session) -> None:
    existing = {code for (code,) in db.query(models.Achievement.code).all()}
    for code, title, description, category, tier, points, icon, counter, threshold in ACHIEVEMENTS:
        if code in existing:
            continue
        db.add(models.Achievement(
            code=code,
            title=title,
            description=description,
            category=category,
            tier=tier,
            points=points,
            icon=icon,
            criteria_counter=counter,
            criteria_threshold=threshold,
        ))
    db.commit()


def seed_admin(db: Session, email: Optional[str] = None, password: Optional[str] = None,
               full_name: Optional[str] = None) -> Optional[models.AdminUser]:
    """
    Create the bootstrap super admin with a hashed password if it does not exist.
    Without ADMIN_EMAIL/ADMIN_PASSWORD nothing is created.
    """
    email = normalize_email(email or config.ADMIN_EMAIL or "")
    password = password or config.ADMIN_PASSWORD
    if not email or not password:
        logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD not set; no bootstrap admin seeded")
        return None
    admin = db.query(models.AdminUser).filter_by(username=email).first()
    if admin is not None:
        return admin
    admin = models.AdminUser(
        username=email,
        hashed_password=auth.get_password_hash(password),
        full_name=full_name or config.ADMIN_FULL_NAME,
        role="super_admin",
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Seeded bootstrap admin %s", email)
    return admin


def seed_all(db: Session) -> None:
    """Run all seed functions; the catalog is only inserted once."""
    if not is_seeded(db):
        seed_catalog(db)
    seed_achievements(db)
    seed_admin(db)
