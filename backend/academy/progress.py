# backend/academy/progress.py
"""
Student progress: levels, activity counters, achievements and the leaderboard.

Level is always derived from experience points (1000 XP per level). How much an
activity is worth lives in ACTIVITY_REWARDS; callers only say which activity
happened.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .errors import NotFoundError
from .models import utcnow

logger = logging.getLogger(__name__)

XP_PER_LEVEL = 1000
DEFAULT_LEADERBOARD_LIMIT = 10

# activity -> (counter column, experience/points awarded)
ACTIVITY_REWARDS = {
    "test_passed": ("tests_passed", 100),
    "note_downloaded": ("notes_downloaded", 10),
    "perfect_attendance": ("perfect_attendance_days", 20),
    "assignment_completed": ("completed_assignments", 50),
}


def level_for(experience_points: int) -> int:
    return experience_points // XP_PER_LEVEL + 1


def progress_to_next_level(experience_points: int) -> float:
    level = level_for(experience_points)
    return (experience_points - (level - 1) * XP_PER_LEVEL) / XP_PER_LEVEL * 100


def xp_to_next_level(experience_points: int) -> int:
    return XP_PER_LEVEL - experience_points % XP_PER_LEVEL


def get_or_create_progress(db: Session, student_id: int) -> models.StudentProgress:
    row = db.query(models.StudentProgress).filter_by(student_id=student_id).first()
    if row is None:
        row = models.StudentProgress(
            student_id=student_id,
            experience_points=0,
            level=1,
            login_streak=0,
            tests_passed=0,
            notes_downloaded=0,
            perfect_attendance_days=0,
            completed_assignments=0,
            total_points=0,
        )
        db.add(row)
        db.flush()
    return row


def summarize(row: models.StudentProgress) -> dict:
    xp = row.experience_points
    return {
        "student_id": row.student_id,
        "experience_points": xp,
        "level": level_for(xp),
        "progress_to_next_level": progress_to_next_level(xp),
        "xp_to_next_level": xp_to_next_level(xp),
        "login_streak": row.login_streak,
        "tests_passed": row.tests_passed,
        "notes_downloaded": row.notes_downloaded,
        "perfect_attendance_days": row.perfect_attendance_days,
        "completed_assignments": row.completed_assignments,
        "total_points": row.total_points,
    }


def add_experience(row: models.StudentProgress, amount: int) -> None:
    row.experience_points += amount
    row.total_points += amount
    row.level = level_for(row.experience_points)


def touch_login_streak(db: Session, student_id: int, today: Optional[date] = None) -> models.StudentProgress:
    """Consecutive-day logins extend the streak; a gap resets it. Does not commit."""
    today = today or utcnow().date()
    row = get_or_create_progress(db, student_id)
    if row.last_active_date == today:
        return row
    if row.last_active_date == today - timedelta(days=1):
        row.login_streak += 1
    else:
        row.login_streak = 1
    row.last_active_date = today
    return row


def record_activity(db: Session, student_id: int, activity: str, count: int = 1) -> models.StudentProgress:
    if activity not in ACTIVITY_REWARDS:
        raise ValueError(f"Unknown activity: {activity}")
    counter, reward = ACTIVITY_REWARDS[activity]
    row = get_or_create_progress(db, student_id)
    setattr(row, counter, getattr(row, counter) + count)
    add_experience(row, reward * count)
    db.commit()
    check_achievements(db, student_id)
    return row


def award_achievement(db: Session, student_id: int, achievement_id: int) -> Optional[models.EarnedAchievement]:
    """
    Record that a student earned an achievement.
    Returns the new record, or None if it was already earned.
    """
    achievement = db.get(models.Achievement, achievement_id)
    if achievement is None:
        raise NotFoundError("Achievement not found")
    exists = (
        db.query(models.EarnedAchievement)
        .filter_by(student_id=student_id, achievement_id=achievement_id)
        .first()
    )
    if exists is not None:
        return None

    earned = models.EarnedAchievement(student_id=student_id, achievement_id=achievement_id)
    db.add(earned)
    try:
        db.flush()
    except IntegrityError:
        # another request inserted the same pair first
        db.rollback()
        return None
    row = get_or_create_progress(db, student_id)
    row.total_points += achievement.points
    db.commit()
    db.refresh(earned)
    logger.info("Student %s earned achievement %s", student_id, achievement.code)
    return earned


def check_achievements(db: Session, student_id: int) -> List[models.EarnedAchievement]:
    """Award every catalog achievement whose counter threshold the student has reached."""
    row = get_or_create_progress(db, student_id)
    awarded = []
    catalog = (
        db.query(models.Achievement)
        .filter(models.Achievement.criteria_counter.isnot(None))
        .order_by(models.Achievement.id)
        .all()
    )
    for achievement in catalog:
        value = getattr(row, achievement.criteria_counter, None)
        if value is None or value < achievement.criteria_threshold:
            continue
        earned = award_achievement(db, student_id, achievement.id)
        if earned is not None:
            awarded.append(earned)
    return awarded


def earned_achievements(db: Session, student_id: int) -> List[models.EarnedAchievement]:
    return (
        db.query(models.EarnedAchievement)
        .filter_by(student_id=student_id)
        .order_by(models.EarnedAchievement.earned_at.desc(), models.EarnedAchievement.id.desc())
        .all()
    )


@dataclass
class LeaderboardRow:
    rank: int
    student_id: int
    name: str
    level: int
    total_points: int


def leaderboard(db: Session, limit: int = DEFAULT_LEADERBOARD_LIMIT) -> List[LeaderboardRow]:
    """Students by total points, highest first; equal totals keep id order."""
    rows = (
        db.query(models.StudentProgress, models.StudentUser)
        .join(models.StudentUser, models.StudentUser.id == models.StudentProgress.student_id)
        .filter(models.StudentUser.is_active.is_(True))
        .order_by(models.StudentProgress.total_points.desc(), models.StudentProgress.student_id.asc())
        .limit(limit)
        .all()
    )
    return [
        LeaderboardRow(
            rank=position,
            student_id=student.id,
            name=student.name,
            level=level_for(prog.experience_points),
            total_points=prog.total_points,
        )
        for position, (prog, student) in enumerate(rows, start=1)
    ]
