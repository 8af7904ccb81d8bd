# backend/academy/grading.py
"""
Exam result ranking and grading.

Ranks are strict and sequential: students are sorted by marks descending with a
stable sort, so tied students keep their input order and still get distinct
ranks (1, 2, 3...). Grades come from the unrounded percentage.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, List

# Inclusive lower bounds, best first.
GRADE_BANDS = (
    (90, "A+"),
    (80, "A"),
    (70, "B+"),
    (60, "B"),
    (50, "C"),
    (40, "D"),
)
FAILING_GRADE = "F"
GRADE_ORDER = (FAILING_GRADE, "D", "C", "B", "B+", "A", "A+")


@dataclass(frozen=True)
class MarkEntry:
    student_id: Any
    marks: float


@dataclass(frozen=True)
class RankedResult:
    student_id: Any
    marks: float
    rank: int
    percentage: float
    grade: str


def grade_for(percentage: float) -> str:
    for lower_bound, grade in GRADE_BANDS:
        if percentage >= lower_bound:
            return grade
    return FAILING_GRADE


def grade_position(grade: str) -> int:
    """Position in the F < D < C < B < B+ < A < A+ ordering."""
    return GRADE_ORDER.index(grade)


def is_passing(grade: str) -> bool:
    return grade != FAILING_GRADE


def raw_percentage(marks: float, total_marks: float) -> float:
    if total_marks <= 0:
        raise ValueError("total_marks must be positive")
    return marks / total_marks * 100


def round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def percentage_of(marks: float, total_marks: float) -> float:
    return round2(raw_percentage(marks, total_marks))


def rank_results(entries: Iterable[MarkEntry], total_marks: float) -> List[RankedResult]:
    """
    Sort by marks descending and derive rank, percentage and grade.

    >>> [r.rank for r in rank_results([MarkEntry("S1", 90), MarkEntry("S2", 75), MarkEntry("S3", 90)], 100)]
    [1, 2, 3]
    """
    if total_marks <= 0:
        raise ValueError("total_marks must be positive")
    ordered = sorted(entries, key=lambda e: e.marks, reverse=True)
    ranked = []
    for position, entry in enumerate(ordered, start=1):
        pct = raw_percentage(entry.marks, total_marks)
        ranked.append(RankedResult(
            student_id=entry.student_id,
            marks=entry.marks,
            rank=position,
            percentage=round2(pct),
            grade=grade_for(pct),
        ))
    return ranked
