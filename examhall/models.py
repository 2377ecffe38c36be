"""
Records shared by the student and admin views: exams, submissions and grades.
Rows come from Supabase as plain dicts; these types give them a fixed shape.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Union


class ExamHallError(Exception):
    """Base class for errors surfaced to the user."""


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.
    Naive values (as written by older clients) are taken to be UTC.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Exam:
    id: str
    exam_name: str
    start_date: datetime
    end_date: datetime
    duration: int = 0
    total_grade: float = 0
    attempts: int = 0

    @classmethod
    def from_record(cls, row: Dict) -> "Exam":
        return cls(
            id=str(row["id"]),
            exam_name=row.get("exam_name") or "Unnamed Exam",
            start_date=parse_timestamp(row["start_date"]),
            end_date=parse_timestamp(row["end_date"]),
            duration=int(row.get("duration") or 0),
            total_grade=row.get("total_grade") or 0,
            attempts=int(row.get("attempts") or 0),
        )

    def to_record(self) -> Dict:
        return {
            "id": self.id,
            "exam_name": self.exam_name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "duration": self.duration,
            "total_grade": self.total_grade,
            "attempts": self.attempts,
        }


@dataclass(frozen=True)
class Ungraded:
    """Submission exists but its grade is not published to the student yet."""


@dataclass(frozen=True)
class Graded:
    score: float


Grade = Union[Graded, Ungraded]


def decode_grade(value) -> Grade:
    # NULL or the legacy negative sentinel both mean "not published"
    if value is None:
        return Ungraded()
    score = float(value)
    if score < 0:
        return Ungraded()
    return Graded(score)


def encode_grade(grade: Grade) -> Optional[float]:
    if isinstance(grade, Graded):
        return grade.score
    return None


@dataclass(frozen=True)
class Submission:
    exam_id: str
    student_id: str
    grade: Grade = field(default_factory=Ungraded)
    feedback: str = ""
    answers: Dict = field(default_factory=dict)
    student_name: str = ""
    student_email: str = ""
    submitted_at: Optional[datetime] = None

    @property
    def is_graded(self) -> bool:
        return isinstance(self.grade, Graded)

    @classmethod
    def from_record(cls, row: Dict) -> "Submission":
        submitted_at = row.get("submitted_at")
        return cls(
            exam_id=str(row["exam_id"]),
            student_id=str(row["student_id"]),
            grade=decode_grade(row.get("total_grade")),
            feedback=row.get("feedback") or "",
            answers=row.get("answers") or {},
            student_name=row.get("student_name") or "",
            student_email=row.get("student_email") or "",
            submitted_at=parse_timestamp(submitted_at) if submitted_at else None,
        )

    def to_record(self) -> Dict:
        return {
            "exam_id": self.exam_id,
            "student_id": self.student_id,
            "total_grade": encode_grade(self.grade),
            "feedback": self.feedback,
            "answers": self.answers,
            "student_name": self.student_name,
            "student_email": self.student_email,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }
