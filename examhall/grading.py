"""Grade bands and the student grade view."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from engine import PASS_HIGH_THRESHOLD, PASS_MID_THRESHOLD
from examhall.models import Exam, Graded, Submission

logger = logging.getLogger(__name__)


class GradeBand(Enum):
    PASS_HIGH = "green"
    PASS_MID = "orange"
    FAIL = "red"

    @property
    def color(self) -> str:
        return self.value


def grade_percentage(earned: float, total: float) -> Optional[float]:
    """earned / total * 100, or None when the exam total is not positive."""
    if total <= 0:
        return None
    return earned / total * 100


def grade_band(earned: float, total: float) -> GradeBand:
    # A zero or negative exam total has no meaningful percentage; it bands as FAIL.
    percentage = grade_percentage(earned, total)
    if percentage is None:
        return GradeBand.FAIL
    if percentage >= PASS_HIGH_THRESHOLD:
        return GradeBand.PASS_HIGH
    if percentage >= PASS_MID_THRESHOLD:
        return GradeBand.PASS_MID
    return GradeBand.FAIL


@dataclass(frozen=True)
class GradeRow:
    exam: Exam
    submission: Submission
    score: float
    band: GradeBand

    @property
    def label(self) -> str:
        return f"{self.score:g} out of {self.exam.total_grade:g}"


def grade_rows(exams: Iterable[Exam], submissions: Dict[str, Submission]) -> List[GradeRow]:
    """
    Join exams with the student's submissions (keyed by exam id).
    Exams without a submission, or with an unpublished grade, are left out.
    """
    rows = []
    for exam in exams:
        submission = submissions.get(exam.id)
        if submission is None or not isinstance(submission.grade, Graded):
            continue
        score = submission.grade.score
        rows.append(GradeRow(exam=exam, submission=submission, score=score,
                             band=grade_band(score, exam.total_grade)))
    return rows
