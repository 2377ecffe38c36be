"""
Timed exam attempt: answer bookkeeping, remaining time, auto-submit on timeout.
Implements the taking side of an exam; grading stays with the admin.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from examhall.models import Exam, ExamHallError, Submission, Ungraded
from examhall.questions import Question

logger = logging.getLogger(__name__)


def objective_score(questions: List[Question], answers: Dict[str, str]) -> float:
    """Points from correctly answered multiple-choice and true/false questions."""
    return float(sum(q.grade for q in questions if q.is_correct(answers.get(q.id))))


class AttemptClosedError(ExamHallError):
    """Raised when answering or submitting an attempt that is already submitted."""


class ExamAttempt:
    """One student's run through an exam, from the confirmation to the submission."""

    def __init__(self, exam: Exam, questions: List[Question], started_at: datetime):
        """
        Args:
            exam: The exam being taken; its window caps the attempt.
            questions: Questions in display order.
            started_at: When the student confirmed the start.
        """
        self.exam = exam
        self.questions = questions
        self.started_at = started_at
        self.answers: Dict[str, str] = {}
        self.submitted_at: Optional[datetime] = None
        self.auto_submitted = False
        self.current_index = 0

    @property
    def deadline(self) -> datetime:
        # the attempt never runs past the exam window
        return min(self.started_at + timedelta(minutes=self.exam.duration), self.exam.end_date)

    @property
    def submitted(self) -> bool:
        return self.submitted_at is not None

    def remaining_seconds(self, now: datetime) -> int:
        return max(0, int((self.deadline - now).total_seconds()))

    def is_timed_out(self, now: datetime) -> bool:
        return now >= self.deadline

    def answer(self, question_id: str, value: Optional[str]) -> None:
        if self.submitted:
            raise AttemptClosedError("This exam has already been submitted")
        if value is None or not str(value).strip():
            self.answers.pop(question_id, None)
        else:
            self.answers[question_id] = str(value)

    def answered_count(self) -> int:
        return sum(1 for q in self.questions if q.id in self.answers)

    def objective_score(self) -> float:
        return objective_score(self.questions, self.answers)

    def submit(self, now: datetime, student_id: str, student_name: str = "", student_email: str = "") -> Submission:
        if self.submitted:
            raise AttemptClosedError("This exam has already been submitted")
        self.auto_submitted = self.is_timed_out(now)
        self.submitted_at = now
        logger.info(
            f"Exam {self.exam.id} submitted by {student_id}: "
            f"{self.answered_count()}/{len(self.questions)} answered, auto={self.auto_submitted}"
        )
        return Submission(
            exam_id=self.exam.id,
            student_id=student_id,
            grade=Ungraded(),
            answers=dict(self.answers),
            student_name=student_name,
            student_email=student_email,
            submitted_at=now,
        )

    def submit_if_timed_out(self, now: datetime, student_id: str, **student) -> Optional[Submission]:
        """Submit automatically once the deadline has passed; None while time remains."""
        if self.submitted or not self.is_timed_out(now):
            return None
        return self.submit(now, student_id, **student)
