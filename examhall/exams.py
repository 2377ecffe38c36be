"""Admin exam creation form."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from examhall.models import Exam, ExamHallError

logger = logging.getLogger(__name__)


class ExamValidationError(ExamHallError):
    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


@dataclass
class ExamDraft:
    exam_name: str = ""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    duration: int = 0
    total_grade: float = 0
    attempts: int = 1

    def validate(self) -> List[str]:
        errors = []
        if not self.exam_name.strip():
            errors.append("Exam name cannot be empty")
        if self.start_date is None or self.end_date is None:
            errors.append("Start and end dates are required")
        elif self.start_date >= self.end_date:
            errors.append("End date must be after the start date")
        elif self.duration * 60 > (self.end_date - self.start_date).total_seconds():
            errors.append("Duration does not fit inside the exam window")
        if self.duration <= 0:
            errors.append("Duration must be a positive number of minutes")
        if self.total_grade <= 0:
            errors.append("Total grade must be positive")
        if self.attempts < 1:
            errors.append("At least one attempt must be allowed")
        return errors

    def build(self, exam_id: Optional[str] = None) -> Exam:
        errors = self.validate()
        if errors:
            raise ExamValidationError(errors)
        return Exam(
            id=exam_id or str(uuid4()),
            exam_name=self.exam_name.strip(),
            start_date=self.start_date,
            end_date=self.end_date,
            duration=int(self.duration),
            total_grade=self.total_grade,
            attempts=int(self.attempts),
        )
