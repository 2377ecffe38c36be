"""
Question authoring: the add-question form as a small state machine, its
validation rules, and the image upload that precedes saving a question.
"""
import logging
import mimetypes
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from engine import MC_OPTION_COUNT, QUESTION_IMAGE_PREFIX, TRUE_FALSE_CHOICES
from examhall.models import ExamHallError

logger = logging.getLogger(__name__)


class QuestionValidationError(ExamHallError):
    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class ImageUploadError(ExamHallError):
    """Raised when the question image could not be stored."""


class QuestionType(Enum):
    MULTIPLE_CHOICE = "Multiple Choice"
    TRUE_FALSE = "True/False"
    SHORT_ANSWER = "Short Answer"
    ESSAY = "Essay"

    @property
    def objective(self) -> bool:
        return self in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE)


@dataclass(frozen=True)
class Question:
    id: str
    exam_id: str
    question_type: QuestionType
    question_text: str
    options: List[str]
    correct_answer: Optional[str]
    grade: int
    image_url: Optional[str] = None

    @classmethod
    def from_record(cls, row: Dict) -> "Question":
        return cls(
            id=str(row["id"]),
            exam_id=str(row["exam_id"]),
            question_type=QuestionType(row["question_type"]),
            question_text=row.get("question_text") or "",
            options=list(row.get("options") or []),
            correct_answer=row.get("correct_answer"),
            grade=int(row.get("grade") or 0),
            image_url=row.get("image_url"),
        )

    def to_record(self) -> Dict:
        return {
            "id": self.id,
            "exam_id": self.exam_id,
            "question_type": self.question_type.value,
            "question_text": self.question_text,
            "options": self.options,
            "correct_answer": self.correct_answer,
            "grade": self.grade,
            "image_url": self.image_url,
        }

    def is_correct(self, answer: Optional[str]) -> bool:
        if not self.question_type.objective or answer is None:
            return False
        return answer.strip() == (self.correct_answer or "").strip()


def _blank_options() -> List[str]:
    return [""] * MC_OPTION_COUNT


@dataclass
class QuestionDraft:
    """Mutable form state behind the add-question dialog."""

    question_type: Optional[QuestionType] = None
    question_text: str = ""
    grade: str = ""
    options: List[str] = field(default_factory=_blank_options)
    correct_answer: Optional[str] = None
    image_name: Optional[str] = None
    image_data: Optional[bytes] = None

    def select_type(self, question_type: QuestionType) -> None:
        # switching type always starts the answer part over
        self.question_type = question_type
        self.options = _blank_options()
        self.correct_answer = None

    def set_option(self, index: int, value: str) -> None:
        self.options[index] = value

    def choose_correct(self, value: str) -> None:
        if self.question_type is QuestionType.MULTIPLE_CHOICE:
            if not value.strip() or value not in self.options:
                raise ValueError(f"Option {value!r} is not one of the filled options")
        elif self.question_type is QuestionType.TRUE_FALSE:
            if value not in TRUE_FALSE_CHOICES:
                raise ValueError("Answer must be True or False")
        else:
            raise ValueError("This question type has no correct answer to choose")
        self.correct_answer = value

    def attach_image(self, name: str, data: bytes) -> None:
        self.image_name = name
        self.image_data = data
        logger.info(f"Image picked: {name}")

    def remove_image(self) -> None:
        self.image_name = None
        self.image_data = None

    @property
    def filled_options(self) -> List[str]:
        return [opt.strip() for opt in self.options if opt.strip()]

    def validate(self) -> List[str]:
        """Return the form errors; an empty list means the draft can be saved."""
        errors = []
        if self.question_type is None:
            errors.append("Please select a question type")
        if not self.question_text.strip():
            errors.append("Question cannot be empty")
        if not self.grade.strip():
            errors.append("Grade cannot be empty")
        elif not self.grade.strip().isdecimal():
            errors.append("Grade must be a number")

        if self.question_type is QuestionType.MULTIPLE_CHOICE:
            filled = self.filled_options
            if len(set(filled)) != len(filled):
                errors.append("Options must be different from each other")
            if self.correct_answer is None or self.correct_answer.strip() not in filled:
                errors.append("Please fill all options and select a correct answer")
        elif self.question_type is QuestionType.TRUE_FALSE:
            if self.correct_answer not in TRUE_FALSE_CHOICES:
                errors.append("Please select True or False")
        return errors

    def build(self, question_id: str, exam_id: str, image_url: Optional[str] = None) -> Question:
        errors = self.validate()
        if errors:
            raise QuestionValidationError(errors)
        if self.question_type is QuestionType.MULTIPLE_CHOICE:
            options = list(self.options)
        elif self.question_type is QuestionType.TRUE_FALSE:
            options = list(TRUE_FALSE_CHOICES)
        else:
            options = []
        return Question(
            id=question_id,
            exam_id=exam_id,
            question_type=self.question_type,
            question_text=self.question_text.strip(),
            options=options,
            correct_answer=self.correct_answer if self.question_type.objective else None,
            grade=int(self.grade.strip()),
            image_url=image_url,
        )


def epoch_millis(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def image_object_path(filename: str, now: datetime) -> str:
    """Storage path for a question image: question_images/image_<epoch ms>.<ext>"""
    extension = filename.rsplit(".", 1)[-1]
    return f"{QUESTION_IMAGE_PREFIX}/image_{epoch_millis(now)}.{extension}"


def guess_content_type(filename: str) -> str:
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"


# upload(path, data, content_type) -> public URL; raises ImageUploadError
Uploader = Callable[[str, bytes, str], str]


def submit_question(draft: QuestionDraft, exam_id: str, upload: Uploader, now: datetime) -> Question:
    """
    Validate the draft, upload its image if any, and build the question.

    Raises QuestionValidationError on bad input and ImageUploadError when the
    image cannot be stored; in both cases no question is produced.
    """
    errors = draft.validate()
    if errors:
        raise QuestionValidationError(errors)

    image_url = None
    if draft.image_data is not None:
        path = image_object_path(draft.image_name or "image", now)
        logger.info(f"Starting upload to path: {path}")
        image_url = upload(path, draft.image_data, guess_content_type(draft.image_name or ""))
        logger.info(f"URL=> {image_url}")

    return draft.build(question_id=str(epoch_millis(now)), exam_id=exam_id, image_url=image_url)
