"""
Session gate: decides whether a tapped exam can be started right now.
Pure and synchronous; the UI turns the decision into a notice or a confirmation.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from examhall.models import Exam

logger = logging.getLogger(__name__)

UNAVAILABLE_TITLE = "Exam Unavailable"
CONFIRM_TITLE = "Are you sure?"
CONFIRM_MESSAGE = "Do you want to start the exam now?"


class GateState(Enum):
    NOT_YET_OPEN = "not_yet_open"
    OPEN = "open"
    EXPIRED = "expired"


@dataclass(frozen=True)
class GateDecision:
    state: GateState
    title: str
    message: str
    requires_confirmation: bool = False

    @property
    def startable(self) -> bool:
        return self.state is GateState.OPEN


def classify(now: datetime, start: datetime, end: datetime) -> GateState:
    """Place `now` against the half-open exam window [start, end)."""
    if now < start:
        return GateState.NOT_YET_OPEN
    if now >= end:
        return GateState.EXPIRED
    return GateState.OPEN


def duration_notice(duration_minutes: int) -> str:
    return (
        f"You will have {duration_minutes} minutes to solve the exam. "
        "Make sure you are ready before starting."
    )


def evaluate(exam: Exam, now: datetime) -> GateDecision:
    state = classify(now, exam.start_date, exam.end_date)
    logger.debug(f"Gate for exam {exam.id}: {state.value}")
    if state is GateState.OPEN:
        return GateDecision(
            state=state,
            title=exam.exam_name,
            message=duration_notice(exam.duration),
            requires_confirmation=True,
        )
    if state is GateState.NOT_YET_OPEN:
        message = f"The exam is not available yet. It opens at {exam.start_date:%Y-%m-%d %H:%M} UTC."
    else:
        message = "The exam has expired and can no longer be started."
    return GateDecision(state=state, title=UNAVAILABLE_TITLE, message=message)
