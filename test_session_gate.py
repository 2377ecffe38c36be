"""Session gate: exam window classification and tap decisions."""
from datetime import timedelta

import pytest

from examhall.models import Exam
from examhall.session_gate import GateState, UNAVAILABLE_TITLE, classify, evaluate


def make_exam(now, start_offset, end_offset, duration=45):
    return Exam(
        id="midterm",
        exam_name="Midterm",
        start_date=now + start_offset,
        end_date=now + end_offset,
        duration=duration,
        total_grade=100,
        attempts=1,
    )


@pytest.mark.parametrize(
    "offset, expected",
    [
        (timedelta(minutes=-1), GateState.NOT_YET_OPEN),
        (timedelta(0), GateState.OPEN),
        (timedelta(hours=1), GateState.OPEN),
        (timedelta(hours=2) - timedelta(microseconds=1), GateState.OPEN),
        (timedelta(hours=2), GateState.EXPIRED),
        (timedelta(days=3), GateState.EXPIRED),
    ],
)
def test_classify_against_half_open_window(now, offset, expected):
    start, end = now, now + timedelta(hours=2)
    assert classify(start + offset, start, end) is expected


def test_open_exam_asks_for_confirmation_with_duration_notice(now):
    decision = evaluate(make_exam(now, timedelta(minutes=-5), timedelta(hours=1)), now)
    assert decision.startable
    assert decision.requires_confirmation
    assert decision.title == "Midterm"
    assert "45 minutes" in decision.message


def test_not_yet_open_is_informational_only(now):
    decision = evaluate(make_exam(now, timedelta(hours=1), timedelta(hours=3)), now)
    assert decision.state is GateState.NOT_YET_OPEN
    assert not decision.startable
    assert not decision.requires_confirmation
    assert decision.title == UNAVAILABLE_TITLE
    assert "not available yet" in decision.message


def test_expired_exam_is_informational_only(now):
    decision = evaluate(make_exam(now, timedelta(hours=-3), timedelta(hours=-1)), now)
    assert decision.state is GateState.EXPIRED
    assert decision.title == UNAVAILABLE_TITLE
    assert "expired" in decision.message
