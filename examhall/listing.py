"""Exam list feed: turns repeated store queries into change-only snapshots."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Tuple

from engine import EXAM_VISIBILITY_GRACE_DAYS
from examhall.models import Exam, utc_now
from examhall.timers import PolledTimers, WakeupScheduler

logger = logging.getLogger(__name__)


def visible_exams(exams: Iterable[Exam], now: datetime) -> List[Exam]:
    """Drop exams whose start lies more than the grace period in the past."""
    cutoff = now - timedelta(days=EXAM_VISIBILITY_GRACE_DAYS)
    return [e for e in exams if cutoff < e.start_date]


@dataclass(frozen=True)
class ExamSnapshot:
    exams: Tuple[Exam, ...] = ()
    error: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not self.exams


class ExamFeed:
    """
    Polls `fetch(now)` (exams ending after `now`) and publishes snapshots.

    Subscribers are called only when the visible exam set changes; a failed
    fetch yields an error snapshot and is not retried until the next poll.
    """

    def __init__(self, fetch: Callable[[datetime], List[Exam]]):
        self.fetch = fetch
        self.latest: Optional[ExamSnapshot] = None
        self._subscribers: List[Callable[[ExamSnapshot, datetime], None]] = []

    def subscribe(self, callback: Callable[[ExamSnapshot, datetime], None]) -> None:
        self._subscribers.append(callback)

    def poll(self, now: datetime) -> ExamSnapshot:
        try:
            exams = visible_exams(self.fetch(now), now)
            exams.sort(key=lambda e: (e.start_date, e.id))
            snapshot = ExamSnapshot(exams=tuple(exams))
        except Exception as e:
            logger.error(f"Error fetching exams: {e}")
            snapshot = ExamSnapshot(error=str(e))

        if snapshot != self.latest:
            self.latest = snapshot
            for callback in self._subscribers:
                callback(snapshot, now)
        return snapshot


class ExamListSession:
    """Feed, wake-ups and their thread-free timers for one on-screen exam list."""

    def __init__(self, fetch: Callable[[datetime], List[Exam]], clock: Callable[[], datetime] = utc_now):
        self.woken: List[str] = []
        self.timers = PolledTimers(clock)
        self.scheduler = WakeupScheduler(on_wakeup=self.woken.append, timer_factory=self.timers)
        self.feed = ExamFeed(fetch)
        self.feed.subscribe(lambda snapshot, now: self.scheduler.reconcile(snapshot.exams, now))

    def tick(self, now: datetime) -> ExamSnapshot:
        """Fire wake-ups that are due, then poll the feed."""
        self.timers.fire_due(now)
        return self.feed.poll(now)

    def take_woken(self) -> List[str]:
        woken = list(self.woken)
        self.woken.clear()
        return woken

    def seconds_until_next(self, now: datetime) -> Optional[float]:
        return self.scheduler.seconds_until_next(now)

    def close(self) -> None:
        self.scheduler.cancel_all()
        self.woken.clear()
