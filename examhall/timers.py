"""
Wake-up scheduler for the exam list.

One pending one-shot wake-up per exam whose start time is still ahead. A
wake-up only asks the view to refresh; the next listing poll and the session
gate decide what is actually open.
"""
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from examhall.models import Exam, utc_now

logger = logging.getLogger(__name__)

# timer_factory(delay_seconds, callback) -> handle with .cancel()
TimerFactory = Callable[[float, Callable[[], None]], object]


class PolledTimer:
    def __init__(self, due: datetime, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class PolledTimers:
    """
    Timer factory that starts no threads. Wake-ups fire only from `fire_due`,
    so an abandoned session leaves nothing running behind it.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self._timers: List[PolledTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> PolledTimer:
        timer = PolledTimer(self.clock() + timedelta(seconds=delay), callback)
        self._timers.append(timer)
        return timer

    def fire_due(self, now: datetime) -> int:
        """Run callbacks of timers due at `now`, earliest first. Returns how many fired."""
        live = [t for t in self._timers if not t.cancelled]
        due = sorted((t for t in live if t.due <= now), key=lambda t: t.due)
        self._timers = [t for t in live if t.due > now]
        for timer in due:
            timer.callback()
        return len(due)

    def __len__(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)


def wakeup_schedule(exams: Iterable[Exam], now: datetime) -> Dict[str, datetime]:
    """Exam id -> start instant, for exams starting strictly after `now`."""
    schedule = {}
    for exam in exams:
        if (exam.start_date - now).total_seconds() > 0:
            schedule[exam.id] = exam.start_date
    return schedule


class WakeupScheduler:
    """Keeps the pending wake-ups in line with the latest exam snapshot."""

    def __init__(self, on_wakeup: Callable[[str], None], timer_factory: Optional[TimerFactory] = None):
        self.on_wakeup = on_wakeup
        self.timer_factory = timer_factory if timer_factory is not None else PolledTimers()
        self._pending: Dict[str, Tuple[datetime, object]] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> "WakeupScheduler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel_all()

    def pending(self) -> Dict[str, datetime]:
        with self._lock:
            return {exam_id: at for exam_id, (at, _) in self._pending.items()}

    def reconcile(self, exams: Iterable[Exam], now: datetime) -> Dict[str, datetime]:
        """
        Bring pending wake-ups in line with `exams` at time `now`.
        Wake-ups whose exam vanished or moved are cancelled; unchanged ones are
        kept as they are, so repeated calls never stack duplicates.
        """
        wanted = wakeup_schedule(exams, now)
        with self._lock:
            for exam_id in list(self._pending):
                at, handle = self._pending[exam_id]
                if wanted.get(exam_id) != at:
                    handle.cancel()
                    del self._pending[exam_id]
            added = 0
            for exam_id, at in wanted.items():
                if exam_id in self._pending:
                    continue
                delay = (at - now).total_seconds()
                handle = self.timer_factory(delay, self._make_callback(exam_id, at))
                self._pending[exam_id] = (at, handle)
                added += 1
            logger.info(f"Wake-ups reconciled: {len(self._pending)} pending ({added} new)")
            return {exam_id: at for exam_id, (at, _) in self._pending.items()}

    def cancel_all(self) -> None:
        with self._lock:
            for _, handle in self._pending.values():
                handle.cancel()
            if self._pending:
                logger.info(f"Cancelled {len(self._pending)} pending wake-ups")
            self._pending.clear()

    def seconds_until_next(self, now: datetime) -> Optional[float]:
        """Delay until the earliest pending wake-up, or None when nothing is pending."""
        with self._lock:
            if not self._pending:
                return None
            earliest = min(at for at, _ in self._pending.values())
        return max(0.0, (earliest - now).total_seconds())

    def _make_callback(self, exam_id: str, at: datetime) -> Callable[[], None]:
        def fire():
            with self._lock:
                entry = self._pending.get(exam_id)
                # stale: cancelled or rescheduled after the timer was armed
                if entry is None or entry[0] != at:
                    return
                del self._pending[exam_id]
            logger.debug(f"Wake-up fired for exam {exam_id}")
            self.on_wakeup(exam_id)

        return fire
