"""
Screening statistics

Counts decisions by block reason and UTC day, and blocks by the matched
entry's severity, for audit reporting.

Every counter carries its own lock, so an increment never waits on another
counter. The registry lock is only taken to create a new counter
or to copy the registry for a snapshot. Snapshots are exact per
counter but not a consistent cut across counters taken mid-update.
"""

import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from aml_screening.models import BlockReason, BlockResult


class _AtomicCounter:
    """Integer counter with its own lock"""

    __slots__ = ('_value', '_lock')

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = 0


@dataclass
class StatsSnapshot:
    """Point-in-time copy of the screening counters"""
    total_checks: int = 0
    total_blocked: int = 0
    by_reason: Dict[str, int] = field(default_factory=dict)
    by_day: Dict[str, int] = field(default_factory=dict)
    blocked_by_day: Dict[str, int] = field(default_factory=dict)
    blocked_by_severity: Dict[int, int] = field(default_factory=dict)
    scoring_errors: int = 0
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """External statistics shape"""
        return {
            'totalChecks': self.total_checks,
            'totalBlocked': self.total_blocked,
            'byReason': dict(self.by_reason),
            'byDay': dict(self.by_day),
        }

    def period_summary(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Blocked counts for today, the current ISO week and the current month

        ``bySeverity`` counts all blocks by the matched entry's severity,
        keyed by the severity as a string.
        """
        today = today or self.taken_at.date()
        week_start = today - timedelta(days=today.weekday())
        summary: Dict[str, Any] = {
            'total': self.total_blocked,
            'today': 0,
            'thisWeek': 0,
            'thisMonth': 0,
            'bySeverity': {str(severity): count for severity, count in self.blocked_by_severity.items()},
        }

        for day_key, count in self.blocked_by_day.items():
            day = date.fromisoformat(day_key)
            if day > today:
                continue
            if day == today:
                summary['today'] += count
            if day >= week_start:
                summary['thisWeek'] += count
            if (day.year, day.month) == (today.year, today.month):
                summary['thisMonth'] += count
        return summary


def _utc_day(timestamp: Optional[datetime]) -> str:
    if timestamp is None:
        timestamp = datetime.now(timezone.utc)
    elif timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.date().isoformat()


class StatsAggregator:
    """Thread-safe decision counters

    Create one per process and share it between engines. reset() is for
    tests and maintenance only.
    """

    def __init__(self):
        self._total_checks = _AtomicCounter()
        self._total_blocked = _AtomicCounter()
        self._scoring_errors = _AtomicCounter()
        self._counters: Dict[Tuple[str, str], _AtomicCounter] = {}
        self._severity_counters: Dict[int, _AtomicCounter] = {}
        self._registry_lock = threading.Lock()

    def _counter(self, reason: str, day: str) -> _AtomicCounter:
        key = (reason, day)
        counter = self._counters.get(key)
        if counter is None:
            with self._registry_lock:
                counter = self._counters.setdefault(key, _AtomicCounter())
        return counter

    def _severity_counter(self, severity: int) -> _AtomicCounter:
        counter = self._severity_counters.get(severity)
        if counter is None:
            with self._registry_lock:
                counter = self._severity_counters.setdefault(severity, _AtomicCounter())
        return counter

    def record(self, result: BlockResult, timestamp: Optional[datetime] = None) -> None:
        """Count one completed decision

        Args:
            result: The decision
            timestamp: Decision time, naive values are taken as UTC
        """
        reason = BlockReason(result.block_reason).value
        self._counter(reason, _utc_day(timestamp)).increment()
        self._total_checks.increment()
        if result.is_blocked:
            self._total_blocked.increment()
            if result.matched_severity is not None:
                self._severity_counter(result.matched_severity).increment()

    def record_scoring_error(self) -> None:
        self._scoring_errors.increment()

    def snapshot(self) -> StatsSnapshot:
        """Copy of all counters"""
        with self._registry_lock:
            counters = list(self._counters.items())
            severity_counters = sorted(self._severity_counters.items())

        by_reason = {reason.value: 0 for reason in BlockReason}
        by_day: Dict[str, int] = {}
        blocked_by_day: Dict[str, int] = {}
        for (reason, day), counter in counters:
            count = counter.value
            if count == 0:
                continue
            by_reason[reason] = by_reason.get(reason, 0) + count
            by_day[day] = by_day.get(day, 0) + count
            if BlockReason(reason).is_match:
                blocked_by_day[day] = blocked_by_day.get(day, 0) + count

        return StatsSnapshot(
            total_checks=self._total_checks.value,
            total_blocked=self._total_blocked.value,
            by_reason=by_reason,
            by_day=dict(sorted(by_day.items())),
            blocked_by_day=dict(sorted(blocked_by_day.items())),
            blocked_by_severity={
                severity: counter.value for severity, counter in severity_counters if counter.value
            },
            scoring_errors=self._scoring_errors.value,
        )

    def reset(self) -> None:
        """Zero all counters"""
        with self._registry_lock:
            self._counters = {}
            self._severity_counters = {}
        self._total_checks.reset()
        self._total_blocked.reset()
        self._scoring_errors.reset()
