"""Statistics over a windowed task subset.

Everything here is a pure function of ``(todos, now)``: no I/O and no clock
reads. The resulting :class:`StatisticsSnapshot` feeds the summary prompt and
the ``/api/todos/stats`` endpoint.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
import math
from typing import Dict, Iterable, List, Optional, Tuple

from .config import TIMEZONE
from .models import Todo
from .windows import to_zone, js_weekday

PRIORITY_BUCKETS = ("high", "medium", "low", "unset")
# Sunday first, matching the Sunday=0 weekday numbering.
WEEKDAYS = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
DUE_SLOTS = ("morning", "afternoon", "evening", "other")
CREATED_SLOTS = ("dawn", "morning", "afternoon", "evening")
URGENT_LIMIT = 5
DAY_SECONDS = 86400

def percent(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0

@dataclass
class Tally:
    total: int = 0
    completed: int = 0

    @property
    def rate(self) -> float:
        return percent(self.completed, self.total)

    def add(self, completed: bool) -> None:
        self.total += 1
        if completed:
            self.completed += 1

    def to_dict(self) -> dict:
        return {"total": self.total, "completed": self.completed, "rate": self.rate}

@dataclass
class StatisticsSnapshot:
    total: int
    completed: int
    by_priority: Dict[str, Tally]
    by_category: Dict[str, Tally]
    with_due_date: int
    overdue: List[Todo]
    completed_on_time: int
    time_distribution: Dict[str, int]
    by_weekday: Dict[str, Tally]
    by_created_slot: Dict[str, Tally]
    postponed_categories: Dict[str, int]
    postponed_priorities: Dict[str, int]
    completed_categories: Dict[str, int]
    completed_priorities: Dict[str, int]
    urgent_tasks: List[str] = field(default_factory=list)

    @property
    def completion_rate(self) -> float:
        return percent(self.completed, self.total)

    @property
    def deadline_compliance_rate(self) -> float:
        return percent(self.completed_on_time, self.with_due_date)

    @property
    def most_productive_day(self) -> Optional[str]:
        return most_productive(self.by_weekday)

    @property
    def most_productive_time(self) -> Optional[str]:
        return most_productive(self.by_created_slot)

    @property
    def most_postponed_category(self) -> Optional[Tuple[str, int]]:
        return top_count(self.postponed_categories)

    @property
    def most_completed_category(self) -> Optional[Tuple[str, int]]:
        return top_count(self.completed_categories)

    def to_dict(self) -> dict:
        tallies = lambda d: {k: v.to_dict() for k, v in d.items()}
        postponed = self.most_postponed_category
        best = self.most_completed_category
        return {
            "total": self.total,
            "completed": self.completed,
            "completionRate": self.completion_rate,
            "byPriority": tallies(self.by_priority),
            "byCategory": tallies(self.by_category),
            "deadline": {
                "withDueDate": self.with_due_date,
                "overdue": len(self.overdue),
                "completedOnTime": self.completed_on_time,
                "complianceRate": self.deadline_compliance_rate,
            },
            "timeDistribution": dict(self.time_distribution),
            "byWeekday": tallies(self.by_weekday),
            "mostProductiveDay": self.most_productive_day,
            "byTimeOfDay": tallies(self.by_created_slot),
            "mostProductiveTime": self.most_productive_time,
            "postponed": {
                "categories": dict(self.postponed_categories),
                "priorities": dict(self.postponed_priorities),
                "mostPostponedCategory": list(postponed) if postponed else None,
            },
            "completedPattern": {
                "categories": dict(self.completed_categories),
                "priorities": dict(self.completed_priorities),
                "mostCompletedCategory": list(best) if best else None,
            },
            "urgentTasks": list(self.urgent_tasks),
        }

def most_productive(stats: Dict[str, Tally]) -> Optional[str]:
    """Label with the best completed/created ratio; ties go to the earlier label."""
    best, best_rate = None, -1.0
    for label, tally in stats.items():
        if tally.total == 0:
            continue
        if tally.rate > best_rate:
            best, best_rate = label, tally.rate
    return best

def top_count(counts: Dict[str, int]) -> Optional[Tuple[str, int]]:
    best = None
    for label, n in counts.items():
        if best is None or n > best[1]:
            best = (label, n)
    return best

def priority_bucket(todo: Todo) -> str:
    return todo.priority or "unset"

def due_slot(hour: int) -> str:
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "other"

def created_slot(hour: int) -> str:
    if 0 <= hour < 6:
        return "dawn"
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    return "evening"

def is_overdue(todo: Todo, now: datetime, tz: tzinfo = TIMEZONE) -> bool:
    return not todo.completed and todo.due_date is not None and to_zone(todo.due_date, tz) < now

def completed_on_time(todo: Todo, tz: tzinfo = TIMEZONE) -> bool:
    """Completed no later than the due timestamp.

    Uses the recorded completion time when there is one; older records carry
    only the creation time, which then stands in for it.
    """
    if not todo.completed or todo.due_date is None:
        return False
    done_at = todo.completed_date or todo.created_date
    return to_zone(done_at, tz) <= to_zone(todo.due_date, tz)

def is_urgent(todo: Todo, now: datetime, tz: tzinfo = TIMEZONE) -> bool:
    if todo.completed:
        return False
    if todo.priority == "high":
        return True
    if todo.due_date is not None:
        days = math.floor((to_zone(todo.due_date, tz) - now).total_seconds() / DAY_SECONDS)
        return days <= 1
    return False

def _count(counts: Dict[str, int], key: str) -> None:
    counts[key] = counts.get(key, 0) + 1

def compute_statistics(todos: Iterable[Todo], now: datetime, tz: tzinfo = TIMEZONE) -> StatisticsSnapshot:
    todos = list(todos)
    now = to_zone(now, tz)

    by_priority = {p: Tally() for p in PRIORITY_BUCKETS}
    by_category: Dict[str, Tally] = {}
    by_weekday = {d: Tally() for d in WEEKDAYS}
    by_created_slot = {s: Tally() for s in CREATED_SLOTS}
    time_distribution = {s: 0 for s in DUE_SLOTS}
    postponed_categories: Dict[str, int] = {}
    postponed_priorities = {p: 0 for p in PRIORITY_BUCKETS}
    completed_categories: Dict[str, int] = {}
    completed_priorities = {p: 0 for p in PRIORITY_BUCKETS}
    overdue: List[Todo] = []
    urgent: List[str] = []
    with_due = on_time = done = 0

    for t in todos:
        cats = t.categories()
        created = to_zone(t.created_date, tz)
        if t.completed:
            done += 1

        by_priority[priority_bucket(t)].add(t.completed)
        for c in cats:
            by_category.setdefault(c, Tally()).add(t.completed)

        if t.due_date is not None:
            with_due += 1
            if completed_on_time(t, tz):
                on_time += 1
            if not t.completed:
                time_distribution[due_slot(to_zone(t.due_date, tz).hour)] += 1

        by_weekday[WEEKDAYS[js_weekday(created)]].add(t.completed)
        by_created_slot[created_slot(created.hour)].add(t.completed)

        if is_overdue(t, now, tz):
            overdue.append(t)
            for c in cats:
                _count(postponed_categories, c)
            postponed_priorities[priority_bucket(t)] += 1

        if t.completed:
            for c in cats:
                _count(completed_categories, c)
            completed_priorities[priority_bucket(t)] += 1

        if len(urgent) < URGENT_LIMIT and is_urgent(t, now, tz):
            urgent.append(t.title)

    return StatisticsSnapshot(
        total=len(todos),
        completed=done,
        by_priority=by_priority,
        by_category=by_category,
        with_due_date=with_due,
        overdue=overdue,
        completed_on_time=on_time,
        time_distribution=time_distribution,
        by_weekday=by_weekday,
        by_created_slot=by_created_slot,
        postponed_categories=postponed_categories,
        postponed_priorities=postponed_priorities,
        completed_categories=completed_categories,
        completed_priorities=completed_priorities,
        urgent_tasks=urgent,
    )
