from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from todo_ai.models import Todo

KST = ZoneInfo("Asia/Seoul")

# Wednesday noon; the week runs Monday 2026-10-12 .. Sunday 2026-10-18.
NOW = datetime(2026, 10, 14, 12, 0, tzinfo=KST)

def kst(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=KST)

_counter = 0

def make_todo(
    title: str,
    *,
    created: datetime | None = None,
    due: datetime | None = None,
    priority: str | None = None,
    category: list[str] | None = None,
    completed: bool = False,
    completed_date: datetime | None = None,
) -> Todo:
    global _counter
    _counter += 1
    return Todo(
        id=f"t{_counter}",
        user_id="owner-1",
        title=title,
        created_date=created or kst(2026, 10, 14, 9),
        due_date=due,
        priority=priority,
        category=category or [],
        completed=completed,
        completed_date=completed_date,
    )

def titles(todos) -> list[str]:
    return [t.title for t in todos]
