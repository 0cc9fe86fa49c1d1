"""Analysis windows: "today" and "this week" in a fixed time zone."""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo
from typing import Iterable, List

from .errors import ValidationError
from .models import Todo

END_OF_DAY = time(23, 59, 59, 999000)

@dataclass(frozen=True)
class Window:
    start: datetime
    end: datetime
    period: str

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

def to_zone(moment: datetime, tz: tzinfo) -> datetime:
    """Express ``moment`` in ``tz``; naive values are read as wall clock in ``tz``."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)

def js_weekday(moment: datetime) -> int:
    """Sunday=0 .. Saturday=6."""
    return (moment.weekday() + 1) % 7

def analysis_window(now: datetime, period: str, tz: tzinfo) -> Window:
    local = to_zone(now, tz)
    today = local.date()
    if period == "today":
        start_day = end_day = today
    elif period == "week":
        dow = js_weekday(local)
        start_day = today - timedelta(days=6 if dow == 0 else dow - 1)
        end_day = start_day + timedelta(days=6)
    else:
        raise ValidationError("분석 기간은 'today' 또는 'week'여야 합니다.")
    start = datetime.combine(start_day, time.min, tzinfo=tz)
    end = datetime.combine(end_day, END_OF_DAY, tzinfo=tz)
    return Window(start=start, end=end, period=period)

def select_window(todos: Iterable[Todo], window: Window) -> List[Todo]:
    """Tasks created in the window or due in it, in source order."""
    tz = window.start.tzinfo
    out = []
    for t in todos:
        if window.contains(to_zone(t.created_date, tz)):
            out.append(t)
        elif t.due_date is not None and window.contains(to_zone(t.due_date, tz)):
            out.append(t)
    return out
