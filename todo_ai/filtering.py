"""Filter/sort engine for the task list view.

The view is described by an immutable :class:`ViewState`. Every user action
produces a new state through :meth:`ViewState.apply`, and
:func:`filter_todos` is a pure function of the task set and that state.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime, tzinfo
from functools import cmp_to_key, lru_cache
import unicodedata
from typing import Iterable, List, Optional

from pyuca import Collator

from .config import TIMEZONE
from .errors import ValidationError
from .models import Todo
from .windows import to_zone

STATUS_FILTERS = ("all", "completed", "pending", "waiting")
PRIORITY_FILTERS = ("all", "high", "medium", "low")
SORT_KEYS = ("created", "due", "priority", "title")
DIRECTIONS = ("asc", "desc")

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1, None: 0}

_CHOICES = {
    "status": STATUS_FILTERS,
    "priority": PRIORITY_FILTERS,
    "sort": SORT_KEYS,
    "direction": DIRECTIONS,
}

@dataclass(frozen=True)
class ViewState:
    search: str = ""
    status: str = "all"
    priority: str = "all"
    sort: str = "created"
    direction: str = "desc"

    def __post_init__(self):
        for field, allowed in _CHOICES.items():
            value = getattr(self, field)
            if value not in allowed:
                raise ValidationError(f"Invalid {field} '{value}'. Use one of: {', '.join(allowed)}.")

    def apply(self, action: str, value: Optional[str] = None) -> "ViewState":
        """Return the state that follows ``action``.

        Actions: ``search``, ``status``, ``priority``, ``sort``, ``direction``
        (each takes a value), ``toggle_direction`` and ``reset``.
        """
        if action == "reset":
            return ViewState()
        if action == "toggle_direction":
            return replace(self, direction="asc" if self.direction == "desc" else "desc")
        if action == "search":
            return replace(self, search=value or "")
        if action in _CHOICES:
            return replace(self, **{action: value})
        raise ValidationError(f"Unknown view action '{action}'.")

def _instant(moment: datetime, tz: tzinfo) -> float:
    return to_zone(moment, tz).timestamp()

@lru_cache(maxsize=1)
def _collator() -> Collator:
    return Collator()

def _script_rank(ch: str) -> int:
    # CLDR "ko" tailoring: [reorder Hang Hani]. Spaces, punctuation, symbols
    # and digits keep their place ahead of every script.
    if unicodedata.category(ch)[0] not in "LM":
        return 0
    cp = ord(ch)
    if (0xAC00 <= cp <= 0xD7A3 or 0x1100 <= cp <= 0x11FF or 0x3130 <= cp <= 0x318F
            or 0xA960 <= cp <= 0xA97F or 0xD7B0 <= cp <= 0xD7FF):
        return 1
    if unicodedata.name(ch, "").startswith("CJK "):
        return 2
    return 3

def _primaries(key: tuple) -> tuple:
    return key[:key.index(0)] if 0 in key else key

def title_key(title: str) -> tuple:
    """Korean collation key: UCA weights with Hangul, then Han, ahead of other scripts."""
    collator = _collator()
    text = unicodedata.normalize("NFC", title)
    ranked = tuple((_script_rank(ch), _primaries(collator.sort_key(ch))) for ch in text)
    return (ranked, collator.sort_key(text), title)

def _sign(x) -> int:
    return (x > 0) - (x < 0)

def _comparator(sort: str, direction: str, tz: tzinfo):
    flip = -1 if direction == "desc" else 1

    def compare(a: Todo, b: Todo) -> int:
        if sort == "due":
            # Undated tasks trail in both directions.
            if a.due_date is None or b.due_date is None:
                return (a.due_date is None) - (b.due_date is None)
            return flip * _sign(_instant(a.due_date, tz) - _instant(b.due_date, tz))
        if sort == "created":
            c = _sign(_instant(a.created_date, tz) - _instant(b.created_date, tz))
        elif sort == "priority":
            c = PRIORITY_ORDER[a.priority] - PRIORITY_ORDER[b.priority]
        else:
            ka, kb = title_key(a.title), title_key(b.title)
            c = (ka > kb) - (ka < kb)
        return flip * c

    return compare

def matches(todo: Todo, state: ViewState) -> bool:
    if state.search.strip() and state.search.lower() not in todo.title.lower():
        return False
    if state.status == "completed" and not todo.completed:
        return False
    if state.status == "pending" and todo.completed:
        return False
    if state.status == "waiting" and (todo.completed or todo.due_date is not None):
        return False
    if state.priority != "all" and todo.priority != state.priority:
        return False
    return True

def filter_todos(todos: Iterable[Todo], state: ViewState, tz: tzinfo = TIMEZONE) -> List[Todo]:
    """Filter (search, status, priority; all conjunctive) then stable-sort once."""
    subset = [t for t in todos if matches(t, state)]
    return sorted(subset, key=cmp_to_key(_comparator(state.sort, state.direction, tz)))
