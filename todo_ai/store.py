"""Task records, always scoped by owner."""
from __future__ import annotations
from datetime import datetime, timezone, tzinfo
import json
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select, insert, update, delete, and_, case

from .config import TIMEZONE
from .db import todos
from .models import Todo, TodoInput
from .windows import to_zone

def now_ms() -> int:
    return int(datetime.now(tz=timezone.utc).timestamp() * 1000)

def to_ms(moment: Optional[datetime], tz: tzinfo = TIMEZONE) -> Optional[int]:
    if moment is None:
        return None
    return int(to_zone(moment, tz).timestamp() * 1000)

def from_ms(ms: Optional[int], tz: tzinfo = TIMEZONE) -> Optional[datetime]:
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=tz)

def parse_category_json(s: str) -> List[str]:
    try:
        v = json.loads(s or "[]")
    except ValueError:
        return []
    if isinstance(v, list):
        return [x.strip() for x in v if isinstance(x, str) and x.strip()]
    return []

def dumps_category(labels: List[str]) -> str:
    # Display order is kept; duplicates are harmless, readers dedupe.
    return json.dumps([t.strip() for t in labels if t and t.strip()], ensure_ascii=False)

def to_todo(r) -> Todo:
    return Todo(
        id=r["id"], user_id=r["user_id"], title=r["title"], description=r["description"],
        created_date=from_ms(r["created_at"]), due_date=from_ms(r["due_at"]),
        priority=r["priority"], category=parse_category_json(r["category_json"]),
        completed=bool(r["completed"]), completed_date=from_ms(r["completed_at"]),
    )

def gen_id() -> str:
    return uuid.uuid4().hex

def list_todos(conn, owner: str) -> List[Todo]:
    stmt = select(todos).where(todos.c.user_id == owner).order_by(todos.c.created_at.desc())
    return [to_todo(r) for r in conn.execute(stmt).mappings().all()]

def get_todo(conn, todo_id: str, owner: str) -> Optional[Todo]:
    r = conn.execute(select(todos).where(and_(todos.c.id == todo_id, todos.c.user_id == owner))).mappings().first()
    return to_todo(r) if r else None

def create_todo(conn, owner: str, payload: TodoInput, created_at: Optional[int] = None) -> Todo:
    ts = created_at if created_at is not None else now_ms()
    stmt = insert(todos).values(
        id=gen_id(), user_id=owner, title=payload.title.strip(),
        description=(payload.description.strip() or None) if payload.description else None,
        created_at=ts, updated_at=ts, due_at=to_ms(payload.due_date),
        priority=payload.priority, category_json=dumps_category(payload.category),
        completed=payload.completed, completed_at=ts if payload.completed else None,
    ).returning(todos)
    return to_todo(conn.execute(stmt).mappings().first())

def update_todo(conn, todo_id: str, owner: str, fields: Dict[str, Any]) -> Optional[Todo]:
    """Apply a partial update. Returns None when no such task belongs to ``owner``."""
    values: Dict[str, Any] = {}
    if "title" in fields:
        values["title"] = fields["title"].strip()
    if "description" in fields:
        d = fields["description"]
        values["description"] = (d.strip() or None) if d else None
    if "due_date" in fields:
        values["due_at"] = to_ms(fields["due_date"])
    if "priority" in fields:
        values["priority"] = fields["priority"]
    if "category" in fields:
        values["category_json"] = dumps_category(fields["category"] or [])
    if "completed" in fields:
        c = bool(fields["completed"])
        values["completed"] = c
        # The due date is left alone either way.
        values["completed_at"] = (
            case((todos.c.completed.is_(True), todos.c.completed_at), else_=now_ms()) if c else None
        )
    values["updated_at"] = now_ms()
    stmt = update(todos).where(and_(todos.c.id == todo_id, todos.c.user_id == owner)).values(**values).returning(todos)
    r = conn.execute(stmt).mappings().first()
    return to_todo(r) if r else None

def delete_todo(conn, todo_id: str, owner: str) -> bool:
    res = conn.execute(delete(todos).where(and_(todos.c.id == todo_id, todos.c.user_id == owner)))
    return res.rowcount > 0
