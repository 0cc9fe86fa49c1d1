from __future__ import annotations
from datetime import datetime
from typing import Any, Optional, List, Literal

from pydantic import BaseModel, Field, field_validator

Priority = Literal["high", "medium", "low"]

PRIORITIES = ("high", "medium", "low")

def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v

class Todo(BaseModel):
    """A task as the client and the analysis endpoints see it."""
    id: str = ""
    user_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    created_date: datetime
    due_date: Optional[datetime] = None
    priority: Optional[Priority] = None
    category: List[str] = Field(default_factory=list)
    completed: bool = False
    completed_date: Optional[datetime] = None

    @field_validator("priority", "due_date", "completed_date", mode="before")
    @classmethod
    def _empty_is_unset(cls, v):
        return _blank_to_none(v)

    @field_validator("category", mode="before")
    @classmethod
    def _category_list(cls, v):
        return [] if v is None else v

    def categories(self) -> List[str]:
        """Distinct labels in first-seen order."""
        seen = set(); out = []
        for c in self.category:
            if c not in seen:
                seen.add(c); out.append(c)
        return out

class TodoInput(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: Optional[Priority] = None
    category: List[str] = Field(default_factory=list)
    completed: bool = False

    @field_validator("priority", "due_date", mode="before")
    @classmethod
    def _empty_is_unset(cls, v):
        return _blank_to_none(v)

class TodoUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[Optional[str]] = None
    due_date: Optional[Optional[datetime]] = None
    priority: Optional[Optional[Priority]] = None
    category: Optional[List[str]] = None
    completed: Optional[bool] = None

    @field_validator("priority", "due_date", mode="before")
    @classmethod
    def _empty_is_unset(cls, v):
        return _blank_to_none(v)

class GeneratedTodo(BaseModel):
    """Structured task produced from free text, after local clamping."""
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None  # YYYY-MM-DDTHH:MM:SS, wall clock in the configured zone
    priority: Priority = "medium"
    category: List[str] = Field(default_factory=lambda: ["개인"])

class Analysis(BaseModel):
    summary: str
    urgentTasks: List[str] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)

class GenerateTodoRequest(BaseModel):
    input: Any = None

class AnalyzeTodosRequest(BaseModel):
    todos: Any = None
    period: Any = None
