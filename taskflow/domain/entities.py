from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .enums import PriorityLevel, RecurrenceType


@dataclass(frozen=True)
class RecurrenceRule:
    type: RecurrenceType
    interval: int
    start_date: date
    days_of_week: frozenset[int] = field(default_factory=frozenset)
    end_date: Optional[date] = None
    max_occurrences: int | None = None


@dataclass(frozen=True)
class RecurringTaskTemplate:
    id: int | None
    user_id: str
    title: str
    description: str
    priority: PriorityLevel
    category_id: int | None
    rule: RecurrenceRule
    next_due_date: date
    is_active: bool = True
    last_generated_date: Optional[date] = None
    created_at: Optional[datetime] = None
    version: int = 1


@dataclass(frozen=True)
class TaskEntity:
    id: int | None
    user_id: str
    title: str
    description: str
    priority: PriorityLevel
    category_id: int | None
    due_date: Optional[date]
    is_completed: bool
    created_at: Optional[datetime]
    template_id: int | None = None


@dataclass(frozen=True)
class CategoryEntity:
    id: int | None
    user_id: str
    name: str
    color: str
    created_at: Optional[datetime] = None
