from __future__ import annotations

from datetime import date, datetime

from taskflow.domain.entities import RecurrenceRule, RecurringTaskTemplate
from taskflow.domain.enums import PriorityLevel, RecurrenceType


def make_template(
    *,
    template_id: int | None = 1,
    user_id: str = "user-1",
    title: str = "Water plants",
    type: RecurrenceType = RecurrenceType.DAILY,
    interval: int = 1,
    start_date: date = date(2024, 1, 1),
    days_of_week: frozenset[int] = frozenset(),
    end_date: date | None = None,
    max_occurrences: int | None = None,
    is_active: bool = True,
    next_due_date: date | None = None,
) -> RecurringTaskTemplate:
    return RecurringTaskTemplate(
        id=template_id,
        user_id=user_id,
        title=title,
        description="Both balconies",
        priority=PriorityLevel.HIGH,
        category_id=None,
        rule=RecurrenceRule(
            type=type,
            interval=interval,
            start_date=start_date,
            days_of_week=days_of_week,
            end_date=end_date,
            max_occurrences=max_occurrences,
        ),
        next_due_date=next_due_date or start_date,
        is_active=is_active,
        created_at=datetime(2023, 12, 31, 12, 0),
    )
