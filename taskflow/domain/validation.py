from __future__ import annotations

from .entities import RecurrenceRule
from .enums import RecurrenceType
from .errors import TemplateValidationError


def validate_rule(rule: RecurrenceRule) -> None:
    if not isinstance(rule.type, RecurrenceType):
        raise TemplateValidationError(f"Unknown recurrence type: {rule.type!r}")
    if rule.interval < 1:
        raise TemplateValidationError("Recurrence interval must be at least 1")
    invalid = sorted(day for day in rule.days_of_week if not 0 <= day <= 6)
    if invalid:
        raise TemplateValidationError(f"Days of week must be within 0..6, got {invalid}")
    if rule.end_date is not None and rule.end_date < rule.start_date:
        raise TemplateValidationError("End date must not be before start date")
    if rule.max_occurrences is not None and rule.max_occurrences < 1:
        raise TemplateValidationError("Max occurrences must be at least 1")


def validate_title(title: str) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise TemplateValidationError("Title is required")
    if len(cleaned) > 200:
        raise TemplateValidationError("Title must be at most 200 characters")
    return cleaned
