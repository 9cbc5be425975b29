from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date

from taskflow.domain.entities import RecurringTaskTemplate, TaskEntity
from taskflow.domain.recurrence import compute_next_due_date


@dataclass(frozen=True)
class GenerationResult:
    instances: list[TaskEntity]
    template: RecurringTaskTemplate


def should_continue(template: RecurringTaskTemplate, generated_count: int) -> bool:
    rule = template.rule
    if rule.end_date is not None and template.next_due_date > rule.end_date:
        return False
    if rule.max_occurrences is not None:
        return generated_count < rule.max_occurrences
    return True


def generate(
    template: RecurringTaskTemplate,
    today: date,
    previously_generated: int = 0,
) -> GenerationResult:
    """Emit every occurrence due on or before ``today``.

    ``previously_generated`` is how many instances earlier runs produced for
    this template; it counts towards ``max_occurrences`` together with the
    instances emitted here. The returned template carries the advanced
    schedule state and is deactivated once the continuation check fails.
    """
    instances: list[TaskEntity] = []
    if not template.is_active:
        return GenerationResult(instances, template)

    generated = previously_generated
    if template.next_due_date <= today and not should_continue(template, generated):
        # Reactivated after its limits were already reached.
        return GenerationResult(instances, replace(template, is_active=False))

    while template.next_due_date <= today and should_continue(template, generated):
        instances.append(_instance_for(template))
        generated += 1

        due = template.next_due_date
        template = replace(
            template,
            last_generated_date=due,
            next_due_date=compute_next_due_date(due, template.rule),
        )

        if not should_continue(template, generated):
            template = replace(template, is_active=False)
            break

    return GenerationResult(instances, template)


def _instance_for(template: RecurringTaskTemplate) -> TaskEntity:
    return TaskEntity(
        id=None,
        user_id=template.user_id,
        title=template.title,
        description=template.description,
        priority=template.priority,
        category_id=template.category_id,
        due_date=template.next_due_date,
        is_completed=False,
        created_at=None,
        template_id=template.id,
    )
