from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Protocol

from taskflow.domain.entities import RecurrenceRule, RecurringTaskTemplate, TaskEntity
from taskflow.domain.enums import PriorityLevel
from taskflow.domain.errors import TemplateInactiveError, TemplateNotFoundError
from taskflow.domain.validation import validate_rule, validate_title

from .clock import Clock, SystemClock
from .generator import GenerationResult, generate

logger = logging.getLogger(__name__)


class TemplateGateway(Protocol):
    def find_templates_due(
        self,
        today: date,
        on_invalid: Callable[[int], None] | None = None,
    ) -> list[RecurringTaskTemplate]: ...

    def find_template_by_id(self, template_id: int, user_id: str) -> RecurringTaskTemplate | None: ...

    def list_user_templates(self, user_id: str) -> list[RecurringTaskTemplate]: ...

    def count_generated_instances(
        self,
        user_id: str,
        title: str,
        since: datetime,
        template_id: int | None = None,
    ) -> int: ...

    def create_template(self, template: RecurringTaskTemplate) -> RecurringTaskTemplate: ...

    def update_template(self, template: RecurringTaskTemplate) -> RecurringTaskTemplate: ...

    def save_instances_and_template(
        self,
        instances: Sequence[TaskEntity],
        template: RecurringTaskTemplate,
    ) -> RecurringTaskTemplate: ...

    def delete_template(self, template_id: int, user_id: str) -> bool: ...


@dataclass
class GenerationSummary:
    templates_processed: int = 0
    instances_created: int = 0
    failed_template_ids: list[int] = field(default_factory=list)


class RecurringTaskService:
    def __init__(self, repo: TemplateGateway, clock: Clock | None = None) -> None:
        self._repo = repo
        self._clock = clock or SystemClock()

    def list_templates(self, user_id: str) -> list[RecurringTaskTemplate]:
        return self._repo.list_user_templates(user_id)

    def get_template(self, template_id: int, user_id: str) -> RecurringTaskTemplate:
        template = self._repo.find_template_by_id(template_id, user_id)
        if template is None:
            raise TemplateNotFoundError(template_id, user_id)
        return template

    def create_template(
        self,
        user_id: str,
        title: str,
        rule: RecurrenceRule,
        *,
        description: str = "",
        priority: PriorityLevel = PriorityLevel.MEDIUM,
        category_id: int | None = None,
    ) -> RecurringTaskTemplate:
        validate_rule(rule)
        template = RecurringTaskTemplate(
            id=None,
            user_id=user_id,
            title=validate_title(title),
            description=description or "",
            priority=priority,
            category_id=category_id,
            rule=rule,
            next_due_date=rule.start_date,
            created_at=self._clock.now().replace(tzinfo=None),
        )
        created = self._repo.create_template(template)
        logger.info("Created recurring template %s for user %s", created.id, user_id)
        return created

    def update_template(
        self,
        template_id: int,
        user_id: str,
        title: str,
        rule: RecurrenceRule,
        *,
        description: str = "",
        priority: PriorityLevel = PriorityLevel.MEDIUM,
        category_id: int | None = None,
    ) -> RecurringTaskTemplate:
        """Apply user edits; the start date and schedule state are kept."""
        existing = self.get_template(template_id, user_id)
        rule = replace(rule, start_date=existing.rule.start_date)
        validate_rule(rule)
        updated = self._repo.update_template(
            replace(
                existing,
                title=validate_title(title),
                description=description or "",
                priority=priority,
                category_id=category_id,
                rule=rule,
            )
        )
        logger.info("Updated recurring template %s for user %s", template_id, user_id)
        return updated

    def delete_template(self, template_id: int, user_id: str) -> None:
        if not self._repo.delete_template(template_id, user_id):
            raise TemplateNotFoundError(template_id, user_id)
        logger.info("Deleted recurring template %s for user %s", template_id, user_id)

    def toggle_template(self, template_id: int, user_id: str) -> RecurringTaskTemplate:
        existing = self.get_template(template_id, user_id)
        updated = self._repo.update_template(replace(existing, is_active=not existing.is_active))
        logger.info("Toggled template %s active=%s", template_id, updated.is_active)
        return updated

    def generate_now(self, template_id: int, user_id: str) -> GenerationResult:
        template = self.get_template(template_id, user_id)
        if not template.is_active:
            raise TemplateInactiveError(template_id)
        return self.generate_for_template(template)

    def generate_for_template(self, template: RecurringTaskTemplate) -> GenerationResult:
        previously_generated = 0
        if template.rule.max_occurrences is not None:
            previously_generated = self._repo.count_generated_instances(
                template.user_id,
                template.title,
                template.created_at,
                template_id=template.id,
            )

        result = generate(template, self._clock.today(), previously_generated)
        if not result.instances and result.template == template:
            return result

        saved = self._repo.save_instances_and_template(result.instances, result.template)
        if result.instances:
            logger.info(
                "Generated %s tasks for template %s (%s)",
                len(result.instances),
                template.id,
                template.title,
            )
        if not saved.is_active:
            logger.info("Template %s reached its end and was deactivated", template.id)
        return GenerationResult(result.instances, saved)

    def generate_all_due(
        self,
        should_stop: Callable[[], bool] | None = None,
    ) -> GenerationSummary:
        today = self._clock.today()
        summary = GenerationSummary()
        # Rows that cannot be decoded are skipped by the gateway and count as failures.
        templates = self._repo.find_templates_due(
            today, on_invalid=summary.failed_template_ids.append
        )
        logger.info("Processing %s recurring templates due by %s", len(templates), today)

        for template in templates:
            if should_stop is not None and should_stop():
                logger.info(
                    "Stop requested, leaving %s templates for the next run",
                    len(templates) - summary.templates_processed,
                )
                break
            summary.templates_processed += 1
            try:
                result = self.generate_for_template(template)
            except Exception:
                logger.exception("Error processing template %s", template.id)
                summary.failed_template_ids.append(template.id)
                continue
            summary.instances_created += len(result.instances)

        logger.info(
            "Recurring generation finished: %s templates, %s tasks, %s failures",
            summary.templates_processed,
            summary.instances_created,
            len(summary.failed_template_ids),
        )
        return summary
