from __future__ import annotations

import logging

from collections.abc import Callable, Sequence
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from taskflow.domain.entities import (
    CategoryEntity,
    RecurrenceRule,
    RecurringTaskTemplate,
    TaskEntity,
)
from taskflow.domain.enums import PriorityLevel, RecurrenceType
from taskflow.domain.errors import StaleTemplateError, TemplateNotFoundError
from taskflow.domain.recurrence import format_days_of_week, parse_days_of_week

from .db import SessionLocal
from .models import CategoryModel, RecurringTaskTemplateModel, TaskModel, utcnow

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def _to_template(model: RecurringTaskTemplateModel) -> RecurringTaskTemplate:
    return RecurringTaskTemplate(
        id=model.id,
        user_id=model.user_id,
        title=model.title,
        description=model.description,
        priority=PriorityLevel(model.priority),
        category_id=model.category_id,
        rule=RecurrenceRule(
            type=RecurrenceType(model.recurrence_type),
            interval=model.recurrence_interval,
            start_date=model.start_date,
            days_of_week=parse_days_of_week(model.days_of_week),
            end_date=model.end_date,
            max_occurrences=model.max_occurrences,
        ),
        next_due_date=model.next_due_date,
        is_active=model.is_active,
        last_generated_date=model.last_generated_date,
        created_at=model.created_at,
        version=model.version,
    )


def _template_columns(template: RecurringTaskTemplate) -> dict:
    rule = template.rule
    return {
        "title": template.title,
        "description": template.description,
        "priority": int(template.priority),
        "category_id": template.category_id,
        "recurrence_type": rule.type.value,
        "recurrence_interval": rule.interval,
        "days_of_week": format_days_of_week(rule.days_of_week),
        "start_date": rule.start_date,
        "end_date": rule.end_date,
        "max_occurrences": rule.max_occurrences,
        "is_active": template.is_active,
        "last_generated_date": template.last_generated_date,
        "next_due_date": template.next_due_date,
    }


def _to_task(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        user_id=model.user_id,
        title=model.title,
        description=model.description,
        priority=PriorityLevel(model.priority),
        category_id=model.category_id,
        due_date=model.due_date,
        is_completed=model.is_completed,
        created_at=model.created_at,
        template_id=model.template_id,
    )


def _task_model(task: TaskEntity, created_at: datetime) -> TaskModel:
    return TaskModel(
        user_id=task.user_id,
        title=task.title,
        description=task.description,
        priority=int(task.priority),
        category_id=task.category_id,
        due_date=task.due_date,
        is_completed=task.is_completed,
        created_at=task.created_at or created_at,
        template_id=task.template_id,
    )


def _to_category(model: CategoryModel) -> CategoryEntity:
    return CategoryEntity(
        id=model.id,
        user_id=model.user_id,
        name=model.name,
        color=model.color,
        created_at=model.created_at,
    )


class TemplateRepository:
    def __init__(self, session_factory: SessionFactory = SessionLocal) -> None:
        self._session_factory = session_factory

    def find_templates_due(
        self,
        today: date,
        on_invalid: Callable[[int], None] | None = None,
    ) -> list[RecurringTaskTemplate]:
        """Active templates due on or before ``today``.

        A row that cannot be decoded (bad weekday list, unknown recurrence
        type or priority) is logged and skipped so the other templates still
        get processed; its id is passed to ``on_invalid``.
        """
        with self._session_factory() as session:
            stmt = (
                select(RecurringTaskTemplateModel)
                .where(
                    RecurringTaskTemplateModel.is_active.is_(True),
                    RecurringTaskTemplateModel.next_due_date <= today,
                )
                .order_by(
                    RecurringTaskTemplateModel.next_due_date.asc(),
                    RecurringTaskTemplateModel.id.asc(),
                )
            )
            templates = []
            for model in session.scalars(stmt):
                try:
                    templates.append(_to_template(model))
                except ValueError:
                    logger.exception("Skipping unreadable recurring template %s", model.id)
                    if on_invalid is not None:
                        on_invalid(model.id)
            return templates

    def find_template_by_id(self, template_id: int, user_id: str) -> Optional[RecurringTaskTemplate]:
        with self._session_factory() as session:
            model = self._get_owned(session, template_id, user_id)
            return _to_template(model) if model else None

    def list_user_templates(self, user_id: str) -> list[RecurringTaskTemplate]:
        with self._session_factory() as session:
            stmt = (
                select(RecurringTaskTemplateModel)
                .where(RecurringTaskTemplateModel.user_id == user_id)
                .order_by(RecurringTaskTemplateModel.title.asc())
            )
            return [_to_template(model) for model in session.scalars(stmt)]

    def count_generated_instances(
        self,
        user_id: str,
        title: str,
        since: datetime,
        template_id: int | None = None,
    ) -> int:
        """Count tasks already generated for a template.

        With ``template_id`` the explicit foreign key is used. Without it the
        legacy heuristic applies: same user, same title, created at or after
        ``since``. The heuristic miscounts when one user has two templates
        with the same title.
        """
        stmt = select(func.count()).select_from(TaskModel).where(TaskModel.user_id == user_id)
        if template_id is not None:
            stmt = stmt.where(TaskModel.template_id == template_id)
        else:
            stmt = stmt.where(TaskModel.title == title, TaskModel.created_at >= since)
        with self._session_factory() as session:
            return session.scalar(stmt) or 0

    def create_template(self, template: RecurringTaskTemplate) -> RecurringTaskTemplate:
        with self._session_factory() as session:
            model = RecurringTaskTemplateModel(
                user_id=template.user_id,
                created_at=template.created_at or utcnow(),
                **_template_columns(template),
            )
            session.add(model)
            session.commit()
            session.refresh(model)
            return _to_template(model)

    def update_template(self, template: RecurringTaskTemplate) -> RecurringTaskTemplate:
        with self._session_factory() as session:
            model = self._load_for_write(session, template)
            for key, value in _template_columns(template).items():
                setattr(model, key, value)
            self._commit(session, template)
            session.refresh(model)
            return _to_template(model)

    def save_instances_and_template(
        self,
        instances: Sequence[TaskEntity],
        template: RecurringTaskTemplate,
    ) -> RecurringTaskTemplate:
        """Insert generated tasks and advance the template in one transaction.

        The template row is only written if its version still matches
        ``template.version``; otherwise nothing is committed and
        ``StaleTemplateError`` is raised.
        """
        created_at = utcnow()
        with self._session_factory() as session:
            model = self._load_for_write(session, template)
            model.is_active = template.is_active
            model.last_generated_date = template.last_generated_date
            model.next_due_date = template.next_due_date
            session.add_all(_task_model(task, created_at) for task in instances)
            self._commit(session, template)
            session.refresh(model)
            return _to_template(model)

    def delete_template(self, template_id: int, user_id: str) -> bool:
        with self._session_factory() as session:
            model = self._get_owned(session, template_id, user_id)
            if not model:
                return False
            session.execute(
                update(TaskModel)
                .where(TaskModel.template_id == template_id)
                .values(template_id=None)
            )
            session.delete(model)
            session.commit()
            return True

    @staticmethod
    def _get_owned(session: Session, template_id: int, user_id: str) -> Optional[RecurringTaskTemplateModel]:
        return session.scalar(
            select(RecurringTaskTemplateModel).where(
                RecurringTaskTemplateModel.id == template_id,
                RecurringTaskTemplateModel.user_id == user_id,
            )
        )

    def _load_for_write(self, session: Session, template: RecurringTaskTemplate) -> RecurringTaskTemplateModel:
        model = self._get_owned(session, template.id, template.user_id)
        if not model:
            raise TemplateNotFoundError(template.id, template.user_id)
        if model.version != template.version:
            raise StaleTemplateError(template.id)
        return model

    @staticmethod
    def _commit(session: Session, template: RecurringTaskTemplate) -> None:
        try:
            session.commit()
        except StaleDataError as exc:
            session.rollback()
            raise StaleTemplateError(template.id) from exc


class TaskRepository:
    def __init__(self, session_factory: SessionFactory = SessionLocal) -> None:
        self._session_factory = session_factory

    def list_user_tasks(self, user_id: str) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = (
                select(TaskModel)
                .where(TaskModel.user_id == user_id)
                .order_by(
                    TaskModel.is_completed.asc(),
                    TaskModel.due_date.is_(None),
                    TaskModel.due_date.asc(),
                    TaskModel.priority.desc(),
                    TaskModel.created_at.desc(),
                )
            )
            return [_to_task(task) for task in session.scalars(stmt)]

    def get_task(self, task_id: int, user_id: str) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = self._get_owned(session, task_id, user_id)
            return _to_task(task) if task else None

    def create_task(self, data: dict) -> TaskEntity:
        with self._session_factory() as session:
            task = TaskModel(**data)
            session.add(task)
            session.commit()
            session.refresh(task)
            return _to_task(task)

    def set_completed(self, task_id: int, user_id: str, completed: bool) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = self._get_owned(session, task_id, user_id)
            if not task:
                return None
            task.is_completed = completed
            session.commit()
            session.refresh(task)
            return _to_task(task)

    def delete_task(self, task_id: int, user_id: str) -> None:
        with self._session_factory() as session:
            task = self._get_owned(session, task_id, user_id)
            if not task:
                return
            session.delete(task)
            session.commit()

    @staticmethod
    def _get_owned(session: Session, task_id: int, user_id: str) -> Optional[TaskModel]:
        return session.scalar(
            select(TaskModel).where(TaskModel.id == task_id, TaskModel.user_id == user_id)
        )


class CategoryRepository:
    def __init__(self, session_factory: SessionFactory = SessionLocal) -> None:
        self._session_factory = session_factory

    def list_user_categories(self, user_id: str) -> list[CategoryEntity]:
        with self._session_factory() as session:
            stmt = (
                select(CategoryModel)
                .where(CategoryModel.user_id == user_id)
                .order_by(CategoryModel.name.asc())
            )
            return [_to_category(model) for model in session.scalars(stmt)]

    def create_category(self, user_id: str, name: str, color: str) -> CategoryEntity:
        with self._session_factory() as session:
            model = CategoryModel(user_id=user_id, name=name, color=color)
            session.add(model)
            session.commit()
            session.refresh(model)
            return _to_category(model)

    def delete_category(self, category_id: int, user_id: str) -> bool:
        with self._session_factory() as session:
            model = session.scalar(
                select(CategoryModel).where(
                    CategoryModel.id == category_id, CategoryModel.user_id == user_id
                )
            )
            if not model:
                return False
            session.execute(
                update(TaskModel)
                .where(TaskModel.category_id == category_id)
                .values(category_id=None)
            )
            # Bump the version so edits read before the delete cannot restore the category.
            session.execute(
                update(RecurringTaskTemplateModel)
                .where(RecurringTaskTemplateModel.category_id == category_id)
                .values(category_id=None, version=RecurringTaskTemplateModel.version + 1)
            )
            session.delete(model)
            session.commit()
            return True
