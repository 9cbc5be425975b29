from __future__ import annotations

from datetime import date

from factories import make_template

from taskflow.domain.enums import PriorityLevel, RecurrenceType
from taskflow.services.generator import generate, should_continue


def test_emits_every_missed_occurrence_up_to_today() -> None:
    template = make_template(start_date=date(2024, 1, 1))

    result = generate(template, today=date(2024, 1, 3))

    assert [task.due_date for task in result.instances] == [
        date(2024, 1, 1),
        date(2024, 1, 2),
        date(2024, 1, 3),
    ]
    assert result.template.next_due_date == date(2024, 1, 4)
    assert result.template.last_generated_date == date(2024, 1, 3)
    assert result.template.is_active


def test_instances_copy_template_fields() -> None:
    template = make_template(template_id=42, title="Pay rent", start_date=date(2024, 1, 1))

    [task] = generate(template, today=date(2024, 1, 1)).instances

    assert task.id is None
    assert task.user_id == "user-1"
    assert task.title == "Pay rent"
    assert task.description == "Both balconies"
    assert task.priority == PriorityLevel.HIGH
    assert task.category_id is None
    assert task.is_completed is False
    assert task.template_id == 42


def test_second_run_with_same_today_emits_nothing() -> None:
    template = make_template(start_date=date(2024, 1, 1))
    today = date(2024, 1, 5)

    first = generate(template, today)
    second = generate(first.template, today, previously_generated=len(first.instances))

    assert len(first.instances) == 5
    assert second.instances == []
    assert second.template == first.template


def test_template_not_yet_due_is_untouched() -> None:
    template = make_template(start_date=date(2024, 1, 10))

    result = generate(template, today=date(2024, 1, 3))

    assert result.instances == []
    assert result.template is template


def test_inactive_template_emits_nothing() -> None:
    template = make_template(is_active=False)

    result = generate(template, today=date(2024, 3, 1))

    assert result.instances == []
    assert result.template is template


def test_max_occurrences_in_a_single_catch_up_run() -> None:
    template = make_template(max_occurrences=3)

    result = generate(template, today=date(2024, 1, 10))

    assert len(result.instances) == 3
    assert not result.template.is_active
    assert result.template.last_generated_date == date(2024, 1, 3)
    assert result.template.next_due_date == date(2024, 1, 4)


def test_max_occurrences_across_several_runs() -> None:
    template = make_template(max_occurrences=3)
    emitted = 0

    for today in (date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 6), date(2024, 1, 20)):
        result = generate(template, today, previously_generated=emitted)
        emitted += len(result.instances)
        template = result.template

    assert emitted == 3
    assert not template.is_active


def test_template_stays_active_until_limit_is_reached() -> None:
    template = make_template(max_occurrences=3)

    result = generate(template, today=date(2024, 1, 2))

    assert len(result.instances) == 2
    assert result.template.is_active


def test_end_date_stops_generation() -> None:
    template = make_template(end_date=date(2024, 1, 3))

    result = generate(template, today=date(2024, 1, 10))

    dues = [task.due_date for task in result.instances]
    assert dues == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]
    assert all(due <= date(2024, 1, 3) for due in dues)
    assert not result.template.is_active


def test_end_date_between_weekly_occurrences() -> None:
    template = make_template(
        type=RecurrenceType.WEEKLY,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 10),
    )

    result = generate(template, today=date(2024, 2, 1))

    assert [task.due_date for task in result.instances] == [date(2024, 1, 1), date(2024, 1, 8)]
    assert not result.template.is_active


def test_weekly_days_catch_up() -> None:
    template = make_template(
        type=RecurrenceType.WEEKLY,
        days_of_week=frozenset({1, 3, 5}),
        start_date=date(2024, 1, 1),
    )

    result = generate(template, today=date(2024, 1, 8))

    assert [task.due_date for task in result.instances] == [
        date(2024, 1, 1),
        date(2024, 1, 3),
        date(2024, 1, 5),
        date(2024, 1, 8),
    ]
    assert result.template.next_due_date == date(2024, 1, 10)


def test_reactivated_exhausted_template_is_deactivated_again() -> None:
    template = make_template(max_occurrences=2, next_due_date=date(2024, 1, 3))

    result = generate(template, today=date(2024, 1, 5), previously_generated=2)

    assert result.instances == []
    assert not result.template.is_active
    assert result.template.next_due_date == date(2024, 1, 3)


def test_should_continue() -> None:
    assert should_continue(make_template(), generated_count=100)
    assert not should_continue(make_template(max_occurrences=2), generated_count=2)
    assert should_continue(make_template(max_occurrences=2), generated_count=1)
    assert not should_continue(
        make_template(end_date=date(2024, 1, 1), next_due_date=date(2024, 1, 2)),
        generated_count=0,
    )
    assert should_continue(
        make_template(end_date=date(2024, 1, 2), next_due_date=date(2024, 1, 2)),
        generated_count=0,
    )
