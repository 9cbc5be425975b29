"""add recurring task templates"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_add_recurring_templates"
down_revision = "0001_create_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "recurring_task_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=450), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="2"),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("recurrence_type", sa.String(length=20), nullable=False),
        sa.Column("recurrence_interval", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("days_of_week", sa.String(length=20), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("max_occurrences", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_generated_date", sa.Date(), nullable=True),
        sa.Column("next_due_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index(
        "ix_recurring_task_templates_user_id", "recurring_task_templates", ["user_id"], unique=False
    )
    op.create_index(
        "ix_recurring_task_templates_is_active", "recurring_task_templates", ["is_active"], unique=False
    )
    op.create_index(
        "ix_recurring_task_templates_next_due_date",
        "recurring_task_templates",
        ["next_due_date"],
        unique=False,
    )

    with op.batch_alter_table("tasks") as batch:
        batch.add_column(sa.Column("template_id", sa.Integer(), nullable=True))
        batch.create_foreign_key(
            "fk_tasks_template_id",
            "recurring_task_templates",
            ["template_id"],
            ["id"],
            ondelete="SET NULL",
        )
        batch.create_index("ix_tasks_template_id", ["template_id"], unique=False)


def downgrade() -> None:
    with op.batch_alter_table("tasks") as batch:
        batch.drop_index("ix_tasks_template_id")
        batch.drop_constraint("fk_tasks_template_id", type_="foreignkey")
        batch.drop_column("template_id")

    op.drop_index("ix_recurring_task_templates_next_due_date", table_name="recurring_task_templates")
    op.drop_index("ix_recurring_task_templates_is_active", table_name="recurring_task_templates")
    op.drop_index("ix_recurring_task_templates_user_id", table_name="recurring_task_templates")
    op.drop_table("recurring_task_templates")
