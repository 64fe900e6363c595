"""Create journey progression tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "journey_chapters",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("source", sa.String(length=20), nullable=False, server_default="seed"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("journey_chapters_pkey")),
        sa.UniqueConstraint("slug", name=op.f("journey_chapters_slug_key")),
    )
    op.create_index(op.f("ix_journey_chapters_source"), "journey_chapters", ["source"], unique=False)

    op.create_table(
        "journey_stages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("chapter_id", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=20), nullable=False, server_default="mixed"),
        sa.Column("requirements_json", sa.JSON(), nullable=False),
        sa.Column("reward_points", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("icon", sa.String(length=50), nullable=True),
        sa.Column("color_hex", sa.String(length=9), nullable=False, server_default="#E2F163"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(
            ["chapter_id"],
            ["journey_chapters.id"],
            name=op.f("journey_stages_chapter_id_fkey"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("journey_stages_pkey")),
        sa.UniqueConstraint("code", name=op.f("journey_stages_code_key")),
        sa.UniqueConstraint("order_index", name=op.f("journey_stages_order_index_key")),
    )
    op.create_index(op.f("ix_journey_stages_chapter_id"), "journey_stages", ["chapter_id"], unique=False)

    op.create_table(
        "journey_tasks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("stage_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("condition_json", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["stage_id"], ["journey_stages.id"], name=op.f("journey_tasks_stage_id_fkey"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name=op.f("journey_tasks_pkey")),
        sa.UniqueConstraint("stage_id", "order_index", name="uq_journey_tasks_stage_order"),
    )
    op.create_index(op.f("ix_journey_tasks_stage_id"), "journey_tasks", ["stage_id"], unique=False)

    op.create_table(
        "user_stages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("stage_id", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False, server_default="seed"),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="locked"),
        sa.Column("progress", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("points_current", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("points_total", sa.Integer(), nullable=False),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["stage_id"], ["journey_stages.id"], name=op.f("user_stages_stage_id_fkey"), ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id", name=op.f("user_stages_pkey")),
        sa.UniqueConstraint("user_id", "stage_id", name="uq_user_stages_user_stage"),
        sa.UniqueConstraint("user_id", "source", "position", name="uq_user_stages_user_position"),
        sa.CheckConstraint(
            "status IN ('locked', 'available', 'in_progress', 'completed')",
            name="ck_user_stages_status",
        ),
        sa.CheckConstraint("points_current <= points_total", name="ck_user_stages_points_clamped"),
    )
    op.create_index(op.f("ix_user_stages_user_id"), "user_stages", ["user_id"], unique=False)

    op.create_table(
        "user_tasks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("user_stage_id", sa.Integer(), nullable=False),
        sa.Column("task_id", sa.Integer(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["user_stage_id"], ["user_stages.id"], name=op.f("user_tasks_user_stage_id_fkey"), ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["task_id"], ["journey_tasks.id"], name=op.f("user_tasks_task_id_fkey"), ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id", name=op.f("user_tasks_pkey")),
        sa.UniqueConstraint("user_id", "task_id", name="uq_user_tasks_user_task"),
    )
    op.create_index(op.f("ix_user_tasks_user_id"), "user_tasks", ["user_id"], unique=False)
    op.create_index(op.f("ix_user_tasks_user_stage_id"), "user_tasks", ["user_stage_id"], unique=False)

    op.create_table(
        "points_ledger",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("user_task_id", sa.Integer(), nullable=True),
        sa.Column("user_stage_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_task_id"], ["user_tasks.id"], name=op.f("points_ledger_user_task_id_fkey"), ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["user_stage_id"], ["user_stages.id"], name=op.f("points_ledger_user_stage_id_fkey"), ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id", name=op.f("points_ledger_pkey")),
        sa.UniqueConstraint("user_task_id", name="uq_points_ledger_user_task"),
    )
    op.create_index(op.f("ix_points_ledger_user_id"), "points_ledger", ["user_id"], unique=False)
    op.create_index(op.f("ix_points_ledger_user_stage_id"), "points_ledger", ["user_stage_id"], unique=False)

    op.create_table(
        "user_badges",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("badge_code", sa.String(length=80), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("user_badges_pkey")),
        sa.UniqueConstraint("user_id", "badge_code", name="uq_user_badges_user_code"),
    )
    op.create_index(op.f("ix_user_badges_user_id"), "user_badges", ["user_id"], unique=False)

    op.create_table(
        "metric_snapshots",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("metric", sa.String(length=64), nullable=False),
        sa.Column("window_days", sa.Integer(), nullable=False, server_default=sa.text("7")),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("metric_snapshots_pkey")),
    )
    op.create_index(op.f("ix_metric_snapshots_user_id"), "metric_snapshots", ["user_id"], unique=False)
    op.create_index(
        "ix_metric_snapshots_lookup",
        "metric_snapshots",
        ["user_id", "window_days", "metric", "recorded_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_metric_snapshots_lookup", table_name="metric_snapshots")
    op.drop_index(op.f("ix_metric_snapshots_user_id"), table_name="metric_snapshots")
    op.drop_table("metric_snapshots")
    op.drop_index(op.f("ix_user_badges_user_id"), table_name="user_badges")
    op.drop_table("user_badges")
    op.drop_index(op.f("ix_points_ledger_user_stage_id"), table_name="points_ledger")
    op.drop_index(op.f("ix_points_ledger_user_id"), table_name="points_ledger")
    op.drop_table("points_ledger")
    op.drop_index(op.f("ix_user_tasks_user_stage_id"), table_name="user_tasks")
    op.drop_index(op.f("ix_user_tasks_user_id"), table_name="user_tasks")
    op.drop_table("user_tasks")
    op.drop_index(op.f("ix_user_stages_user_id"), table_name="user_stages")
    op.drop_table("user_stages")
    op.drop_index(op.f("ix_journey_tasks_stage_id"), table_name="journey_tasks")
    op.drop_table("journey_tasks")
    op.drop_index(op.f("ix_journey_stages_chapter_id"), table_name="journey_stages")
    op.drop_table("journey_stages")
    op.drop_index(op.f("ix_journey_chapters_source"), table_name="journey_chapters")
    op.drop_table("journey_chapters")
