"""Per-user stage and task instances."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gymbro.db.base import Base
from gymbro.models.journey import Stage, Task


class UserStage(Base):
    """A user's progress against one stage template."""

    __tablename__ = "user_stages"
    __table_args__ = (
        UniqueConstraint("user_id", "stage_id", name="uq_user_stages_user_stage"),
        UniqueConstraint("user_id", "source", "position", name="uq_user_stages_user_position"),
        CheckConstraint(
            "status IN ('locked', 'available', 'in_progress', 'completed')",
            name="ck_user_stages_status",
        ),
        CheckConstraint("points_current <= points_total", name="ck_user_stages_points_clamped"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    stage_id: Mapped[int] = mapped_column(ForeignKey("journey_stages.id", ondelete="RESTRICT"), nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="seed")
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="locked")
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    points_current: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Copied from the template at instantiation; later template edits do not apply.
    points_total: Mapped[int] = mapped_column(Integer, nullable=False)
    unlocked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    stage: Mapped[Stage] = relationship()
    tasks: Mapped[list["UserTask"]] = relationship(back_populates="user_stage", order_by="UserTask.id")


class UserTask(Base):
    __tablename__ = "user_tasks"
    __table_args__ = (
        UniqueConstraint("user_id", "task_id", name="uq_user_tasks_user_task"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_stage_id: Mapped[int] = mapped_column(
        ForeignKey("user_stages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    task_id: Mapped[int] = mapped_column(ForeignKey("journey_tasks.id", ondelete="RESTRICT"), nullable=False)
    # Flips false -> true exactly once; never reset.
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    user_stage: Mapped[UserStage] = relationship(back_populates="tasks")
    task: Mapped[Task] = relationship()
