"""Journey content models: chapters, stage templates and task templates.

These rows are written by content migrations and the template loader only;
requests never mutate them.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from gymbro.db.base import Base
from gymbro.schemas.requirements import Requirements, TaskCondition, parse_condition, parse_requirements


class Chapter(Base):
    """A group of stages shown together on the journey map."""

    __tablename__ = "journey_chapters"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="seed", index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    stages: Mapped[list["Stage"]] = relationship(back_populates="chapter", order_by="Stage.order_index")


class Stage(Base):
    __tablename__ = "journey_stages"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    chapter_id: Mapped[int | None] = mapped_column(
        ForeignKey("journey_chapters.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False, default="mixed")
    requirements_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    reward_points: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    color_hex: Mapped[str] = mapped_column(String(9), nullable=False, default="#E2F163")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    chapter: Mapped[Chapter | None] = relationship(back_populates="stages")
    tasks: Mapped[list["Task"]] = relationship(back_populates="stage", order_by="Task.order_index")

    @property
    def requirements(self) -> Requirements:
        return parse_requirements(self.requirements_json)


class Task(Base):
    __tablename__ = "journey_tasks"
    __table_args__ = (
        UniqueConstraint("stage_id", "order_index", name="uq_journey_tasks_stage_order"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    stage_id: Mapped[int] = mapped_column(
        ForeignKey("journey_stages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    condition_json: Mapped[dict] = mapped_column(JSON, nullable=False)

    stage: Mapped[Stage] = relationship(back_populates="tasks")

    @property
    def condition(self) -> TaskCondition:
        return parse_condition(self.condition_json)
