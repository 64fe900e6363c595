"""Points ledger and badges."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from gymbro.db.base import Base


class PointsLedgerEntry(Base):
    """Append-only record of one point award.

    A task can mint at most one entry: ``user_task_id`` is unique, so a racing
    second completion fails at the database instead of double-awarding.
    """

    __tablename__ = "points_ledger"
    __table_args__ = (
        UniqueConstraint("user_task_id", name="uq_points_ledger_user_task"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    user_task_id: Mapped[int | None] = mapped_column(
        ForeignKey("user_tasks.id", ondelete="RESTRICT"),
        nullable=True,
    )
    user_stage_id: Mapped[int | None] = mapped_column(
        ForeignKey("user_stages.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class UserBadge(Base):
    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_code", name="uq_user_badges_user_code"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    badge_code: Mapped[str] = mapped_column(String(80), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
