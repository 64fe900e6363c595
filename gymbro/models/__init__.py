"""SQLAlchemy models."""

from __future__ import annotations

from gymbro.models.journey import Chapter, Stage, Task
from gymbro.models.metric_snapshot import MetricSnapshot
from gymbro.models.points import PointsLedgerEntry, UserBadge
from gymbro.models.user_stage import UserStage, UserTask

__all__ = [
    "Chapter",
    "Stage",
    "Task",
    "UserStage",
    "UserTask",
    "PointsLedgerEntry",
    "UserBadge",
    "MetricSnapshot",
]
