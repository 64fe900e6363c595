"""Stage lifecycle derivation."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from gymbro.core.config import settings
from gymbro.services.rules import EvaluationResult


class StageStatus(str, enum.Enum):
    locked = "locked"
    available = "available"
    in_progress = "in_progress"
    completed = "completed"

    @property
    def rank(self) -> int:
        return _RANK[self]


_RANK = {
    StageStatus.locked: 0,
    StageStatus.available: 1,
    StageStatus.in_progress: 2,
    StageStatus.completed: 3,
}


@dataclass(frozen=True)
class ProgressionPolicy:
    """Thresholds for moving a stage to ``in_progress``."""

    in_progress_rule_ratio: float = 0.4
    in_progress_points_ratio: float = 0.5

    @classmethod
    def from_settings(cls) -> "ProgressionPolicy":
        return cls(
            in_progress_rule_ratio=settings.journey_in_progress_rule_ratio,
            in_progress_points_ratio=settings.journey_in_progress_points_ratio,
        )


@dataclass(frozen=True)
class StageSnapshot:
    """The fields of a user stage the deriver looks at."""

    status: StageStatus
    points_current: int
    points_total: int


def derive_stage_status(
    stage: StageSnapshot,
    evaluation: EvaluationResult,
    previous_completed: bool,
    policy: ProgressionPolicy | None = None,
) -> StageStatus:
    """Derive a stage's status from its evaluation and points.

    ``previous_completed`` must be True for the first stage. The checks run in
    strict priority order and the function never touches storage.
    """
    policy = policy or ProgressionPolicy.from_settings()

    if stage.status is StageStatus.completed:
        return StageStatus.completed

    # points_total == 0 means the stage has no points path
    points_ratio = stage.points_current / stage.points_total if stage.points_total > 0 else 0.0

    if evaluation.met or (stage.points_total > 0 and stage.points_current >= stage.points_total):
        return StageStatus.completed
    if evaluation.partial >= policy.in_progress_rule_ratio or points_ratio >= policy.in_progress_points_ratio:
        return StageStatus.in_progress
    if previous_completed:
        return StageStatus.available
    return StageStatus.locked


def advance_status(current: StageStatus, derived: StageStatus) -> StageStatus:
    """Forward-only merge: a stored status is never lowered."""
    return derived if derived.rank > current.rank else current


def stage_progress(stored: float, partial: float, points_current: int, points_total: int) -> float:
    """Displayed progress: the better of rule coverage and points earned, never below the stored value."""
    points_ratio = points_current / points_total if points_total > 0 else 0.0
    return round(max(stored, partial, min(points_ratio, 1.0)), 4)
