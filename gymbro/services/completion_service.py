"""Task completion and the stage cascade it triggers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from gymbro.core.cache import JourneyCache
from gymbro.core.errors import (
    ConditionsNotMet,
    Conflict,
    Forbidden,
    MetricsUnavailable,
    NotFound,
    ServerError,
    StageLocked,
)
from gymbro.schemas.requirements import as_requirements
from gymbro.services import progression_store as store
from gymbro.services.metrics_service import MetricsProvider, lookback_for
from gymbro.services.rules import evaluate_condition, evaluate_requirements
from gymbro.services.stage_state import (
    ProgressionPolicy,
    StageSnapshot,
    StageStatus,
    advance_status,
    derive_stage_status,
    stage_progress,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionOutcome:
    points_awarded: int = 0
    stage_completed: bool = False
    unlocked_next: bool = False
    already_completed: bool = False


ALREADY_COMPLETED = CompletionOutcome(already_completed=True)


def complete_task(
    db: Session,
    user_id: str,
    user_stage_id: int,
    user_task_id: int,
    *,
    metrics_provider: MetricsProvider,
    cache: JourneyCache | None = None,
    policy: ProgressionPolicy | None = None,
    now: datetime | None = None,
    note: str | None = None,
) -> CompletionOutcome:
    """Complete one task for a user and cascade to its stage.

    Validation and the metrics fetch happen before any write. The writes
    (task flag, ledger row, stage points and status, badge, next-stage unlock)
    commit together or not at all.
    """
    policy = policy or ProgressionPolicy.from_settings()
    now = now or datetime.now(timezone.utc)

    ctx = store.load_task_context(db, user_stage_id, user_task_id)
    if ctx is None:
        raise NotFound()
    if ctx.user_id != user_id:
        raise Forbidden()
    if ctx.stage_status is StageStatus.locked:
        raise StageLocked()
    if ctx.task_completed:
        return ALREADY_COMPLETED

    task_metrics = _fetch_metrics(metrics_provider, user_id, lookback_for(as_requirements(ctx.condition)))
    verdict = evaluate_condition(ctx.condition, task_metrics)
    if not verdict.can_complete:
        raise ConditionsNotMet(
            current=verdict.current,
            target=verdict.target,
            progress=round(verdict.progress, 4),
            metric=verdict.metric,
        )

    stage_lookback = lookback_for(ctx.stage_requirements)
    if stage_lookback == lookback_for(as_requirements(ctx.condition)):
        stage_metrics = task_metrics
    else:
        stage_metrics = _fetch_metrics(metrics_provider, user_id, stage_lookback)

    try:
        outcome = _apply_completion(db, ctx, stage_metrics, policy, now, note)
        db.commit()
    except Conflict:
        db.rollback()
        logger.info("task_completion_race_lost user_id=%s user_task_id=%s", user_id, user_task_id)
        return ALREADY_COMPLETED
    except SQLAlchemyError:
        db.rollback()
        logger.exception("task_completion_failed user_id=%s user_task_id=%s", user_id, user_task_id)
        raise ServerError()

    if cache is not None:
        cache.invalidate(user_id)

    logger.info(
        "task_completed user_id=%s user_task_id=%s points=%s stage_completed=%s unlocked_next=%s",
        user_id,
        user_task_id,
        outcome.points_awarded,
        outcome.stage_completed,
        outcome.unlocked_next,
    )
    return outcome


def _apply_completion(
    db: Session,
    ctx: store.TaskContext,
    stage_metrics: dict[str, float],
    policy: ProgressionPolicy,
    now: datetime,
    note: str | None = None,
) -> CompletionOutcome:
    if not store.claim_task_completion(db, ctx.user_task_id, now, note=note):
        raise Conflict()

    try:
        store.append_ledger_entry(
            db,
            ctx.user_id,
            ctx.task_points,
            f"Task completed: {ctx.task_title}",
            user_task_id=ctx.user_task_id,
            user_stage_id=ctx.user_stage_id,
            now=now,
        )
    except IntegrityError as exc:
        raise Conflict() from exc

    points_current, points_total = store.add_stage_points(db, ctx.user_stage_id, ctx.task_points)

    evaluation = evaluate_requirements(ctx.stage_requirements, stage_metrics)
    previous_completed = store.is_previous_completed(db, ctx.user_id, ctx.source, ctx.position)
    snapshot = StageSnapshot(status=ctx.stage_status, points_current=points_current, points_total=points_total)
    derived = derive_stage_status(snapshot, evaluation, previous_completed, policy)
    new_status = advance_status(ctx.stage_status, derived)

    progress = stage_progress(ctx.stage_progress, evaluation.partial, points_current, points_total)
    if new_status is StageStatus.completed:
        progress = 1.0

    if new_status is ctx.stage_status:
        store.set_stage_progress(db, ctx.user_stage_id, progress)
        return CompletionOutcome(points_awarded=ctx.task_points)

    moved = store.advance_stage_status(db, ctx.user_stage_id, new_status, progress=progress, now=now)
    if not moved:
        # Another request moved the stage first; it owns the cascade.
        store.set_stage_progress(db, ctx.user_stage_id, progress)
        return CompletionOutcome(points_awarded=ctx.task_points)
    if new_status is not StageStatus.completed:
        return CompletionOutcome(points_awarded=ctx.task_points)

    store.award_badge(db, ctx.user_id, f"stage:{ctx.stage_code}")
    unlocked = False
    following = store.get_stage_at_position(db, ctx.user_id, ctx.source, ctx.position + 1)
    if following is not None:
        unlocked = store.unlock_stage(db, following.id, now)
    return CompletionOutcome(points_awarded=ctx.task_points, stage_completed=True, unlocked_next=unlocked)


def _fetch_metrics(provider: MetricsProvider, user_id: str, lookback_days: int) -> dict[str, float]:
    try:
        return provider.get_metrics(user_id, lookback_days)
    except MetricsUnavailable:
        logger.warning("metrics_unavailable user_id=%s lookback_days=%s", user_id, lookback_days)
        raise ServerError()
