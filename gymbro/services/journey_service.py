"""Business logic for the journey map.

Builds the per-user read model, instantiates a journey from the stage
templates, re-derives stage progress from fresh metrics and pages through the
points ledger. Task completion lives in ``completion_service``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from gymbro.core.cache import JourneyCache
from gymbro.core.errors import MetricsUnavailable, NotFound, ServerError
from gymbro.models.journey import Chapter
from gymbro.models.user_stage import UserStage, UserTask
from gymbro.schemas.requirements import as_requirements
from gymbro.services import progression_store as store
from gymbro.services.metrics_service import MetricsProvider, lookback_for
from gymbro.services.rules import evaluate_condition, evaluate_requirements, next_steps
from gymbro.services.stage_state import (
    ProgressionPolicy,
    StageSnapshot,
    StageStatus,
    advance_status,
    derive_stage_status,
    stage_progress,
)

logger = logging.getLogger(__name__)

DEFAULT_FEED_LIMIT = 20
MAX_FEED_LIMIT = 50


def empty_journey() -> dict[str, Any]:
    """Journey shell returned to logged-out callers."""
    return {
        "ok": True,
        "auth": False,
        "data": {
            "chapters": [],
            "nodes": [],
            "total_points": 0,
            "total_badges": 0,
        },
    }


def display_source(db: Session, user_id: str) -> str:
    """Personalized stages replace the seed journey entirely once a user has any."""
    return "avatar" if store.user_has_stages(db, user_id, "avatar") else "seed"


def build_journey(
    db: Session,
    user_id: str,
    *,
    metrics_provider: MetricsProvider,
    cache: JourneyCache | None = None,
    chapter_id: int | None = None,
    chapter_slug: str | None = None,
) -> dict[str, Any]:
    filtered = chapter_id is not None or chapter_slug is not None
    generation = None
    if not filtered and cache is not None:
        cached = cache.get(user_id)
        if cached is not None:
            return cached
        # Taken before any read so a completion committed mid-build keeps this snapshot out.
        generation = cache.generation(user_id)

    source = display_source(db, user_id)
    chapters = store.list_chapters(db, source)
    user_stages = store.list_user_stages(db, user_id, source)
    chapter_payloads = [_chapter_payload(chapter, user_stages) for chapter in chapters]

    selected: Chapter | None = None
    if filtered:
        selected = next(
            (
                c
                for c in chapters
                if (chapter_id is not None and c.id == chapter_id)
                or (chapter_id is None and c.slug == chapter_slug)
            ),
            None,
        )
        if selected is None:
            logger.info("journey_unknown_chapter user_id=%s chapter_id=%s slug=%s", user_id, chapter_id, chapter_slug)
            return {
                "ok": True,
                "auth": True,
                "data": {
                    "chapters": chapter_payloads,
                    "nodes": [],
                    "total_points": 0,
                    "total_badges": 0,
                    "source": source,
                    "active_stage_position": None,
                    "unlocked_up_to": -1,
                    "selected_chapter_id": chapter_id,
                    "selected_chapter_slug": chapter_slug,
                    "message": "Invalid chapter requested - no nodes available",
                },
            }

    visible = [us for us in user_stages if selected is None or us.stage.chapter_id == selected.id]
    metrics = _MetricsView(metrics_provider, user_id)
    nodes = [_node_payload(us, metrics) for us in visible]

    response = {
        "ok": True,
        "auth": True,
        "data": {
            "chapters": chapter_payloads,
            "nodes": nodes,
            "total_points": store.total_points(db, user_id),
            "total_badges": store.total_badges(db, user_id),
            "source": source,
            "active_stage_position": _active_position(user_stages),
            "unlocked_up_to": _unlocked_up_to(user_stages),
            "selected_chapter_id": selected.id if selected else None,
            "selected_chapter_slug": selected.slug if selected else None,
        },
    }

    if not filtered and cache is not None:
        cache.set(user_id, response, generation=generation)
    logger.debug("journey_built user_id=%s source=%s nodes=%s filtered=%s", user_id, source, len(nodes), filtered)
    return response


class _MetricsView:
    """Fetches each lookback window at most once per read.

    A provider failure degrades to "no data" so the map still renders.
    """

    def __init__(self, provider: MetricsProvider, user_id: str) -> None:
        self.provider = provider
        self.user_id = user_id
        self._by_lookback: dict[int, dict[str, float]] = {}

    def get(self, lookback_days: int) -> dict[str, float]:
        if lookback_days not in self._by_lookback:
            try:
                self._by_lookback[lookback_days] = self.provider.get_metrics(self.user_id, lookback_days)
            except MetricsUnavailable:
                logger.warning("journey_metrics_unavailable user_id=%s lookback_days=%s", self.user_id, lookback_days)
                self._by_lookback[lookback_days] = {}
        return self._by_lookback[lookback_days]


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _chapter_payload(chapter: Chapter, user_stages: list[UserStage]) -> dict[str, Any]:
    members = [us for us in user_stages if us.stage.chapter_id == chapter.id]
    completed = sum(1 for us in members if us.status == StageStatus.completed.value)
    if members and completed == len(members):
        state = "COMPLETED"
    elif members and any(us.status != StageStatus.locked.value for us in members):
        state = "ACTIVE"
    else:
        state = "LOCKED"
    return {
        "id": chapter.id,
        "slug": chapter.slug,
        "title": chapter.title,
        "order_index": chapter.order_index,
        "completed_nodes": completed,
        "total_nodes": len(members),
        "state": state,
    }


def _node_payload(user_stage: UserStage, metrics: _MetricsView) -> dict[str, Any]:
    stage = user_stage.stage
    status = StageStatus(user_stage.status)
    tasks = [_task_payload(ut, status, metrics) for ut in user_stage.tasks]

    steps: list[str] = []
    if status is not StageStatus.completed:
        requirements = stage.requirements
        stage_metrics = metrics.get(lookback_for(requirements))
        steps = next_steps(evaluate_requirements(requirements, stage_metrics), stage_metrics)

    return {
        "user_stage_id": user_stage.id,
        "stage_id": stage.id,
        "code": stage.code,
        "title": stage.title,
        "summary": stage.summary,
        "category": stage.category,
        "icon": stage.icon,
        "color_hex": stage.color_hex,
        "chapter_id": stage.chapter_id,
        "chapter_slug": stage.chapter.slug if stage.chapter else None,
        "position": user_stage.position,
        "source": user_stage.source,
        "status": status.value,
        "progress": user_stage.progress,
        "points_current": user_stage.points_current,
        "points_total": user_stage.points_total,
        "completed_tasks": sum(1 for t in user_stage.tasks if t.is_completed),
        "total_tasks": len(user_stage.tasks),
        "unlocked_at": _iso(user_stage.unlocked_at),
        "started_at": _iso(user_stage.started_at),
        "completed_at": _iso(user_stage.completed_at),
        "next_steps": steps,
        "tasks": tasks,
    }


def _task_payload(user_task: UserTask, stage_status: StageStatus, metrics: _MetricsView) -> dict[str, Any]:
    task = user_task.task
    payload: dict[str, Any] = {
        "user_task_id": user_task.id,
        "task_id": task.id,
        "code": task.code,
        "title": task.title,
        "description": task.description,
        "points": task.points,
        "is_completed": user_task.is_completed,
        "completed_at": _iso(user_task.completed_at),
        "note": user_task.note,
        "locked_by_stage": stage_status is StageStatus.locked,
        "progress": 1.0,
        "can_complete": True,
        "metric": None,
        "current": None,
        "target": None,
    }
    if user_task.is_completed:
        return payload

    condition = task.condition
    verdict = evaluate_condition(condition, metrics.get(lookback_for(as_requirements(condition))))
    payload.update(
        progress=round(verdict.progress, 4),
        can_complete=verdict.can_complete,
        metric=verdict.metric,
        current=verdict.current,
        target=verdict.target,
    )
    return payload


def _active_position(user_stages: list[UserStage]) -> int | None:
    for us in user_stages:
        if us.status in (StageStatus.available.value, StageStatus.in_progress.value):
            return us.position
    return None


def _unlocked_up_to(user_stages: list[UserStage]) -> int:
    completed = [us.position for us in user_stages if us.status == StageStatus.completed.value]
    return max(completed) if completed else -1


@dataclass(frozen=True)
class BootstrapResult:
    existing: bool
    created: int
    source: str


def bootstrap_journey(
    db: Session,
    user_id: str,
    *,
    source: str = "seed",
    cache: JourneyCache | None = None,
    now: datetime | None = None,
) -> BootstrapResult:
    """Create the user's stage and task instances for ``source``. Idempotent."""
    if store.user_has_stages(db, user_id, source):
        return BootstrapResult(existing=True, created=0, source=source)

    templates = store.list_stage_templates(db, source)
    if not templates:
        raise NotFound(f"No {source} stage templates available")

    now = now or datetime.now(timezone.utc)
    try:
        for position, stage in enumerate(templates):
            store.create_user_stage(db, user_id, stage, source=source, position=position, now=now)
        db.commit()
    except IntegrityError:
        # A concurrent bootstrap created the rows first.
        db.rollback()
        logger.info("journey_bootstrap_race user_id=%s source=%s", user_id, source)
        return BootstrapResult(existing=True, created=0, source=source)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("journey_bootstrap_failed user_id=%s source=%s", user_id, source)
        raise ServerError()

    if cache is not None:
        cache.invalidate(user_id)
    logger.info("journey_bootstrapped user_id=%s source=%s stages=%s", user_id, source, len(templates))
    return BootstrapResult(existing=False, created=len(templates), source=source)


@dataclass(frozen=True)
class RefreshResult:
    evaluated: int = 0
    advanced: int = 0
    completed: int = 0
    unlocked: int = 0


def refresh_progress(
    db: Session,
    user_id: str,
    *,
    metrics_provider: MetricsProvider,
    cache: JourneyCache | None = None,
    policy: ProgressionPolicy | None = None,
    now: datetime | None = None,
) -> RefreshResult:
    """Re-derive every open stage from fresh metrics, walking positions in order.

    A stage is only evaluated once its predecessor is completed, and a stage
    completed here opens the next one, so the walk never skips ahead.
    """
    policy = policy or ProgressionPolicy.from_settings()
    now = now or datetime.now(timezone.utc)

    user_stages = store.list_user_stages(db, user_id, display_source(db, user_id))
    open_stages = [us for us in user_stages if us.status != StageStatus.completed.value]
    if not open_stages:
        return RefreshResult()

    lookbacks = sorted({lookback_for(us.stage.requirements) for us in open_stages})
    try:
        metrics_by_lookback = {days: metrics_provider.get_metrics(user_id, days) for days in lookbacks}
    except MetricsUnavailable:
        logger.warning("refresh_metrics_unavailable user_id=%s", user_id)
        raise ServerError()

    evaluated = advanced = completed = unlocked = 0
    try:
        previous_completed = True
        for us in user_stages:
            current = StageStatus(us.status)
            if current is StageStatus.completed:
                previous_completed = True
                continue
            if current is StageStatus.locked:
                if not previous_completed:
                    continue
                if store.unlock_stage(db, us.id, now):
                    unlocked += 1
                current = StageStatus.available

            requirements = us.stage.requirements
            evaluation = evaluate_requirements(requirements, metrics_by_lookback[lookback_for(requirements)])
            snapshot = StageSnapshot(status=current, points_current=us.points_current, points_total=us.points_total)
            new_status = advance_status(current, derive_stage_status(snapshot, evaluation, previous_completed, policy))
            progress = stage_progress(us.progress, evaluation.partial, us.points_current, us.points_total)
            evaluated += 1

            if new_status is current:
                store.set_stage_progress(db, us.id, progress)
            elif store.advance_stage_status(
                db,
                us.id,
                new_status,
                progress=1.0 if new_status is StageStatus.completed else progress,
                now=now,
            ):
                advanced += 1
                if new_status is StageStatus.completed:
                    completed += 1
                    store.award_badge(db, user_id, f"stage:{us.stage.code}")
            previous_completed = new_status is StageStatus.completed
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("refresh_progress_failed user_id=%s", user_id)
        raise ServerError()

    if cache is not None:
        cache.invalidate(user_id)
    logger.info(
        "journey_refreshed user_id=%s evaluated=%s advanced=%s completed=%s unlocked=%s",
        user_id,
        evaluated,
        advanced,
        completed,
        unlocked,
    )
    return RefreshResult(evaluated=evaluated, advanced=advanced, completed=completed, unlocked=unlocked)


def points_feed(
    db: Session,
    user_id: str,
    *,
    limit: int = DEFAULT_FEED_LIMIT,
    cursor: int | None = None,
    user_stage_id: int | None = None,
) -> dict[str, Any]:
    limit = max(1, min(limit, MAX_FEED_LIMIT))
    rows, has_more = store.ledger_page(db, user_id, limit=limit, cursor=cursor, user_stage_id=user_stage_id)
    items = [
        {
            "id": row.PointsLedgerEntry.id,
            "points": row.PointsLedgerEntry.amount,
            "reason": row.PointsLedgerEntry.reason,
            "user_stage_id": row.PointsLedgerEntry.user_stage_id,
            "stage_title": row.stage_title,
            "user_task_id": row.PointsLedgerEntry.user_task_id,
            "task_title": row.task_title,
            "created_at": row.PointsLedgerEntry.created_at,
        }
        for row in rows
    ]
    next_cursor = items[-1]["id"] if has_more and items else None
    return {"ok": True, "items": items, "has_more": has_more, "next_cursor": next_cursor}
