"""Journey API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gymbro.core.cache import JourneyCache
from gymbro.core.config import settings
from gymbro.core.deps import (
    get_current_user_id,
    get_journey_cache,
    get_metrics_provider,
    get_optional_user_id,
    limit_completions,
)
from gymbro.db.session import get_db
from gymbro.schemas.journey import (
    BootstrapRequest,
    BootstrapResponse,
    CompleteTaskRequest,
    CompleteTaskResponse,
    RefreshResponse,
)
from gymbro.services.completion_service import complete_task
from gymbro.services.journey_service import bootstrap_journey, build_journey, empty_journey, refresh_progress
from gymbro.services.metrics_service import MetricsProvider

router = APIRouter(prefix=f"{settings.api_prefix}/journey", tags=["journey"])


@router.get("")
def get_journey(
    chapter_id: int | None = Query(default=None),
    chapter_slug: str | None = Query(default=None, max_length=80),
    db: Session = Depends(get_db),
    user_id: str | None = Depends(get_optional_user_id),
    cache: JourneyCache = Depends(get_journey_cache),
    metrics_provider: MetricsProvider = Depends(get_metrics_provider),
) -> dict:
    if user_id is None:
        return empty_journey()
    return build_journey(
        db,
        user_id,
        metrics_provider=metrics_provider,
        cache=cache,
        chapter_id=chapter_id,
        chapter_slug=chapter_slug,
    )


@router.post("/stages/complete", response_model=CompleteTaskResponse)
def complete_stage_task(
    data: CompleteTaskRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(limit_completions),
    cache: JourneyCache = Depends(get_journey_cache),
    metrics_provider: MetricsProvider = Depends(get_metrics_provider),
):
    outcome = complete_task(
        db,
        user_id,
        data.stage_instance_id,
        data.task_instance_id,
        metrics_provider=metrics_provider,
        cache=cache,
        note=data.note,
    )
    return CompleteTaskResponse(
        points_awarded=outcome.points_awarded,
        stage_completed=outcome.stage_completed,
        unlocked_next=outcome.unlocked_next,
        already_completed=outcome.already_completed,
    )


@router.post("/stages/bootstrap", response_model=BootstrapResponse)
def bootstrap_stages(
    data: BootstrapRequest | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    cache: JourneyCache = Depends(get_journey_cache),
):
    source = data.source if data else "seed"
    result = bootstrap_journey(db, user_id, source=source, cache=cache)
    return BootstrapResponse(existing=result.existing, created=result.created, source=result.source)


@router.post("/stages/refresh", response_model=RefreshResponse)
def refresh_stages(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    cache: JourneyCache = Depends(get_journey_cache),
    metrics_provider: MetricsProvider = Depends(get_metrics_provider),
):
    result = refresh_progress(db, user_id, metrics_provider=metrics_provider, cache=cache)
    return RefreshResponse(
        evaluated=result.evaluated,
        advanced=result.advanced,
        completed=result.completed,
        unlocked=result.unlocked,
    )
