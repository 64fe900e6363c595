"""Points API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gymbro.core.config import settings
from gymbro.core.deps import get_current_user_id
from gymbro.db.session import get_db
from gymbro.schemas.journey import PointsFeedResponse
from gymbro.services.journey_service import DEFAULT_FEED_LIMIT, points_feed

router = APIRouter(prefix=f"{settings.api_prefix}/points", tags=["points"])


@router.get("/feed", response_model=PointsFeedResponse)
def get_points_feed(
    limit: int = Query(default=DEFAULT_FEED_LIMIT, ge=1),
    cursor: int | None = Query(default=None, ge=1),
    stage_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Ledger entries newest first. Limits above the maximum are clamped."""
    return points_feed(db, user_id, limit=limit, cursor=cursor, user_stage_id=stage_id)
