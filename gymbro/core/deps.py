"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from gymbro.core.cache import JourneyCache
from gymbro.core.rate_limit import SlidingWindowLimiter
from gymbro.core.security import decode_access_token
from gymbro.db.session import get_db
from gymbro.services.metrics_service import MetricsProvider, build_metrics_provider

security = HTTPBearer(auto_error=False)


def _user_id_from_token(token: str) -> str:
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return str(payload["sub"])


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Require an authenticated caller. Raises 401 if not authenticated."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _user_id_from_token(credentials.credentials)


def get_optional_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str | None:
    """User id for reads that also serve logged-out callers. A bad token is still a 401."""
    if not credentials:
        return None
    return _user_id_from_token(credentials.credentials)


def get_journey_cache(request: Request) -> JourneyCache:
    return request.app.state.journey_cache


def get_completion_limiter(request: Request) -> SlidingWindowLimiter:
    return request.app.state.completion_limiter


def get_metrics_provider(db: Annotated[Session, Depends(get_db)]) -> MetricsProvider:
    return build_metrics_provider(db)


def limit_completions(
    user_id: Annotated[str, Depends(get_current_user_id)],
    limiter: Annotated[SlidingWindowLimiter, Depends(get_completion_limiter)],
) -> str:
    """Authenticated user id, after counting the request against the completion throttle."""
    limiter.hit(user_id)
    return user_id
