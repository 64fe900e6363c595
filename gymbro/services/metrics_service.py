"""Metrics providers.

The engine only consumes metrics; computing them from raw workout, meal and
weigh-in logs is the job of an external pipeline. A provider returns a map of
metric name to value. Missing data is represented by an absent key, never 0.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from gymbro.core.config import settings
from gymbro.core.errors import MetricsUnavailable
from gymbro.models.metric_snapshot import MetricSnapshot
from gymbro.schemas.requirements import Requirements

logger = logging.getLogger(__name__)


class MetricsProvider(Protocol):
    def get_metrics(self, user_id: str, lookback_days: int) -> dict[str, float]: ...


class SnapshotMetricsProvider:
    """Reads the newest value per metric from ``metric_snapshots``."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_metrics(self, user_id: str, lookback_days: int) -> dict[str, float]:
        rows = self.db.execute(
            select(MetricSnapshot.metric, MetricSnapshot.value)
            .where(MetricSnapshot.user_id == user_id, MetricSnapshot.window_days == lookback_days)
            .order_by(MetricSnapshot.recorded_at.asc(), MetricSnapshot.id.asc())
        ).all()
        # Later rows overwrite earlier ones, leaving the newest value per metric.
        return {metric: float(value) for metric, value in rows}


class HttpMetricsProvider:
    """Fetches metrics from the metrics service over HTTP."""

    def __init__(self, base_url: str, timeout: float, client: httpx.Client | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def get_metrics(self, user_id: str, lookback_days: int) -> dict[str, float]:
        url = f"{self.base_url}/users/{user_id}/metrics"
        try:
            if self._client is not None:
                response = self._client.get(url, params={"lookback_days": lookback_days}, timeout=self.timeout)
            else:
                response = httpx.get(url, params={"lookback_days": lookback_days}, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise MetricsUnavailable(f"Metrics request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise MetricsUnavailable("Metrics response is not JSON") from exc

        raw = data.get("metrics", {}) if isinstance(data, dict) else {}
        metrics: dict[str, float] = {}
        for name, value in raw.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            metrics[str(name)] = float(value)
        return metrics


def build_metrics_provider(db: Session) -> MetricsProvider:
    provider = settings.metrics_provider.strip().lower()
    if provider == "http":
        return HttpMetricsProvider(settings.metrics_base_url, settings.metrics_timeout_seconds)
    if provider != "snapshot":
        logger.warning("metrics_provider_unknown value=%s falling back to snapshot", provider)
    return SnapshotMetricsProvider(db)


def lookback_for(requirements: Requirements) -> int:
    return requirements.lookback_days or settings.journey_default_lookback_days
