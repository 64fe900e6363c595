"""Journey schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class CompleteTaskRequest(BaseModel):
    """Accepts snake_case or the camelCase names older clients send."""

    model_config = ConfigDict(populate_by_name=True)

    stage_instance_id: int = Field(alias="stageInstanceId", gt=0)
    task_instance_id: int = Field(alias="taskInstanceId", gt=0)
    note: str | None = Field(default=None, max_length=500)


class CompleteTaskResponse(BaseModel):
    ok: bool = True
    points_awarded: int
    stage_completed: bool
    unlocked_next: bool
    already_completed: bool


class BootstrapRequest(BaseModel):
    source: Literal["seed", "avatar"] = "seed"


class BootstrapResponse(BaseModel):
    ok: bool = True
    existing: bool
    created: int
    source: str


class RefreshResponse(BaseModel):
    ok: bool = True
    evaluated: int
    advanced: int
    completed: int
    unlocked: int


class PointsFeedItem(BaseModel):
    id: int
    points: int
    reason: str
    user_stage_id: int | None
    stage_title: str | None
    user_task_id: int | None
    task_title: str | None
    created_at: datetime


class PointsFeedResponse(BaseModel):
    ok: bool = True
    items: list[PointsFeedItem]
    has_more: bool
    next_cursor: int | None
