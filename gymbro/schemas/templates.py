"""Authoring models for journey content (chapters, stages, tasks)."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from gymbro.schemas.requirements import Requirements, TaskCondition

CODE_PATTERN = r"^[A-Z][A-Z0-9_]*$"


class TaskTemplate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str = Field(pattern=CODE_PATTERN, max_length=64)
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    points: int = Field(default=10, ge=0)
    condition: TaskCondition


class StageTemplate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str = Field(pattern=CODE_PATTERN, max_length=64)
    order_index: int = Field(ge=0)
    title: str = Field(min_length=1, max_length=255)
    summary: str | None = None
    category: Literal["workout", "nutrition", "habit", "mixed"] = "mixed"
    requirements: Requirements
    reward_points: int | None = Field(default=None, ge=0)
    icon: str | None = None
    color_hex: str = Field(default="#E2F163", pattern=r"^#[0-9A-Fa-f]{6}([0-9A-Fa-f]{2})?$")
    tasks: list[TaskTemplate] = Field(min_length=1)

    @model_validator(mode="after")
    def check_tasks(self) -> "StageTemplate":
        codes = [task.code for task in self.tasks]
        if len(codes) != len(set(codes)):
            raise ValueError(f"stage '{self.code}' has duplicate task codes")
        return self

    @property
    def total_reward(self) -> int:
        """Explicit reward, or the sum of task points when none is given."""
        if self.reward_points is not None:
            return self.reward_points
        return sum(task.points for task in self.tasks)


class ChapterTemplate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    slug: str = Field(pattern=r"^[a-z0-9][a-z0-9-]*$", max_length=80)
    title: str = Field(min_length=1, max_length=255)
    order_index: int = Field(default=0, ge=0)
    source: Literal["seed", "avatar"] = "seed"
    stages: list[StageTemplate] = Field(min_length=1)
