"""Declarative stage requirements and task conditions.

Authored content (stage templates, task conditions) is parsed through these
models when it is loaded, so a malformed rule is rejected at the authoring
boundary instead of surfacing during evaluation.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

METRIC_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"


class MetricRule(BaseModel):
    """Bounds on one named metric. At least one of ``gte``/``lte`` is required."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    metric: str = Field(pattern=METRIC_NAME_PATTERN, max_length=64)
    gte: float | None = None
    lte: float | None = None
    window_days: int | None = Field(default=None, ge=1, le=365)

    @model_validator(mode="after")
    def check_bounds(self) -> "MetricRule":
        if self.gte is None and self.lte is None:
            raise ValueError(f"rule for '{self.metric}' needs a gte or lte bound")
        if self.gte is not None and self.lte is not None and self.gte > self.lte:
            raise ValueError(f"rule for '{self.metric}' has gte > lte")
        return self

    @property
    def target(self) -> float:
        """The bound shown to users: the lower bound when present."""
        return self.gte if self.gte is not None else self.lte  # type: ignore[return-value]


class Requirements(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    logic: Literal["AND", "OR"] = "AND"
    rules: tuple[MetricRule, ...] = Field(min_length=1)
    unlock_any_of: tuple[MetricRule, ...] = ()

    @property
    def lookback_days(self) -> int | None:
        windows = [r.window_days for r in (*self.rules, *self.unlock_any_of) if r.window_days]
        return max(windows) if windows else None


TaskCondition = Union[Requirements, MetricRule]

_requirements_adapter = TypeAdapter(Requirements)
_condition_adapter: TypeAdapter[TaskCondition] = TypeAdapter(TaskCondition)


def parse_requirements(data: Any) -> Requirements:
    """Validate stage requirements. Raises ``pydantic.ValidationError``."""
    return _requirements_adapter.validate_python(data)


def parse_condition(data: Any) -> TaskCondition:
    """Validate a task condition: a single rule or a composite."""
    return _condition_adapter.validate_python(data)


def as_requirements(condition: TaskCondition) -> Requirements:
    if isinstance(condition, Requirements):
        return condition
    return Requirements(logic="AND", rules=(condition,))


def dump_condition(condition: TaskCondition) -> dict[str, Any]:
    return condition.model_dump(mode="json", exclude_none=True, exclude_defaults=False)
