"""Rule evaluation against a user's metric snapshot.

Everything in this module is pure: no session, no clock, no I/O. The same
requirements and metrics always produce the same result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from gymbro.schemas.requirements import MetricRule, Requirements, TaskCondition, as_requirements

Metrics = Mapping[str, float]


@dataclass(frozen=True)
class EvaluationResult:
    met: bool
    partial: float
    met_rules: tuple[MetricRule, ...]
    unmet_rules: tuple[MetricRule, ...]


@dataclass(frozen=True)
class ConditionEvaluation:
    """Task-level verdict with the numbers a client needs to explain it."""

    can_complete: bool
    progress: float
    metric: str
    current: float | None
    target: float
    result: EvaluationResult


def rule_satisfied(rule: MetricRule, metrics: Metrics) -> bool:
    # Absent metric means "no data", which never satisfies a rule.
    value = metrics.get(rule.metric)
    if value is None:
        return False
    if rule.gte is not None and value < rule.gte:
        return False
    if rule.lte is not None and value > rule.lte:
        return False
    return True


def evaluate_requirements(requirements: Requirements, metrics: Metrics) -> EvaluationResult:
    met_rules: list[MetricRule] = []
    unmet_rules: list[MetricRule] = []
    for rule in requirements.rules:
        (met_rules if rule_satisfied(rule, metrics) else unmet_rules).append(rule)

    partial = len(met_rules) / len(requirements.rules)
    if requirements.logic == "AND":
        met = not unmet_rules
    else:
        met = bool(met_rules)

    if not met and any(rule_satisfied(rule, metrics) for rule in requirements.unlock_any_of):
        met = True

    return EvaluationResult(
        met=met,
        partial=partial,
        met_rules=tuple(met_rules),
        unmet_rules=tuple(unmet_rules),
    )


def rule_progress(rule: MetricRule, metrics: Metrics) -> float:
    """How close one rule is to being satisfied, in [0, 1]."""
    if rule_satisfied(rule, metrics):
        return 1.0
    value = metrics.get(rule.metric)
    if value is None or rule.gte is None or rule.gte <= 0:
        return 0.0
    return max(0.0, min(value / rule.gte, 1.0))


def evaluate_condition(condition: TaskCondition, metrics: Metrics) -> ConditionEvaluation:
    requirements = as_requirements(condition)
    result = evaluate_requirements(requirements, metrics)

    focus = result.unmet_rules[0] if result.unmet_rules and not result.met else requirements.rules[0]
    if len(requirements.rules) == 1:
        progress = rule_progress(focus, metrics)
    else:
        progress = 1.0 if result.met else result.partial

    return ConditionEvaluation(
        can_complete=result.met,
        progress=progress,
        metric=focus.metric,
        current=metrics.get(focus.metric),
        target=focus.target,
        result=result,
    )


_HINTS = {
    "workouts_per_week": "{remaining:g} more workout(s) this week",
    "nutrition_adherence_pct": "Raise nutrition adherence to {target:g}%",
    "weigh_ins": "{remaining:g} more weigh-in(s)",
    "protein_avg_g": "Increase average protein to {target:g} g per day",
    "cardio_minutes": "{remaining:g} more cardio minutes this week",
    "log_streak_days": "Keep logging for {remaining:g} more day(s)",
    "meals_logged_today": "Log {remaining:g} more meal(s) today",
    "total_meals_logged": "Log {remaining:g} more meal(s)",
}


def next_steps(result: EvaluationResult, metrics: Metrics) -> list[str]:
    """Short suggestions for each unmet rule, in rule order."""
    steps: list[str] = []
    for rule in result.unmet_rules:
        current = metrics.get(rule.metric, 0.0)
        if rule.gte is None:
            steps.append(f"Bring {rule.metric} down to {rule.lte:g}")
            continue
        remaining = max(rule.gte - current, 0.0)
        template = _HINTS.get(rule.metric, "Reach {target:g} {metric}")
        steps.append(template.format(remaining=remaining, target=rule.gte, metric=rule.metric))
    return steps
