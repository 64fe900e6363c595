"""Stage status derivation tests."""

import itertools

import pytest

from gymbro.core.config import settings
from gymbro.services.rules import EvaluationResult
from gymbro.services.stage_state import (
    ProgressionPolicy,
    StageSnapshot,
    StageStatus,
    advance_status,
    derive_stage_status,
    stage_progress,
)


def _eval(met=False, partial=0.0):
    return EvaluationResult(met=met, partial=partial, met_rules=(), unmet_rules=())


PARTIAL_BANDS = (0.0, 0.39, 0.4, 0.5, 1.0)
# (points_current, points_total); (0, 0) is a stage with no points path
POINTS_BANDS = ((0, 0), (0, 100), (49, 100), (50, 100), (99, 100), (100, 100))


def _expected(status, met, partial, points, total, previous):
    if status is StageStatus.completed:
        return StageStatus.completed
    if met or (total > 0 and points >= total):
        return StageStatus.completed
    if partial >= 0.4 or (total > 0 and points / total >= 0.5):
        return StageStatus.in_progress
    if previous:
        return StageStatus.available
    return StageStatus.locked


def test_derive_stage_status_covers_every_combination():
    """Every status, rule outcome, partial band, points band and predecessor state follows the priority order."""
    policy = ProgressionPolicy()
    combos = itertools.product(StageStatus, (False, True), PARTIAL_BANDS, POINTS_BANDS, (False, True))
    for status, met, partial, (points, total), previous in combos:
        snapshot = StageSnapshot(status=status, points_current=points, points_total=total)
        derived = derive_stage_status(snapshot, _eval(met, partial), previous, policy)
        case = (status, met, partial, points, total, previous)
        assert derived is _expected(*case), case


def test_scenario_half_rules_half_points_is_in_progress():
    """Half the rules and half the points put the stage in progress."""
    snapshot = StageSnapshot(status=StageStatus.available, points_current=50, points_total=100)
    assert derive_stage_status(snapshot, _eval(False, 0.5), True) is StageStatus.in_progress


def test_policy_thresholds_are_configurable():
    """A stricter policy needs more coverage to start a stage."""
    policy = ProgressionPolicy(in_progress_rule_ratio=0.75, in_progress_points_ratio=0.9)
    snapshot = StageSnapshot(status=StageStatus.available, points_current=50, points_total=100)
    assert derive_stage_status(snapshot, _eval(False, 0.5), True, policy) is StageStatus.available


@pytest.mark.parametrize(
    "current,derived,expected",
    [
        (StageStatus.in_progress, StageStatus.available, StageStatus.in_progress),
        (StageStatus.completed, StageStatus.locked, StageStatus.completed),
        (StageStatus.available, StageStatus.completed, StageStatus.completed),
        (StageStatus.locked, StageStatus.locked, StageStatus.locked),
    ],
)
def test_advance_status_never_lowers(current, derived, expected):
    """Merging a derived status with the stored one only moves forward."""
    assert advance_status(current, derived) is expected


def test_stage_progress_never_drops():
    """Displayed progress keeps the best of stored, rules and points."""
    assert stage_progress(0.6, 0.5, 10, 100) == 0.6
    assert stage_progress(0.0, 0.5, 80, 100) == 0.8
    assert stage_progress(0.0, 0.0, 10, 0) == 0.0


def test_default_policy_follows_settings(monkeypatch):
    """Without an explicit policy the configured thresholds apply."""
    monkeypatch.setattr(settings, "journey_in_progress_rule_ratio", 0.75)
    monkeypatch.setattr(settings, "journey_in_progress_points_ratio", 0.9)
    snapshot = StageSnapshot(status=StageStatus.available, points_current=50, points_total=100)
    assert derive_stage_status(snapshot, _eval(False, 0.5), True) is StageStatus.available
