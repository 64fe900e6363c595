"""Persistence for per-user journey state.

Mutations of shared rows are single conditional statements (``UPDATE ...
WHERE <expected state>``) so that concurrent requests serialize on the row
instead of on a read made earlier in application code. Callers own the
transaction: nothing here commits.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Row, case, func, select, update
from sqlalchemy.orm import Session, joinedload

from gymbro.models.journey import Chapter, Stage, Task
from gymbro.models.points import PointsLedgerEntry, UserBadge
from gymbro.models.user_stage import UserStage, UserTask
from gymbro.schemas.requirements import Requirements, TaskCondition
from gymbro.services.stage_state import StageStatus


@dataclass(frozen=True)
class TaskContext:
    """Everything the completion flow reads, captured before any write."""

    user_task_id: int
    user_stage_id: int
    user_id: str
    source: str
    position: int
    stage_status: StageStatus
    stage_progress: float
    points_current: int
    points_total: int
    task_completed: bool
    task_points: int
    task_title: str
    stage_code: str
    stage_title: str
    condition: TaskCondition
    stage_requirements: Requirements


def load_task_context(db: Session, user_stage_id: int, user_task_id: int) -> TaskContext | None:
    """Load a task instance together with its stage, or None if it is not in that stage."""
    user_task = db.execute(
        select(UserTask)
        .options(
            joinedload(UserTask.user_stage).joinedload(UserStage.stage),
            joinedload(UserTask.task),
        )
        .where(UserTask.id == user_task_id, UserTask.user_stage_id == user_stage_id)
    ).scalar_one_or_none()
    if user_task is None:
        return None

    user_stage = user_task.user_stage
    return TaskContext(
        user_task_id=user_task.id,
        user_stage_id=user_stage.id,
        user_id=user_stage.user_id,
        source=user_stage.source,
        position=user_stage.position,
        stage_status=StageStatus(user_stage.status),
        stage_progress=user_stage.progress,
        points_current=user_stage.points_current,
        points_total=user_stage.points_total,
        task_completed=user_task.is_completed,
        task_points=user_task.task.points,
        task_title=user_task.task.title,
        stage_code=user_stage.stage.code,
        stage_title=user_stage.stage.title,
        condition=user_task.task.condition,
        stage_requirements=user_stage.stage.requirements,
    )


def claim_task_completion(db: Session, user_task_id: int, now: datetime, note: str | None = None) -> bool:
    """Flip ``is_completed`` false -> true. Returns False if another request already did."""
    result = db.execute(
        update(UserTask)
        .where(UserTask.id == user_task_id, UserTask.is_completed.is_(False))
        .values(is_completed=True, completed_at=now, note=note)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def append_ledger_entry(
    db: Session,
    user_id: str,
    amount: int,
    reason: str,
    *,
    user_task_id: int | None = None,
    user_stage_id: int | None = None,
    now: datetime | None = None,
) -> PointsLedgerEntry:
    entry = PointsLedgerEntry(
        user_id=user_id,
        amount=amount,
        reason=reason[:255],
        user_task_id=user_task_id,
        user_stage_id=user_stage_id,
    )
    if now is not None:
        entry.created_at = now
    db.add(entry)
    db.flush()
    return entry


def add_stage_points(db: Session, user_stage_id: int, amount: int) -> tuple[int, int]:
    """Add points to a stage, clamped to its total. Returns (points_current, points_total)."""
    new_value = UserStage.points_current + amount
    db.execute(
        update(UserStage)
        .where(UserStage.id == user_stage_id)
        .values(points_current=case((new_value > UserStage.points_total, UserStage.points_total), else_=new_value))
        .execution_options(synchronize_session=False)
    )
    row = db.execute(
        select(UserStage.points_current, UserStage.points_total).where(UserStage.id == user_stage_id)
    ).one()
    return row.points_current, row.points_total


def advance_stage_status(
    db: Session,
    user_stage_id: int,
    new_status: StageStatus,
    *,
    progress: float,
    now: datetime,
) -> bool:
    """Move a stage forward to ``new_status``. Never lowers it.

    Returns True only for the request whose statement performed the move.
    """
    lower = [s.value for s in StageStatus if s.rank < new_status.rank]
    values: dict[str, object] = {"status": new_status.value, "progress": progress}
    if new_status is StageStatus.in_progress:
        values["started_at"] = func.coalesce(UserStage.started_at, now)
    elif new_status is StageStatus.completed:
        values["started_at"] = func.coalesce(UserStage.started_at, now)
        values["completed_at"] = now
    result = db.execute(
        update(UserStage)
        .where(UserStage.id == user_stage_id, UserStage.status.in_(lower))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def set_stage_progress(db: Session, user_stage_id: int, progress: float) -> None:
    db.execute(
        update(UserStage)
        .where(UserStage.id == user_stage_id, UserStage.status != StageStatus.completed.value)
        .values(progress=progress)
        .execution_options(synchronize_session=False)
    )


def unlock_stage(db: Session, user_stage_id: int, now: datetime) -> bool:
    """locked -> available. Returns False if the stage was not locked."""
    result = db.execute(
        update(UserStage)
        .where(UserStage.id == user_stage_id, UserStage.status == StageStatus.locked.value)
        .values(status=StageStatus.available.value, unlocked_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def get_stage_at_position(db: Session, user_id: str, source: str, position: int) -> UserStage | None:
    return db.execute(
        select(UserStage).where(
            UserStage.user_id == user_id,
            UserStage.source == source,
            UserStage.position == position,
        )
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def is_previous_completed(db: Session, user_id: str, source: str, position: int) -> bool:
    if position == 0:
        return True
    previous = get_stage_at_position(db, user_id, source, position - 1)
    return previous is not None and previous.status == StageStatus.completed.value


def award_badge(db: Session, user_id: str, badge_code: str) -> bool:
    """Insert a badge once. Returns False if the user already holds it."""
    exists = db.execute(
        select(UserBadge.id).where(UserBadge.user_id == user_id, UserBadge.badge_code == badge_code)
    ).scalar_one_or_none()
    if exists is not None:
        return False
    db.add(UserBadge(user_id=user_id, badge_code=badge_code))
    db.flush()
    return True


def list_user_stages(db: Session, user_id: str, source: str | None = None) -> list[UserStage]:
    stmt = (
        select(UserStage)
        .options(
            joinedload(UserStage.stage).joinedload(Stage.chapter),
            joinedload(UserStage.tasks).joinedload(UserTask.task),
        )
        .where(UserStage.user_id == user_id)
        .order_by(UserStage.source.asc(), UserStage.position.asc())
    )
    if source is not None:
        stmt = stmt.where(UserStage.source == source)
    return list(db.execute(stmt).unique().scalars().all())


def total_points(db: Session, user_id: str) -> int:
    return int(
        db.execute(
            select(func.coalesce(func.sum(PointsLedgerEntry.amount), 0)).where(PointsLedgerEntry.user_id == user_id)
        ).scalar_one()
    )


def total_badges(db: Session, user_id: str) -> int:
    return int(db.execute(select(func.count(UserBadge.id)).where(UserBadge.user_id == user_id)).scalar_one())


def count_ledger_entries_for_task(db: Session, user_task_id: int) -> int:
    return int(
        db.execute(
            select(func.count(PointsLedgerEntry.id)).where(PointsLedgerEntry.user_task_id == user_task_id)
        ).scalar_one()
    )


def ledger_page(
    db: Session,
    user_id: str,
    *,
    limit: int,
    cursor: int | None = None,
    user_stage_id: int | None = None,
) -> tuple[list[Row], bool]:
    """Newest-first ledger rows of (entry, stage_title, task_title).

    ``cursor`` is the id of the last entry already seen.
    """
    stmt = (
        select(PointsLedgerEntry, Stage.title.label("stage_title"), Task.title.label("task_title"))
        .outerjoin(UserStage, PointsLedgerEntry.user_stage_id == UserStage.id)
        .outerjoin(Stage, UserStage.stage_id == Stage.id)
        .outerjoin(UserTask, PointsLedgerEntry.user_task_id == UserTask.id)
        .outerjoin(Task, UserTask.task_id == Task.id)
        .where(PointsLedgerEntry.user_id == user_id)
        .order_by(PointsLedgerEntry.id.desc())
        .limit(limit + 1)
    )
    if cursor is not None:
        stmt = stmt.where(PointsLedgerEntry.id < cursor)
    if user_stage_id is not None:
        stmt = stmt.where(PointsLedgerEntry.user_stage_id == user_stage_id)
    rows = list(db.execute(stmt).all())
    return rows[:limit], len(rows) > limit


def list_stage_templates(db: Session, source: str) -> list[Stage]:
    return list(
        db.execute(
            select(Stage)
            .options(joinedload(Stage.tasks))
            .join(Chapter, Stage.chapter_id == Chapter.id)
            .where(Chapter.source == source)
            .order_by(Stage.order_index.asc())
        )
        .unique()
        .scalars()
        .all()
    )


def create_user_stage(
    db: Session,
    user_id: str,
    stage: Stage,
    *,
    source: str,
    position: int,
    now: datetime,
) -> UserStage:
    first = position == 0
    user_stage = UserStage(
        user_id=user_id,
        stage_id=stage.id,
        source=source,
        position=position,
        status=StageStatus.available.value if first else StageStatus.locked.value,
        progress=0.0,
        points_current=0,
        points_total=stage.reward_points,
        unlocked_at=now if first else None,
    )
    db.add(user_stage)
    db.flush()
    for task in stage.tasks:
        db.add(UserTask(user_id=user_id, user_stage_id=user_stage.id, task_id=task.id, is_completed=False))
    return user_stage


def user_has_stages(db: Session, user_id: str, source: str | None = None) -> bool:
    stmt = select(UserStage.id).where(UserStage.user_id == user_id)
    if source is not None:
        stmt = stmt.where(UserStage.source == source)
    return db.execute(stmt.limit(1)).scalar_one_or_none() is not None


def list_chapters(db: Session, source: str) -> list[Chapter]:
    return list(
        db.execute(select(Chapter).where(Chapter.source == source).order_by(Chapter.order_index.asc(), Chapter.id.asc()))
        .scalars()
        .all()
    )
