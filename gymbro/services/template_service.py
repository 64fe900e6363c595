"""Loading authored journey content into the template tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from gymbro.models.journey import Chapter, Stage, Task
from gymbro.schemas.requirements import dump_condition
from gymbro.schemas.templates import ChapterTemplate, StageTemplate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedResult:
    chapters: int
    stages_created: int
    stages_updated: int
    tasks: int


def seed_templates(db: Session, templates: Iterable[dict[str, Any] | ChapterTemplate]) -> SeedResult:
    """Validate and upsert chapters, stages (by code) and tasks (by stage and code).

    All content is validated before anything is written, so one malformed rule
    rejects the whole batch with a ``pydantic.ValidationError``.
    """
    chapters = [t if isinstance(t, ChapterTemplate) else ChapterTemplate.model_validate(t) for t in templates]

    seen_codes: set[str] = set()
    for chapter in chapters:
        for stage in chapter.stages:
            if stage.code in seen_codes:
                raise ValueError(f"duplicate stage code '{stage.code}'")
            seen_codes.add(stage.code)

    created = updated = task_count = 0
    for chapter_tpl in chapters:
        chapter = db.execute(select(Chapter).where(Chapter.slug == chapter_tpl.slug)).scalar_one_or_none()
        if chapter is None:
            chapter = Chapter(slug=chapter_tpl.slug)
            db.add(chapter)
        chapter.title = chapter_tpl.title
        chapter.order_index = chapter_tpl.order_index
        chapter.source = chapter_tpl.source
        db.flush()

        for stage_tpl in chapter_tpl.stages:
            stage, is_new = _upsert_stage(db, chapter, stage_tpl)
            if is_new:
                created += 1
            else:
                updated += 1
            task_count += len(stage_tpl.tasks)

    db.commit()
    logger.info(
        "templates_seeded chapters=%s stages_created=%s stages_updated=%s tasks=%s",
        len(chapters),
        created,
        updated,
        task_count,
    )
    return SeedResult(chapters=len(chapters), stages_created=created, stages_updated=updated, tasks=task_count)


def _upsert_stage(db: Session, chapter: Chapter, tpl: StageTemplate) -> tuple[Stage, bool]:
    stage = db.execute(select(Stage).where(Stage.code == tpl.code)).scalar_one_or_none()
    is_new = stage is None
    if stage is None:
        stage = Stage(code=tpl.code)
        db.add(stage)

    stage.chapter_id = chapter.id
    stage.order_index = tpl.order_index
    stage.title = tpl.title
    stage.summary = tpl.summary
    stage.category = tpl.category
    stage.requirements_json = tpl.requirements.model_dump(mode="json", exclude_none=True)
    stage.reward_points = tpl.total_reward
    stage.icon = tpl.icon
    stage.color_hex = tpl.color_hex
    db.flush()

    existing = {task.code: task for task in db.execute(select(Task).where(Task.stage_id == stage.id)).scalars()}
    next_index = max((task.order_index for task in existing.values()), default=-1) + 1
    for index, task_tpl in enumerate(tpl.tasks):
        task = existing.get(task_tpl.code)
        if task is None:
            # New tasks go after existing ones so order_index stays unique per stage.
            order_index = index if is_new else next_index
            next_index = max(next_index, order_index) + 1
            task = Task(stage_id=stage.id, code=task_tpl.code, order_index=order_index)
            db.add(task)
        task.title = task_tpl.title
        task.description = task_tpl.description
        task.points = task_tpl.points
        task.condition_json = dump_condition(task_tpl.condition)
    db.flush()
    return stage, is_new


def main() -> None:
    from gymbro.db.session import SessionLocal
    from gymbro.services.seed_catalogue import SEED_CATALOGUE

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    db = SessionLocal()
    try:
        seed_templates(db, SEED_CATALOGUE)
    finally:
        db.close()


if __name__ == "__main__":
    main()
