from __future__ import annotations

from typing import Iterable, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from academy.models.lesson_access import LessonAccess
from academy.models.lessons import Lesson


class LessonAccessRepository:
    def __init__(self, db: Session):
        self.db = db

    def record_access(self, trainee_id: int, lesson_id: int) -> LessonAccess:
        """First access wins; later calls leave the row untouched."""
        row = (
            self.db.query(LessonAccess)
            .filter(
                LessonAccess.trainee_id == trainee_id,
                LessonAccess.lesson_id == lesson_id,
            )
            .first()
        )
        if row:
            return row
        row = LessonAccess(trainee_id=trainee_id, lesson_id=lesson_id)
        self.db.add(row)
        self.db.flush()
        return row

    def accessed_lesson_ids(
        self, trainee_id: int, lesson_ids: Iterable[int]
    ) -> Set[int]:
        ids = list({int(lid) for lid in lesson_ids})
        if not ids:
            return set()
        rows = (
            self.db.query(LessonAccess.lesson_id)
            .filter(
                LessonAccess.trainee_id == trainee_id,
                LessonAccess.lesson_id.in_(ids),
            )
            .all()
        )
        return {row[0] for row in rows}

    def has_accessed_all_lessons(self, trainee_id: int, module_id: int) -> bool:
        total = (
            self.db.query(func.count(Lesson.id))
            .filter(Lesson.module_id == module_id)
            .scalar()
            or 0
        )
        if total == 0:
            return False
        accessed = (
            self.db.query(func.count(LessonAccess.id))
            .join(Lesson, Lesson.id == LessonAccess.lesson_id)
            .filter(
                LessonAccess.trainee_id == trainee_id,
                Lesson.module_id == module_id,
            )
            .scalar()
            or 0
        )
        return accessed >= total
