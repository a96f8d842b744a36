"""Linear access rules for trainees.

Modules open one after another: a module unlocks once the previous one is
COMPLETED. Inside a module, a lesson unlocks once the previous lesson has been
opened, and the module's assignments unlock once every lesson has been opened.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Sequence, Set

from academy.models.progress import ProgressStatus


def is_module_unlocked(modules: Sequence[Mapping[str, Any]], module_id: int) -> bool:
    ids = [m["module_id"] for m in modules]
    if module_id not in ids:
        return False
    idx = ids.index(module_id)
    if idx == 0:
        return True
    return modules[idx - 1]["status"] == ProgressStatus.COMPLETED


def is_lesson_unlocked(
    lesson_id: int, ordered_lesson_ids: Sequence[int], accessed_ids: Set[int]
) -> bool:
    if lesson_id not in ordered_lesson_ids:
        return False
    idx = list(ordered_lesson_ids).index(lesson_id)
    if idx == 0:
        return True
    return ordered_lesson_ids[idx - 1] in accessed_ids


def is_assignment_unlocked(
    module_lesson_ids: Iterable[int], accessed_ids: Set[int]
) -> bool:
    return all(lid in accessed_ids for lid in module_lesson_ids)


def build_learning_path(
    progress_modules: Sequence[Mapping[str, Any]],
    lessons_by_module: Mapping[int, Sequence[Any]],
    assignments_by_module: Mapping[int, Sequence[Any]],
    accessed_ids: Set[int],
    submission_status: Optional[Mapping[int, Any]] = None,
) -> List[dict]:
    """Combine progress rows and curriculum into the trainee's map with lock flags."""

    submission_status = submission_status or {}
    path = []
    for entry in progress_modules:
        module_id = entry["module_id"]
        module_locked = not is_module_unlocked(progress_modules, module_id)
        lessons = list(lessons_by_module.get(module_id, ()))
        lesson_ids = [lesson.id for lesson in lessons]
        assignments_open = not module_locked and is_assignment_unlocked(
            lesson_ids, accessed_ids
        )
        path.append(
            {
                **entry,
                "locked": module_locked,
                "lessons": [
                    {
                        "id": lesson.id,
                        "title": lesson.title,
                        "order_index": lesson.order_index,
                        "accessed": lesson.id in accessed_ids,
                        "locked": module_locked
                        or not is_lesson_unlocked(lesson.id, lesson_ids, accessed_ids),
                    }
                    for lesson in lessons
                ],
                "assignments": [
                    {
                        "id": assignment.id,
                        "title": assignment.title,
                        "mandatory": assignment.mandatory,
                        "due_date": assignment.due_date,
                        "locked": not assignments_open,
                        "submission_status": submission_status.get(assignment.id),
                    }
                    for assignment in assignments_by_module.get(module_id, ())
                ],
            }
        )
    return path
