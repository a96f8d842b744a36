from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from academy.core.errors import DomainError, NotFoundError
from academy.models.assignments import Assignment
from academy.models.audit_logs import AuditAction
from academy.models.courses import Course, CourseStatus
from academy.models.lessons import Lesson
from academy.models.modules import Module
from academy.models.programs import Program
from academy.models.users import User
from academy.repositories.AuditRepository import AuditRepository
from academy.repositories.ProgressRepository import ProgressRepository

_COURSE_FIELDS = (
    "name",
    "description",
    "image_url",
    "duration",
    "skill_outcomes",
    "start_date",
    "end_date",
    "program_id",
)
_MODULE_FIELDS = (
    "title",
    "description",
    "inspiring_quotes",
    "order_index",
    "start_date",
    "end_date",
)
_LESSON_FIELDS = ("title", "content", "video_url", "resource_url", "order_index")
_ASSIGNMENT_FIELDS = ("title", "description", "instructions", "due_date", "order_index")


def _apply(obj: Any, fields: Dict[str, Any], allowed: tuple[str, ...]) -> None:
    for key in allowed:
        if key in fields:
            setattr(obj, key, fields[key])


class CurriculumRepository:
    """Courses and the module / lesson / assignment tree beneath them."""

    def __init__(self, db: Session):
        self.db = db

    def _ensure_program(self, program_id: Optional[int]) -> None:
        if program_id is not None and self.db.get(Program, program_id) is None:
            raise NotFoundError("Program not found")

    def _next_order(self, model, parent_column, parent_id: int) -> int:
        current = (
            self.db.query(func.max(model.order_index))
            .filter(parent_column == parent_id)
            .scalar()
        )
        return 0 if current is None else current + 1

    # ---------- Courses ----------
    def list_courses(self, user: User, *, program_id: Optional[int] = None) -> List[Course]:
        query = self.db.query(Course)
        if not user.is_admin:
            query = query.filter(Course.status == CourseStatus.ACTIVE)
        if program_id is not None:
            query = query.filter(Course.program_id == program_id)
        return query.order_by(Course.created_at.desc(), Course.id.desc()).all()

    def get_course(self, course_id: int) -> Course:
        course = self.db.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course not found")
        return course

    def create_course(self, user: User, **fields) -> Course:
        self._ensure_program(fields.get("program_id"))
        # Mentor-authored courses wait for an admin before they are listed.
        status = CourseStatus.ACTIVE if user.is_admin else CourseStatus.PENDING
        course = Course(status=status)
        _apply(course, fields, _COURSE_FIELDS)
        self.db.add(course)
        self.db.commit()
        self.db.refresh(course)
        return course

    def update_course(self, course_id: int, **fields) -> Course:
        course = self.get_course(course_id)
        if "program_id" in fields:
            self._ensure_program(fields["program_id"])
        _apply(course, fields, _COURSE_FIELDS)
        self.db.commit()
        self.db.refresh(course)
        return course

    def approve_course(self, course_id: int, program_id: Optional[int] = None) -> Course:
        course = self.get_course(course_id)
        if program_id is not None:
            self._ensure_program(program_id)
            course.program_id = program_id
        course.status = CourseStatus.ACTIVE
        self.db.commit()
        self.db.refresh(course)
        return course

    def delete_course(self, course_id: int, *, actor_id: int) -> None:
        course = self.get_course(course_id)
        AuditRepository(self.db).log(
            actor_id=actor_id,
            action=AuditAction.COURSE_DELETE,
            entity_type="Course",
            entity_id=course.id,
            details={"name": course.name},
        )
        self.db.delete(course)
        self.db.commit()

    # ---------- Modules ----------
    def list_modules(
        self, *, course_id: Optional[int] = None, program_id: Optional[int] = None
    ) -> List[Module]:
        if program_id is not None and course_id is None:
            return ProgressRepository(self.db).program_modules(program_id)
        query = self.db.query(Module)
        if course_id is not None:
            query = query.filter(Module.course_id == course_id)
        return query.order_by(Module.course_id, Module.order_index, Module.id).all()

    def get_module(self, module_id: int) -> Module:
        module = self.db.get(Module, module_id)
        if module is None:
            raise NotFoundError("Module not found")
        return module

    def create_module(self, course_id: int, **fields) -> Module:
        course = self.get_course(course_id)
        module = Module(course_id=course.id)
        _apply(module, fields, _MODULE_FIELDS)
        if fields.get("order_index") is None:
            module.order_index = self._next_order(Module, Module.course_id, course.id)
        self.db.add(module)
        self.db.flush()
        ProgressRepository(self.db).initialize_module_for_enrolled(module)
        self.db.commit()
        self.db.refresh(module)
        return module

    def update_module(self, module_id: int, **fields) -> Module:
        module = self.get_module(module_id)
        _apply(module, fields, _MODULE_FIELDS)
        self.db.commit()
        self.db.refresh(module)
        return module

    def delete_module(self, module_id: int) -> None:
        self.db.delete(self.get_module(module_id))
        self.db.commit()

    # ---------- Lessons ----------
    def list_lessons(self, module_id: int) -> List[Lesson]:
        return (
            self.db.query(Lesson)
            .filter(Lesson.module_id == module_id)
            .order_by(Lesson.order_index, Lesson.id)
            .all()
        )

    def get_lesson(self, lesson_id: int) -> Lesson:
        lesson = self.db.get(Lesson, lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson not found")
        return lesson

    def create_lesson(self, module_id: int, **fields) -> Lesson:
        module = self.get_module(module_id)
        lesson = Lesson(module_id=module.id)
        _apply(lesson, fields, _LESSON_FIELDS)
        if fields.get("order_index") is None:
            lesson.order_index = self._next_order(Lesson, Lesson.module_id, module.id)
        self.db.add(lesson)
        self.db.commit()
        self.db.refresh(lesson)
        return lesson

    def update_lesson(self, lesson_id: int, **fields) -> Lesson:
        lesson = self.get_lesson(lesson_id)
        _apply(lesson, fields, _LESSON_FIELDS)
        self.db.commit()
        self.db.refresh(lesson)
        return lesson

    def delete_lesson(self, lesson_id: int) -> None:
        self.db.delete(self.get_lesson(lesson_id))
        self.db.commit()

    # ---------- Assignments ----------
    def list_assignments(self, module_id: int) -> List[Assignment]:
        return (
            self.db.query(Assignment)
            .filter(Assignment.module_id == module_id)
            .order_by(Assignment.order_index, Assignment.id)
            .all()
        )

    def get_assignment(self, assignment_id: int) -> Assignment:
        assignment = self.db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment not found")
        return assignment

    def _mandatory_count(self, module_id: int, exclude_id: Optional[int] = None) -> int:
        query = self.db.query(func.count(Assignment.id)).filter(
            Assignment.module_id == module_id, Assignment.mandatory.is_(True)
        )
        if exclude_id is not None:
            query = query.filter(Assignment.id != exclude_id)
        return query.scalar() or 0

    def create_assignment(
        self, module_id: int, *, mandatory: Optional[bool] = None, **fields
    ) -> Assignment:
        module = self.get_module(module_id)
        existing = (
            self.db.query(func.count(Assignment.id))
            .filter(Assignment.module_id == module.id)
            .scalar()
            or 0
        )
        if mandatory is None:
            mandatory = existing == 0
        if mandatory and self._mandatory_count(module.id) > 0:
            raise DomainError("Module already has a mandatory assignment")
        assignment = Assignment(module_id=module.id, mandatory=mandatory)
        _apply(assignment, fields, _ASSIGNMENT_FIELDS)
        if fields.get("order_index") is None:
            assignment.order_index = self._next_order(
                Assignment, Assignment.module_id, module.id
            )
        self.db.add(assignment)
        self.db.commit()
        self.db.refresh(assignment)
        return assignment

    def update_assignment(
        self, assignment_id: int, *, mandatory: Optional[bool] = None, **fields
    ) -> Assignment:
        assignment = self.get_assignment(assignment_id)
        if mandatory is not None:
            if mandatory and self._mandatory_count(
                assignment.module_id, exclude_id=assignment.id
            ):
                raise DomainError("Module already has a mandatory assignment")
            assignment.mandatory = mandatory
        _apply(assignment, fields, _ASSIGNMENT_FIELDS)
        self.db.commit()
        self.db.refresh(assignment)
        return assignment

    def delete_assignment(self, assignment_id: int) -> None:
        self.db.delete(self.get_assignment(assignment_id))
        self.db.commit()

    # ---------- Structure validation ----------
    def validate_module(self, module_id: int) -> Dict[str, Any]:
        module = self.db.get(Module, module_id)
        if module is None:
            return {
                "module_id": module_id,
                "title": "",
                "status": "incomplete",
                "has_lessons": False,
                "lesson_count": 0,
                "mandatory_assignment_count": 0,
                "errors": ["Module not found"],
            }
        lesson_count = (
            self.db.query(func.count(Lesson.id))
            .filter(Lesson.module_id == module.id)
            .scalar()
            or 0
        )
        mandatory = self._mandatory_count(module.id)
        errors = []
        if lesson_count < 1:
            errors.append("Module must contain at least one lesson")
        if mandatory == 0:
            errors.append("Module must have exactly one mandatory assignment")
        elif mandatory > 1:
            errors.append(
                f"Module must have exactly one mandatory assignment (found {mandatory})"
            )
        return {
            "module_id": module.id,
            "title": module.title,
            "status": "incomplete" if errors else "complete",
            "has_lessons": lesson_count > 0,
            "lesson_count": lesson_count,
            "mandatory_assignment_count": mandatory,
            "errors": errors,
        }

    def validate_program_structure(self, program_id: int) -> Dict[str, Any]:
        self._ensure_program(program_id)
        modules = ProgressRepository(self.db).program_modules(program_id)
        results = [self.validate_module(m.id) for m in modules]
        return {
            "program_id": program_id,
            "valid": all(r["status"] == "complete" for r in results),
            "modules": results,
        }
