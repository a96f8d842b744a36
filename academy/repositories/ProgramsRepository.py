from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from academy.core.errors import DomainError, NotFoundError
from academy.models.audit_logs import AuditAction
from academy.models.cohorts import Cohort
from academy.models.programs import Program, ProgramStatus
from academy.repositories.AuditRepository import AuditRepository

_EDITABLE_FIELDS = ("name", "description", "image_url", "duration", "skill_outcomes")


class ProgramsRepository:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditRepository(db)

    def list(self, *, status: Optional[ProgramStatus] = None) -> List[Program]:
        query = self.db.query(Program)
        if status is not None:
            query = query.filter(Program.status == status)
        return query.order_by(Program.created_at.desc(), Program.id.desc()).all()

    def get(self, program_id: int) -> Program:
        program = self.db.get(Program, program_id)
        if program is None:
            raise NotFoundError("Program not found")
        return program

    def create(self, *, actor_id: int, **fields) -> Program:
        # New programs stay INACTIVE until a cohort is attached.
        program = Program(status=ProgramStatus.INACTIVE)
        for key in _EDITABLE_FIELDS:
            if key in fields:
                setattr(program, key, fields[key])
        self.db.add(program)
        self.db.flush()
        self.audit.log(
            actor_id=actor_id,
            action=AuditAction.PROGRAM_CREATE,
            entity_type="Program",
            entity_id=program.id,
            details={"name": program.name},
        )
        self.db.commit()
        self.db.refresh(program)
        return program

    def update(self, program_id: int, *, actor_id: int, **fields) -> Program:
        program = self.get(program_id)
        changed = {}
        for key in _EDITABLE_FIELDS:
            if key in fields:
                setattr(program, key, fields[key])
                changed[key] = fields[key]
        self.audit.log(
            actor_id=actor_id,
            action=AuditAction.PROGRAM_UPDATE,
            entity_type="Program",
            entity_id=program.id,
            details={"fields": sorted(changed)},
        )
        self.db.commit()
        self.db.refresh(program)
        return program

    def assign_to_cohorts(
        self, program_id: int, cohort_ids: Iterable[int], *, actor_id: int
    ) -> Program:
        program = self.get(program_id)
        ids = sorted({int(cid) for cid in cohort_ids})
        cohorts = self.db.query(Cohort).filter(Cohort.id.in_(ids)).all() if ids else []
        missing = set(ids) - {c.id for c in cohorts}
        if missing:
            raise NotFoundError(f"Cohort not found: {sorted(missing)[0]}")

        for cohort in self.db.query(Cohort).filter(Cohort.program_id == program.id):
            cohort.program_id = None
        for cohort in cohorts:
            cohort.program_id = program.id
        program.status = ProgramStatus.ACTIVE if cohorts else ProgramStatus.INACTIVE

        self.audit.log(
            actor_id=actor_id,
            action=AuditAction.PROGRAM_UPDATE,
            entity_type="Program",
            entity_id=program.id,
            details={"cohort_ids": ids, "status": program.status.value},
        )
        self.db.commit()
        self.db.refresh(program)
        return program

    def activate(self, program_id: int, *, actor_id: int) -> Program:
        program = self.get(program_id)
        has_cohort = (
            self.db.query(Cohort.id).filter(Cohort.program_id == program.id).first()
            is not None
        )
        if not has_cohort:
            raise DomainError("Assign at least one cohort before activating the program")
        program.status = ProgramStatus.ACTIVE
        self.audit.log(
            actor_id=actor_id,
            action=AuditAction.PROGRAM_ACTIVATE,
            entity_type="Program",
            entity_id=program.id,
        )
        self.db.commit()
        self.db.refresh(program)
        return program

    def delete(self, program_id: int, *, actor_id: int) -> None:
        program = self.get(program_id)
        self.audit.log(
            actor_id=actor_id,
            action=AuditAction.PROGRAM_DELETE,
            entity_type="Program",
            entity_id=program.id,
            details={"name": program.name},
        )
        self.db.delete(program)
        self.db.commit()
