from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from academy.core.errors import (
    CertificateNotEligibleError,
    CertificateRevokedError,
    DomainError,
    NotFoundError,
)
from academy.core.settings import settings
from academy.core.timeutils import utcnow
from academy.models.audit_logs import AuditAction
from academy.models.certificates import Certificate
from academy.models.programs import Program
from academy.models.users import User
from academy.repositories.AuditRepository import AuditRepository
from academy.repositories.ProgressRepository import ProgressRepository
from academy.services.certificate_pdf import (
    render_certificate_pdf,
    store_certificate_pdf,
)

logger = logging.getLogger(__name__)

NOT_COMPLETED = "Program not completed. Complete all modules to get certificate."


class CertificatesRepository:
    def __init__(self, db: Session):
        self.db = db

    def _generate_certificate_id(self) -> str:
        return f"{settings.certificate_prefix}-{uuid.uuid4().hex[:8].upper()}"

    def _ensure_unique_certificate_id(self) -> str:
        while True:
            candidate = self._generate_certificate_id()
            exists = (
                self.db.query(Certificate.id)
                .filter(Certificate.certificate_id == candidate)
                .first()
            )
            if not exists:
                return candidate

    def get_for_trainee_program(
        self, trainee_id: int, program_id: int
    ) -> Optional[Certificate]:
        return (
            self.db.query(Certificate)
            .filter(
                Certificate.trainee_id == trainee_id,
                Certificate.program_id == program_id,
            )
            .first()
        )

    def get_by_certificate_id(self, certificate_id: str) -> Optional[Certificate]:
        cleaned = (certificate_id or "").strip().upper()
        if not cleaned:
            return None
        return (
            self.db.query(Certificate)
            .options(joinedload(Certificate.trainee), joinedload(Certificate.program))
            .filter(Certificate.certificate_id == cleaned)
            .first()
        )

    def list(
        self, *, trainee_id: Optional[int] = None, program_id: Optional[int] = None
    ) -> List[Certificate]:
        query = self.db.query(Certificate).options(
            joinedload(Certificate.trainee), joinedload(Certificate.program)
        )
        if trainee_id is not None:
            query = query.filter(Certificate.trainee_id == trainee_id)
        if program_id is not None:
            query = query.filter(Certificate.program_id == program_id)
        return query.order_by(Certificate.issued_at.desc(), Certificate.id.desc()).all()

    def eligibility(self, trainee_id: int, program_id: int) -> Dict[str, Any]:
        progress = ProgressRepository(self.db).get_program_progress(trainee_id, program_id)
        existing = self.get_for_trainee_program(trainee_id, program_id)
        eligible = progress["all_completed"]
        if not eligible:
            reason = NOT_COMPLETED
        elif existing is not None and existing.is_revoked:
            eligible = False
            reason = "Certificate was revoked"
        else:
            reason = None
        return {
            "eligible": eligible,
            "reason": reason,
            "progress": progress,
            "certificate_id": existing.certificate_id if existing else None,
        }

    def get_or_create(
        self,
        trainee_id: int,
        program_id: int,
        *,
        approved_by_id: Optional[int] = None,
        auto_issued: bool = True,
    ) -> Certificate:
        progress = ProgressRepository(self.db).get_program_progress(trainee_id, program_id)
        if not progress["all_completed"]:
            raise CertificateNotEligibleError(NOT_COMPLETED)

        existing = self.get_for_trainee_program(trainee_id, program_id)
        if existing is not None:
            if existing.is_revoked:
                raise CertificateRevokedError("Certificate was revoked")
            return existing

        trainee = self.db.get(User, trainee_id)
        program = self.db.get(Program, program_id)
        if trainee is None or program is None:
            raise NotFoundError("Trainee or program not found")

        certificate_id = self._ensure_unique_certificate_id()
        issued_at = utcnow()
        pdf = render_certificate_pdf(
            trainee_name=trainee.name,
            program_name=program.name,
            certificate_id=certificate_id,
            issued_at=issued_at,
        )
        filename = store_certificate_pdf(certificate_id, pdf)

        cert = Certificate(
            trainee_id=trainee_id,
            program_id=program_id,
            certificate_id=certificate_id,
            pdf_url=f"/certificates/file/{filename}",
            issued_at=issued_at,
            approved_by_id=approved_by_id,
            auto_issued=auto_issued,
        )
        self.db.add(cert)
        self.db.commit()
        self.db.refresh(cert)
        logger.info(
            "Issued certificate %s to trainee %s for program %s",
            certificate_id,
            trainee_id,
            program_id,
        )
        return cert

    def approve(self, trainee_id: int, program_id: int, *, admin_id: int) -> Certificate:
        status = self.eligibility(trainee_id, program_id)
        if not status["eligible"]:
            if status["reason"] == NOT_COMPLETED:
                raise CertificateNotEligibleError(NOT_COMPLETED)
            raise CertificateRevokedError(status["reason"])

        existing = self.get_for_trainee_program(trainee_id, program_id)
        cert = existing or self.get_or_create(
            trainee_id, program_id, approved_by_id=admin_id, auto_issued=False
        )
        AuditRepository(self.db).log(
            actor_id=admin_id,
            action=AuditAction.CERTIFICATE_APPROVE,
            entity_type="Certificate",
            entity_id=cert.certificate_id,
            details={"trainee_id": trainee_id, "program_id": program_id},
        )
        self.db.commit()
        return cert

    def revoke(self, certificate_id: str, reason: str, *, admin_id: int) -> Certificate:
        cert = self.get_by_certificate_id(certificate_id)
        if cert is None:
            raise NotFoundError("Certificate not found")
        if cert.is_revoked:
            raise DomainError("Certificate already revoked")
        cert.revoked_at = utcnow()
        cert.revoked_reason = reason
        AuditRepository(self.db).log(
            actor_id=admin_id,
            action=AuditAction.CERTIFICATE_REVOKE,
            entity_type="Certificate",
            entity_id=cert.certificate_id,
            details={"reason": reason},
        )
        self.db.commit()
        self.db.refresh(cert)
        logger.info("Revoked certificate %s", cert.certificate_id)
        return cert
