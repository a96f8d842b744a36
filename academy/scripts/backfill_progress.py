"""Recompute progress for every enrollment and issue certificates that are due.

Run after changing a program's curriculum so trainees who already met the
completion rules get their progress rows and certificates.
"""

import logging

import academy.models  # noqa: F401  # load all models for relationship resolution

from academy.core.db import session_scope
from academy.core.errors import DomainError
from academy.models.cohorts import Cohort
from academy.models.enrollments import Enrollment
from academy.repositories.CertificatesRepository import CertificatesRepository
from academy.repositories.ProgressRepository import ProgressRepository

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    with session_scope() as session:
        progress = ProgressRepository(session)
        certificates = CertificatesRepository(session)

        pairs = (
            session.query(Enrollment.trainee_id, Cohort.program_id)
            .join(Cohort, Cohort.id == Enrollment.cohort_id)
            .filter(Cohort.program_id.isnot(None))
            .distinct()
            .all()
        )
        if not pairs:
            logger.info("No enrollments attached to a program; nothing to do.")
            return

        issued = 0
        for trainee_id, program_id in pairs:
            progress.initialize_for_enrollment(trainee_id, program_id)
            progress.revalidate_program(trainee_id, program_id)
            session.commit()
            summary = progress.get_program_progress(trainee_id, program_id)
            if not summary["all_completed"]:
                continue
            if certificates.get_for_trainee_program(trainee_id, program_id):
                continue
            try:
                certificates.get_or_create(trainee_id, program_id)
                issued += 1
            except DomainError as exc:
                session.rollback()
                logger.warning(
                    "Skipped certificate for trainee %s program %s: %s",
                    trainee_id,
                    program_id,
                    exc,
                )

        logger.info(
            "Recomputed progress for %d enrollments; issued %d certificates.",
            len(pairs),
            issued,
        )


if __name__ == "__main__":
    main()
