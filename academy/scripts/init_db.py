"""Create the schema, seed role lookups and optionally a first admin.

    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=... python -m academy.scripts.init_db
"""

import logging
import os

import academy.models  # noqa: F401  # load all models for relationship resolution

from academy.core.db import engine, session_scope
from academy.models.base import Base
from academy.models.lookups import LkRole
from academy.models.roles import RolesEnum
from academy.repositories.UsersRepository import UsersRepository
from academy.services.security import hash_password

logger = logging.getLogger(__name__)


def seed_roles(session) -> int:
    existing = {code for (code,) in session.query(LkRole.code).all()}
    added = 0
    for role in RolesEnum:
        if role.value not in existing:
            session.add(LkRole(code=role.value))
            added += 1
    session.commit()
    return added


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    with session_scope() as session:
        added = seed_roles(session)
        logger.info("Schema ready; %d role rows added.", added)

        email = os.getenv("ADMIN_EMAIL")
        password = os.getenv("ADMIN_PASSWORD")
        if not email or not password:
            return
        repo = UsersRepository(session)
        if repo.ExistsEmail(email):
            logger.info("Admin %s already exists.", email)
            return
        repo.CreateUser(
            email=email,
            password_hash=hash_password(password),
            name=os.getenv("ADMIN_NAME", "Administrator"),
            role=RolesEnum.ADMIN,
        )
        logger.info("Created admin %s.", email)


if __name__ == "__main__":
    main()
