from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from academy.models.audit_logs import AuditAction, AuditLog

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


class AuditRepository:
    """Append-only trail of administrative actions.

    Entries are flushed into the caller's transaction, so an action and its
    audit row are committed (or rolled back) together.
    """

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        *,
        actor_id: Optional[int],
        action: AuditAction,
        entity_type: str,
        entity_id: Any = None,
        details: Optional[dict] = None,
    ) -> AuditLog:
        entry = AuditLog(
            actor_id=actor_id,
            action=action.value,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=json.dumps(details, default=str) if details else None,
        )
        self.db.add(entry)
        self.db.flush()
        logger.info(
            "audit %s %s:%s by %s", action.value, entity_type, entity_id, actor_id
        )
        return entry

    def list(
        self, *, entity_type: Optional[str] = None, limit: Optional[int] = None
    ) -> List[AuditLog]:
        if limit is None:
            limit = DEFAULT_LIMIT
        limit = max(1, min(int(limit), MAX_LIMIT))
        query = self.db.query(AuditLog)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()

    @staticmethod
    def parse_details(entry: AuditLog) -> Optional[dict]:
        if not entry.details:
            return None
        try:
            return json.loads(entry.details)
        except ValueError:
            return {"raw": entry.details}
