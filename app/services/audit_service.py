from sqlalchemy.orm import Session
from typing import Optional, Dict, Any

from app.models.audit_log import AuditLog


class AuditService:
    @staticmethod
    def log_action(
        db: Session,
        action: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        user_id: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
        commit: bool = True
    ) -> AuditLog:
        """
        Record an audit entry.

        Pass ``commit=False`` when the entry belongs to a larger unit of work
        so it is committed, or rolled back, together with it.
        """
        log = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes
        )
        db.add(log)
        if commit:
            db.commit()
        else:
            db.flush()
        return log
