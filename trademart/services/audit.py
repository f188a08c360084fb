"""
Audit trail helper shared by the services.

``record_audit`` stages an AuditLog row in the caller's transaction. The
matching audit log line is held on the session and written only once that
transaction commits; a rollback discards it with the row.
"""
from typing import Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.orm import Session

from trademart.core.logging import audit_logger, redact
from trademart.db.models import AuditLog

_PENDING_KEY = "pending_audit_lines"


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def record_audit(
    db: Session,
    action: str,
    user_id: Optional[int],
    entity_type: str,
    entity_id: Optional[int],
    details: Optional[dict] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """Stage an AuditLog row in the caller's transaction; log it after commit."""
    entry = AuditLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=redact(details) if details else details,
        ip_address=ip_address,
    )
    db.add(entry)
    db.info.setdefault(_PENDING_KEY, []).append({
        "action": action,
        "user_id": user_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "details": details,
    })
    return entry


@event.listens_for(Session, "after_commit")
def _emit_committed_audit_lines(session: Session):
    for line in session.info.pop(_PENDING_KEY, []):
        audit_logger.log(**line)


@event.listens_for(Session, "after_rollback")
def _discard_rolled_back_audit_lines(session: Session):
    session.info.pop(_PENDING_KEY, None)
