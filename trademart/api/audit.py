"""
Audit Log API routes.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc
from sqlalchemy.orm import Session, joinedload

from trademart.api.serializers import ok
from trademart.core.rbac import require_admin
from trademart.db.models import AuditLog
from trademart.db.session import get_db

router = APIRouter(prefix="/api/audit", tags=["Audit"])


@router.get("/logs")
async def list_audit_logs(
    action: Optional[str] = Query(None, description="Filter by action type"),
    entity_type: Optional[str] = Query(None, alias="entityType", description="Filter by entity type"),
    user_id: Optional[int] = Query(None, alias="userId", description="Filter by user"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List audit logs (admin only)."""
    query = db.query(AuditLog)

    if action:
        query = query.filter(AuditLog.action == action)

    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)

    if user_id:
        query = query.filter(AuditLog.user_id == user_id)

    if start_date:
        query = query.filter(AuditLog.timestamp >= start_date)

    if end_date:
        query = query.filter(AuditLog.timestamp <= end_date)

    total = query.count()
    logs = query.options(joinedload(AuditLog.user)).order_by(
        desc(AuditLog.timestamp), desc(AuditLog.id)
    ).offset(offset).limit(limit).all()

    return ok([
        {
            "id": log.id,
            "timestamp": log.timestamp.isoformat() if log.timestamp else None,
            "userId": log.user_id,
            "userEmail": log.user.email if log.user else None,
            "action": log.action,
            "entityType": log.entity_type,
            "entityId": log.entity_id,
            "details": log.details,
            "ipAddress": log.ip_address,
        }
        for log in logs
    ], total=total)
