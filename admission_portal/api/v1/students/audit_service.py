"""
Audit logging for application and document state changes. Call on every state change.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from admission_portal.core.models import ApplicationAuditLog


async def log_audit(
    db: AsyncSession,
    entity_type: str,
    entity_id: UUID,
    action: str,
    *,
    from_status: Optional[str] = None,
    to_status: Optional[str] = None,
    performed_by: Optional[UUID] = None,
    performed_by_role: Optional[str] = None,
    remarks: Optional[str] = None,
) -> None:
    """Append one audit log entry. Caller must commit."""
    entry = ApplicationAuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        from_status=from_status,
        to_status=to_status,
        action=action,
        performed_by=performed_by,
        performed_by_role=performed_by_role,
        remarks=remarks,
        timestamp=datetime.utcnow(),
    )
    db.add(entry)


async def list_audit_entries(db: AsyncSession, entity_id: UUID) -> List[ApplicationAuditLog]:
    result = await db.execute(
        select(ApplicationAuditLog)
        .where(ApplicationAuditLog.entity_id == entity_id)
        .order_by(ApplicationAuditLog.timestamp.asc())
    )
    return list(result.scalars().all())
