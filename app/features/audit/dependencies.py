"""
Audit logging helpers.
"""
from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.audit.models import AuditLog
from app.utils import get_logger


log = get_logger(__name__)


async def create_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    company_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit log entry to the current transaction.
    
    The entry is flushed but not committed; it lands or rolls back together
    with the change it records.
    
    Args:
        db: Database session
        user_id: User performing the action (None for scheduled jobs)
        action: Action performed (e.g. "grant", "revoke", "cascade", "cleanup")
        resource_type: Type of resource (e.g. "company_module_access")
        resource_id: ID of the resource
        company_id: Company context
        details: Additional details
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        company_id=company_id,
        details=details,
    )
    db.add(audit_log)
    await db.flush()
    
    log.debug(
        "Audit: user=%s action=%s resource=%s/%s company=%s",
        user_id, action, resource_type, resource_id, company_id
    )
    return audit_log
