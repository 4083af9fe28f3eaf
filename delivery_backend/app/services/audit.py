"""
Audit logging service for order lifecycle and admin actions.

Entries are written inside the caller's transaction: `log_event` flushes,
the caller commits, so an audit row never outlives a rolled-back change.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from delivery_backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    TOKEN_REVOKED = "TOKEN_REVOKED"

    # Orders
    ORDER_CREATED = "ORDER_CREATED"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    PAYMENT_STATUS_CHANGED = "PAYMENT_STATUS_CHANGED"
    FEEDBACK_RECORDED = "FEEDBACK_RECORDED"

    # Drivers
    DRIVER_REGISTERED = "DRIVER_REGISTERED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[str] = None,
    actor_role: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit entry to the current transaction.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action (None for system actions)
        actor_role: Role claim of the actor
        resource_type: e.g. "order", "driver"
        resource_id: ID of the resource acted upon
        metadata: Additional context as JSON

    Returns:
        Pending AuditLog instance (committed by the caller)
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        meta_data=metadata,
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    resource_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if resource_id:
        query = query.where(AuditLog.resource_id == resource_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
