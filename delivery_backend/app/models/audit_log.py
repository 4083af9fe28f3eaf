"""
Audit Log Database Model.

Tracks order lifecycle actions and admin operations for compliance and support.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from delivery_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - ORDER_CREATED / ORDER_CANCELLED
    - DRIVER_ASSIGNED / ORDER_STATUS_CHANGED
    - PAYMENT_STATUS_CHANGED / FEEDBACK_RECORDED
    - DRIVER_REGISTERED / TOKEN_REVOKED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(String(64), index=True, nullable=True)
    actor_role = Column(String(20), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # What it was performed on
    resource_type = Column(String(50), nullable=True)
    resource_id = Column(String(64), index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, resource={self.resource_id})>"
