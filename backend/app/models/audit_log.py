"""
Audit Log Model.

WHAT: SQLAlchemy model for the append-only record of access-control changes.

WHY: Every role change, status change, invitation and membership change
must be traceable to an actor, a target, a scope and a reason. Rows are
never updated or deleted (the DAO refuses both).

HOW: One row per event with the before/after values in a JSON column.
(PostgreSQL uses JSONB, SQLite uses JSON for compatibility)
"""

import enum
from sqlalchemy import Column, Integer, String, Enum, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class AuditAction(str, enum.Enum):
    """
    Enumeration of auditable actions.

    WHY: Using an enum ensures only valid, documented actions can be
    logged, making it easier to query and analyze audit data.
    """

    # Authorization events
    ROLE_CHANGE = "ROLE_CHANGE"
    SYSTEM_ROLE_CHANGE = "SYSTEM_ROLE_CHANGE"
    STATUS_CHANGE = "STATUS_CHANGE"

    # Organization events
    ORG_CREATED = "ORG_CREATED"
    INVITATION_SENT = "INVITATION_SENT"
    INVITATION_DECLINED = "INVITATION_DECLINED"
    MEMBER_JOINED = "MEMBER_JOINED"

    # Workspace events
    WORKSPACE_CREATED = "WORKSPACE_CREATED"
    WORKSPACE_UPDATED = "WORKSPACE_UPDATED"
    WORKSPACE_DELETED = "WORKSPACE_DELETED"
    WORKSPACE_INVITATION_SENT = "WORKSPACE_INVITATION_SENT"
    WORKSPACE_MEMBER_ADDED = "WORKSPACE_MEMBER_ADDED"
    WORKSPACE_MEMBER_REMOVED = "WORKSPACE_MEMBER_REMOVED"
    WORKSPACE_ROLE_CHANGE = "WORKSPACE_ROLE_CHANGE"


class AuditLog(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Immutable audit log entry.

    Fields:
    - action: What type of event occurred (AuditAction enum)
    - org_id / workspace_id: Scope of the event
    - actor_user_id: Who performed the action
    - target_user_id: Whose access changed (nullable for non-user targets)
    - resource_type / resource_id: The affected record
    - changes: {"field": {"before": ..., "after": ...}}
    - reason: Caller-supplied or generated justification
    - extra_data: Additional context
    - ip_address / user_agent: Request context for forensics
    - created_at: Timestamp (from TimestampMixin)
    """

    __tablename__ = "audit_logs"

    actor_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    target_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    action = Column(Enum(AuditAction), nullable=False, index=True)

    resource_type = Column(String(100), nullable=False, index=True)
    resource_id = Column(Integer, nullable=True, index=True)

    # Plain ids, no foreign keys: deleting a workspace or organization must
    # not rewrite the scope of entries that already exist.
    org_id = Column(Integer, nullable=True, index=True)
    workspace_id = Column(Integer, nullable=True, index=True)

    # Example: {"role": {"before": "member", "after": "manager"}}
    changes = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)

    # NOTE: Named 'extra_data' because 'metadata' is reserved by SQLAlchemy
    extra_data = Column(JSON, nullable=True)

    ip_address = Column(String(45), nullable=True, index=True)  # IPv6 max length
    user_agent = Column(Text, nullable=True)

    actor = relationship("User", foreign_keys=[actor_user_id])
    target_user = relationship("User", foreign_keys=[target_user_id])

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action={self.action.value}, "
            f"actor_user_id={self.actor_user_id}, resource_type={self.resource_type})>"
        )
