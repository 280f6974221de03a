"""
Invitation models.

WHAT: Pending offers to join an organization (by email) or a workspace
(by user id) with a proposed role.

WHY: Invitations are the only way into an existing organization or
workspace, so their state machine is part of the access-control surface:

    pending -> accepted | declined | expired

Settled invitations never return to pending. There is no background
sweeper; overdue pending invitations are marked expired by whichever code
path reads them next.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin, utc_now


class InvitationStatus(str, enum.Enum):
    """Invitation lifecycle states."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not InvitationStatus.PENDING


class InvitationMixin:
    """Columns and state helpers shared by both invitation kinds."""

    role = Column(String(50), nullable=False)
    status = Column(
        Enum(InvitationStatus, name="invitationstatus", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=InvitationStatus.PENDING,
        index=True,
    )
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    declined_at = Column(DateTime, nullable=True)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """True when still pending but past its expiry."""
        now = now or utc_now()
        return self.status == InvitationStatus.PENDING and self.expires_at <= now


class OrganizationInvitation(Base, PrimaryKeyMixin, TimestampMixin, InvitationMixin):
    """Invitation to join an organization, addressed to an email."""

    __tablename__ = "organization_invitations"

    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = Column(String(255), nullable=False, index=True)
    invited_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<OrganizationInvitation(id={self.id}, org={self.organization_id}, "
            f"email={self.email}, status={self.status})>"
        )


class WorkspaceInvitation(Base, PrimaryKeyMixin, TimestampMixin, InvitationMixin):
    """Invitation to join a workspace, addressed to an existing user."""

    __tablename__ = "workspace_invitations"

    workspace_id = Column(
        Integer,
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    invitee_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    invited_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<WorkspaceInvitation(id={self.id}, workspace={self.workspace_id}, "
            f"invitee={self.invitee_id}, status={self.status})>"
        )
