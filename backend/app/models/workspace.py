"""
Workspace and workspace membership models.

WHY: Workspaces are the third tier of the permission model. A user's
workspace role comes either from owning the workspace or from a
WorkspaceMember row.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.core.roles import Role
from app.models.base import Base, TimestampMixin, PrimaryKeyMixin, utc_now


class Workspace(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Workspace model.

    Invariants:
    - Always belongs to exactly one organization.
    - The owner is not a WorkspaceMember row; ownership is owner_id and
      resolves to WORKSPACE_ADMIN.
    - member_count == number of WorkspaceMember rows + 1 (the owner).
    """

    __tablename__ = "workspaces"

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_private = Column(Boolean, nullable=False, default=True)
    member_count = Column(Integer, nullable=False, default=1)

    owner = relationship("User", foreign_keys=[owner_id])
    organization = relationship("Organization", back_populates="workspaces")
    members = relationship(
        "WorkspaceMember",
        back_populates="workspace",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Workspace(id={self.id}, name={self.name}, org={self.organization_id})>"


class WorkspaceMember(Base, PrimaryKeyMixin):
    """
    Membership of a user in a workspace.

    A user appears at most once per workspace, enforced by the unique
    constraint on (workspace_id, user_id).
    """

    __tablename__ = "workspace_members"
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_member"),
    )

    workspace_id = Column(
        Integer,
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(String(50), nullable=False, default=Role.MEMBER.value)
    invited_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    joined_at = Column(DateTime, nullable=False, default=utc_now)

    workspace = relationship("Workspace", back_populates="members")
    user = relationship("User", foreign_keys=[user_id])

    def __repr__(self) -> str:
        return (
            f"<WorkspaceMember(workspace_id={self.workspace_id}, "
            f"user_id={self.user_id}, role={self.role})>"
        )
