"""
Organization model.

WHY: Organizations are the tenant boundary. Organization roles and every
workspace hang off an organization, and role management never crosses it.
"""

from sqlalchemy import Column, Integer, String, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


DEFAULT_ORGANIZATION_SETTINGS = {
    "allow_public_workspaces": False,
    "require_approval_for_new_members": True,
}


class Organization(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Organization model representing a tenant.

    Invariants:
    - Exactly one owner (owner_id). The owner's organization_role is
      ORG_OWNER and only a SUPER_ADMIN actor may change it.
    - member_count is a denormalized counter: 1 at creation (the owner),
      incremented once per accepted invitation.
    """

    __tablename__ = "organizations"

    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    owner_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    settings = Column(JSON, nullable=False, default=dict)
    member_count = Column(Integer, nullable=False, default=1)

    owner = relationship("User", foreign_keys=[owner_id])
    users = relationship(
        "User",
        back_populates="organization",
        foreign_keys="User.organization_id",
        lazy="dynamic",
    )
    workspaces = relationship("Workspace", back_populates="organization", lazy="dynamic")

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name})>"
