"""
User model.

WHY: Users carry the first two tiers of the permission model: a flat system
role and, once onboarding is complete, an organization and a role inside it.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, Boolean
from sqlalchemy.orm import relationship

from app.core.roles import Role
from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class User(Base, PrimaryKeyMixin, TimestampMixin):
    """
    User model representing individuals who use the platform.

    Lifecycle:
    - Registration creates the user with system role MEMBER and no organization.
    - organization_id / organization_role are populated exactly once, when the
      user creates or joins an organization.
    - Users are deactivated (is_active=False), never hard-deleted.

    Roles are stored as plain strings and normalized on read by the identity
    resolvers, so rows written by older clients with mixed casing still
    resolve.
    """

    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=True)

    # Tier 1: system role
    role = Column(String(50), nullable=False, default=Role.MEMBER.value)

    # Tier 2: organization membership. NULL means onboarding is incomplete.
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
        index=True,
    )
    organization_role = Column(String(50), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    organization = relationship(
        "Organization",
        back_populates="users",
        foreign_keys=[organization_id],
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
