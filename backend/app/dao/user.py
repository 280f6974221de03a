"""
User Data Access Object.

WHY: UserDAO provides database operations for User model, following
the DAO pattern for separation of concerns and testability.
"""

from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.user import User
from app.core.exceptions import ResourceAlreadyExistsError


class UserDAO(BaseDAO[User]):
    """
    Data Access Object for User model.

    WHY: All user queries go through this DAO, ensuring consistent
    case-insensitive email handling and organization scoping.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve user by email address.

        WHY: Email is the unique identifier for authentication.
        Case-insensitive comparison prevents duplicate accounts with
        different casing (user@example.com vs USER@EXAMPLE.COM).

        Example:
            >>> user = await user_dao.get_by_email("Admin@Example.com")
            >>> user.email
            'admin@example.com'
        """
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        result = await self.session.execute(
            select(User.id).where(func.lower(User.email) == email.lower()).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def create_user(
        self,
        email: str,
        hashed_password: str,
        display_name: str,
        role: str = "member",
    ) -> User:
        """
        Create a new user without an organization.

        Raises:
            ResourceAlreadyExistsError: If email already exists
        """
        # WHY: Prevent duplicate accounts before attempting insert
        if await self.email_exists(email):
            raise ResourceAlreadyExistsError(
                message="User with this email already exists",
                resource_type="User",
            )

        return await self.create(
            email=email.lower(),
            hashed_password=hashed_password,
            display_name=display_name,
            role=role,
            is_active=True,
        )

    async def get_users_by_org(
        self,
        organization_id: int,
        skip: int = 0,
        limit: int = 100,
        include_inactive: bool = True,
    ) -> List[User]:
        """
        Retrieve the members of an organization, oldest account first.

        Args:
            organization_id: Organization ID
            skip: Pagination offset
            limit: Maximum records to return
            include_inactive: Whether deactivated users are included
        """
        query = select(User).where(User.organization_id == organization_id)
        if not include_inactive:
            query = query.where(User.is_active.is_(True))
        result = await self.session.execute(
            query.order_by(User.created_at, User.id).offset(skip).limit(limit)
        )
        return list(result.scalars().all())
