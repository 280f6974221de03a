"""
Organization Data Access Object.
"""

from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.organization import Organization


class OrganizationDAO(BaseDAO[Organization]):
    """Data Access Object for Organization model."""

    def __init__(self, session: AsyncSession):
        super().__init__(Organization, session)

    async def increment_member_count(self, organization_id: int, by: int = 1) -> Optional[Organization]:
        """
        Adjust the denormalized member counter.

        WHY: The increment is computed in SQL so two joins committing
        together cannot lose an update.
        """
        await self.session.execute(
            update(Organization)
            .where(Organization.id == organization_id)
            .values(member_count=Organization.member_count + by)
        )
        organization = await self.get_by_id(organization_id)
        if organization:
            await self.session.refresh(organization)
        return organization
