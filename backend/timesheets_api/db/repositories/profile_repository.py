"""
Profile repository for database operations.
"""

from typing import Iterable, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from timesheets_api.db.repositories.base_repository import BaseRepository
from timesheets_api.models.profile import Profile, UserRole


class ProfileRepository(BaseRepository[Profile]):
    """Repository for user profile operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Profile, session)

    async def get_by_email(self, email: str) -> Optional[Profile]:
        """Get profile by email (case-insensitive)."""
        result = await self.session.execute(
            select(Profile).where(Profile.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_many(self, ids: Iterable[UUID]) -> List[Profile]:
        """Get profiles for a set of ids."""
        ids = list({i for i in ids if i is not None})
        if not ids:
            return []
        result = await self.session.execute(select(Profile).where(Profile.id.in_(ids)))
        return list(result.scalars().all())

    async def list_related_to(
        self,
        user_id: UUID,
        roles: Optional[Iterable[UserRole]] = None,
    ) -> List[Profile]:
        """
        List profiles that name ``user_id`` in any approval-chain field.

        Args:
            user_id: The approver / line manager
            roles: Restrict to profiles holding one of these roles
        """
        query = select(Profile).where(
            or_(
                Profile.reports_to_id == user_id,
                Profile.supervisor_id == user_id,
                Profile.manager_id == user_id,
                Profile.final_approver_id == user_id,
            )
        )
        if roles is not None:
            query = query.where(Profile.role.in_(list(roles)))
        result = await self.session.execute(query.order_by(Profile.name))
        return list(result.scalars().all())

    async def list_subordinate_ids(self, manager_id: UUID) -> List[UUID]:
        """Ids of users reporting to ``manager_id`` directly or through a supervisor."""
        result = await self.session.execute(
            select(Profile.id).where(
                or_(
                    Profile.reports_to_id == manager_id,
                    Profile.supervisor_id == manager_id,
                    Profile.manager_id == manager_id,
                )
            )
        )
        return [row[0] for row in result.all()]

    async def list_all(
        self,
        exclude_roles: Iterable[UserRole] = (),
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Profile]:
        """List all profiles by name, optionally hiding some roles; no limit by default."""
        query = select(Profile)
        exclude_roles = list(exclude_roles)
        if exclude_roles:
            query = query.where(Profile.role.not_in(exclude_roles))
        query = query.order_by(Profile.name).offset(skip)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())
