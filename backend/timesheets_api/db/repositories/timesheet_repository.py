"""
Timesheet repository for database operations.
"""

from typing import Iterable, List, Optional
from uuid import UUID
from datetime import date, datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
from sqlalchemy.orm import selectinload

from timesheets_api.db.repositories.base_repository import BaseRepository
from timesheets_api.models.profile import Profile, UserRole
from timesheets_api.models.timesheet import (
    Timesheet,
    TimesheetEntry,
    TimesheetSignature,
    TimesheetStatus,
    TimesheetUnbillable,
)


class TimesheetRepository(BaseRepository[Timesheet]):
    """Repository for timesheet operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Timesheet, session)

    def _detail_query(self):
        return (
            select(Timesheet)
            .options(
                selectinload(Timesheet.owner),
                selectinload(Timesheet.entries),
                selectinload(Timesheet.unbillable),
            )
            .execution_options(populate_existing=True)
        )

    async def get(self, id: UUID) -> Optional[Timesheet]:
        """Get timesheet by ID with owner and rows loaded."""
        result = await self.session.execute(self._detail_query().where(Timesheet.id == id))
        return result.scalar_one_or_none()

    async def get_by_user_and_week(
        self,
        user_id: UUID,
        week_ending: date,
    ) -> Optional[Timesheet]:
        """Get timesheet by owner and week ending."""
        result = await self.session.execute(
            self._detail_query().where(
                Timesheet.user_id == user_id,
                Timesheet.week_ending == week_ending,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs) -> Timesheet:
        """Create a new timesheet and return it with rows loaded."""
        instance = Timesheet(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        return await self.get(instance.id)

    async def list_by_user(
        self,
        user_id: UUID,
        status: Optional[TimesheetStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Timesheet]:
        """List a user's timesheets, newest week first."""
        query = self._detail_query().where(Timesheet.user_id == user_id)
        if status is not None:
            query = query.where(Timesheet.status == status)
        query = query.order_by(Timesheet.week_ending.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_by_status(
        self,
        status: TimesheetStatus,
        user_ids: Optional[Iterable[UUID]] = None,
        exclude_owner_roles: Iterable[UserRole] = (),
        exclude_user_id: Optional[UUID] = None,
        skip: int = 0,
        limit: Optional[int] = 100,
    ) -> List[Timesheet]:
        """
        List timesheets in a status, optionally restricted to some owners.
        Submitted timesheets come oldest-submitted first; others newest week first.

        Args:
            status: Status to list
            user_ids: Only these owners (None for any owner)
            exclude_owner_roles: Skip timesheets whose owner holds one of these roles
            exclude_user_id: Skip this owner's timesheets
            skip: Number of records to skip
            limit: Maximum number of records (None for all)
        """
        query = self._detail_query().where(Timesheet.status == status)
        if user_ids is not None:
            user_ids = list(user_ids)
            if not user_ids:
                return []
            query = query.where(Timesheet.user_id.in_(user_ids))
        exclude_owner_roles = list(exclude_owner_roles)
        if exclude_owner_roles:
            query = query.join(Profile, Profile.id == Timesheet.user_id).where(
                Profile.role.not_in(exclude_owner_roles)
            )
        if exclude_user_id is not None:
            query = query.where(Timesheet.user_id != exclude_user_id)
        if status == TimesheetStatus.SUBMITTED:
            query = query.order_by(Timesheet.submitted_at.asc())
        else:
            query = query.order_by(Timesheet.week_ending.desc())
        query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def transition(
        self,
        id: UUID,
        from_status: TimesheetStatus,
        **values,
    ) -> bool:
        """
        Conditionally update a timesheet that is still in ``from_status``.

        Returns:
            True if the row changed, False if another request moved it first
        """
        values.setdefault("updated_at", datetime.now(timezone.utc))
        result = await self.session.execute(
            update(Timesheet)
            .where(Timesheet.id == id, Timesheet.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return result.rowcount == 1

    async def update_fields(self, id: UUID, **values) -> None:
        """Unconditional update of timesheet columns."""
        values.setdefault("updated_at", datetime.now(timezone.utc))
        await self.session.execute(
            update(Timesheet)
            .where(Timesheet.id == id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()

    async def delete_with_children(self, id: UUID) -> bool:
        """Delete a timesheet together with its rows and signatures."""
        await self.session.execute(delete(TimesheetSignature).where(TimesheetSignature.timesheet_id == id))
        await self.session.execute(delete(TimesheetEntry).where(TimesheetEntry.timesheet_id == id))
        await self.session.execute(delete(TimesheetUnbillable).where(TimesheetUnbillable.timesheet_id == id))
        result = await self.session.execute(
            delete(Timesheet).where(Timesheet.id == id).execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return result.rowcount > 0

    async def delete_all_for_user(self, user_id: UUID) -> int:
        """Delete every timesheet a user owns, with rows and signatures."""
        owned = select(Timesheet.id).where(Timesheet.user_id == user_id)
        for child in (TimesheetSignature, TimesheetEntry, TimesheetUnbillable):
            await self.session.execute(
                delete(child)
                .where(child.timesheet_id.in_(owned))
                .execution_options(synchronize_session=False)
            )
        result = await self.session.execute(
            delete(Timesheet).where(Timesheet.user_id == user_id).execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return result.rowcount or 0
