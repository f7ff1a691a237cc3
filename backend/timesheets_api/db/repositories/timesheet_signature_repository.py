"""
Timesheet signature repository for database operations.
"""

from datetime import datetime, timezone
from typing import List, Set
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.orm import selectinload

from timesheets_api.db.repositories.base_repository import BaseRepository
from timesheets_api.models.timesheet import TimesheetSignature, SignerRole


class TimesheetSignatureRepository(BaseRepository[TimesheetSignature]):
    """Repository for timesheet signature operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(TimesheetSignature, session)

    async def insert(self, timesheet_id: UUID, signer_id: UUID, signer_role: SignerRole) -> TimesheetSignature:
        """Insert a signature and flush so the uniqueness constraint is checked now."""
        instance = TimesheetSignature(
            timesheet_id=timesheet_id,
            signer_id=signer_id,
            signer_role=signer_role,
            signed_at=datetime.now(timezone.utc),
        )
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def list_by_timesheet(self, timesheet_id: UUID) -> List[TimesheetSignature]:
        """List signatures for a timesheet in signing order."""
        result = await self.session.execute(
            select(TimesheetSignature)
            .options(selectinload(TimesheetSignature.signer))
            .where(TimesheetSignature.timesheet_id == timesheet_id)
            .order_by(TimesheetSignature.signed_at)
        )
        return list(result.scalars().all())

    async def list_signer_ids(self, timesheet_id: UUID) -> Set[UUID]:
        """Distinct signer ids recorded against a timesheet."""
        result = await self.session.execute(
            select(TimesheetSignature.signer_id)
            .where(TimesheetSignature.timesheet_id == timesheet_id)
            .distinct()
        )
        return {row[0] for row in result.all()}

    async def list_signer_ids_for(self, timesheet_ids: List[UUID]) -> dict:
        """Map of timesheet id to the set of signer ids, for list views."""
        signed = {ts_id: set() for ts_id in timesheet_ids}
        if not timesheet_ids:
            return signed
        result = await self.session.execute(
            select(TimesheetSignature.timesheet_id, TimesheetSignature.signer_id)
            .where(TimesheetSignature.timesheet_id.in_(timesheet_ids))
        )
        for timesheet_id, signer_id in result.all():
            signed[timesheet_id].add(signer_id)
        return signed

    async def delete_all_by_timesheet(self, timesheet_id: UUID) -> int:
        """Delete every signature of a timesheet."""
        result = await self.session.execute(
            delete(TimesheetSignature).where(TimesheetSignature.timesheet_id == timesheet_id)
        )
        await self.session.flush()
        return result.rowcount or 0
