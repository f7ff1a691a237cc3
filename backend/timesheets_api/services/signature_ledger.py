"""
Signature ledger - append-only record of who signed which timesheet.
"""

import asyncio
from typing import Awaitable, Dict, List, Optional, Set, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheets_api.core.exceptions import DuplicateSignatureError, NotFoundError
from timesheets_api.core.logging import get_logger
from timesheets_api.core.timeout import bounded
from timesheets_api.db.repositories.timesheet_signature_repository import TimesheetSignatureRepository
from timesheets_api.models.timesheet import SignerRole, TimesheetSignature
from timesheets_api.services.base_service import BaseService

logger = get_logger(__name__)

T = TypeVar("T")


class SignatureLedger(BaseService):
    """Signatures for timesheets. Never changes timesheet status."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.signature_repo = TimesheetSignatureRepository(session)

    async def _bounded(self, awaitable: Awaitable[T], timesheet_id: Optional[UUID], operation: str) -> T:
        """Run a ledger call under the query timeout; a timeout discards the unit of work."""
        try:
            return await bounded(awaitable, operation=operation)
        except asyncio.TimeoutError:
            await self.session.rollback()
            raise NotFoundError(
                "Approval signatures are unavailable",
                details={"timesheet_id": str(timesheet_id) if timesheet_id else None, "operation": operation},
            )

    async def signers_who_signed(self, timesheet_id: UUID) -> Set[UUID]:
        return await self._bounded(
            self.signature_repo.list_signer_ids(timesheet_id), timesheet_id, "list_signer_ids"
        )

    async def record_signature(
        self,
        timesheet_id: UUID,
        signer_id: UUID,
        role: SignerRole,
    ) -> TimesheetSignature:
        """
        Append a signature.

        The (timesheet, signer) unique constraint is authoritative: a
        concurrent double sign fails on flush and the unit of work is rolled
        back.

        Raises:
            DuplicateSignatureError: If the signer already signed
            NotFoundError: If the ledger does not answer in time
        """
        try:
            signature = await self._bounded(
                self.signature_repo.insert(timesheet_id, signer_id, role), timesheet_id, "insert_signature"
            )
        except IntegrityError:
            await self.session.rollback()
            logger.warning(
                "Duplicate signature rejected",
                extra={"timesheet_id": str(timesheet_id), "signer_id": str(signer_id)},
            )
            raise DuplicateSignatureError()

        logger.info(
            "Signature recorded",
            extra={
                "timesheet_id": str(timesheet_id),
                "signer_id": str(signer_id),
                "signer_role": role.value,
            },
        )
        return signature

    async def clear_signatures(self, timesheet_id: UUID) -> int:
        """Remove every signature of a timesheet; returns how many were removed."""
        removed = await self._bounded(
            self.signature_repo.delete_all_by_timesheet(timesheet_id), timesheet_id, "clear_signatures"
        )
        logger.info(
            "Signatures cleared",
            extra={"timesheet_id": str(timesheet_id), "removed": removed},
        )
        return removed

    async def list_signatures(self, timesheet_id: UUID) -> List[TimesheetSignature]:
        return await self._bounded(
            self.signature_repo.list_by_timesheet(timesheet_id), timesheet_id, "list_signatures"
        )

    async def signers_by_timesheet(self, timesheet_ids: List[UUID]) -> Dict[UUID, Set[UUID]]:
        """Signer ids per timesheet, for list views."""
        return await self._bounded(
            self.signature_repo.list_signer_ids_for(timesheet_ids), None, "list_signer_ids_for"
        )
