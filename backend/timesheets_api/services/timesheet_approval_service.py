"""
Timesheet approval service - approve, reject, and the approver work queues.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheets_api.core.exceptions import (
    DuplicateSignatureError,
    InvalidTransitionError,
    UnauthorizedError,
    ValidationError,
)
from timesheets_api.core.logging import get_logger
from timesheets_api.db.repositories.profile_repository import ProfileRepository
from timesheets_api.db.repositories.timesheet_repository import TimesheetRepository
from timesheets_api.models.profile import APPROVER_ROLES, Profile, UserRole
from timesheets_api.models.timesheet import TimesheetStatus
from timesheets_api.schemas.timesheet import TimesheetListResponse, TimesheetResponse
from timesheets_api.services.access_policy import (
    AccessPolicy,
    TimesheetAction,
    can_act_on_timesheet,
    is_admin,
)
from timesheets_api.services.approval_chain import (
    build_approval_chain,
    next_approver_id,
    signer_role_for,
)
from timesheets_api.services.base_service import BaseService
from timesheets_api.services.signature_ledger import SignatureLedger
from timesheets_api.services.timesheet_service import TimesheetService

logger = get_logger(__name__)

REVIEWED_STATUSES = (TimesheetStatus.APPROVED, TimesheetStatus.REJECTED)


class TimesheetApprovalService(BaseService):
    """Service for timesheet approval operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.timesheet_repo = TimesheetRepository(session)
        self.profile_repo = ProfileRepository(session)
        self.ledger = SignatureLedger(session)
        self.policy = AccessPolicy(session)
        self.timesheet_service = TimesheetService(session)

    async def approve_timesheet(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        """
        Sign a submitted timesheet as the next approver in its chain.

        The last chain member's signature approves the timesheet. Admins may
        sign out of turn; their signature finalises unless they are themselves
        the next, non-final chain member.
        """
        actor_id = actor.id
        timesheet = await self.timesheet_service.load(timesheet_id)
        owner = timesheet.owner

        if timesheet.status != TimesheetStatus.SUBMITTED:
            raise InvalidTransitionError(
                "Timesheet is not in submitted status",
                details={"status": timesheet.status.value},
            )

        signed = await self.ledger.signers_who_signed(timesheet_id)
        if actor_id in signed:
            raise DuplicateSignatureError()

        chain = build_approval_chain(owner)
        next_id = next_approver_id(chain, signed)

        if is_admin(actor):
            acting_as_admin = not (next_id == actor_id and chain[-1] != actor_id)
        else:
            acting_as_admin = False
            if not can_act_on_timesheet(actor, owner, TimesheetAction.APPROVE, timesheet) or actor_id not in chain:
                raise UnauthorizedError("You are not in this timesheet's approval chain")
            if next_id != actor_id:
                raise UnauthorizedError(
                    "You are not the next approver in line",
                    details={"next_approver_id": str(next_id) if next_id else None},
                )

        role = signer_role_for(owner, chain, actor_id, acting_as_admin=acting_as_admin)
        finalise = acting_as_admin or chain[-1] == actor_id

        await self.ledger.record_signature(timesheet_id, actor_id, role)

        values = {}
        if finalise:
            values = {
                "status": TimesheetStatus.APPROVED,
                "approved_by_id": actor_id,
                "approved_at": datetime.now(timezone.utc),
            }
        changed = await self.timesheet_repo.transition(timesheet_id, TimesheetStatus.SUBMITTED, **values)
        if not changed:
            await self.session.rollback()
            raise InvalidTransitionError("Timesheet is no longer awaiting approval")
        await self.session.commit()

        logger.info(
            "Timesheet approved" if finalise else "Timesheet signed",
            extra={
                "timesheet_id": str(timesheet_id),
                "actor_id": str(actor_id),
                "signer_role": role.value,
                "from_status": "submitted",
                "to_status": "approved" if finalise else "submitted",
            },
        )
        return await self.timesheet_service.to_response(await self.timesheet_service.load(timesheet_id))

    async def reject_timesheet(
        self,
        timesheet_id: UUID,
        actor: Profile,
        reason: Optional[str],
    ) -> TimesheetResponse:
        """Send a submitted timesheet back to its owner with a reason."""
        actor_id = actor.id
        timesheet = await self.timesheet_service.load(timesheet_id)

        if timesheet.status != TimesheetStatus.SUBMITTED:
            raise InvalidTransitionError(
                "Timesheet is not in submitted status",
                details={"status": timesheet.status.value},
            )
        if not can_act_on_timesheet(actor, timesheet.owner, TimesheetAction.REJECT, timesheet):
            raise UnauthorizedError("You are not in this timesheet's approval chain")

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required")

        changed = await self.timesheet_repo.transition(
            timesheet_id,
            TimesheetStatus.SUBMITTED,
            status=TimesheetStatus.REJECTED,
            rejected_by_id=actor_id,
            rejected_at=datetime.now(timezone.utc),
            rejection_reason=reason,
        )
        if not changed:
            await self.session.rollback()
            raise InvalidTransitionError("Timesheet is no longer awaiting approval")
        await self.session.commit()

        logger.info(
            "Timesheet rejected",
            extra={
                "timesheet_id": str(timesheet_id),
                "actor_id": str(actor_id),
                "from_status": "submitted",
                "to_status": "rejected",
            },
        )
        return await self.timesheet_service.to_response(await self.timesheet_service.load(timesheet_id))

    async def list_pending_approvals(self, actor: Profile) -> TimesheetListResponse:
        """
        Submitted timesheets waiting on the actor's signature.

        Admins see every submitted timesheet, including those whose next
        chain member cannot sign (e.g. holds the employee role) and so must
        be finalised by an admin. Users without an approver role have none.
        """
        if is_admin(actor):
            timesheets = await self.timesheet_repo.list_by_status(TimesheetStatus.SUBMITTED, limit=None)
            items = await self.timesheet_service.build_summaries(timesheets)
            return TimesheetListResponse(items=items, total=len(items))

        if actor.role not in APPROVER_ROLES:
            return TimesheetListResponse(items=[], total=0)

        related = await self.profile_repo.list_related_to(actor.id)
        timesheets = await self.timesheet_repo.list_by_status(
            TimesheetStatus.SUBMITTED,
            user_ids=[p.id for p in related],
            limit=None,
        )
        items = [
            item
            for item in await self.timesheet_service.build_summaries(timesheets)
            if item.next_approver_id == actor.id
        ]
        return TimesheetListResponse(items=items, total=len(items))

    async def list_reviewed(
        self,
        actor: Profile,
        status: TimesheetStatus,
        skip: int = 0,
        limit: int = 100,
    ) -> TimesheetListResponse:
        """Approved or rejected timesheets of users the actor can see, excluding their own."""
        if status not in REVIEWED_STATUSES:
            raise ValidationError(
                "status must be approved or rejected",
                details={"status": status.value},
            )

        user_ids = None
        exclude_owner_roles = ()
        if actor.role == UserRole.ADMIN:
            exclude_owner_roles = (UserRole.SUPER_ADMIN,)
        elif actor.role != UserRole.SUPER_ADMIN:
            user_ids = await self.policy.visible_user_ids(actor)
        timesheets = await self.timesheet_repo.list_by_status(
            status,
            user_ids=user_ids,
            exclude_owner_roles=exclude_owner_roles,
            exclude_user_id=actor.id,
            skip=skip,
            limit=limit,
        )
        items = await self.timesheet_service.build_summaries(timesheets)
        return TimesheetListResponse(items=items, total=len(items))
