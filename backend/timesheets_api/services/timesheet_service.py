"""
Timesheet service - weekly timesheet lifecycle driven by the owner:
get-or-create, save entries, submit, auto-approve, recall, delete.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheets_api.core.exceptions import (
    DuplicateSignatureError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from timesheets_api.core.logging import get_logger
from timesheets_api.core.timeout import with_timeout
from timesheets_api.db.repositories.site_repository import SiteRepository
from timesheets_api.db.repositories.timesheet_entry_repository import TimesheetEntryRepository
from timesheets_api.db.repositories.timesheet_repository import TimesheetRepository
from timesheets_api.models.profile import Profile
from timesheets_api.models.timesheet import SignerRole, Timesheet, TimesheetStatus
from timesheets_api.schemas.timesheet import (
    TimesheetEntriesUpdate,
    TimesheetEntryResponse,
    TimesheetListResponse,
    TimesheetResponse,
    TimesheetSignatureResponse,
    TimesheetSummary,
    TimesheetUnbillableResponse,
)
from timesheets_api.services.access_policy import (
    TimesheetAction,
    ensure_can_act_on_timesheet,
    is_admin,
)
from timesheets_api.services.approval_chain import (
    approval_stage_label,
    build_approval_chain,
    next_approver_id,
)
from timesheets_api.services.base_service import BaseService
from timesheets_api.services.signature_ledger import SignatureLedger

logger = get_logger(__name__)

EDITABLE_BY_OWNER = (TimesheetStatus.DRAFT, TimesheetStatus.REJECTED)


def current_week_ending(today: Optional[date] = None) -> date:
    """The Sunday that ends the current week (today, if today is Sunday)."""
    today = today or datetime.now(timezone.utc).date()
    return today + timedelta(days=6 - today.weekday())


def validate_week_ending(week_ending: date) -> date:
    if week_ending.weekday() != 6:
        raise ValidationError(
            "week_ending must be a Sunday",
            details={"week_ending": week_ending.isoformat()},
        )
    return week_ending


class TimesheetService(BaseService):
    """Service for timesheet operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.timesheet_repo = TimesheetRepository(session)
        self.entry_repo = TimesheetEntryRepository(session)
        self.site_repo = SiteRepository(session)
        self.ledger = SignatureLedger(session)

    async def load(self, timesheet_id: UUID) -> Timesheet:
        timesheet = await with_timeout(self.timesheet_repo.get(timesheet_id), operation="get_timesheet")
        if not timesheet:
            raise NotFoundError("Timesheet not found", details={"timesheet_id": str(timesheet_id)})
        return timesheet

    async def get_or_create_timesheet(
        self,
        actor: Profile,
        week_ending: Optional[date] = None,
    ) -> TimesheetResponse:
        """Get the actor's timesheet for a week, creating a draft if none exists."""
        week_ending = validate_week_ending(week_ending or current_week_ending())
        user_id = actor.id

        timesheet = await self.timesheet_repo.get_by_user_and_week(user_id, week_ending)
        if timesheet:
            return await self.to_response(timesheet)

        try:
            timesheet = await self.timesheet_repo.create(
                user_id=user_id,
                week_ending=week_ending,
                week_starting=week_ending - timedelta(days=6),
                status=TimesheetStatus.DRAFT,
            )
            await self.session.commit()
        except IntegrityError:
            # Created concurrently by another request for the same week
            await self.session.rollback()
            timesheet = await self.timesheet_repo.get_by_user_and_week(user_id, week_ending)
            if not timesheet:
                raise
        else:
            logger.info(
                "Timesheet created",
                extra={"timesheet_id": str(timesheet.id), "user_id": str(user_id), "week_ending": week_ending.isoformat()},
            )
        return await self.to_response(timesheet)

    async def get_timesheet(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        timesheet = await self.load(timesheet_id)
        ensure_can_act_on_timesheet(actor, timesheet.owner, TimesheetAction.VIEW, timesheet)
        return await self.to_response(timesheet)

    async def list_my_timesheets(
        self,
        actor: Profile,
        status: Optional[TimesheetStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> TimesheetListResponse:
        """Own timesheets, newest week first, with the stage each one is at."""
        timesheets = await self.timesheet_repo.list_by_user(actor.id, status=status, skip=skip, limit=limit)
        items = await self.build_summaries(timesheets)
        return TimesheetListResponse(items=items, total=len(items))

    async def save_entries(
        self,
        timesheet_id: UUID,
        actor: Profile,
        payload: TimesheetEntriesUpdate,
    ) -> TimesheetResponse:
        """
        Replace every row of a timesheet.

        Owners may edit drafts and rejected timesheets; saving a rejected
        timesheet returns it to draft. Admins may edit at any status.
        """
        timesheet = await self.load(timesheet_id)
        ensure_can_act_on_timesheet(actor, timesheet.owner, TimesheetAction.EDIT, timesheet)

        if not is_admin(actor) and timesheet.status not in EDITABLE_BY_OWNER:
            raise InvalidTransitionError(
                "Only draft or rejected timesheets can be edited",
                details={"status": timesheet.status.value},
            )

        await self._validate_references(payload)

        await self.entry_repo.replace_for_timesheet(
            timesheet.id,
            entries=[row.model_dump() for row in payload.entries],
            unbillable=[row.model_dump() for row in payload.unbillable],
        )

        from_status = timesheet.status
        if from_status == TimesheetStatus.REJECTED and actor.id == timesheet.user_id:
            changed = await self.timesheet_repo.transition(
                timesheet.id, TimesheetStatus.REJECTED, status=TimesheetStatus.DRAFT
            )
            if not changed:
                await self.session.rollback()
                raise InvalidTransitionError("Timesheet changed while saving; reload and try again")
        else:
            await self.timesheet_repo.update_fields(timesheet.id)

        await self.session.commit()
        logger.info(
            "Timesheet entries saved",
            extra={
                "timesheet_id": str(timesheet.id),
                "actor_id": str(actor.id),
                "entries": len(payload.entries),
                "unbillable": len(payload.unbillable),
                "from_status": from_status.value,
            },
        )
        return await self.to_response(await self.load(timesheet.id))

    async def _validate_references(self, payload: TimesheetEntriesUpdate) -> None:
        """Sites and purchase orders must exist, and a PO must belong to the row's site."""
        site_ids = {row.site_id for row in payload.entries if row.site_id}
        po_ids = {row.po_id for row in payload.entries if row.po_id}

        known_sites = {site.id for site in await self.site_repo.list_sites(site_ids)} if site_ids else set()
        missing_sites = site_ids - known_sites
        if missing_sites:
            raise ValidationError("Unknown site", details={"site_ids": sorted(str(i) for i in missing_sites)})

        purchase_orders = {po.id: po for po in await self.site_repo.get_purchase_orders(po_ids)}
        missing_pos = po_ids - set(purchase_orders)
        if missing_pos:
            raise ValidationError("Unknown purchase order", details={"po_ids": sorted(str(i) for i in missing_pos)})

        for index, row in enumerate(payload.entries):
            if row.po_id and row.site_id and purchase_orders[row.po_id].site_id != row.site_id:
                raise ValidationError(
                    "Purchase order does not belong to the selected site",
                    details={"row": index, "po_id": str(row.po_id), "site_id": str(row.site_id)},
                )

    async def submit_timesheet(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        """Submit a draft for approval, auto-approving when the owner has no approvers."""
        timesheet = await self.load(timesheet_id)
        ensure_can_act_on_timesheet(
            actor, timesheet.owner, TimesheetAction.SUBMIT, timesheet,
            message="Only the owner can submit this timesheet",
        )
        if timesheet.status != TimesheetStatus.DRAFT:
            raise InvalidTransitionError(
                "Only draft timesheets can be submitted",
                details={"status": timesheet.status.value},
            )

        now = datetime.now(timezone.utc)
        changed = await self.timesheet_repo.transition(
            timesheet.id,
            TimesheetStatus.DRAFT,
            status=TimesheetStatus.SUBMITTED,
            submitted_at=now,
            employee_signed_at=now,
        )
        if not changed:
            await self.session.rollback()
            raise InvalidTransitionError("Timesheet is no longer a draft")
        await self.session.commit()
        logger.info(
            "Timesheet submitted",
            extra={"timesheet_id": str(timesheet.id), "actor_id": str(actor.id), "from_status": "draft", "to_status": "submitted"},
        )

        await self.auto_approve_if_unchained(timesheet_id)
        return await self.to_response(await self.load(timesheet_id))

    async def check_auto_approve(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        """Owner-triggered, idempotent auto-approval check."""
        timesheet = await self.load(timesheet_id)
        ensure_can_act_on_timesheet(
            actor, timesheet.owner, TimesheetAction.CHECK_AUTO_APPROVE, timesheet,
            message="Only the owner can request an auto-approval check",
        )
        await self.auto_approve_if_unchained(timesheet_id)
        return await self.to_response(await self.load(timesheet_id))

    async def auto_approve_if_unchained(self, timesheet_id: UUID) -> bool:
        """
        Approve a submitted timesheet whose owner has nobody to approve it.
        The owner signs as final approver.

        Returns:
            True if this call approved the timesheet
        """
        timesheet = await self.load(timesheet_id)
        if timesheet.status != TimesheetStatus.SUBMITTED:
            return False
        if build_approval_chain(timesheet.owner):
            return False

        owner_id = timesheet.user_id
        if owner_id in await self.ledger.signers_who_signed(timesheet_id):
            return False

        try:
            await self.ledger.record_signature(timesheet_id, owner_id, SignerRole.FINAL_APPROVER)
        except DuplicateSignatureError:
            logger.info("Auto-approval already recorded", extra={"timesheet_id": str(timesheet_id)})
            return False

        changed = await self.timesheet_repo.transition(
            timesheet_id,
            TimesheetStatus.SUBMITTED,
            status=TimesheetStatus.APPROVED,
            approved_by_id=owner_id,
            approved_at=datetime.now(timezone.utc),
        )
        if not changed:
            await self.session.rollback()
            return False
        await self.session.commit()
        logger.info(
            "Timesheet auto-approved",
            extra={"timesheet_id": str(timesheet_id), "user_id": str(owner_id), "from_status": "submitted", "to_status": "approved"},
        )
        return True

    async def recall_timesheet(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        """Pull a submitted timesheet back to draft, discarding every signature."""
        timesheet = await self.load(timesheet_id)
        ensure_can_act_on_timesheet(
            actor, timesheet.owner, TimesheetAction.RECALL, timesheet,
            message="Only the owner can recall this timesheet",
        )
        if timesheet.status != TimesheetStatus.SUBMITTED:
            raise InvalidTransitionError(
                "Only submitted timesheets can be recalled",
                details={"status": timesheet.status.value},
            )

        removed = await self.ledger.clear_signatures(timesheet.id)
        changed = await self.timesheet_repo.transition(
            timesheet.id,
            TimesheetStatus.SUBMITTED,
            status=TimesheetStatus.DRAFT,
            submitted_at=None,
            employee_signed_at=None,
        )
        if not changed:
            await self.session.rollback()
            raise InvalidTransitionError("Timesheet is no longer awaiting approval")
        await self.session.commit()
        logger.info(
            "Timesheet recalled",
            extra={
                "timesheet_id": str(timesheet.id),
                "actor_id": str(actor.id),
                "signatures_removed": removed,
                "from_status": "submitted",
                "to_status": "draft",
            },
        )
        return await self.to_response(await self.load(timesheet.id))

    async def clear_rejection_note(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        timesheet = await self.load(timesheet_id)
        ensure_can_act_on_timesheet(
            actor, timesheet.owner, TimesheetAction.CLEAR_REJECTION_NOTE, timesheet,
            message="You are not allowed to clear this rejection note",
        )
        if timesheet.status != TimesheetStatus.REJECTED:
            raise InvalidTransitionError(
                "Only rejected timesheets carry a rejection note",
                details={"status": timesheet.status.value},
            )

        await self.timesheet_repo.update_fields(
            timesheet.id,
            rejection_reason=None,
            rejected_by_id=None,
            rejected_at=None,
        )
        await self.session.commit()
        logger.info("Rejection note cleared", extra={"timesheet_id": str(timesheet.id), "actor_id": str(actor.id)})
        return await self.to_response(await self.load(timesheet.id))

    async def delete_timesheet(self, timesheet_id: UUID, actor: Profile) -> None:
        timesheet = await self.load(timesheet_id)
        is_owner = actor.id == timesheet.user_id
        ensure_can_act_on_timesheet(
            actor, timesheet.owner, TimesheetAction.DELETE, timesheet,
            message="Only draft timesheets can be deleted" if is_owner else "You are not allowed to delete this timesheet",
        )

        await self.timesheet_repo.delete_with_children(timesheet.id)
        await self.session.commit()
        logger.info(
            "Timesheet deleted",
            extra={"timesheet_id": str(timesheet.id), "actor_id": str(actor.id), "status": timesheet.status.value},
        )

    async def build_summaries(self, timesheets: Iterable[Timesheet]) -> List[TimesheetSummary]:
        timesheets = list(timesheets)
        signed = await self.ledger.signers_by_timesheet([ts.id for ts in timesheets])
        return [self._to_summary(ts, signed.get(ts.id, set())) for ts in timesheets]

    def _to_summary(self, timesheet: Timesheet, signed_ids: Set[UUID]) -> TimesheetSummary:
        owner = timesheet.owner
        next_id = None
        if timesheet.status == TimesheetStatus.SUBMITTED:
            next_id = next_approver_id(build_approval_chain(owner), signed_ids)
        return TimesheetSummary(
            id=timesheet.id,
            user_id=timesheet.user_id,
            owner_name=owner.name if owner else None,
            week_ending=timesheet.week_ending,
            status=timesheet.status,
            total_hours=self._total_hours(timesheet),
            submitted_at=timesheet.submitted_at,
            approved_at=timesheet.approved_at,
            rejected_at=timesheet.rejected_at,
            next_approver_id=next_id,
            stage=approval_stage_label(owner, timesheet.status, next_id),
        )

    @staticmethod
    def _total_hours(timesheet: Timesheet) -> Decimal:
        rows = list(timesheet.entries or []) + list(timesheet.unbillable or [])
        return sum((row.total_hours for row in rows), Decimal("0"))

    async def to_response(self, timesheet: Timesheet) -> TimesheetResponse:
        """Convert timesheet model to response with rows, signatures and chain position."""
        signatures = await self.ledger.list_signatures(timesheet.id)
        chain = build_approval_chain(timesheet.owner)
        next_id = None
        if timesheet.status == TimesheetStatus.SUBMITTED:
            next_id = next_approver_id(chain, {s.signer_id for s in signatures})

        return TimesheetResponse(
            id=timesheet.id,
            user_id=timesheet.user_id,
            owner_name=timesheet.owner.name if timesheet.owner else None,
            week_ending=timesheet.week_ending,
            week_starting=timesheet.week_starting,
            status=timesheet.status,
            submitted_at=timesheet.submitted_at,
            employee_signed_at=timesheet.employee_signed_at,
            approved_by_id=timesheet.approved_by_id,
            approved_at=timesheet.approved_at,
            rejected_by_id=timesheet.rejected_by_id,
            rejected_at=timesheet.rejected_at,
            rejection_reason=timesheet.rejection_reason,
            created_at=timesheet.created_at,
            updated_at=timesheet.updated_at,
            total_hours=self._total_hours(timesheet),
            entries=[TimesheetEntryResponse.model_validate(e) for e in timesheet.entries or []],
            unbillable=[TimesheetUnbillableResponse.model_validate(u) for u in timesheet.unbillable or []],
            signatures=[
                TimesheetSignatureResponse(
                    id=s.id,
                    signer_id=s.signer_id,
                    signer_name=s.signer.name if s.signer else None,
                    signer_role=s.signer_role,
                    signed_at=s.signed_at,
                )
                for s in signatures
            ],
            approval_chain=chain,
            next_approver_id=next_id,
        )
