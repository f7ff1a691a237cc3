"""
Timesheet status machine tests: submit, auto-approval, chained approval,
rejection, recall, editing and deletion.
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import update

from timesheets_api.core.exceptions import (
    DuplicateSignatureError,
    InvalidTransitionError,
    UnauthorizedError,
    ValidationError,
)
from timesheets_api.models.profile import Profile, UserRole
from timesheets_api.models.timesheet import SignerRole, Timesheet, TimesheetStatus
from timesheets_api.services.access_policy import AccessPolicy
from timesheets_api.schemas.timesheet import (
    TimesheetEntriesUpdate,
    TimesheetEntryInput,
    TimesheetUnbillableInput,
)
from timesheets_api.services.timesheet_approval_service import TimesheetApprovalService
from timesheets_api.services.timesheet_service import TimesheetService, current_week_ending

WEEK_ENDING = date(2025, 3, 9)


@pytest.fixture
def timesheets(test_db_session):
    return TimesheetService(test_db_session)


@pytest.fixture
def approvals(test_db_session):
    return TimesheetApprovalService(test_db_session)


async def _submit(timesheets, owner, week_ending=WEEK_ENDING):
    draft = await timesheets.get_or_create_timesheet(owner, week_ending)
    return await timesheets.submit_timesheet(draft.id, owner)


@pytest.mark.asyncio
async def test_get_or_create_builds_draft_for_week(timesheets, make_profile):
    owner = await make_profile()
    first = await timesheets.get_or_create_timesheet(owner, WEEK_ENDING)
    again = await timesheets.get_or_create_timesheet(owner, WEEK_ENDING)

    assert first.id == again.id
    assert first.status == TimesheetStatus.DRAFT
    assert first.week_starting == date(2025, 3, 3)
    assert first.user_id == owner.id


@pytest.mark.asyncio
async def test_week_ending_must_be_sunday(timesheets, make_profile):
    owner = await make_profile()
    with pytest.raises(ValidationError):
        await timesheets.get_or_create_timesheet(owner, date(2025, 3, 8))


def test_current_week_ends_on_coming_sunday():
    assert current_week_ending(date(2025, 3, 5)) == date(2025, 3, 9)
    assert current_week_ending(date(2025, 3, 9)) == date(2025, 3, 9)
    assert current_week_ending(date(2025, 3, 10)) == date(2025, 3, 16)


@pytest.mark.asyncio
async def test_empty_chain_submit_auto_approves(timesheets, make_profile):
    owner = await make_profile(UserRole.MANAGER)
    result = await _submit(timesheets, owner)

    assert result.status == TimesheetStatus.APPROVED
    assert result.approved_by_id == owner.id
    assert result.submitted_at is not None
    assert result.employee_signed_at is not None
    assert len(result.signatures) == 1
    assert result.signatures[0].signer_id == owner.id
    assert result.signatures[0].signer_role == SignerRole.FINAL_APPROVER


@pytest.mark.asyncio
async def test_auto_approve_check_is_idempotent(timesheets, make_profile):
    owner = await make_profile()
    result = await _submit(timesheets, owner)

    again = await timesheets.check_auto_approve(result.id, owner)
    third = await timesheets.check_auto_approve(result.id, owner)

    assert again.status == TimesheetStatus.APPROVED
    assert len(third.signatures) == 1
    assert third.approved_at == result.approved_at


@pytest.mark.asyncio
async def test_auto_approve_is_noop_with_approvers(timesheets, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    owner = await make_profile(supervisor_id=supervisor.id)
    result = await _submit(timesheets, owner)
    checked = await timesheets.check_auto_approve(result.id, owner)

    assert checked.status == TimesheetStatus.SUBMITTED
    assert checked.signatures == []
    assert checked.next_approver_id == supervisor.id


@pytest.mark.asyncio
async def test_only_owner_submits(timesheets, make_profile):
    owner = await make_profile()
    admin = await make_profile(UserRole.ADMIN)
    draft = await timesheets.get_or_create_timesheet(owner, WEEK_ENDING)
    with pytest.raises(UnauthorizedError):
        await timesheets.submit_timesheet(draft.id, admin)


@pytest.mark.asyncio
async def test_submit_twice_fails(timesheets, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    owner = await make_profile(supervisor_id=supervisor.id)
    result = await _submit(timesheets, owner)
    with pytest.raises(InvalidTransitionError):
        await timesheets.submit_timesheet(result.id, owner)


@pytest.mark.asyncio
async def test_full_chain_signs_in_order(timesheets, approvals, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    manager = await make_profile(UserRole.MANAGER)
    final_approver = await make_profile(UserRole.MANAGER)
    owner = await make_profile(
        supervisor_id=supervisor.id,
        manager_id=manager.id,
        final_approver_id=final_approver.id,
    )
    submitted = await _submit(timesheets, owner)
    assert submitted.approval_chain == [supervisor.id, manager.id, final_approver.id]

    after_supervisor = await approvals.approve_timesheet(submitted.id, supervisor)
    assert after_supervisor.status == TimesheetStatus.SUBMITTED
    assert after_supervisor.next_approver_id == manager.id

    after_manager = await approvals.approve_timesheet(submitted.id, manager)
    assert after_manager.status == TimesheetStatus.SUBMITTED
    assert after_manager.next_approver_id == final_approver.id

    final = await approvals.approve_timesheet(submitted.id, final_approver)
    assert final.status == TimesheetStatus.APPROVED
    assert final.approved_by_id == final_approver.id
    assert final.approved_at is not None
    assert [s.signer_role for s in final.signatures] == [
        SignerRole.SUPERVISOR,
        SignerRole.MANAGER,
        SignerRole.FINAL_APPROVER,
    ]


@pytest.mark.asyncio
async def test_single_manager_chain_approves(timesheets, approvals, make_profile):
    manager = await make_profile(UserRole.MANAGER)
    owner = await make_profile(manager_id=manager.id)
    submitted = await _submit(timesheets, owner)

    result = await approvals.approve_timesheet(submitted.id, manager)

    assert result.status == TimesheetStatus.APPROVED
    assert result.approved_by_id == manager.id
    assert result.signatures[0].signer_role == SignerRole.FINAL_APPROVER


@pytest.mark.asyncio
async def test_later_approver_cannot_sign_first(timesheets, approvals, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    manager = await make_profile(UserRole.MANAGER)
    owner = await make_profile(supervisor_id=supervisor.id, manager_id=manager.id)
    submitted = await _submit(timesheets, owner)

    with pytest.raises(UnauthorizedError, match="next approver"):
        await approvals.approve_timesheet(submitted.id, manager)

    # Unrelated approvers are rejected outright
    outsider = await make_profile(UserRole.SUPERVISOR)
    with pytest.raises(UnauthorizedError, match="approval chain"):
        await approvals.approve_timesheet(submitted.id, outsider)

    current = await timesheets.get_timesheet(submitted.id, owner)
    assert current.signatures == []


@pytest.mark.asyncio
async def test_same_approver_twice_is_duplicate(timesheets, approvals, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    manager = await make_profile(UserRole.MANAGER)
    owner = await make_profile(supervisor_id=supervisor.id, manager_id=manager.id)
    submitted = await _submit(timesheets, owner)

    await approvals.approve_timesheet(submitted.id, supervisor)
    with pytest.raises(DuplicateSignatureError):
        await approvals.approve_timesheet(submitted.id, supervisor)

    current = await timesheets.get_timesheet(submitted.id, owner)
    assert [s.signer_id for s in current.signatures] == [supervisor.id]


@pytest.mark.asyncio
async def test_admin_approving_draft_is_invalid(timesheets, approvals, make_profile):
    admin = await make_profile(UserRole.ADMIN)
    owner = await make_profile()
    draft = await timesheets.get_or_create_timesheet(owner, WEEK_ENDING)

    with pytest.raises(InvalidTransitionError, match="not in submitted status"):
        await approvals.approve_timesheet(draft.id, admin)


@pytest.mark.asyncio
async def test_admin_finalises_out_of_turn(timesheets, approvals, make_profile):
    admin = await make_profile(UserRole.ADMIN)
    supervisor = await make_profile(UserRole.SUPERVISOR)
    manager = await make_profile(UserRole.MANAGER)
    owner = await make_profile(supervisor_id=supervisor.id, manager_id=manager.id)
    submitted = await _submit(timesheets, owner)

    await approvals.approve_timesheet(submitted.id, supervisor)
    result = await approvals.approve_timesheet(submitted.id, admin)

    assert result.status == TimesheetStatus.APPROVED
    assert result.approved_by_id == admin.id
    assert result.signatures[-1].signer_role == SignerRole.FINAL_APPROVER


@pytest.mark.asyncio
async def test_admin_next_in_chain_signs_in_chain_role(timesheets, approvals, make_profile):
    admin = await make_profile(UserRole.ADMIN)
    manager = await make_profile(UserRole.MANAGER)
    owner = await make_profile(supervisor_id=admin.id, manager_id=manager.id)
    submitted = await _submit(timesheets, owner)

    result = await approvals.approve_timesheet(submitted.id, admin)

    assert result.status == TimesheetStatus.SUBMITTED
    assert result.signatures[0].signer_role == SignerRole.SUPERVISOR
    assert result.next_approver_id == manager.id


@pytest.mark.asyncio
async def test_employee_in_chain_cannot_approve(timesheets, approvals, make_profile):
    lead = await make_profile(UserRole.EMPLOYEE)
    owner = await make_profile(reports_to_id=lead.id)
    submitted = await _submit(timesheets, owner)

    with pytest.raises(UnauthorizedError):
        await approvals.approve_timesheet(submitted.id, lead)


@pytest.mark.asyncio
async def test_reject_requires_reason(timesheets, approvals, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    owner = await make_profile(supervisor_id=supervisor.id)
    submitted = await _submit(timesheets, owner)

    with pytest.raises(ValidationError):
        await approvals.reject_timesheet(submitted.id, supervisor, "   ")

    rejected = await approvals.reject_timesheet(submitted.id, supervisor, "  Missing Friday hours ")
    assert rejected.status == TimesheetStatus.REJECTED
    assert rejected.rejected_by_id == supervisor.id
    assert rejected.rejection_reason == "Missing Friday hours"


@pytest.mark.asyncio
async def test_reject_by_outsider_is_unauthorized(timesheets, approvals, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    outsider = await make_profile(UserRole.MANAGER)
    owner = await make_profile(supervisor_id=supervisor.id)
    submitted = await _submit(timesheets, owner)

    with pytest.raises(UnauthorizedError):
        await approvals.reject_timesheet(submitted.id, outsider, "No")


@pytest.mark.asyncio
async def test_rejected_timesheet_returns_to_draft_on_save(timesheets, approvals, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    owner = await make_profile(supervisor_id=supervisor.id)
    submitted = await _submit(timesheets, owner)
    await approvals.reject_timesheet(submitted.id, supervisor, "Wrong PO")

    payload = TimesheetEntriesUpdate(
        entries=[TimesheetEntryInput(task_description="Pump overhaul", mon_hours=Decimal("8"), tue_hours=Decimal("7.5"))],
        unbillable=[TimesheetUnbillableInput(description="PTO", fri_hours=Decimal("8"))],
    )
    saved = await timesheets.save_entries(submitted.id, owner, payload)

    assert saved.status == TimesheetStatus.DRAFT
    assert saved.total_hours == Decimal("23.5")
    assert saved.entries[0].total_hours == Decimal("15.5")

    resubmitted = await timesheets.submit_timesheet(submitted.id, owner)
    assert resubmitted.status == TimesheetStatus.SUBMITTED


@pytest.mark.asyncio
async def test_clear_rejection_note(timesheets, approvals, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    owner = await make_profile(supervisor_id=supervisor.id)
    submitted = await _submit(timesheets, owner)
    await approvals.reject_timesheet(submitted.id, supervisor, "Wrong week")

    cleared = await timesheets.clear_rejection_note(submitted.id, supervisor)

    assert cleared.status == TimesheetStatus.REJECTED
    assert cleared.rejection_reason is None
    assert cleared.rejected_by_id is None


@pytest.mark.asyncio
async def test_owner_cannot_edit_submitted_but_admin_can(timesheets, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    admin = await make_profile(UserRole.ADMIN)
    owner = await make_profile(supervisor_id=supervisor.id)
    submitted = await _submit(timesheets, owner)
    payload = TimesheetEntriesUpdate(entries=[TimesheetEntryInput(wed_hours=Decimal("4"))])

    with pytest.raises(InvalidTransitionError):
        await timesheets.save_entries(submitted.id, owner, payload)

    edited = await timesheets.save_entries(submitted.id, admin, payload)
    assert edited.status == TimesheetStatus.SUBMITTED
    assert edited.total_hours == Decimal("4")


@pytest.mark.asyncio
async def test_entries_must_reference_matching_site_and_po(timesheets, make_profile, make_site):
    owner = await make_profile()
    site, _, purchase_order = await make_site("North")
    other_site, _, _ = await make_site("South")
    draft = await timesheets.get_or_create_timesheet(owner, WEEK_ENDING)

    bad = TimesheetEntriesUpdate(entries=[TimesheetEntryInput(site_id=other_site.id, po_id=purchase_order.id)])
    with pytest.raises(ValidationError):
        await timesheets.save_entries(draft.id, owner, bad)

    good = TimesheetEntriesUpdate(entries=[TimesheetEntryInput(site_id=site.id, po_id=purchase_order.id, mon_hours=1)])
    saved = await timesheets.save_entries(draft.id, owner, good)
    assert saved.entries[0].po_id == purchase_order.id


@pytest.mark.asyncio
async def test_recall_clears_signatures(timesheets, approvals, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    manager = await make_profile(UserRole.MANAGER)
    owner = await make_profile(supervisor_id=supervisor.id, manager_id=manager.id)
    submitted = await _submit(timesheets, owner)
    await approvals.approve_timesheet(submitted.id, supervisor)

    recalled = await timesheets.recall_timesheet(submitted.id, owner)

    assert recalled.status == TimesheetStatus.DRAFT
    assert recalled.signatures == []
    assert recalled.submitted_at is None


@pytest.mark.asyncio
async def test_recall_of_approved_fails(timesheets, make_profile):
    owner = await make_profile()
    approved = await _submit(timesheets, owner)
    assert approved.status == TimesheetStatus.APPROVED

    with pytest.raises(InvalidTransitionError):
        await timesheets.recall_timesheet(approved.id, owner)


@pytest.mark.asyncio
async def test_delete_rules(timesheets, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    admin = await make_profile(UserRole.ADMIN)
    owner = await make_profile(supervisor_id=supervisor.id)

    draft = await timesheets.get_or_create_timesheet(owner, date(2025, 3, 2))
    await timesheets.delete_timesheet(draft.id, owner)

    submitted = await _submit(timesheets, owner)
    with pytest.raises(UnauthorizedError):
        await timesheets.delete_timesheet(submitted.id, owner)
    with pytest.raises(UnauthorizedError):
        await timesheets.delete_timesheet(submitted.id, supervisor)

    await timesheets.delete_timesheet(submitted.id, admin)
    mine = await timesheets.list_my_timesheets(owner)
    assert mine.total == 0


@pytest.mark.asyncio
async def test_view_permissions(timesheets, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    owner = await make_profile(supervisor_id=supervisor.id)
    stranger = await make_profile()
    draft = await timesheets.get_or_create_timesheet(owner, WEEK_ENDING)

    assert (await timesheets.get_timesheet(draft.id, supervisor)).id == draft.id
    with pytest.raises(UnauthorizedError):
        await timesheets.get_timesheet(draft.id, stranger)


@pytest.mark.asyncio
async def test_pending_approvals_follow_the_chain(timesheets, approvals, make_profile):
    admin = await make_profile(UserRole.ADMIN)
    supervisor = await make_profile(UserRole.SUPERVISOR)
    manager = await make_profile(UserRole.MANAGER)
    owner = await make_profile(supervisor_id=supervisor.id, manager_id=manager.id)
    submitted = await _submit(timesheets, owner)

    assert [t.id for t in (await approvals.list_pending_approvals(supervisor)).items] == [submitted.id]
    assert (await approvals.list_pending_approvals(manager)).total == 0
    assert (await approvals.list_pending_approvals(admin)).total == 1

    await approvals.approve_timesheet(submitted.id, supervisor)

    assert (await approvals.list_pending_approvals(supervisor)).total == 0
    pending = await approvals.list_pending_approvals(manager)
    assert pending.items[0].stage == "With Manager"


@pytest.mark.asyncio
async def test_my_timesheets_show_stage(timesheets, approvals, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    owner = await make_profile(supervisor_id=supervisor.id)
    await timesheets.get_or_create_timesheet(owner, date(2025, 3, 2))
    submitted = await _submit(timesheets, owner)

    mine = await timesheets.list_my_timesheets(owner)

    assert [item.week_ending for item in mine.items] == [WEEK_ENDING, date(2025, 3, 2)]
    assert mine.items[0].stage == "With Supervisor"
    assert mine.items[1].stage == "—"

    await approvals.reject_timesheet(submitted.id, supervisor, "Recheck hours")
    reviewed = await approvals.list_reviewed(supervisor, TimesheetStatus.REJECTED)
    assert [item.id for item in reviewed.items] == [submitted.id]
    assert (await timesheets.list_my_timesheets(owner)).items[0].stage == "Rejected"


@pytest.mark.asyncio
async def test_reviewed_rejects_other_statuses(approvals, make_profile):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    with pytest.raises(ValidationError):
        await approvals.list_reviewed(supervisor, TimesheetStatus.DRAFT)


def _status_changes_first(repo, monkeypatch, session, concurrent_status):
    """Make ``repo.transition`` lose to a request that moved the row just before it."""
    original = repo.transition

    async def transition(id, from_status, **values):
        await session.execute(
            update(Timesheet).where(Timesheet.id == id).values(status=concurrent_status)
        )
        return await original(id, from_status, **values)

    monkeypatch.setattr(repo, "transition", transition)


@pytest.mark.asyncio
async def test_approval_that_loses_the_race_is_a_noop(
    timesheets, approvals, make_profile, monkeypatch, test_db_session
):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    manager = await make_profile(UserRole.MANAGER)
    owner = await make_profile(supervisor_id=supervisor.id, manager_id=manager.id)
    supervisor_id = supervisor.id
    timesheet_id = (await _submit(timesheets, owner)).id
    await approvals.approve_timesheet(timesheet_id, supervisor)

    _status_changes_first(approvals.timesheet_repo, monkeypatch, test_db_session, TimesheetStatus.REJECTED)
    with pytest.raises(InvalidTransitionError, match="no longer awaiting approval"):
        await approvals.approve_timesheet(timesheet_id, manager)

    assert await approvals.ledger.signers_who_signed(timesheet_id) == {supervisor_id}
    reloaded = await approvals.timesheet_service.load(timesheet_id)
    assert reloaded.status == TimesheetStatus.SUBMITTED
    assert reloaded.approved_by_id is None


@pytest.mark.asyncio
async def test_rejection_that_loses_the_race_is_a_noop(
    timesheets, approvals, make_profile, monkeypatch, test_db_session
):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    owner = await make_profile(supervisor_id=supervisor.id)
    timesheet_id = (await _submit(timesheets, owner)).id

    _status_changes_first(approvals.timesheet_repo, monkeypatch, test_db_session, TimesheetStatus.APPROVED)
    with pytest.raises(InvalidTransitionError, match="no longer awaiting approval"):
        await approvals.reject_timesheet(timesheet_id, supervisor, "Wrong PO")

    reloaded = await approvals.timesheet_service.load(timesheet_id)
    assert reloaded.status == TimesheetStatus.SUBMITTED
    assert reloaded.rejection_reason is None


@pytest.mark.asyncio
async def test_recall_that_loses_the_race_keeps_signatures(
    timesheets, approvals, make_profile, monkeypatch, test_db_session
):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    manager = await make_profile(UserRole.MANAGER)
    owner = await make_profile(supervisor_id=supervisor.id, manager_id=manager.id)
    supervisor_id = supervisor.id
    timesheet_id = (await _submit(timesheets, owner)).id
    await approvals.approve_timesheet(timesheet_id, supervisor)

    _status_changes_first(timesheets.timesheet_repo, monkeypatch, test_db_session, TimesheetStatus.APPROVED)
    with pytest.raises(InvalidTransitionError):
        await timesheets.recall_timesheet(timesheet_id, owner)

    # Clearing and resetting are one unit: the cleared signatures come back
    assert await timesheets.ledger.signers_who_signed(timesheet_id) == {supervisor_id}
    assert (await timesheets.load(timesheet_id)).status == TimesheetStatus.SUBMITTED


@pytest.mark.asyncio
async def test_pending_queue_empty_for_chain_member_without_approver_role(timesheets, approvals, make_profile):
    admin = await make_profile(UserRole.ADMIN)
    buddy = await make_profile(UserRole.EMPLOYEE)
    owner = await make_profile(supervisor_id=buddy.id)
    submitted = await _submit(timesheets, owner)
    assert submitted.next_approver_id == buddy.id

    assert (await approvals.list_pending_approvals(buddy)).total == 0
    assert [t.id for t in (await approvals.list_pending_approvals(admin)).items] == [submitted.id]

    finalised = await approvals.approve_timesheet(submitted.id, admin)
    assert finalised.status == TimesheetStatus.APPROVED


@pytest.mark.asyncio
async def test_admin_sees_every_user_and_reviewed_timesheet(
    timesheets, approvals, make_profile, test_db_session
):
    admin = await make_profile(UserRole.ADMIN, name="Admin")
    test_db_session.add_all([
        Profile(id=uuid.uuid4(), email=f"bulk{i}@example.com", name=f"Bulk {i:03d}")
        for i in range(501)
    ])
    await test_db_session.commit()
    last = await make_profile(name="ZZZ Last")
    boss = await make_profile(UserRole.SUPER_ADMIN, name="ZZZ Boss")

    # No approvers: both auto-approve on submit
    approved = await _submit(timesheets, last)
    await _submit(timesheets, boss)

    visible = await AccessPolicy(test_db_session).visible_users(admin)
    assert len(visible) == 503
    assert last.id in {p.id for p in visible}
    assert boss.id not in {p.id for p in visible}

    reviewed = await approvals.list_reviewed(admin, TimesheetStatus.APPROVED)
    assert [t.id for t in reviewed.items] == [approved.id]
