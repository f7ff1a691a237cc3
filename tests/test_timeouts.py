"""
Bounded waits: slow lookups read as missing records, slow ledger calls as
not found, slow profile lookups during authentication as unauthenticated.
"""

import asyncio
from datetime import date

import pytest

from timesheets_api.core.config import settings
from timesheets_api.core.exceptions import NotFoundError
from timesheets_api.core.timeout import bounded, with_timeout
from timesheets_api.db.repositories.profile_repository import ProfileRepository
from timesheets_api.models.profile import UserRole
from timesheets_api.models.timesheet import TimesheetStatus
from timesheets_api.services.timesheet_approval_service import TimesheetApprovalService
from timesheets_api.services.timesheet_service import TimesheetService

WEEK_ENDING = date(2025, 3, 9)


async def _never_answers(*args, **kwargs):
    await asyncio.sleep(10)


@pytest.fixture
def short_query_timeout(monkeypatch):
    monkeypatch.setattr(settings, "DB_QUERY_TIMEOUT_SECONDS", 0.05)


@pytest.mark.asyncio
async def test_with_timeout_returns_none_for_slow_lookup():
    assert await with_timeout(_never_answers(), timeout=0.01) is None


@pytest.mark.asyncio
async def test_with_timeout_returns_value_in_time():
    async def fast():
        return "profile"

    assert await with_timeout(fast(), timeout=1) == "profile"


@pytest.mark.asyncio
async def test_bounded_raises_on_timeout(short_query_timeout):
    with pytest.raises(asyncio.TimeoutError):
        await bounded(_never_answers(), operation="list_signer_ids")


@pytest.mark.asyncio
async def test_slow_profile_lookup_is_unauthenticated(
    test_client, make_profile, auth_headers, monkeypatch, short_query_timeout
):
    profile = await make_profile()
    headers = auth_headers(profile)
    monkeypatch.setattr(ProfileRepository, "get", _never_answers)

    response = await test_client.get("/api/v1/timesheets/mine", headers=headers)

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_slow_ledger_reads_as_not_found(test_db_session, make_profile, monkeypatch, short_query_timeout):
    supervisor = await make_profile(UserRole.SUPERVISOR)
    owner = await make_profile(supervisor_id=supervisor.id)
    timesheets = TimesheetService(test_db_session)
    draft = await timesheets.get_or_create_timesheet(owner, WEEK_ENDING)
    timesheet_id = (await timesheets.submit_timesheet(draft.id, owner)).id

    approvals = TimesheetApprovalService(test_db_session)
    monkeypatch.setattr(approvals.ledger.signature_repo, "list_signer_ids", _never_answers)

    with pytest.raises(NotFoundError, match="signatures are unavailable"):
        await approvals.approve_timesheet(timesheet_id, supervisor)

    assert (await timesheets.load(timesheet_id)).status == TimesheetStatus.SUBMITTED


@pytest.mark.asyncio
async def test_slow_timesheet_load_is_not_found(test_db_session, make_profile, monkeypatch, short_query_timeout):
    owner = await make_profile()
    timesheets = TimesheetService(test_db_session)
    draft = await timesheets.get_or_create_timesheet(owner, WEEK_ENDING)
    monkeypatch.setattr(timesheets.timesheet_repo, "get", _never_answers)

    with pytest.raises(NotFoundError):
        await timesheets.get_timesheet(draft.id, owner)
