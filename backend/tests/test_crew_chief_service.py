"""
Tests for CrewChiefService – precedence walk, revocation, eligibility, listings.
Runs against the in-memory SQLite session from conftest.
"""
import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from crewtime.models.client import Job
from crewtime.models.crew_chief_permission import CrewChiefPermission
from crewtime.models.user import ROLE_ADMIN, ROLE_CLIENT, ROLE_EMPLOYEE
from crewtime.services.crew_chief_service import (
    AuthorityCheck,
    CrewChiefService,
    InvalidEligibilityError,
    PermissionSource,
    PermissionType,
    TargetNotFoundError,
    permission_summary,
)
from tests.conftest import make_shift, make_user


async def _grants_for(db, user_id):
    result = await db.execute(
        select(CrewChiefPermission).where(CrewChiefPermission.user_id == user_id)
    )
    return result.scalars().all()


# ── Admin override / role eligibility ─────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("target_type", list(PermissionType))
async def test_admin_has_authority_on_any_target(db, target_type):
    """Manager/Admin passes without any lookup – even for ids that don't exist."""
    svc = CrewChiefService(db)
    admin = SimpleNamespace(id=uuid.uuid4(), role=ROLE_ADMIN)
    check = await svc.check_authority(admin, target_type, uuid.uuid4())
    assert check.has_permission
    assert check.source == PermissionSource.ADMIN


@pytest.mark.asyncio
async def test_client_role_never_has_authority(db, client_user, shift):
    """Stale grant rows for a Client-role user are ignored."""
    db.add(CrewChiefPermission(
        user_id=client_user.id, permission_type="shift", target_id=shift.id,
    ))
    await db.commit()

    svc = CrewChiefService(db)
    assert not await svc.has_crew_chief_authority(client_user, PermissionType.SHIFT, shift.id)


@pytest.mark.asyncio
async def test_client_role_denied_before_target_lookup(db, client_user):
    """Ineligible roles are refused without resolving the target, so no 404."""
    svc = CrewChiefService(db)
    check = await svc.check_authority(client_user, PermissionType.SHIFT, uuid.uuid4())
    assert not check.has_permission
    assert check.source == PermissionSource.NONE


@pytest.mark.asyncio
async def test_no_grants_no_authority(db, employee_user, shift):
    svc = CrewChiefService(db)
    check = await svc.check_authority(employee_user, "shift", shift.id)
    assert not check.has_permission
    assert check.source == PermissionSource.NONE


# ── Designation ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_designated_crew_chief_without_grants(db, job, crew_chief_user):
    shift = await make_shift(db, job, crew_chief_id=crew_chief_user.id)
    svc = CrewChiefService(db)

    check = await svc.check_authority(crew_chief_user, PermissionType.SHIFT, shift.id)
    assert check.has_permission
    assert check.source == PermissionSource.DESIGNATED
    assert await _grants_for(db, crew_chief_user.id) == []


@pytest.mark.asyncio
async def test_designation_does_not_extend_to_job(db, job, crew_chief_user):
    """Designation is per shift; it gives nothing on the parent job."""
    await make_shift(db, job, crew_chief_id=crew_chief_user.id)
    svc = CrewChiefService(db)
    assert not await svc.has_crew_chief_authority(crew_chief_user, PermissionType.JOB, job.id)


# ── Hierarchy walk ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("level", ["shift", "job", "client"])
async def test_grant_at_each_level_covers_shift(db, admin_user, employee_user, company, job, shift, level):
    target_id = {"shift": shift.id, "job": job.id, "client": company.id}[level]
    svc = CrewChiefService(db)
    await svc.grant_permission(employee_user.id, level, target_id, admin_user.id)

    check = await svc.check_authority(employee_user, PermissionType.SHIFT, shift.id)
    assert check.has_permission
    assert check.source == PermissionSource(level)
    assert len(check.permissions) == 1


@pytest.mark.asyncio
async def test_most_specific_grant_wins(db, admin_user, employee_user, company, job, shift):
    svc = CrewChiefService(db)
    await svc.grant_permission(employee_user.id, "client", company.id, admin_user.id)
    await svc.grant_permission(employee_user.id, "shift", shift.id, admin_user.id)

    check = await svc.check_authority(employee_user, PermissionType.SHIFT, shift.id)
    assert check.source == PermissionSource.SHIFT


@pytest.mark.asyncio
async def test_revoked_shift_grant_falls_back_to_job_grant(db, admin_user, employee_user, job, shift):
    """Revocation only affects its own row; the job-level grant still applies."""
    svc = CrewChiefService(db)
    await svc.grant_permission(employee_user.id, "shift", shift.id, admin_user.id)
    await svc.grant_permission(employee_user.id, "job", job.id, admin_user.id)
    await svc.revoke_permission(employee_user.id, "shift", shift.id)

    check = await svc.check_authority(employee_user, PermissionType.SHIFT, shift.id)
    assert check.has_permission
    assert check.source == PermissionSource.JOB


@pytest.mark.asyncio
async def test_job_target_walks_upward_only(db, admin_user, employee_user, company, job, shift):
    """A shift grant says nothing about the job; a client grant does."""
    svc = CrewChiefService(db)
    await svc.grant_permission(employee_user.id, "shift", shift.id, admin_user.id)
    assert not await svc.has_crew_chief_authority(employee_user, PermissionType.JOB, job.id)

    await svc.grant_permission(employee_user.id, "client", company.id, admin_user.id)
    check = await svc.check_authority(employee_user, PermissionType.JOB, job.id)
    assert check.source == PermissionSource.CLIENT


@pytest.mark.asyncio
async def test_grant_on_other_job_does_not_apply(db, admin_user, employee_user, company, shift):
    other_job = Job(id=uuid.uuid4(), client_id=company.id, name="Other Gig")
    db.add(other_job)
    await db.commit()

    svc = CrewChiefService(db)
    await svc.grant_permission(employee_user.id, "job", other_job.id, admin_user.id)
    assert not await svc.has_crew_chief_authority(employee_user, PermissionType.SHIFT, shift.id)


@pytest.mark.asyncio
async def test_duplicate_active_grants_are_tolerated(db, admin_user, employee_user, shift):
    svc = CrewChiefService(db)
    await svc.grant_permission(employee_user.id, "shift", shift.id, admin_user.id)
    await svc.grant_permission(employee_user.id, "shift", shift.id, admin_user.id)

    check = await svc.check_authority(employee_user, PermissionType.SHIFT, shift.id)
    assert check.has_permission
    assert len(check.permissions) == 2


# ── Not found ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("target_type", list(PermissionType))
async def test_missing_target_is_not_found_not_denied(db, employee_user, target_type):
    svc = CrewChiefService(db)
    with pytest.raises(TargetNotFoundError) as exc_info:
        await svc.check_authority(employee_user, target_type, uuid.uuid4())
    assert exc_info.value.target_type == target_type.value


@pytest.mark.asyncio
async def test_shift_with_missing_job_is_not_found(db, employee_user, company):
    job = Job(id=uuid.uuid4(), client_id=company.id, name="Gone Soon")
    db.add(job)
    await db.commit()
    shift = await make_shift(db, job)
    # Orphan the shift (SQLite does not enforce the FK here)
    shift.job_id = uuid.uuid4()
    await db.commit()

    svc = CrewChiefService(db)
    with pytest.raises(TargetNotFoundError) as exc_info:
        await svc.check_authority(employee_user, PermissionType.SHIFT, shift.id)
    assert exc_info.value.target_type == "job"


# ── grant_permission ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_grant_creates_active_row(db, admin_user, crew_chief_user, job):
    svc = CrewChiefService(db)
    perm = await svc.grant_permission(crew_chief_user.id, PermissionType.JOB, job.id, admin_user.id)
    assert perm.id is not None
    assert perm.permission_type == "job"
    assert perm.granted_by_user_id == admin_user.id
    assert perm.revoked_at is None
    assert perm.is_active


@pytest.mark.asyncio
@pytest.mark.parametrize("role", [ROLE_CLIENT, ROLE_ADMIN])
async def test_grant_to_ineligible_role_rejected(db, admin_user, shift, role):
    svc = CrewChiefService(db)
    user = await make_user(db, role, "Not Eligible")
    with pytest.raises(InvalidEligibilityError) as exc_info:
        await svc.grant_permission(user.id, "shift", shift.id, admin_user.id)
    assert exc_info.value.role == role
    assert await _grants_for(db, user.id) == []


@pytest.mark.asyncio
async def test_grant_to_unknown_user_not_found(db, admin_user, shift):
    svc = CrewChiefService(db)
    with pytest.raises(TargetNotFoundError):
        await svc.grant_permission(uuid.uuid4(), "shift", shift.id, admin_user.id)


@pytest.mark.asyncio
async def test_grant_on_unknown_target_not_found(db, admin_user, employee_user):
    svc = CrewChiefService(db)
    with pytest.raises(TargetNotFoundError):
        await svc.grant_permission(employee_user.id, "client", uuid.uuid4(), admin_user.id)
    assert await _grants_for(db, employee_user.id) == []


@pytest.mark.asyncio
async def test_grant_invalid_type_raises_value_error(db, admin_user, employee_user, shift):
    svc = CrewChiefService(db)
    with pytest.raises(ValueError):
        await svc.grant_permission(employee_user.id, "venue", shift.id, admin_user.id)


# ── revoke_permission ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_revoke_is_idempotent(db, admin_user, employee_user, shift):
    svc = CrewChiefService(db)
    await svc.grant_permission(employee_user.id, "shift", shift.id, admin_user.id)
    await svc.grant_permission(employee_user.id, "shift", shift.id, admin_user.id)

    assert await svc.revoke_permission(employee_user.id, "shift", shift.id) == 2
    rows = await _grants_for(db, employee_user.id)
    for row in rows:
        await db.refresh(row)
    first_revoked_at = {row.id: row.revoked_at for row in rows}
    assert all(ts is not None for ts in first_revoked_at.values())

    assert await svc.revoke_permission(employee_user.id, "shift", shift.id) == 0
    for row in rows:
        await db.refresh(row)
        assert row.revoked_at == first_revoked_at[row.id]


@pytest.mark.asyncio
async def test_revoke_absent_grant_is_noop(db, employee_user):
    svc = CrewChiefService(db)
    assert await svc.revoke_permission(employee_user.id, PermissionType.CLIENT, uuid.uuid4()) == 0


@pytest.mark.asyncio
async def test_regrant_after_revoke_creates_new_row(db, admin_user, employee_user, shift):
    svc = CrewChiefService(db)
    first = await svc.grant_permission(employee_user.id, "shift", shift.id, admin_user.id)
    await svc.revoke_permission(employee_user.id, "shift", shift.id)
    second = await svc.grant_permission(employee_user.id, "shift", shift.id, admin_user.id)

    assert second.id != first.id
    assert len(await _grants_for(db, employee_user.id)) == 2
    assert await svc.has_crew_chief_authority(employee_user, "shift", shift.id)


# ── Listings ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_permissions_for_target(db, admin_user, employee_user, crew_chief_user, job):
    svc = CrewChiefService(db)
    await svc.grant_permission(employee_user.id, "job", job.id, admin_user.id)
    await svc.grant_permission(crew_chief_user.id, "job", job.id, admin_user.id)
    await svc.revoke_permission(employee_user.id, "job", job.id)

    listings = await svc.list_permissions(PermissionType.JOB, job.id)
    assert len(listings) == 1
    assert listings[0].permission.user_id == crew_chief_user.id
    assert listings[0].user_name == "Carla Chief"
    assert listings[0].user_role == "Crew Chief"
    assert listings[0].granted_by_name == "Alice Admin"


@pytest.mark.asyncio
async def test_list_user_permissions_only_active(db, admin_user, employee_user, company, job):
    svc = CrewChiefService(db)
    await svc.grant_permission(employee_user.id, "client", company.id, admin_user.id)
    await svc.grant_permission(employee_user.id, "job", job.id, admin_user.id)
    await svc.revoke_permission(employee_user.id, "client", company.id)

    perms = await svc.list_user_permissions(employee_user.id)
    assert [p.permission_type for p in perms] == ["job"]


@pytest.mark.asyncio
async def test_list_all_permissions_names_targets(db, admin_user, employee_user, company, job, shift):
    svc = CrewChiefService(db)
    await svc.grant_permission(employee_user.id, "client", company.id, admin_user.id)
    await svc.grant_permission(employee_user.id, "job", job.id, admin_user.id)
    await svc.grant_permission(employee_user.id, "shift", shift.id, admin_user.id)

    listings = await svc.list_all_permissions()
    names = {listing.permission.permission_type: listing.target_name for listing in listings}
    assert names == {
        "client": "Stagehands Inc",
        "job": "Arena Load-In",
        "shift": "Arena Load-In - 2025-07-03 09:00",
    }


@pytest.mark.asyncio
async def test_grant_candidates_exclude_granted_and_ineligible(
    db, admin_user, employee_user, crew_chief_user, client_user, shift
):
    inactive = await make_user(db, ROLE_EMPLOYEE, "Ivy Inactive", is_active=False)
    svc = CrewChiefService(db)
    await svc.grant_permission(employee_user.id, "shift", shift.id, admin_user.id)

    candidates = await svc.list_grant_candidates(PermissionType.SHIFT, shift.id)
    ids = {u.id for u in candidates}
    assert crew_chief_user.id in ids
    assert employee_user.id not in ids
    assert client_user.id not in ids
    assert admin_user.id not in ids
    assert inactive.id not in ids


# ── permission_summary ────────────────────────────────────────────────────────

def test_permission_summary_texts():
    assert permission_summary(AuthorityCheck(False)) == "No permissions"
    assert permission_summary(AuthorityCheck(True, PermissionSource.DESIGNATED)) == "Designated crew chief for this shift"
    assert permission_summary(AuthorityCheck(True, PermissionSource.CLIENT)) == "Admin-granted permission for this client"
