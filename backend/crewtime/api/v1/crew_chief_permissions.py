"""
Crew chief permissions API – grant, revoke, list (Manager/Admin) and authority checks.
"""
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from crewtime.api.deps import DB, AdminUser, CurrentUser, CrewChiefSvc
from crewtime.models.user import User, ROLE_ADMIN
from crewtime.schemas.crew_chief import (
    PermissionGrantCreate, PermissionOut, PermissionListingOut, GrantCandidateOut,
    AuthorityCheckOut, RevokeResult,
)
from crewtime.services.crew_chief_service import (
    CrewChiefPermissionError, TargetNotFoundError, PermissionListing, PermissionType,
    permission_summary,
)

router = APIRouter(prefix="/crew-chief-permissions", tags=["crew-chief-permissions"])


def _http_error(exc: CrewChiefPermissionError) -> HTTPException:
    if isinstance(exc, TargetNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _listing_out(listing: PermissionListing) -> PermissionListingOut:
    return PermissionListingOut(
        **PermissionOut.model_validate(listing.permission).model_dump(),
        user_name=listing.user_name,
        user_role=listing.user_role,
        granted_by_name=listing.granted_by_name,
        target_name=listing.target_name,
    )


@router.get("", response_model=list[PermissionListingOut])
async def list_permissions(
    current_user: AdminUser,
    svc: CrewChiefSvc,
    user_id: uuid.UUID | None = Query(None),
    permission_type: PermissionType | None = Query(None),
    target_id: uuid.UUID | None = Query(None),
):
    """Active grants of one user, or active grants on one target."""
    if user_id:
        permissions = await svc.list_user_permissions(user_id)
        return [_listing_out(PermissionListing(permission=p)) for p in permissions]
    if permission_type and target_id:
        listings = await svc.list_permissions(permission_type, target_id)
        return [_listing_out(listing) for listing in listings]
    raise HTTPException(status_code=400, detail="Missing required parameters")


@router.get("/all", response_model=list[PermissionListingOut])
async def list_all_permissions(current_user: AdminUser, svc: CrewChiefSvc):
    listings = await svc.list_all_permissions()
    return [_listing_out(listing) for listing in listings]


@router.get("/candidates", response_model=list[GrantCandidateOut])
async def list_grant_candidates(
    current_user: AdminUser,
    svc: CrewChiefSvc,
    permission_type: PermissionType = Query(...),
    target_id: uuid.UUID = Query(...),
):
    """Eligible users that do not already have permission on the target."""
    return await svc.list_grant_candidates(permission_type, target_id)


@router.post("", response_model=PermissionOut, status_code=status.HTTP_201_CREATED)
async def grant_permission(payload: PermissionGrantCreate, current_user: AdminUser, svc: CrewChiefSvc):
    try:
        return await svc.grant_permission(
            payload.user_id, payload.permission_type, payload.target_id, current_user.id
        )
    except CrewChiefPermissionError as exc:
        raise _http_error(exc)


@router.delete("", response_model=RevokeResult)
async def revoke_permission(
    current_user: AdminUser,
    svc: CrewChiefSvc,
    user_id: uuid.UUID = Query(...),
    permission_type: PermissionType = Query(...),
    target_id: uuid.UUID = Query(...),
):
    revoked = await svc.revoke_permission(user_id, permission_type, target_id)
    return RevokeResult(revoked_count=revoked)


@router.get("/check", response_model=AuthorityCheckOut)
async def check_permission(
    current_user: CurrentUser,
    svc: CrewChiefSvc,
    db: DB,
    target_type: PermissionType = Query(...),
    target_id: uuid.UUID = Query(...),
    user_id: uuid.UUID | None = Query(None),
):
    """Own authority over a target; Manager/Admin may check any user."""
    subject = current_user
    if user_id and user_id != current_user.id:
        if current_user.role != ROLE_ADMIN:
            raise HTTPException(status_code=403, detail="Forbidden")
        subject = await db.get(User, user_id)
        if subject is None:
            raise HTTPException(status_code=404, detail="User not found")

    try:
        check = await svc.check_authority(subject, target_type, target_id)
    except CrewChiefPermissionError as exc:
        raise _http_error(exc)

    return AuthorityCheckOut(
        user_id=subject.id,
        target_type=target_type,
        target_id=target_id,
        has_permission=check.has_permission,
        permission_source=check.source,
        summary=permission_summary(check),
        permissions=[PermissionOut.model_validate(p) for p in check.permissions],
    )
