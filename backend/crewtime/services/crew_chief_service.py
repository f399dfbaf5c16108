"""
CrewChiefService: hierarchical crew chief authority and grant management.

Precedence, highest first:
  1. Manager/Admin role – always authorised
  2. Designated crew chief of the shift (shifts.crew_chief_id)
  3. Active grant on the shift, then its job, then the job's client

Roles other than Employee / Crew Chief never hold crew chief authority, even
when stale grant rows exist for them.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from crewtime.models.client import Client, Job
from crewtime.models.crew_chief_permission import CrewChiefPermission
from crewtime.models.shift import Shift
from crewtime.models.user import User, ROLE_ADMIN, GRANT_ELIGIBLE_ROLES

logger = logging.getLogger(__name__)


class PermissionType(str, Enum):
    CLIENT = "client"
    JOB = "job"
    SHIFT = "shift"


class PermissionSource(str, Enum):
    ADMIN = "admin"
    DESIGNATED = "designated"
    SHIFT = "shift"
    JOB = "job"
    CLIENT = "client"
    NONE = "none"


# Most specific level first; a walk starting at a level only moves rightwards
HIERARCHY: tuple[PermissionType, ...] = (
    PermissionType.SHIFT,
    PermissionType.JOB,
    PermissionType.CLIENT,
)


class CrewChiefPermissionError(Exception):
    pass


class InvalidEligibilityError(CrewChiefPermissionError):
    """The grantee's role cannot hold crew chief grants."""

    def __init__(self, user_id: uuid.UUID, role: str | None):
        self.user_id = user_id
        self.role = role
        super().__init__(
            f"User {user_id} has role {role!r}; only Employee or Crew Chief users can be granted crew chief permissions"
        )


class TargetNotFoundError(CrewChiefPermissionError):
    """A user, shift, job or client (or its parent) does not exist."""

    def __init__(self, target_type: str, target_id: uuid.UUID | None):
        self.target_type = target_type
        self.target_id = target_id
        super().__init__(f"{target_type.capitalize()} {target_id} not found")


@dataclass
class AuthorityCheck:
    has_permission: bool
    source: PermissionSource = PermissionSource.NONE
    permissions: list[CrewChiefPermission] = field(default_factory=list)


@dataclass
class PermissionListing:
    """An active grant enriched with display names for the admin UI."""
    permission: CrewChiefPermission
    user_name: str | None = None
    user_role: str | None = None
    granted_by_name: str | None = None
    target_name: str | None = None


def permission_summary(check: AuthorityCheck) -> str:
    if not check.has_permission:
        return "No permissions"
    return {
        PermissionSource.ADMIN: "Manager/Admin access",
        PermissionSource.DESIGNATED: "Designated crew chief for this shift",
        PermissionSource.SHIFT: "Admin-granted permission for this shift",
        PermissionSource.JOB: "Admin-granted permission for this job",
        PermissionSource.CLIENT: "Admin-granted permission for this client",
    }.get(check.source, "Has permissions")


class CrewChiefService:

    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Hierarchy lookups ─────────────────────────────────────────────────────

    async def _get_shift(self, shift_id: uuid.UUID) -> Shift:
        shift = await self.db.get(Shift, shift_id)
        if shift is None:
            logger.warning("Crew chief lookup: %s %s not found", PermissionType.SHIFT.value, shift_id)
            raise TargetNotFoundError(PermissionType.SHIFT.value, shift_id)
        return shift

    async def _get_job(self, job_id: uuid.UUID) -> Job:
        job = await self.db.get(Job, job_id)
        if job is None:
            logger.warning("Crew chief lookup: %s %s not found", PermissionType.JOB.value, job_id)
            raise TargetNotFoundError(PermissionType.JOB.value, job_id)
        return job

    async def _get_client(self, client_id: uuid.UUID) -> Client:
        client = await self.db.get(Client, client_id)
        if client is None:
            logger.warning("Crew chief lookup: %s %s not found", PermissionType.CLIENT.value, client_id)
            raise TargetNotFoundError(PermissionType.CLIENT.value, client_id)
        return client

    async def _resolve_scopes(
        self, target_type: PermissionType, target_id: uuid.UUID
    ) -> tuple[list[tuple[PermissionType, uuid.UUID]], Shift | None]:
        """
        (level, id) pairs to check, most specific first, plus the shift when
        the walk starts at a shift. Raises TargetNotFoundError when any level
        cannot be resolved.
        """
        scopes: list[tuple[PermissionType, uuid.UUID]] = []
        shift = None
        job_id = client_id = None

        if target_type is PermissionType.SHIFT:
            shift = await self._get_shift(target_id)
            scopes.append((PermissionType.SHIFT, shift.id))
            job_id = shift.job_id
        elif target_type is PermissionType.JOB:
            job_id = target_id
        else:
            client_id = target_id

        if job_id is not None:
            job = await self._get_job(job_id)
            scopes.append((PermissionType.JOB, job.id))
            client_id = job.client_id

        client = await self._get_client(client_id)
        scopes.append((PermissionType.CLIENT, client.id))
        return scopes, shift

    async def _active_grants(
        self, user_id: uuid.UUID, scopes: list[tuple[PermissionType, uuid.UUID]]
    ) -> list[CrewChiefPermission]:
        result = await self.db.execute(
            select(CrewChiefPermission).where(
                CrewChiefPermission.user_id == user_id,
                CrewChiefPermission.revoked_at.is_(None),
                or_(*[
                    and_(
                        CrewChiefPermission.permission_type == level.value,
                        CrewChiefPermission.target_id == scope_id,
                    )
                    for level, scope_id in scopes
                ]),
            )
        )
        return list(result.scalars().all())

    # ── Authority ─────────────────────────────────────────────────────────────

    async def check_authority(
        self, user: Any, target_type: PermissionType | str, target_id: uuid.UUID
    ) -> AuthorityCheck:
        """
        Resolve crew chief authority of ``user`` (anything with ``id`` and
        ``role``) over a shift, job or client.

        A missing target raises TargetNotFoundError so callers can tell
        "does not exist" apart from "not allowed".

        The role is checked before anything is looked up: admins get True
        and ineligible roles (e.g. Client) get False even for targets that
        do not exist. Not-found is only reported for Employee and Crew Chief
        users.
        """
        target_type = PermissionType(target_type)

        if user.role == ROLE_ADMIN:
            return AuthorityCheck(True, PermissionSource.ADMIN)
        if user.role not in GRANT_ELIGIBLE_ROLES:
            return AuthorityCheck(False)

        scopes, shift = await self._resolve_scopes(target_type, target_id)

        if shift is not None and shift.crew_chief_id == user.id:
            return AuthorityCheck(True, PermissionSource.DESIGNATED)

        grants = await self._active_grants(user.id, scopes)
        for level, scope_id in scopes:
            matching = [
                g for g in grants
                if g.permission_type == level.value and g.target_id == scope_id
            ]
            if matching:
                return AuthorityCheck(True, PermissionSource(level.value), matching)

        return AuthorityCheck(False)

    async def has_crew_chief_authority(
        self, user: Any, target_type: PermissionType | str, target_id: uuid.UUID
    ) -> bool:
        check = await self.check_authority(user, target_type, target_id)
        return check.has_permission

    # ── Grant / revoke ────────────────────────────────────────────────────────

    async def _ensure_target_exists(self, permission_type: PermissionType, target_id: uuid.UUID) -> None:
        if permission_type is PermissionType.SHIFT:
            await self._get_shift(target_id)
        elif permission_type is PermissionType.JOB:
            await self._get_job(target_id)
        else:
            await self._get_client(target_id)

    async def grant_permission(
        self,
        user_id: uuid.UUID,
        permission_type: PermissionType | str,
        target_id: uuid.UUID,
        granted_by: uuid.UUID | None,
    ) -> CrewChiefPermission:
        """
        Insert a new active grant. Existing active grants for the same tuple
        are left alone; the resolver treats any active grant as sufficient.
        """
        permission_type = PermissionType(permission_type)

        grantee = await self.db.get(User, user_id)
        if grantee is None:
            logger.warning("Grant rejected: user %s not found", user_id)
            raise TargetNotFoundError("user", user_id)
        if grantee.role not in GRANT_ELIGIBLE_ROLES:
            logger.warning("Grant rejected: user %s has ineligible role %r", user_id, grantee.role)
            raise InvalidEligibilityError(user_id, grantee.role)

        await self._ensure_target_exists(permission_type, target_id)

        permission = CrewChiefPermission(
            user_id=user_id,
            permission_type=permission_type.value,
            target_id=target_id,
            granted_by_user_id=granted_by,
            granted_at=datetime.now(timezone.utc),
        )
        self.db.add(permission)
        await self.db.commit()
        await self.db.refresh(permission)
        logger.info(
            "Granted %s crew chief permission on %s to user %s (by %s)",
            permission_type.value, target_id, user_id, granted_by,
        )
        return permission

    async def revoke_permission(
        self, user_id: uuid.UUID, permission_type: PermissionType | str, target_id: uuid.UUID
    ) -> int:
        """Revoke every active grant for the tuple. Returns the number revoked (0 is fine)."""
        permission_type = PermissionType(permission_type)
        result = await self.db.execute(
            update(CrewChiefPermission)
            .where(
                CrewChiefPermission.user_id == user_id,
                CrewChiefPermission.permission_type == permission_type.value,
                CrewChiefPermission.target_id == target_id,
                CrewChiefPermission.revoked_at.is_(None),
            )
            .values(revoked_at=datetime.now(timezone.utc))
        )
        await self.db.commit()
        revoked = result.rowcount or 0
        if revoked:
            logger.info(
                "Revoked %d %s crew chief permission(s) on %s for user %s",
                revoked, permission_type.value, target_id, user_id,
            )
        return revoked

    # ── Listings ──────────────────────────────────────────────────────────────

    async def list_permissions(
        self, permission_type: PermissionType | str, target_id: uuid.UUID
    ) -> list[PermissionListing]:
        """Active grants for one target, newest first."""
        permission_type = PermissionType(permission_type)
        grantee = aliased(User)
        grantor = aliased(User)
        result = await self.db.execute(
            select(CrewChiefPermission, grantee.name, grantee.role, grantor.name)
            .join(grantee, CrewChiefPermission.user_id == grantee.id)
            .outerjoin(grantor, CrewChiefPermission.granted_by_user_id == grantor.id)
            .where(
                CrewChiefPermission.permission_type == permission_type.value,
                CrewChiefPermission.target_id == target_id,
                CrewChiefPermission.revoked_at.is_(None),
            )
            .order_by(CrewChiefPermission.granted_at.desc())
        )
        return [
            PermissionListing(
                permission=perm,
                user_name=user_name,
                user_role=user_role,
                granted_by_name=granted_by_name,
            )
            for perm, user_name, user_role, granted_by_name in result.all()
        ]

    async def list_user_permissions(self, user_id: uuid.UUID) -> list[CrewChiefPermission]:
        result = await self.db.execute(
            select(CrewChiefPermission)
            .where(
                CrewChiefPermission.user_id == user_id,
                CrewChiefPermission.revoked_at.is_(None),
            )
            .order_by(CrewChiefPermission.granted_at.desc())
        )
        return list(result.scalars().all())

    async def _target_name(self, permission_type: str, target_id: uuid.UUID) -> str | None:
        if permission_type == PermissionType.CLIENT.value:
            client = await self.db.get(Client, target_id)
            return client.company_name if client else None
        if permission_type == PermissionType.JOB.value:
            job = await self.db.get(Job, target_id)
            return job.name if job else None
        shift = await self.db.get(Shift, target_id)
        if shift is None:
            return None
        job = await self.db.get(Job, shift.job_id)
        job_name = job.name if job else "Unknown job"
        return f"{job_name} - {shift.date.isoformat()} {shift.start_time.strftime('%H:%M')}"

    async def list_all_permissions(self) -> list[PermissionListing]:
        """Every active grant with grantee, grantor and target names."""
        grantee = aliased(User)
        grantor = aliased(User)
        result = await self.db.execute(
            select(CrewChiefPermission, grantee.name, grantee.role, grantor.name)
            .join(grantee, CrewChiefPermission.user_id == grantee.id)
            .outerjoin(grantor, CrewChiefPermission.granted_by_user_id == grantor.id)
            .where(CrewChiefPermission.revoked_at.is_(None))
            .order_by(CrewChiefPermission.granted_at.desc())
        )
        listings = []
        for perm, user_name, user_role, granted_by_name in result.all():
            listings.append(PermissionListing(
                permission=perm,
                user_name=user_name,
                user_role=user_role,
                granted_by_name=granted_by_name,
                target_name=await self._target_name(perm.permission_type, perm.target_id),
            ))
        return listings

    async def list_grant_candidates(
        self, permission_type: PermissionType | str, target_id: uuid.UUID
    ) -> list[User]:
        """Active, eligible users who do not already hold an active grant on the target."""
        permission_type = PermissionType(permission_type)
        already_granted = (
            select(CrewChiefPermission.user_id)
            .where(
                CrewChiefPermission.permission_type == permission_type.value,
                CrewChiefPermission.target_id == target_id,
                CrewChiefPermission.revoked_at.is_(None),
            )
        )
        result = await self.db.execute(
            select(User)
            .where(
                User.is_active == True,  # noqa: E712
                User.role.in_(GRANT_ELIGIBLE_ROLES),
                User.id.notin_(already_granted),
            )
            .order_by(User.name)
        )
        return list(result.scalars().all())
