from pydantic import BaseModel
import uuid
from datetime import datetime as DateTime
from typing import Optional

from crewtime.services.crew_chief_service import PermissionType, PermissionSource


class PermissionGrantCreate(BaseModel):
    user_id: uuid.UUID
    permission_type: PermissionType
    target_id: uuid.UUID


class PermissionOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    permission_type: PermissionType
    target_id: uuid.UUID
    granted_by_user_id: Optional[uuid.UUID]
    granted_at: DateTime
    revoked_at: Optional[DateTime]

    model_config = {"from_attributes": True}


class PermissionListingOut(PermissionOut):
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    granted_by_name: Optional[str] = None
    target_name: Optional[str] = None


class GrantCandidateOut(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: str

    model_config = {"from_attributes": True}


class AuthorityCheckOut(BaseModel):
    user_id: uuid.UUID
    target_type: PermissionType
    target_id: uuid.UUID
    has_permission: bool
    permission_source: PermissionSource
    summary: str
    permissions: list[PermissionOut] = []


class RevokeResult(BaseModel):
    success: bool = True
    revoked_count: int
