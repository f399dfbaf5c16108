from crewtime.schemas.crew_chief import (
    PermissionGrantCreate, PermissionOut, PermissionListingOut, GrantCandidateOut,
    AuthorityCheckOut, RevokeResult,
)
from crewtime.schemas.timesheet import TimeEntryDisplayOut, WorkerTimesheetOut, ShiftTimesheetOut

__all__ = [
    "PermissionGrantCreate", "PermissionOut", "PermissionListingOut", "GrantCandidateOut",
    "AuthorityCheckOut", "RevokeResult",
    "TimeEntryDisplayOut", "WorkerTimesheetOut", "ShiftTimesheetOut",
]
