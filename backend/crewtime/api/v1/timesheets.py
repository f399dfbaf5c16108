"""
Shift timesheet API – rounded clock times and billable hours per worker.
"""
import uuid
from collections import defaultdict

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from crewtime.api.deps import DB, CurrentUser, CrewChiefSvc
from crewtime.models.shift import Shift, TimeEntry
from crewtime.models.user import User
from crewtime.schemas.timesheet import TimeEntryDisplayOut, WorkerTimesheetOut, ShiftTimesheetOut
from crewtime.services.crew_chief_service import PermissionType, TargetNotFoundError
from crewtime.utils.time_utils import (
    calculate_total_rounded_hours, format_date, get_time_entry_display,
)

router = APIRouter(prefix="/shifts", tags=["timesheets"])


@router.get("/{shift_id}/timesheet", response_model=ShiftTimesheetOut)
async def get_shift_timesheet(shift_id: uuid.UUID, current_user: CurrentUser, svc: CrewChiefSvc, db: DB):
    try:
        allowed = await svc.has_crew_chief_authority(current_user, PermissionType.SHIFT, shift_id)
    except TargetNotFoundError:
        raise HTTPException(status_code=404, detail="Shift not found")
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You need crew chief permissions for this shift",
        )

    shift = await db.get(Shift, shift_id)
    result = await db.execute(
        select(TimeEntry, User.name)
        .join(User, TimeEntry.user_id == User.id)
        .where(TimeEntry.shift_id == shift_id)
        .order_by(User.name, TimeEntry.entry_number)
    )
    rows = result.all()

    entries_by_user: dict[uuid.UUID, list[TimeEntry]] = defaultdict(list)
    names: dict[uuid.UUID, str] = {}
    for entry, user_name in rows:
        entries_by_user[entry.user_id].append(entry)
        names[entry.user_id] = user_name

    workers = []
    for user_id, entries in entries_by_user.items():
        displays = []
        for entry in entries:
            display = get_time_entry_display(entry.clock_in, entry.clock_out)
            displays.append(TimeEntryDisplayOut(
                id=entry.id,
                entry_number=entry.entry_number,
                clock_in=entry.clock_in,
                clock_out=entry.clock_out,
                rounded_clock_in=display.rounded_clock_in or None,
                rounded_clock_out=display.rounded_clock_out or None,
                display_clock_in=display.display_clock_in,
                display_clock_out=display.display_clock_out,
                total_hours=display.total_hours,
            ))
        workers.append(WorkerTimesheetOut(
            user_id=user_id,
            user_name=names[user_id],
            entries=displays,
            total_hours=calculate_total_rounded_hours(entries),
        ))

    return ShiftTimesheetOut(
        shift_id=shift.id,
        date=format_date(shift.date),
        workers=workers,
        total_hours=calculate_total_rounded_hours(entry for entry, _ in rows),
    )
