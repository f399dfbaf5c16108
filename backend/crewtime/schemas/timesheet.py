from pydantic import BaseModel
import uuid
from datetime import datetime as DateTime
from typing import Optional


class TimeEntryDisplayOut(BaseModel):
    id: uuid.UUID
    entry_number: int
    clock_in: Optional[DateTime]
    clock_out: Optional[DateTime]
    rounded_clock_in: Optional[DateTime]
    rounded_clock_out: Optional[DateTime]
    display_clock_in: str
    display_clock_out: str
    total_hours: float


class WorkerTimesheetOut(BaseModel):
    user_id: uuid.UUID
    user_name: str
    entries: list[TimeEntryDisplayOut]
    total_hours: str  # 2 decimals, display-ready


class ShiftTimesheetOut(BaseModel):
    shift_id: uuid.UUID
    date: str  # MM/DD/YYYY
    workers: list[WorkerTimesheetOut]
    total_hours: str
