from crewtime.models.user import User
from crewtime.models.client import Client, Job
from crewtime.models.shift import Shift, TimeEntry
from crewtime.models.crew_chief_permission import CrewChiefPermission

__all__ = [
    "User",
    "Client",
    "Job",
    "Shift",
    "TimeEntry",
    "CrewChiefPermission",
]
