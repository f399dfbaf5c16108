import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from crewtime.core.database import Base

ROLE_EMPLOYEE = "Employee"
ROLE_CREW_CHIEF = "Crew Chief"
ROLE_ADMIN = "Manager/Admin"
ROLE_CLIENT = "Client"

VALID_ROLES = (ROLE_EMPLOYEE, ROLE_CREW_CHIEF, ROLE_ADMIN, ROLE_CLIENT)
# Only these roles may hold explicit crew chief grants
GRANT_ELIGIBLE_ROLES = (ROLE_EMPLOYEE, ROLE_CREW_CHIEF)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(50), default=ROLE_EMPLOYEE)  # see VALID_ROLES
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
