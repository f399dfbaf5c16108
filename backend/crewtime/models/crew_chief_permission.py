import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from crewtime.core.database import Base


class CrewChiefPermission(Base):
    """
    An admin-granted crew chief authority over one client, job or shift.

    Rows are never deleted: revocation sets ``revoked_at``. A row with
    ``revoked_at IS NULL`` is active.
    """
    __tablename__ = "crew_chief_permissions"
    __table_args__ = (
        Index("ix_crew_chief_permissions_lookup", "user_id", "permission_type", "target_id"),
        CheckConstraint("permission_type IN ('client', 'job', 'shift')", name="ck_crew_chief_permissions_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    permission_type: Mapped[str] = mapped_column(String(20), nullable=False)  # client | job | shift
    # Polymorphic: points at clients.id, jobs.id or shifts.id depending on permission_type
    target_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    granted_by_user_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None
