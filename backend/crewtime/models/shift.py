import uuid
from datetime import date, datetime, time, timezone

from sqlalchemy import String, DateTime, ForeignKey, Integer, Time, Date, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crewtime.core.database import Base


class Shift(Base):
    __tablename__ = "shifts"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    # Designated crew chief of record – has authority without a grant row
    crew_chief_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)

    status: Mapped[str] = mapped_column(
        String(50), default="scheduled"
    )  # scheduled | in_progress | completed | cancelled

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    job: Mapped["Job"] = relationship(back_populates="shifts")  # type: ignore[name-defined]
    time_entries: Mapped[list["TimeEntry"]] = relationship(
        back_populates="shift", order_by="TimeEntry.entry_number"
    )


class TimeEntry(Base):
    """One clock-in/clock-out pair for one worker on one shift."""
    __tablename__ = "time_entries"
    __table_args__ = (
        UniqueConstraint("shift_id", "user_id", "entry_number", name="uq_time_entry_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    shift_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    entry_number: Mapped[int] = mapped_column(Integer, default=1)  # 1..N per worker per shift

    clock_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    clock_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    shift: Mapped["Shift"] = relationship(back_populates="time_entries")
