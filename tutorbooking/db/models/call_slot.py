from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class SlotStatus(str, PyEnum):
    free = "free"
    booked = "booked"


class CallSlot(Base):
    __tablename__ = "call_slots"
    __table_args__ = (
        UniqueConstraint("tutor_id", "starts_at", name="uq_call_slot_tutor_time"),
        CheckConstraint("duration_min > 0", name="ck_call_slot_duration_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tutor_id: Mapped[int] = mapped_column(ForeignKey("tutors.id", ondelete="CASCADE"), index=True)
    call_type_id: Mapped[int] = mapped_column(ForeignKey("call_types.id"))
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    # Always starts_at + duration_min; stored so overlap checks stay a single indexed query.
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    duration_min: Mapped[int] = mapped_column(Integer, default=60)
    status: Mapped[SlotStatus] = mapped_column(Enum(SlotStatus), default=SlotStatus.free)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    tutor = relationship("Tutor", back_populates="slots")
    call_type = relationship("CallType")
    bookings = relationship("Booking", back_populates="slot")
