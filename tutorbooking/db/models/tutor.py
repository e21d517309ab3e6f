from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class Tutor(Base):
    __tablename__ = "tutors"
    __table_args__ = (
        CheckConstraint("hours_due >= 0", name="ck_tutor_hours_due_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    hours_due: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    availability_blocks = relationship("AvailabilityBlock", back_populates="tutor")
    slots = relationship("CallSlot", back_populates="tutor")

    @property
    def label(self) -> str:
        return self.display_name or self.email
