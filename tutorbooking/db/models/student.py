from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (
        CheckConstraint("hours_paid >= 0", name="ck_student_hours_paid_non_negative"),
        CheckConstraint("hours_consumed >= 0", name="ck_student_hours_consumed_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str | None] = mapped_column(String(255))
    student_email: Mapped[str | None] = mapped_column(String(255), index=True)
    parent_email: Mapped[str | None] = mapped_column(String(255), index=True)
    # Hours still spendable; decremented on every completed session.
    hours_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    hours_consumed: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    assigned_tutor_id: Mapped[int | None] = mapped_column(
        ForeignKey("tutors.id", ondelete="SET NULL"), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    assigned_tutor = relationship("Tutor")
