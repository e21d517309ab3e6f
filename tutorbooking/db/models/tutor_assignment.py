from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base

DEFAULT_ASSIGNMENT_ROLE = "videolezione"


class TutorAssignment(Base):
    __tablename__ = "tutor_assignments"
    __table_args__ = (
        UniqueConstraint("tutor_id", "student_id", name="uq_tutor_assignment_pair"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tutor_id: Mapped[int] = mapped_column(ForeignKey("tutors.id", ondelete="CASCADE"), index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), index=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    consumed_baseline: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    role: Mapped[str] = mapped_column(String(64), default=DEFAULT_ASSIGNMENT_ROLE)

    tutor = relationship("Tutor")
    student = relationship("Student")
