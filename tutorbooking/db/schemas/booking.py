from datetime import datetime
from pydantic import BaseModel, Field


class ReserveAndBookRequest(BaseModel):
    tutor_email: str
    starts_at: datetime
    full_name: str
    student_email: str
    note: str | None = None


class ReserveAndBookResponse(BaseModel):
    booking_id: int
    starts_at: datetime
    warnings: list[str] = Field(default_factory=list)


class CompleteBookingRequest(BaseModel):
    booking_id: int | None = None
    student_id: int | None = None
    hours: float | None = Field(default=None, description="Hours to charge instead of the slot length")


class CompleteBookingResponse(BaseModel):
    hours_deducted: float
    tutor_id: int
    student_id: int
    match: str


class ReminderResponse(BaseModel):
    booking_id: int
    sent_to: str


class Booking(BaseModel):
    id: int
    slot_id: int | None = None
    tutor_id: int
    call_type_id: int
    full_name: str
    email: str
    note: str | None = None
    status: str
    booked_at: datetime | None = None
    starts_at: datetime | None = None
    duration_min: int | None = None
    call_type: str | None = None
    tutor_name: str | None = None

    class Config:
        from_attributes = True
