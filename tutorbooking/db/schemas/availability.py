from datetime import date, datetime
from pydantic import BaseModel, Field


class AvailabilityBlockCreate(BaseModel):
    tutor_id: int | None = None
    starts_at: datetime
    ends_at: datetime


class AvailabilityBlock(BaseModel):
    id: int
    tutor_id: int
    starts_at: datetime
    ends_at: datetime

    class Config:
        from_attributes = True


class Interval(BaseModel):
    starts_at: datetime
    ends_at: datetime


class TutorSummary(BaseModel):
    id: int
    display_name: str | None = None
    email: str


class AvailabilityRange(BaseModel):
    from_: datetime = Field(alias="from")
    to: datetime

    class Config:
        populate_by_name = True


class AvailabilityView(BaseModel):
    tutor: TutorSummary
    range: AvailabilityRange
    blocks: list[Interval]
    booked: list[Interval]
    duration_min: int


class FreeSlotGridRequest(BaseModel):
    tutor_id: int | None = None
    date_from: date
    date_to: date
    days_of_week: list[int] = Field(description="0 = Monday … 6 = Sunday")
    time_start: str = "09:00"
    time_end: str = "18:00"
    slot_minutes: int = 30
    call_type_slug: str | None = None


class FreeSlotGridResponse(BaseModel):
    tutor_id: int
    slots: int
