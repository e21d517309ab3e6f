from .booking import (
    Booking,
    CompleteBookingRequest,
    CompleteBookingResponse,
    ReminderResponse,
    ReserveAndBookRequest,
    ReserveAndBookResponse,
)
from .availability import (
    AvailabilityBlock,
    AvailabilityBlockCreate,
    AvailabilityRange,
    AvailabilityView,
    FreeSlotGridRequest,
    FreeSlotGridResponse,
    Interval,
    TutorSummary,
)
from .ledger import TutorBalanceReset
from .digest import DigestResult
