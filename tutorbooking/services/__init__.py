from . import (
    availability_service,
    booking_service,
    digest_service,
    hours_ledger,
    slot_allocator,
    student_resolver,
)
__all__ = [
    "availability_service",
    "booking_service",
    "digest_service",
    "hours_ledger",
    "slot_allocator",
    "student_resolver",
]
