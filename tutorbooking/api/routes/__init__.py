from . import (
    availability,
    bookings,
    cron,
    misc,
    tutors,
)

__all__ = [
    "availability",
    "bookings",
    "cron",
    "misc",
    "tutors",
]
