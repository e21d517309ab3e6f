"""Common application-wide constants."""

from datetime import timedelta
from decimal import Decimal

ROME_TZ = "Europe/Rome"

# Smallest amount of hours a completed session can charge
MIN_SESSION_HOURS = Decimal("0.25")
HOURS_QUANTUM = Decimal("0.01")

# Bounds for the weekly free-slot grid generator
MIN_GRID_SLOT_MINUTES = 10
MAX_GRID_SLOT_MINUTES = 240
MAX_GRID_RANGE = timedelta(days=120)
MAX_GRID_SLOTS = 500

# Header carrying the per-process scheduler token (see core.security)
SCHEDULER_SIGNAL_HEADER = "x-scheduler-signal"
CRON_SECRET_HEADER = "x-cron-secret"


__all__ = [
    "ROME_TZ",
    "MIN_SESSION_HOURS",
    "HOURS_QUANTUM",
    "MIN_GRID_SLOT_MINUTES",
    "MAX_GRID_SLOT_MINUTES",
    "MAX_GRID_RANGE",
    "MAX_GRID_SLOTS",
    "SCHEDULER_SIGNAL_HEADER",
    "CRON_SECRET_HEADER",
]
