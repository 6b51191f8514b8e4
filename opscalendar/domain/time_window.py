"""
Effective (transit-inclusive) time windows for appointments.

Every overlap, conflict and layout computation goes through
``TimeWindowCalculator`` so that all three agree on where an appointment
starts and ends.
"""

import math
from datetime import timedelta
from typing import Tuple

from .models import Appointment, MinutesValue, TimeRange

DEFAULT_APPOINTMENT_LENGTH = 120
DEFAULT_TRANSIT_TIME = 30


def normalize_minutes(value: MinutesValue, default: float) -> float:
    """
    Coerce a raw minutes value, falling back to ``default``.

    Missing, non-numeric, non-finite and non-positive values all fall back.
    Numeric strings ("45") are accepted.
    """
    if value is None or isinstance(value, bool):
        return default

    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return default

    if not math.isfinite(minutes) or minutes <= 0:
        return default

    return minutes


class TimeWindowCalculator:
    """
    Maps an appointment to its pickup -> return interval.

    start = appointment time - transit
    end   = appointment time + length + transit
    """

    def __init__(
        self,
        default_length: float = DEFAULT_APPOINTMENT_LENGTH,
        default_transit: float = DEFAULT_TRANSIT_TIME,
    ):
        if default_length <= 0 or default_transit <= 0:
            raise ValueError("Default length and transit must be positive")
        self.default_length = default_length
        self.default_transit = default_transit

    def effective_minutes(self, appointment: Appointment) -> Tuple[float, float]:
        """Return the (length, transit) pair after default substitution."""
        length = normalize_minutes(appointment.appointment_length, self.default_length)
        transit = normalize_minutes(appointment.transit_time, self.default_transit)
        return length, transit

    def window(self, appointment: Appointment) -> TimeRange:
        """Return the effective time window of an appointment."""
        length, transit = self.effective_minutes(appointment)
        start = appointment.appointment_datetime - timedelta(minutes=transit)
        end = appointment.appointment_datetime + timedelta(minutes=length + transit)
        return TimeRange(start=start, end=end)

    def windows_overlap(self, first: Appointment, second: Appointment) -> bool:
        return self.window(first).overlaps(self.window(second))
