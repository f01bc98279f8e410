"""Cadence inference and next-due arithmetic.

All functions here are pure: same input, same output, no clock reads.
"""

from datetime import date
from decimal import Decimal

from billwatch.models import Cadence
from billwatch.utils.dates import add_days, add_months

MAX_ANCHOR_DAY = 28

# Ordered; the first band containing the mean interval wins. Biweekly and
# semimonthly overlap on 13-17 days, so semimonthly is never inferred.
CADENCE_BANDS: tuple[tuple[Cadence, int, int], ...] = (
    (Cadence.WEEKLY, 6, 9),
    (Cadence.BIWEEKLY, 12, 18),
    (Cadence.SEMIMONTHLY, 13, 17),
    (Cadence.MONTHLY, 26, 35),
    (Cadence.QUARTERLY, 80, 110),
    (Cadence.YEARLY, 330, 395),
)


def infer_cadence(intervals: list[int]) -> Cadence:
    """Classify the mean of ``intervals`` (days) into a cadence."""
    if not intervals:
        return Cadence.UNKNOWN

    mean = Decimal(sum(intervals)) / Decimal(len(intervals))
    for cadence, low, high in CADENCE_BANDS:
        if low <= mean <= high:
            return cadence
    return Cadence.UNKNOWN


def _clamp_anchor_day(day: int) -> int:
    return max(1, min(day, MAX_ANCHOR_DAY))


def cadence_anchor(last: date, cadence: Cadence) -> tuple[int | None, int | None]:
    """Return ``(day_of_month, weekday)`` anchors for a series last seen on ``last``.

    Weekly and biweekly series anchor on the weekday (Monday = 0); the others
    on the day of month, clamped to 28 so every month has it. Semimonthly series
    have fixed anchors (1st and 15th) and store neither.
    """
    if cadence in (Cadence.WEEKLY, Cadence.BIWEEKLY):
        return None, last.weekday()
    if cadence == Cadence.SEMIMONTHLY:
        return None, None
    return _clamp_anchor_day(last.day), None


def bump_next_due(last_seen: date, cadence: Cadence, day_of_month: int | None = None) -> date:
    """Next expected occurrence after ``last_seen``; always strictly later."""
    if cadence == Cadence.WEEKLY:
        return add_days(last_seen, 7)
    if cadence == Cadence.BIWEEKLY:
        return add_days(last_seen, 14)
    if cadence == Cadence.SEMIMONTHLY:
        if last_seen.day < 15:
            return last_seen.replace(day=15)
        return add_months(last_seen.replace(day=1), 1)
    if cadence == Cadence.QUARTERLY:
        return add_months(last_seen, 3)
    if cadence == Cadence.YEARLY:
        return add_months(last_seen, 12)

    # Monthly and unknown
    anchor = _clamp_anchor_day(day_of_month or last_seen.day)
    return add_months(last_seen, 1, day=anchor)
