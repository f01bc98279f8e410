"""Upcoming bills and recent paychecks for one user."""

from dataclasses import dataclass
from datetime import date, timedelta
from uuid import UUID

from billwatch.config import settings
from billwatch.models import Bill, PaycheckHit
from billwatch.repositories.base import RecurringStores

MIN_HORIZON_DAYS = 1
MAX_HORIZON_DAYS = 120


@dataclass
class Overview:
    bills: list[Bill]
    recent_paychecks: list[PaycheckHit]


def clamp_horizon(horizon_days: int | None) -> int:
    if horizon_days is None:
        return settings.overview_horizon_days
    return max(MIN_HORIZON_DAYS, min(horizon_days, MAX_HORIZON_DAYS))


async def build_overview(
    stores: RecurringStores,
    user_id: UUID,
    horizon_days: int | None = None,
    *,
    today: date | None = None,
) -> Overview:
    """Open bills due within the horizon (ascending) and paychecks from the last 90 days (newest first)."""
    today = today or date.today()
    horizon = clamp_horizon(horizon_days)

    bills = await stores.bills.list_open_until(user_id, today + timedelta(days=horizon))
    paychecks = await stores.paychecks.list_since(
        user_id, today - timedelta(days=settings.recent_paycheck_days)
    )
    return Overview(bills=bills, recent_paychecks=paychecks)
