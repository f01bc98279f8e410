"""Pydantic schemas for the recurring API.

Request bodies accept snake_case and camelCase field names; responses are
snake_case.
"""

from datetime import date as date_type
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from billwatch.models import BillStatus
from billwatch.schemas.base import BaseResponse, camel_alias


class DetectRequest(BaseModel):
    lookback_days: int | None = camel_alias("lookback_days", "lookbackDays")


class BillMatchRequest(BaseModel):
    """Confirm a bill payment; ``tx_id`` may be a ledger id or a bank id."""

    tx_id: str | None = camel_alias("tx_id", "txId")
    amount: Decimal | None = None
    date: date_type | None = None
    series_id: str | None = camel_alias("series_id", "seriesId")
    name: str | None = None
    merchant: str | None = None
    account_id: str | None = camel_alias("account_id", "accountId")
    account_name: str | None = camel_alias("account_name", "accountName")


class PaycheckMatchRequest(BaseModel):
    """Confirm a paycheck; ``amount`` is required and must be positive."""

    tx_id: str | None = camel_alias("tx_id", "txId")
    amount: Decimal | None = None
    date: date_type | None = None
    series_id: str | None = camel_alias("series_id", "seriesId")
    account_id: str | None = camel_alias("account_id", "accountId")
    account_name: str | None = camel_alias("account_name", "accountName")
    employer_name: str | None = camel_alias("employer_name", "employerName")


class BackfillRequest(BaseModel):
    days: int | None = None
    account_id: str | None = camel_alias("account_id", "accountId")


class DetectionItemResponse(BaseResponse):
    key: str
    series_id: UUID | None = None
    count: int


class DetectResponse(BaseResponse):
    ok: bool
    results: list[DetectionItemResponse]


class BillResponse(BaseResponse):
    id: UUID
    series_id: UUID | None = None
    name: str
    merchant: str | None = None
    amount: Decimal | None = None
    currency: str
    due_date: date_type | None = None
    status: BillStatus
    tx_id: str | None = None
    paid_at: date_type | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PaycheckHitResponse(BaseResponse):
    id: UUID
    series_id: UUID | None = None
    amount: Decimal
    date: date_type
    account_id: str | None = None
    employer_name: str | None = None
    tx_id: str | None = None
    created_at: datetime | None = None


class BillMatchResponse(BaseModel):
    ok: bool = True
    bill: BillResponse
    transaction_id: UUID


class PaycheckMatchResponse(BaseModel):
    ok: bool = True
    hit: PaycheckHitResponse
    transaction_id: UUID


class OverviewResponse(BaseResponse):
    bills: list[BillResponse]
    recent_paychecks: list[PaycheckHitResponse]


class BackfillSummaryResponse(BaseResponse):
    bills_created: int
    bills_linked: int
    pays_created: int
    pays_linked: int


class BackfillResponse(BaseResponse):
    ok: bool = True
    since: date_type
    summary: BackfillSummaryResponse


class PingResponse(BaseModel):
    ok: bool = True
    where: str = "recurring"
