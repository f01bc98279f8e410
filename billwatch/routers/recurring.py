"""Recurring bills and paychecks API router."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Query, status

from billwatch.config import settings
from billwatch.deps import CurrentUserId, Stores
from billwatch.logger import get_logger
from billwatch.repositories import RecurringStores
from billwatch.schemas import (
    BackfillRequest,
    BackfillResponse,
    BackfillSummaryResponse,
    BillMatchRequest,
    BillMatchResponse,
    BillResponse,
    DetectionItemResponse,
    DetectRequest,
    DetectResponse,
    OverviewResponse,
    PaycheckHitResponse,
    PaycheckMatchRequest,
    PaycheckMatchResponse,
    PingResponse,
)
from billwatch.services import (
    BillMatch,
    NotFoundError,
    PaycheckMatch,
    ValidationError,
    backfill_links,
    build_overview,
    detect_recurring_for_user,
    match_bill,
    match_paycheck,
)
from billwatch.utils.exceptions import raise_bad_request, raise_not_found

router = APIRouter(prefix="/recurring", tags=["recurring"])
logger = get_logger(__name__)


@asynccontextmanager
async def _unit_of_work(stores: RecurringStores) -> AsyncIterator[None]:
    """Commit on success; roll back and map domain errors to HTTP otherwise."""
    try:
        yield
    except ValidationError as e:
        await stores.rollback()
        logger.debug("Recurring request rejected", error=str(e))
        raise_bad_request(str(e), cause=e)
    except NotFoundError as e:
        await stores.rollback()
        raise_not_found(e.resource_name, cause=e)
    except Exception:
        await stores.rollback()
        raise
    else:
        await stores.commit()


@router.post("/detect", response_model=DetectResponse)
async def detect(
    stores: Stores,
    user_id: CurrentUserId,
    payload: DetectRequest | None = None,
) -> DetectResponse:
    """Detect recurring series from the user's recent transactions."""
    lookback_days = payload.lookback_days if payload else None
    async with _unit_of_work(stores):
        result = await detect_recurring_for_user(stores, user_id, lookback_days)

    return DetectResponse(
        ok=result.ok,
        results=[DetectionItemResponse.model_validate(item) for item in result.results],
    )


@router.post("/bills/match", response_model=BillMatchResponse, status_code=status.HTTP_201_CREATED)
async def match_bill_payment(
    payload: BillMatchRequest,
    stores: Stores,
    user_id: CurrentUserId,
) -> BillMatchResponse:
    """Mark a bill paid by a ledger or bank transaction."""
    async with _unit_of_work(stores):
        result = await match_bill(
            stores,
            user_id,
            BillMatch(
                tx_id=payload.tx_id,
                amount=payload.amount,
                date=payload.date,
                series_id=payload.series_id,
                name=payload.name,
                merchant=payload.merchant,
                account_id=payload.account_id,
                account_name=payload.account_name,
            ),
        )

    return BillMatchResponse(
        bill=BillResponse.model_validate(result.bill),
        transaction_id=result.transaction_id,
    )


@router.post(
    "/paychecks/match",
    response_model=PaycheckMatchResponse,
    status_code=status.HTTP_201_CREATED,
)
async def match_paycheck_deposit(
    payload: PaycheckMatchRequest,
    stores: Stores,
    user_id: CurrentUserId,
) -> PaycheckMatchResponse:
    """Record a paycheck by a ledger or bank transaction."""
    async with _unit_of_work(stores):
        result = await match_paycheck(
            stores,
            user_id,
            PaycheckMatch(
                tx_id=payload.tx_id,
                amount=payload.amount,
                date=payload.date,
                series_id=payload.series_id,
                account_id=payload.account_id,
                account_name=payload.account_name,
                employer_name=payload.employer_name,
            ),
        )

    return PaycheckMatchResponse(
        hit=PaycheckHitResponse.model_validate(result.hit),
        transaction_id=result.transaction_id,
    )


@router.get("/overview", response_model=OverviewResponse)
async def overview(
    stores: Stores,
    user_id: CurrentUserId,
    horizon_days: int | None = Query(None, description="Days ahead to include (1-120)"),
) -> OverviewResponse:
    """Upcoming bills and recent paychecks."""
    result = await build_overview(stores, user_id, horizon_days)
    return OverviewResponse(
        bills=[BillResponse.model_validate(bill) for bill in result.bills],
        recent_paychecks=[PaycheckHitResponse.model_validate(hit) for hit in result.recent_paychecks],
    )


@router.post("/backfill-tx", response_model=BackfillResponse)
async def backfill_transactions(
    stores: Stores,
    user_id: CurrentUserId,
    payload: BackfillRequest | None = None,
) -> BackfillResponse:
    """Create or repair ledger rows for paid bills and paycheck hits."""
    days = payload.days if payload and payload.days is not None else settings.backfill_lookback_days
    account_id = payload.account_id if payload else None
    async with _unit_of_work(stores):
        result = await backfill_links(stores, user_id, days=days, account_id=account_id)

    return BackfillResponse(
        since=result.since,
        summary=BackfillSummaryResponse.model_validate(result.summary),
    )


@router.get("/ping", response_model=PingResponse)
async def ping() -> PingResponse:
    return PingResponse()
