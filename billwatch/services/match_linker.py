"""Confirm bill and paycheck occurrences and link them to the ledger.

Both entry points are idempotent per ``tx_id``: a repeated call finds the
record linked by the first one (through the ledger linkage columns or the
stored ``tx_id``) and updates it instead of adding another.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from billwatch.config import settings
from billwatch.logger import get_logger
from billwatch.models import (
    Bill,
    BillStatus,
    LedgerSource,
    LedgerTransaction,
    PaycheckHit,
    RecurringSeries,
    TransactionType,
)
from billwatch.repositories.base import (
    LedgerStore,
    LocalRef,
    RecurringStores,
    TxRef,
    parse_tx_ref,
)
from billwatch.services.errors import NotFoundError, ValidationError
from billwatch.services.series_registry import touch_series
from billwatch.utils.dates import to_date

logger = get_logger(__name__)

MATCH_WINDOW_DAYS = 7
LINK_CONFIDENCE = 1.0
CENT = Decimal("0.01")
# DECIMAL(18, 2) columns hold 16 integer digits
MAX_AMOUNT = Decimal("1e16")

BILL_CATEGORY = "Bills"
INCOME_CATEGORY = "Income"


@dataclass
class BillMatch:
    tx_id: str | None
    amount: Decimal | float | str | None = None
    date: date | str | None = None
    series_id: UUID | str | None = None
    name: str | None = None
    merchant: str | None = None
    account_id: str | None = None
    account_name: str | None = None


@dataclass
class PaycheckMatch:
    tx_id: str | None
    amount: Decimal | float | str | None = None
    date: date | str | None = None
    series_id: UUID | str | None = None
    account_id: str | None = None
    account_name: str | None = None
    employer_name: str | None = None


@dataclass
class BillMatchResult:
    bill: Bill
    transaction_id: UUID


@dataclass
class PaycheckMatchResult:
    hit: PaycheckHit
    transaction_id: UUID


# =============================================================================
# Input validation
# =============================================================================


def _require_tx_id(raw: str | None) -> str:
    text = str(raw).strip() if raw is not None else ""
    if not text:
        raise ValidationError("tx_id required")
    return text


def _positive_amount(value: object, *, required: bool) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError("amount required")
        return None
    if isinstance(value, bool):
        raise ValidationError("amount must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"amount must be a number, got {value!r}") from exc
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("amount must be a positive finite number")
    try:
        amount = amount.quantize(CENT)
    except InvalidOperation as exc:
        raise ValidationError("amount is too large") from exc
    if amount >= MAX_AMOUNT:
        raise ValidationError("amount is too large")
    if amount <= 0:
        raise ValidationError("amount must be at least 0.01")
    return amount


def _occurred_on(value: object, today: date) -> date:
    if value is None or (isinstance(value, str) and not value.strip()):
        return today
    parsed = to_date(value)
    if parsed is None:
        raise ValidationError(f"date is not a valid calendar date: {value!r}")
    return parsed


async def _explicit_series(
    stores: RecurringStores, user_id: UUID, series_id: UUID | str | None
) -> RecurringSeries | None:
    if series_id is None or (isinstance(series_id, str) and not series_id.strip()):
        return None
    if isinstance(series_id, UUID):
        parsed = series_id
    else:
        try:
            parsed = UUID(str(series_id).strip())
        except ValueError as exc:
            raise ValidationError(f"series_id is not a valid id: {series_id!r}") from exc

    series = await stores.series.get(user_id, parsed)
    if series is None:
        raise NotFoundError("Recurring series", parsed)
    return series


async def _advance_series(
    stores: RecurringStores,
    user_id: UUID,
    series: RecurringSeries | None,
    series_id: UUID | None,
    seen_on: date,
) -> None:
    if series is None and series_id is not None:
        series = await stores.series.get(user_id, series_id)
    if series is not None and touch_series(series, seen_on):
        await stores.series.save(series)


async def _new_ledger_row(
    ledger: LedgerStore, user_id: UUID, ref: TxRef, **fields: object
) -> LedgerTransaction:
    """Manual ledger row for a confirmed occurrence the ledger does not have.

    A local id is reused as the row id unless another row already holds it;
    then the row gets a fresh id and keeps the raw id as ``external_id``.
    """
    row = LedgerTransaction(user_id=user_id, source=LedgerSource.MANUAL, **fields)
    if isinstance(ref, LocalRef) and not await ledger.id_in_use(ref.id):
        row.id = ref.id
    else:
        row.external_id = str(ref)
    return row


# =============================================================================
# Bills
# =============================================================================


async def _locate_bill(
    stores: RecurringStores,
    user_id: UUID,
    raw_tx_id: str,
    ledger_row: LedgerTransaction | None,
    series: RecurringSeries | None,
    paid_at: date,
) -> Bill | None:
    if ledger_row is not None and ledger_row.matched_bill_id is not None:
        bill = await stores.bills.get(user_id, ledger_row.matched_bill_id)
        if bill is not None:
            return bill

    bill = await stores.bills.find_by_tx_id(user_id, raw_tx_id)
    if bill is None and ledger_row is not None:
        bill = await stores.bills.find_by_tx_id(user_id, str(ledger_row.id))
    if bill is not None:
        return bill

    if series is not None:
        return await stores.bills.find_open_near(user_id, series.id, paid_at, MATCH_WINDOW_DAYS)
    return None


async def match_bill(
    stores: RecurringStores,
    user_id: UUID,
    match: BillMatch,
    *,
    today: date | None = None,
) -> BillMatchResult:
    """Mark the matching bill paid (creating it if needed) and link the ledger row."""
    raw_tx_id = _require_tx_id(match.tx_id)
    amount = _positive_amount(match.amount, required=False)
    paid_at = _occurred_on(match.date, today or date.today())
    series = await _explicit_series(stores, user_id, match.series_id)

    ref = parse_tx_ref(raw_tx_id)
    ledger_row = await stores.ledger.resolve(user_id, ref)

    bill = await _locate_bill(stores, user_id, raw_tx_id, ledger_row, series, paid_at)
    if bill is None:
        bill = Bill(
            user_id=user_id,
            series_id=series.id if series else None,
            name=match.name or (series.name if series else None) or "Bill",
            merchant=match.merchant or (series.merchant if series else None),
            amount=amount,
            currency=settings.default_currency,
            due_date=paid_at,
            status=BillStatus.PAID,
            paid_at=paid_at,
            tx_id=raw_tx_id,
        )
        await stores.bills.add(bill)
        created = True
    else:
        bill.status = BillStatus.PAID
        bill.paid_at = paid_at
        bill.tx_id = raw_tx_id
        if amount is not None:
            bill.amount = amount
        if bill.series_id is None and series is not None:
            bill.series_id = series.id
        await stores.bills.save(bill)
        created = False

    await _advance_series(stores, user_id, series, bill.series_id, paid_at)

    if ledger_row is not None:
        ledger_row.matched_bill_id = bill.id
        ledger_row.matched_recurring_id = bill.series_id
        ledger_row.match_confidence = LINK_CONFIDENCE
        await stores.ledger.save(ledger_row)
    else:
        ledger_row = await _new_ledger_row(
            stores.ledger,
            user_id,
            ref,
            type=TransactionType.EXPENSE,
            category=BILL_CATEGORY,
            amount=bill.amount or amount or Decimal("0"),
            date=paid_at,
            description=bill.name or (series.name if series else None) or "Bill payment",
            merchant=bill.merchant,
            account_id=match.account_id,
            account_name=match.account_name,
            matched_bill_id=bill.id,
            matched_recurring_id=bill.series_id,
            match_confidence=LINK_CONFIDENCE,
        )
        await stores.ledger.add(ledger_row)

    bill.tx_id = str(ledger_row.id)
    await stores.bills.save(bill)

    logger.info(
        "Bill matched",
        bill_id=str(bill.id),
        transaction_id=str(ledger_row.id),
        series_id=str(bill.series_id) if bill.series_id else None,
        created=created,
    )
    return BillMatchResult(bill=bill, transaction_id=ledger_row.id)


# =============================================================================
# Paychecks
# =============================================================================


async def match_paycheck(
    stores: RecurringStores,
    user_id: UUID,
    match: PaycheckMatch,
    *,
    today: date | None = None,
) -> PaycheckMatchResult:
    """Record a paycheck hit for ``tx_id`` (once) and link the ledger row."""
    raw_tx_id = _require_tx_id(match.tx_id)
    amount = _positive_amount(match.amount, required=True)
    received_on = _occurred_on(match.date, today or date.today())
    series = await _explicit_series(stores, user_id, match.series_id)

    ref = parse_tx_ref(raw_tx_id)
    ledger_row = await stores.ledger.resolve(user_id, ref)

    hit = None
    if ledger_row is not None and ledger_row.matched_paycheck_id is not None:
        hit = await stores.paychecks.get(user_id, ledger_row.matched_paycheck_id)
    if hit is None:
        hit = await stores.paychecks.find_by_tx_id(user_id, raw_tx_id)

    if hit is None:
        hit = PaycheckHit(
            user_id=user_id,
            series_id=series.id if series else None,
            amount=amount,
            date=received_on,
            account_id=match.account_id,
            employer_name=match.employer_name
            or (series.merchant if series else None)
            or (series.name if series else None),
            tx_id=raw_tx_id,
        )
        await stores.paychecks.add(hit)
        created = True
    else:
        hit.amount = amount
        hit.date = received_on
        if series is not None:
            hit.series_id = series.id
        if match.account_id:
            hit.account_id = match.account_id
        if match.employer_name:
            hit.employer_name = match.employer_name
        await stores.paychecks.save(hit)
        created = False

    await _advance_series(stores, user_id, series, hit.series_id, received_on)

    if ledger_row is not None:
        ledger_row.matched_paycheck_id = hit.id
        ledger_row.matched_recurring_id = hit.series_id
        ledger_row.match_confidence = LINK_CONFIDENCE
        await stores.ledger.save(ledger_row)
    else:
        ledger_row = await _new_ledger_row(
            stores.ledger,
            user_id,
            ref,
            type=TransactionType.INCOME,
            category=INCOME_CATEGORY,
            amount=hit.amount,
            date=received_on,
            description=hit.employer_name or "Paycheck",
            merchant=hit.employer_name,
            account_id=match.account_id,
            account_name=match.account_name,
            matched_paycheck_id=hit.id,
            matched_recurring_id=hit.series_id,
            match_confidence=LINK_CONFIDENCE,
        )
        await stores.ledger.add(ledger_row)

    logger.info(
        "Paycheck matched",
        hit_id=str(hit.id),
        transaction_id=str(ledger_row.id),
        series_id=str(hit.series_id) if hit.series_id else None,
        created=created,
    )
    return PaycheckMatchResult(hit=hit, transaction_id=ledger_row.id)
