"""Installment period reconciliation.

Pure functions that turn a member's product, current upgrade and payment
records into per-period requirements, period statuses and the next period to
pay. Nothing here touches the database: callers pass ORM rows (or any object
exposing the same attributes) and get plain dataclasses back.

Two status vocabularies meet here and must not be mixed up:

- ``SavingsStatus`` is the review state of one record
  (Pending / Approved / Rejected / Partial).
- ``PeriodStatus`` is the derived state of a whole period
  (belum_bayar / partial / pending / rejected / paid).
"""
import enum
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from koperasi.models.savings import SavingsStatus, SavingsType

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class PeriodStatus(str, enum.Enum):
    """Derived status of one installment period."""
    UNPAID = "belum_bayar"
    PARTIAL = "partial"
    PENDING = "pending"
    REJECTED = "rejected"
    PAID = "paid"


@dataclass
class PeriodSummary:
    period: int
    required: Decimal
    paid: Decimal
    remaining: Decimal
    status: PeriodStatus
    transactions: List[Any] = field(default_factory=list)  # newest first

    @property
    def percentage(self) -> float:
        if self.required <= ZERO:
            return 0.0
        return min(float(self.paid / self.required * 100), 100.0)


@dataclass
class IncompletePeriod:
    period: int
    paid: Decimal
    required: Decimal
    remaining: Decimal


@dataclass
class NextPeriodSuggestion:
    period: int
    is_partial_continuation: bool
    suggested_amount: Decimal
    remaining_amount: Decimal
    required_amount: Decimal
    last_completed_period: int
    incomplete_periods: List[IncompletePeriod] = field(default_factory=list)


def to_money(value) -> Decimal:
    """Coerce a stored or submitted amount to Decimal (None counts as zero)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def required_amount(period: int, product, upgrade=None) -> Decimal:
    """
    Amount a member owes for ``period``.

    Without an upgrade every period costs the product deposit. With one,
    periods completed before the upgrade keep the old deposit and every later
    period costs the new deposit plus compensation. ``completed_periods_at_upgrade
    == 0`` therefore puts every period on the new amount.
    """
    deposit = to_money(product.deposit_amount)
    if upgrade is None:
        return deposit

    completed = upgrade.completed_periods_at_upgrade or 0
    old_deposit = to_money(upgrade.old_monthly_deposit)
    if period <= completed and old_deposit > ZERO:
        return old_deposit

    new_payment = to_money(upgrade.new_payment_with_compensation)
    if new_payment > ZERO:
        return new_payment
    return deposit


def is_deposit(record) -> bool:
    return (record.type or SavingsType.SETORAN) == SavingsType.SETORAN


def _record_timestamp(record) -> datetime:
    value = record.savings_date or record.created_at
    if value is None:
        return datetime.min
    if not isinstance(value, datetime):
        return datetime.combine(value, datetime.min.time())
    return value


def group_by_period(records: Iterable) -> Dict[int, List]:
    """Bucket records by installment period in a single pass."""
    grouped: Dict[int, List] = defaultdict(list)
    for record in records:
        grouped[record.installment_period].append(record)
    return grouped


def period_status(latest_status: Optional[SavingsStatus], paid: Decimal, required: Decimal) -> PeriodStatus:
    """Map the newest record's status plus the approved total to a period status."""
    if latest_status is None:
        return PeriodStatus.UNPAID
    if latest_status == SavingsStatus.REJECTED:
        return PeriodStatus.REJECTED
    if latest_status == SavingsStatus.PENDING:
        return PeriodStatus.PENDING
    if paid >= required:
        return PeriodStatus.PAID
    if paid > ZERO:
        return PeriodStatus.PARTIAL
    return PeriodStatus.UNPAID


def summarize_period(period: int, records: List, product, upgrade=None) -> PeriodSummary:
    """Aggregate the records of one period.

    Withdrawals are listed with the period's transactions but never count
    toward the paid total or drive the status.
    """
    ordered = sorted(records, key=_record_timestamp, reverse=True)
    deposits = [r for r in ordered if is_deposit(r)]

    paid = sum(
        (to_money(r.amount) for r in deposits if r.status == SavingsStatus.APPROVED),
        ZERO,
    )
    required = required_amount(period, product, upgrade)
    # newest deposit only; a later withdrawal must not mask a pending or rejected deposit
    latest_status = deposits[0].status if deposits else None

    return PeriodSummary(
        period=period,
        required=required,
        paid=paid,
        remaining=max(ZERO, required - paid),
        status=period_status(latest_status, paid, required),
        transactions=ordered,
    )


def aggregate_periods(payments: Iterable, product, upgrade=None, total_periods: int = 0) -> List[PeriodSummary]:
    """Build the status row of every period from 1 to ``total_periods``."""
    by_period = group_by_period(payments)
    rows = [
        summarize_period(period, by_period.get(period, []), product, upgrade)
        for period in range(1, total_periods + 1)
    ]
    logger.debug(
        "Aggregated %d periods (%d with records, upgrade=%s)",
        total_periods, len(by_period), upgrade is not None,
    )
    return rows


def approved_deposit_totals(payments: Iterable) -> Dict[int, Decimal]:
    """Sum of approved deposits per period, for periods that have any."""
    totals: Dict[int, Decimal] = defaultdict(lambda: ZERO)
    for record in payments:
        if is_deposit(record) and record.status == SavingsStatus.APPROVED:
            totals[record.installment_period] += to_money(record.amount)
    return dict(totals)


def suggest_next_period(payments: Iterable, product, upgrade=None) -> NextPeriodSuggestion:
    """
    Pick the period the member should pay next.

    Underpaid periods win over new ones: the lowest period whose approved
    deposits fall short of its requirement is suggested with the shortfall as
    the amount. Otherwise the period after the highest approved deposit is
    suggested at its full requirement. Period numbering runs across products,
    so an upgrade never resets it.
    """
    approved_totals = approved_deposit_totals(payments)

    incomplete: List[IncompletePeriod] = []
    for period in sorted(approved_totals):
        required = required_amount(period, product, upgrade)
        paid = approved_totals[period]
        if paid < required:
            incomplete.append(IncompletePeriod(period, paid, required, required - paid))

    last_completed = max(approved_totals) if approved_totals else 0

    if incomplete:
        target = incomplete[0]
        logger.debug("Suggesting incomplete period %d, remaining %s", target.period, target.remaining)
        return NextPeriodSuggestion(
            period=target.period,
            is_partial_continuation=True,
            suggested_amount=target.remaining,
            remaining_amount=target.remaining,
            required_amount=target.required,
            last_completed_period=last_completed,
            incomplete_periods=incomplete,
        )

    next_period = last_completed + 1
    required = required_amount(next_period, product, upgrade)
    logger.debug("Suggesting new period %d, required %s", next_period, required)
    return NextPeriodSuggestion(
        period=next_period,
        is_partial_continuation=False,
        suggested_amount=required,
        remaining_amount=ZERO,
        required_amount=required,
        last_completed_period=last_completed,
        incomplete_periods=[],
    )


def count_completed_periods(payments: Iterable, product, upgrade=None) -> int:
    """Number of distinct periods whose approved deposits meet their requirement."""
    approved_totals = approved_deposit_totals(payments)
    return sum(
        1 for period, paid in approved_totals.items()
        if paid >= required_amount(period, product, upgrade)
    )


def resolve_total_periods(
    product,
    payments: Iterable = (),
    default_term: int = 36,
    min_fallback: int = 12,
    max_periods: Optional[int] = 120
) -> int:
    """Term length used for period tables.

    Falls back to the highest recorded period (at least ``min_fallback``) and
    then to ``default_term`` when the product has no term. The result never
    exceeds ``max_periods``, whatever period numbers are stored.
    """
    if product.term_duration:
        total = product.term_duration
    else:
        periods = [r.installment_period for r in payments if r.installment_period]
        total = max(max(periods), min_fallback) if periods else default_term
    if max_periods:
        total = min(total, max_periods)
    return total


def period_month(start: date, period: int) -> date:
    """First day of the calendar month that ``period`` falls in (period 1 = start month)."""
    year, month_index = divmod(start.month - 1 + period - 1, 12)
    return date(start.year + year, month_index + 1, 1)


def as_float(value) -> Optional[float]:
    """Render money for JSON responses."""
    return float(value) if value is not None else None
