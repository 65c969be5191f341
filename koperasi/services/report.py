"""Calendar-aware payment status of every member, for reports and digests."""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from koperasi.core.config import settings
from koperasi.models.member import Member, ProductUpgrade
from koperasi.models.savings import Savings, SavingsStatus, SavingsType
from koperasi.services.exceptions import ValidationError
from koperasi.services.member import savings_start
from koperasi.services.reconciliation import (
    ZERO,
    approved_deposit_totals,
    as_float,
    period_month,
    required_amount,
    resolve_total_periods,
    to_money,
)

logger = logging.getLogger(__name__)

STATUS_FILTERS = ("completed", "not_completed", "has_overdue", "has_partial", "all_paid")


def member_payment_status(member: Member, payments: List[Savings], upgrade: Optional[ProductUpgrade], today: date) -> Optional[dict]:
    """
    Classify each period of ``member`` against the calendar.

    A period is overdue when its month is before the current month and its
    approved deposits fall short. A short period in the current month, or any
    short period that already has some payment, is partial. Returns None for
    members without a product.
    """
    product = member.product
    if product is None:
        return None

    total_periods = resolve_total_periods(
        product, payments, settings.DEFAULT_TERM_DURATION, settings.MIN_FALLBACK_TERM,
        settings.MAX_INSTALLMENT_PERIOD,
    )
    start = savings_start(member)
    current = date(today.year, today.month, 1)
    paid_by_period = approved_deposit_totals(payments)

    periods = []
    total_paid = ZERO
    total_required = ZERO
    paid_periods = partial_periods = overdue_periods = 0

    for period in range(1, total_periods + 1):
        required = required_amount(period, product, upgrade)
        paid = paid_by_period.get(period, ZERO)
        due = period_month(start, period)
        is_current_month = due == current
        is_overdue = due < current and paid < required

        if paid >= required:
            status = "paid"
            paid_periods += 1
        elif is_overdue:
            status = "overdue"
            overdue_periods += 1
        elif is_current_month or paid > ZERO:
            status = "partial"
            partial_periods += 1
        else:
            status = "unpaid"

        total_paid += paid
        total_required += required
        periods.append({
            "period": period,
            "dueMonth": due.strftime("%Y-%m"),
            "required": as_float(required),
            "paid": as_float(paid),
            "remaining": as_float(max(ZERO, required - paid)),
            "status": status,
            "isOverdue": is_overdue,
            "isCurrentMonth": is_current_month,
        })

    return {
        "totalPeriods": total_periods,
        "totalPaid": as_float(total_paid),
        "totalRequired": as_float(total_required),
        "paidPeriods": paid_periods,
        "partialPeriods": partial_periods,
        "overduePeriods": overdue_periods,
        "unpaidPeriods": total_periods - paid_periods - partial_periods - overdue_periods,
        "progress": round(paid_periods / total_periods * 100, 2) if total_periods else 0.0,
        "periods": periods,
    }


def _matches_filter(member: Member, status: Optional[dict], status_filter: Optional[str]) -> bool:
    if not status_filter:
        return True
    if status_filter == "completed":
        return member.is_completed
    if status_filter == "not_completed":
        return not member.is_completed
    if status is None:
        return False
    if status_filter == "has_overdue":
        return status["overduePeriods"] > 0
    if status_filter == "has_partial":
        return status["partialPeriods"] > 0 and status["overduePeriods"] == 0
    if status_filter == "all_paid":
        return status["paidPeriods"] == status["totalPeriods"]
    return True


def payment_status_report(
    db: Session,
    product_id: UUID = None,
    status_filter: str = None,
    today: date = None
) -> dict:
    """Payment status of every member plus summary counters."""
    if status_filter and status_filter not in STATUS_FILTERS:
        raise ValidationError(f"Invalid status filter. Allowed: {', '.join(STATUS_FILTERS)}")
    today = today or date.today()

    members = db.query(Member).order_by(Member.name.asc()).all()
    payments_by_member = {}
    for record in db.query(Savings).all():
        payments_by_member.setdefault(record.member_id, []).append(record)
    upgrade_ids = [m.current_upgrade_id for m in members if m.has_upgraded and m.current_upgrade_id]
    upgrades = {
        u.id: u for u in db.query(ProductUpgrade).filter(ProductUpgrade.id.in_(upgrade_ids)).all()
    } if upgrade_ids else {}

    report = []
    for member in members:
        upgrade = upgrades.get(member.current_upgrade_id) if member.has_upgraded else None
        status = member_payment_status(member, payments_by_member.get(member.id, []), upgrade, today)
        report.append((member, status))

    summary = _summary(db, report)

    rows = []
    for member, status in report:
        if product_id and member.product_id != product_id:
            continue
        if not _matches_filter(member, status, status_filter):
            continue
        rows.append({
            "id": str(member.id),
            "uuid": member.uuid,
            "name": member.name,
            "productId": str(member.product_id) if member.product_id else None,
            "productTitle": member.product.title if member.product else None,
            "isCompleted": member.is_completed,
            "hasUpgraded": member.has_upgraded,
            "paymentStatus": status,
        })

    logger.debug("Payment status report: %d of %d members after filters", len(rows), len(report))
    return {"members": rows, "summary": summary, "generatedFor": today.isoformat()}


def _summary(db: Session, report) -> dict:
    def total(savings_type, savings_status):
        value = db.query(func.sum(Savings.amount)).filter(
            Savings.type == savings_type,
            Savings.status == savings_status
        ).scalar()
        return to_money(value)

    deposits = total(SavingsType.SETORAN, SavingsStatus.APPROVED)
    withdrawals = total(SavingsType.PENARIKAN, SavingsStatus.APPROVED)
    pending_amount = to_money(
        db.query(func.sum(Savings.amount)).filter(Savings.status == SavingsStatus.PENDING).scalar()
    )
    pending_count = db.query(func.count(Savings.id)).filter(Savings.status == SavingsStatus.PENDING).scalar() or 0

    statuses = [s for _, s in report if s is not None]
    return {
        "totalMembers": len(report),
        "completedMembers": sum(1 for m, _ in report if m.is_completed),
        "membersWithOverdue": sum(1 for s in statuses if s["overduePeriods"] > 0),
        "membersWithPartial": sum(1 for s in statuses if s["partialPeriods"] > 0 and s["overduePeriods"] == 0),
        "membersAllPaid": sum(1 for s in statuses if s["paidPeriods"] == s["totalPeriods"]),
        "totalSavingsAmount": as_float(deposits),
        "totalWithdrawals": as_float(withdrawals),
        "netSavings": as_float(deposits - withdrawals),
        "pendingSavings": as_float(pending_amount),
        "pendingCount": pending_count,
    }


def overdue_members(db: Session, today: date = None) -> List[dict]:
    """Members with at least one overdue period, for the digest email."""
    report = payment_status_report(db, status_filter="has_overdue", today=today)
    result = []
    for row in report["members"]:
        status = row["paymentStatus"]
        overdue = [p for p in status["periods"] if p["status"] == "overdue"]
        result.append({
            "uuid": row["uuid"],
            "name": row["name"],
            "productTitle": row["productTitle"],
            "overduePeriods": status["overduePeriods"],
            "overdueAmount": sum((Decimal(str(p["remaining"])) for p in overdue), ZERO),
            "oldestDueMonth": overdue[0]["dueMonth"] if overdue else None,
        })
    return result
