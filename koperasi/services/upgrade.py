"""Mid-term product upgrades and their compensation."""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from koperasi.models.member import Member, ProductUpgrade
from koperasi.models.product import Product
from koperasi.models.savings import Savings
from koperasi.services.exceptions import ConflictError, NoRemainingPeriodsError, NotFoundError, ValidationError
from koperasi.services.locks import commit_member_change, lock_member_row, member_lock
from koperasi.services.reconciliation import ZERO, as_float, count_completed_periods, to_money

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass
class UpgradeResult:
    old_product_id: Optional[UUID]
    old_product_title: Optional[str]
    new_product_id: Optional[UUID]
    new_product_title: Optional[str]
    old_monthly_deposit: Decimal
    new_monthly_deposit: Decimal
    completed_periods: int
    total_periods: int
    remaining_periods: int
    monthly_delta: Decimal
    total_shortfall: Decimal
    compensation_per_month: Decimal
    new_payment_with_compensation: Decimal


def calculate_upgrade(old_product, new_product, completed_periods: int, total_periods: int) -> UpgradeResult:
    """
    Price a move from ``old_product`` to ``new_product`` after
    ``completed_periods`` periods.

    Periods already paid at the old (lower) deposit leave a shortfall of
    ``monthly_delta * completed_periods``; it is spread evenly over the
    remaining periods and added to every future payment. Moving to a cheaper
    or equal product carries no compensation and no refund. Compensation is
    rounded to the cent, half up.
    """
    if completed_periods < 0:
        raise ValidationError("Completed periods cannot be negative")

    old_deposit = to_money(old_product.deposit_amount)
    new_deposit = to_money(new_product.deposit_amount)
    monthly_delta = new_deposit - old_deposit
    remaining_periods = total_periods - completed_periods

    if remaining_periods <= 0:
        raise NoRemainingPeriodsError(
            f"No remaining periods to spread compensation over "
            f"(completed {completed_periods} of {total_periods})"
        )

    total_shortfall = monthly_delta * completed_periods if monthly_delta > ZERO else ZERO
    if total_shortfall > ZERO:
        compensation = (total_shortfall / Decimal(remaining_periods)).quantize(CENT, rounding=ROUND_HALF_UP)
    else:
        compensation = ZERO

    return UpgradeResult(
        old_product_id=old_product.id,
        old_product_title=old_product.title,
        new_product_id=new_product.id,
        new_product_title=new_product.title,
        old_monthly_deposit=old_deposit,
        new_monthly_deposit=new_deposit,
        completed_periods=completed_periods,
        total_periods=total_periods,
        remaining_periods=remaining_periods,
        monthly_delta=monthly_delta,
        total_shortfall=total_shortfall,
        compensation_per_month=compensation,
        new_payment_with_compensation=new_deposit + compensation,
    )


def _load_upgrade_inputs(db: Session, member: Member, new_product_id: UUID):
    if not member.product_id:
        raise ValidationError("Member has no savings product to upgrade from")
    if member.product_id == new_product_id:
        raise ValidationError("Member is already on this product")

    old_product = db.query(Product).filter(Product.id == member.product_id).first()
    if not old_product:
        raise NotFoundError("Current product not found")
    new_product = db.query(Product).filter(Product.id == new_product_id).first()
    if not new_product:
        raise NotFoundError("New product not found")
    if not new_product.is_active:
        raise ValidationError("New product is not active")

    payments = db.query(Savings).filter(Savings.member_id == member.id).all()
    completed = count_completed_periods(payments, old_product)
    total_periods = new_product.term_duration or old_product.term_duration or 0
    return old_product, new_product, completed, total_periods


def preview_upgrade(db: Session, member_id: UUID, new_product_id: UUID) -> UpgradeResult:
    """Read-only calculation for the upgrade dialog."""
    member = db.query(Member).filter(Member.id == member_id).first()
    if not member:
        raise NotFoundError("Member not found")
    if member.has_upgraded:
        raise ConflictError("Member has already upgraded their product")

    old_product, new_product, completed, total_periods = _load_upgrade_inputs(db, member, new_product_id)
    return calculate_upgrade(old_product, new_product, completed, total_periods)


def _matches(submitted: dict, key: str, expected) -> bool:
    if key not in submitted or submitted[key] is None:
        return True
    try:
        return to_money(submitted[key]).quantize(CENT) == to_money(expected).quantize(CENT)
    except ArithmeticError:
        return False


def execute_upgrade(
    db: Session,
    member_id: UUID,
    new_product_id: UUID,
    submitted: dict,
    executed_by: UUID = None,
    notes: str = None
) -> ProductUpgrade:
    """
    Persist an upgrade previously shown to the operator.

    The calculation is redone under the member lock; if the numbers the
    client saw no longer match (payments were approved in between, for
    example) the upgrade is refused rather than applied with stale figures.
    """
    with member_lock(member_id):
        member = lock_member_row(db, member_id)
        if member.has_upgraded or member.current_upgrade_id:
            raise ConflictError("Member has already upgraded their product")

        old_product, new_product, completed, total_periods = _load_upgrade_inputs(db, member, new_product_id)
        result = calculate_upgrade(old_product, new_product, completed, total_periods)

        submitted = submitted or {}
        stale = not all([
            _matches(submitted, "completedPeriods", result.completed_periods),
            _matches(submitted, "completedPeriodsAtUpgrade", result.completed_periods),
            _matches(submitted, "compensationPerMonth", result.compensation_per_month),
            _matches(submitted, "newPaymentWithCompensation", result.new_payment_with_compensation),
        ])
        if stale:
            logger.warning("Stale upgrade calculation for member %s: submitted=%s", member_id, submitted)
            raise ConflictError("Upgrade calculation is out of date, please recalculate")

        upgrade = ProductUpgrade(
            member_id=member.id,
            old_product_id=old_product.id,
            new_product_id=new_product.id,
            old_monthly_deposit=result.old_monthly_deposit,
            new_monthly_deposit=result.new_monthly_deposit,
            completed_periods_at_upgrade=result.completed_periods,
            total_periods=result.total_periods,
            remaining_periods=result.remaining_periods,
            total_shortfall=result.total_shortfall,
            compensation_per_month=result.compensation_per_month,
            new_payment_with_compensation=result.new_payment_with_compensation,
            upgrade_date=datetime.utcnow(),
            created_by=executed_by,
            notes=notes,
        )
        db.add(upgrade)
        db.flush()

        member.product_id = new_product.id
        member.has_upgraded = True
        member.current_upgrade_id = upgrade.id
        member.last_activity_at = datetime.utcnow()

        commit_member_change(db)
        db.refresh(upgrade)

    logger.info(
        "Member %s upgraded %s -> %s (completed=%d, compensation=%s)",
        member_id, old_product.title, new_product.title,
        result.completed_periods, result.compensation_per_month,
    )
    return upgrade


def get_upgrade_history(db: Session, member_id: UUID) -> List[ProductUpgrade]:
    """All upgrades of a member, oldest first."""
    return db.query(ProductUpgrade).filter(
        ProductUpgrade.member_id == member_id
    ).order_by(ProductUpgrade.upgrade_date.asc()).all()


def upgrade_result_to_dict(result: UpgradeResult) -> dict:
    return {
        "oldProduct": {
            "id": str(result.old_product_id) if result.old_product_id else None,
            "title": result.old_product_title,
            "depositAmount": as_float(result.old_monthly_deposit),
        },
        "newProduct": {
            "id": str(result.new_product_id) if result.new_product_id else None,
            "title": result.new_product_title,
            "depositAmount": as_float(result.new_monthly_deposit),
        },
        "oldProductTitle": result.old_product_title,
        "newProductTitle": result.new_product_title,
        "oldMonthlyDeposit": as_float(result.old_monthly_deposit),
        "newMonthlyDeposit": as_float(result.new_monthly_deposit),
        "completedPeriods": result.completed_periods,
        "completedPeriodsAtUpgrade": result.completed_periods,
        "totalPeriods": result.total_periods,
        "remainingPeriods": result.remaining_periods,
        "monthlyDelta": as_float(result.monthly_delta),
        "totalShortfall": as_float(result.total_shortfall),
        "compensationPerMonth": as_float(result.compensation_per_month),
        "newPaymentWithCompensation": as_float(result.new_payment_with_compensation),
    }


def upgrade_info_to_dict(upgrade: Optional[ProductUpgrade]) -> Optional[dict]:
    """The upgrade fields the period table and payment form need."""
    if upgrade is None:
        return None
    return {
        "oldMonthlyDeposit": as_float(upgrade.old_monthly_deposit),
        "newMonthlyDeposit": as_float(upgrade.new_monthly_deposit),
        "compensationPerMonth": as_float(upgrade.compensation_per_month),
        "newPaymentWithCompensation": as_float(upgrade.new_payment_with_compensation),
        "completedPeriodsAtUpgrade": upgrade.completed_periods_at_upgrade,
    }


def upgrade_to_dict(upgrade: ProductUpgrade) -> dict:
    data = upgrade_info_to_dict(upgrade)
    data.update({
        "id": str(upgrade.id),
        "memberId": str(upgrade.member_id),
        "oldProductId": str(upgrade.old_product_id),
        "oldProductTitle": upgrade.old_product.title if upgrade.old_product else None,
        "newProductId": str(upgrade.new_product_id),
        "newProductTitle": upgrade.new_product.title if upgrade.new_product else None,
        "totalPeriods": upgrade.total_periods,
        "remainingPeriods": upgrade.remaining_periods,
        "totalShortfall": as_float(upgrade.total_shortfall),
        "upgradeDate": upgrade.upgrade_date.isoformat() if upgrade.upgrade_date else None,
        "notes": upgrade.notes,
    })
    return data
