import logging
import secrets
import string
import time
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from koperasi.core.config import settings
from koperasi.models.member import Member, ProductUpgrade
from koperasi.models.product import Product
from koperasi.models.savings import Savings, SavingsStatus, SavingsType
from koperasi.services.exceptions import NotFoundError, ValidationError
from koperasi.services.reconciliation import (
    ZERO,
    aggregate_periods,
    approved_deposit_totals,
    as_float,
    period_month,
    required_amount,
    resolve_total_periods,
)
from koperasi.services.upgrade import upgrade_info_to_dict, upgrade_to_dict

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase
GENDERS = ("L", "P")


def generate_member_uuid() -> str:
    """MEMBER_<epoch ms>_<5 random base36 chars>, uppercased."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"MEMBER_{int(time.time() * 1000)}_{suffix}".upper()


def get_member(db: Session, member_id: UUID) -> Member:
    member = db.query(Member).filter(Member.id == member_id).first()
    if not member:
        raise NotFoundError("Member not found")
    return member


def get_member_by_uuid(db: Session, member_uuid: str) -> Member:
    """Look a member up by its public ``uuid``, falling back to the primary key."""
    member = db.query(Member).filter(Member.uuid == member_uuid).first()
    if member:
        return member
    try:
        member_id = UUID(member_uuid)
    except ValueError:
        raise NotFoundError("Member not found")
    return get_member(db, member_id)


def _check_product(db: Session, product_id: Optional[UUID]) -> None:
    if product_id and not db.query(Product).filter(Product.id == product_id).first():
        raise NotFoundError("Product not found")


def create_member(
    db: Session,
    name: str,
    gender: str,
    uuid: str = None,
    phone: str = None,
    city: str = None,
    complete_address: str = None,
    account_number: str = None,
    product_id: UUID = None,
    savings_start_date: date = None
) -> Member:
    if not name or not name.strip() or not gender:
        raise ValidationError("Name and gender are required")
    if gender not in GENDERS:
        raise ValidationError("Gender must be 'L' or 'P'")
    if uuid and db.query(Member).filter(Member.uuid == uuid).first():
        raise ValidationError("UUID is already in use")
    _check_product(db, product_id)

    member = Member(
        uuid=uuid or generate_member_uuid(),
        name=name.strip(),
        gender=gender,
        phone=phone,
        city=city,
        complete_address=complete_address,
        account_number=account_number or "",
        product_id=product_id,
        savings_start_date=savings_start_date,
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    logger.info("Created member %s (%s)", member.uuid, member.name)
    return member


def update_member(db: Session, member: Member, changes: dict) -> Member:
    """
    Update identity fields, product and savings start date.

    ``changes`` carries only the fields the client sent. The product may
    only change while the member has not upgraded; after an upgrade the
    product is owned by the upgrade record.
    """
    new_uuid = changes.get("uuid")
    if new_uuid and new_uuid != member.uuid:
        if db.query(Member).filter(Member.uuid == new_uuid).first():
            raise ValidationError("UUID is already used by another member")
        member.uuid = new_uuid

    for field in ("name", "gender", "phone", "city", "complete_address"):
        if changes.get(field):
            setattr(member, field, changes[field])
    if member.gender not in GENDERS:
        raise ValidationError("Gender must be 'L' or 'P'")
    if "account_number" in changes:
        member.account_number = changes["account_number"] or ""

    if "product_id" in changes and changes["product_id"] != member.product_id:
        if member.has_upgraded:
            raise ValidationError("Product cannot be changed after an upgrade, use the upgrade history instead")
        _check_product(db, changes["product_id"])
        member.product_id = changes["product_id"]

    if "savings_start_date" in changes:
        member.savings_start_date = changes["savings_start_date"]

    member.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(member)
    return member


def mark_member_completed(db: Session, member: Member, completed_by: UUID = None) -> Member:
    """Set the manual "lunas" flag; it does not depend on period math."""
    if member.is_completed:
        raise ValidationError("Member is already marked as completed")
    member.is_completed = True
    member.completed_at = datetime.utcnow()
    member.completed_by = completed_by
    db.commit()
    db.refresh(member)
    logger.info("Member %s marked completed", member.uuid)
    return member


def unmark_member_completed(db: Session, member: Member) -> Member:
    if not member.is_completed:
        raise ValidationError("Member is not marked as completed")
    member.is_completed = False
    member.completed_at = None
    member.completed_by = None
    db.commit()
    db.refresh(member)
    logger.info("Member %s completion flag cleared", member.uuid)
    return member


def member_balances(db: Session, member_ids: List[UUID] = None) -> Dict[UUID, Decimal]:
    """Approved deposits minus approved withdrawals, per member."""
    signed = case(
        (Savings.type == SavingsType.PENARIKAN, -Savings.amount),
        else_=Savings.amount,
    )
    query = db.query(Savings.member_id, func.sum(signed)).filter(
        Savings.status == SavingsStatus.APPROVED
    )
    if member_ids is not None:
        query = query.filter(Savings.member_id.in_(member_ids))
    rows = query.group_by(Savings.member_id).all()
    return {member_id: Decimal(str(total or 0)) for member_id, total in rows}


def list_members(db: Session, product_id: UUID = None, search: str = None) -> List[dict]:
    query = db.query(Member)
    if product_id:
        query = query.filter(Member.product_id == product_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(Member.name.ilike(pattern) | Member.uuid.ilike(pattern))
    members = query.order_by(Member.created_at.desc()).all()

    balances = member_balances(db, [m.id for m in members])
    result = []
    for member in members:
        data = member_to_dict(member)
        data["totalSavings"] = as_float(balances.get(member.id, ZERO))
        result.append(data)
    return result


def get_member_upgrade(db: Session, member: Member) -> Optional[ProductUpgrade]:
    """The upgrade currently in force, or None."""
    if not member.has_upgraded or not member.current_upgrade_id:
        return None
    return db.query(ProductUpgrade).filter(ProductUpgrade.id == member.current_upgrade_id).first()


def savings_start(member: Member) -> date:
    """Calendar anchor of period 1."""
    if member.savings_start_date:
        return member.savings_start_date
    if member.created_at:
        return member.created_at.date()
    return date.today()


def _member_product(db: Session, member: Member) -> Product:
    if not member.product_id:
        raise ValidationError("Member has no savings product")
    product = db.query(Product).filter(Product.id == member.product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def _member_payments(db: Session, member: Member) -> List[Savings]:
    return db.query(Savings).filter(Savings.member_id == member.id).all()


def transaction_to_dict(record: Savings) -> dict:
    return {
        "id": str(record.id),
        "amount": as_float(record.amount),
        "status": record.status.value if record.status else None,
        "type": record.type.value if record.type else None,
        "date": record.savings_date.isoformat() if record.savings_date else None,
        "paymentDate": record.payment_date.isoformat() if record.payment_date else None,
        "rejectionReason": record.rejection_reason,
        "partialSequence": record.partial_sequence,
    }


def member_period_status(db: Session, member: Member) -> dict:
    """Per-period status table for the member's current product and upgrade."""
    product = _member_product(db, member)
    upgrade = get_member_upgrade(db, member)
    payments = _member_payments(db, member)
    total_periods = resolve_total_periods(
        product, payments, settings.DEFAULT_TERM_DURATION, settings.MIN_FALLBACK_TERM,
        settings.MAX_INSTALLMENT_PERIOD,
    )
    start = savings_start(member)

    periods = []
    for row in aggregate_periods(payments, product, upgrade, total_periods):
        periods.append({
            "period": row.period,
            "periodMonth": period_month(start, row.period).strftime("%Y-%m"),
            "required": as_float(row.required),
            "paid": as_float(row.paid),
            "remaining": as_float(row.remaining),
            "status": row.status.value,
            "percentage": round(row.percentage, 2),
            "transactions": [transaction_to_dict(t) for t in row.transactions],
        })

    return {
        "memberId": str(member.id),
        "productId": str(product.id),
        "totalPeriods": total_periods,
        "savingsStartDate": start.isoformat(),
        "hasUpgrade": upgrade is not None,
        "upgradeInfo": upgrade_info_to_dict(upgrade),
        "periods": periods,
    }


def member_projection(db: Session, member: Member) -> List[dict]:
    """Required amount per period next to what was actually approved."""
    product = _member_product(db, member)
    upgrade = get_member_upgrade(db, member)
    payments = _member_payments(db, member)
    total_periods = resolve_total_periods(
        product, payments, settings.DEFAULT_TERM_DURATION, settings.MIN_FALLBACK_TERM,
        settings.MAX_INSTALLMENT_PERIOD,
    )
    start = savings_start(member)
    realized = approved_deposit_totals(payments)

    latest_proof: Dict[int, Savings] = {}
    for record in payments:
        if record.status != SavingsStatus.APPROVED or not record.proof_file:
            continue
        current = latest_proof.get(record.installment_period)
        if current is None or (record.savings_date or datetime.min) > (current.savings_date or datetime.min):
            latest_proof[record.installment_period] = record

    projection = []
    for period in range(1, total_periods + 1):
        proof = latest_proof.get(period)
        projection.append({
            "installmentPeriod": period,
            "projection": as_float(required_amount(period, product, upgrade)),
            "periodMonth": period_month(start, period).strftime("%Y-%m"),
            "realization": as_float(realized.get(period, ZERO)),
            "paymentProof": proof.proof_file if proof else None,
        })
    return projection


def member_to_dict(member: Member, include_history: bool = False) -> dict:
    data = {
        "id": str(member.id),
        "uuid": member.uuid,
        "name": member.name,
        "gender": member.gender,
        "phone": member.phone,
        "city": member.city,
        "completeAddress": member.complete_address,
        "accountNumber": member.account_number,
        "productId": str(member.product_id) if member.product_id else None,
        "product": {
            "id": str(member.product.id),
            "title": member.product.title,
            "depositAmount": as_float(member.product.deposit_amount),
            "termDuration": member.product.term_duration,
        } if member.product else None,
        "hasUpgraded": member.has_upgraded,
        "currentUpgradeId": str(member.current_upgrade_id) if member.current_upgrade_id else None,
        "savingsStartDate": member.savings_start_date.isoformat() if member.savings_start_date else None,
        "isCompleted": member.is_completed,
        "completedAt": member.completed_at.isoformat() if member.completed_at else None,
        "createdAt": member.created_at.isoformat() if member.created_at else None,
    }
    if include_history:
        data["upgradeInfo"] = upgrade_info_to_dict(member.current_upgrade) if member.has_upgraded else None
        data["upgradeHistory"] = [upgrade_to_dict(u) for u in member.upgrade_history]
    return data
