"""Savings submission and review workflow."""
import logging
import math
import secrets
import time
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from koperasi.core.config import SAVINGS_PROOFS_DIR, settings
from koperasi.models.member import Member
from koperasi.models.product import Product
from koperasi.models.savings import PaymentType, Savings, SavingsStatus, SavingsType
from koperasi.services.exceptions import ConflictError, NotFoundError, ValidationError
from koperasi.services.locks import commit_member_change, lock_member_row, member_lock
from koperasi.services.member import get_member_upgrade, transaction_to_dict
from koperasi.services.reconciliation import (
    ZERO,
    as_float,
    group_by_period,
    required_amount,
    resolve_total_periods,
    suggest_next_period,
    summarize_period,
    to_money,
)
from koperasi.services.upgrade import upgrade_info_to_dict

logger = logging.getLogger(__name__)

ALLOWED_PROOF_EXTENSIONS = {".pdf", ".jpg", ".jpeg", ".png", ".gif"}


# ---------------------------------------------------------------------------
# Proof files
# ---------------------------------------------------------------------------

def validate_proof_file(filename: str, size: int) -> None:
    ext = Path(filename).suffix.lower() if filename else ""
    if ext not in ALLOWED_PROOF_EXTENSIONS:
        raise ValidationError(
            f"Invalid file type. Allowed: {', '.join(sorted(ALLOWED_PROOF_EXTENSIONS))}"
        )
    if size > settings.MAX_PROOF_FILE_MB * 1024 * 1024:
        raise ValidationError(f"Proof file is larger than {settings.MAX_PROOF_FILE_MB} MB")


def save_proof_file(filename: str, content: bytes) -> str:
    """Store an uploaded proof and return the stored file name."""
    validate_proof_file(filename, len(content))
    SAVINGS_PROOFS_DIR.mkdir(parents=True, exist_ok=True)

    safe_name = "".join(c for c in Path(filename).name if c.isalnum() or c in "._-") or "proof"
    stored = f"bukti-{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}-{safe_name}"
    with open(SAVINGS_PROOFS_DIR / stored, "wb") as f:
        f.write(content)
    return stored


def remove_proof_file(filename: Optional[str]) -> None:
    if not filename:
        return
    path = SAVINGS_PROOFS_DIR / Path(filename).name
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to delete proof file %s: %s", path, e)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_savings(db: Session, savings_id: UUID) -> Savings:
    record = db.query(Savings).filter(Savings.id == savings_id).first()
    if not record:
        raise NotFoundError("Savings record not found")
    return record


def _get_product(db: Session, product_id: UUID) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def _check_period_in_term(period: int, product: Product) -> None:
    if period > settings.MAX_INSTALLMENT_PERIOD:
        raise ValidationError(
            f"Installment period {period} is beyond the maximum of {settings.MAX_INSTALLMENT_PERIOD} periods"
        )
    if settings.ALLOW_PERIODS_BEYOND_TERM or not product.term_duration:
        return
    if period > product.term_duration:
        raise ValidationError(
            f"Installment period {period} is beyond the product term of {product.term_duration} periods"
        )


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

def create_savings(
    db: Session,
    member_id: UUID,
    product_id: UUID,
    installment_period: int,
    amount: Decimal,
    savings_date: datetime = None,
    payment_date: date = None,
    savings_type: SavingsType = SavingsType.SETORAN,
    description: str = None,
    notes: str = None,
    proof_file: str = None,
    created_by: UUID = None
) -> Savings:
    """
    Record a submitted payment as Pending.

    Runs under the member lock so the required amount used to classify the
    payment as Full or Partial cannot be read from an upgrade that is being
    replaced at the same moment.
    """
    if installment_period is None or installment_period < 1:
        raise ValidationError("Installment period must be at least 1")
    amount = to_money(amount)
    if amount <= ZERO:
        raise ValidationError("Amount must be greater than 0")
    savings_type = savings_type or SavingsType.SETORAN

    with member_lock(member_id):
        member = lock_member_row(db, member_id)
        product = _get_product(db, product_id)
        _check_period_in_term(installment_period, product)

        if savings_type == SavingsType.SETORAN:
            duplicate = db.query(Savings).filter(
                Savings.member_id == member.id,
                Savings.installment_period == installment_period,
                Savings.type == SavingsType.SETORAN,
                Savings.status == SavingsStatus.PENDING
            ).first()
            if duplicate:
                raise ConflictError(
                    f"A pending payment for period {installment_period} is already awaiting review"
                )

        existing_count = db.query(func.count(Savings.id)).filter(
            Savings.member_id == member.id,
            Savings.product_id == product.id,
            Savings.installment_period == installment_period
        ).scalar() or 0
        partial_sequence = existing_count + 1

        upgrade = get_member_upgrade(db, member)
        required = required_amount(installment_period, product, upgrade)
        payment_type = PaymentType.PARTIAL if amount < required else PaymentType.FULL

        if not description:
            description = f"Pembayaran Simpanan Periode - {installment_period}"
            if partial_sequence > 1:
                description += f" (#{partial_sequence})"

        record = Savings(
            member_id=member.id,
            product_id=product.id,
            installment_period=installment_period,
            amount=amount,
            savings_date=savings_date or datetime.utcnow(),
            payment_date=payment_date,
            type=savings_type,
            description=description,
            status=SavingsStatus.PENDING,
            payment_type=payment_type,
            partial_sequence=partial_sequence,
            notes=notes or "",
            proof_file=proof_file,
            created_by=created_by,
        )
        db.add(record)
        member.last_activity_at = datetime.utcnow()

        commit_member_change(db)
        db.refresh(record)

    logger.info(
        "Savings %s created: member=%s period=%d amount=%s (%s, #%d)",
        record.id, member_id, installment_period, amount, payment_type.value, partial_sequence,
    )
    return record


def update_savings(db: Session, savings_id: UUID, changes: dict) -> Savings:
    """Edit a record that has not been approved yet."""
    record = get_savings(db, savings_id)
    if record.status == SavingsStatus.APPROVED:
        raise ValidationError("Approved savings cannot be edited")

    if changes.get("installment_period") is not None:
        period = changes["installment_period"]
        if period < 1:
            raise ValidationError("Installment period must be at least 1")
        _check_period_in_term(period, record.product)
        record.installment_period = period
    if changes.get("amount") is not None:
        amount = to_money(changes["amount"])
        if amount <= ZERO:
            raise ValidationError("Amount must be greater than 0")
        record.amount = amount

    for field in ("savings_date", "payment_date", "description", "notes"):
        if changes.get(field) is not None:
            setattr(record, field, changes[field])
    if changes.get("proof_file"):
        remove_proof_file(record.proof_file)
        record.proof_file = changes["proof_file"]

    if record.type == SavingsType.SETORAN:
        upgrade = get_member_upgrade(db, record.member)
        required = required_amount(record.installment_period, record.product, upgrade)
        record.payment_type = PaymentType.PARTIAL if to_money(record.amount) < required else PaymentType.FULL

    record.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(record)
    return record


def delete_savings(db: Session, savings_id: UUID) -> None:
    record = get_savings(db, savings_id)
    proof_file = record.proof_file
    db.delete(record)
    db.commit()
    remove_proof_file(proof_file)
    logger.info("Savings %s deleted", savings_id)


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

def approve_savings(db: Session, savings_id: UUID, approved_by: UUID = None, notes: str = None) -> Savings:
    record = get_savings(db, savings_id)
    if record.status == SavingsStatus.APPROVED:
        raise ValidationError("Savings is already approved")

    record.status = SavingsStatus.APPROVED
    record.approved_by = approved_by
    record.approved_at = datetime.utcnow()
    record.rejection_reason = None
    if notes:
        record.notes = notes
    db.commit()
    db.refresh(record)
    logger.info("Savings %s approved (period %d)", record.id, record.installment_period)
    return record


def reject_savings(db: Session, savings_id: UUID, rejection_reason: str, rejected_by: UUID = None) -> Savings:
    if not rejection_reason or not rejection_reason.strip():
        raise ValidationError("Rejection reason is required")
    record = get_savings(db, savings_id)
    if record.status == SavingsStatus.APPROVED:
        raise ValidationError("Approved savings cannot be rejected")

    record.status = SavingsStatus.REJECTED
    record.rejection_reason = rejection_reason.strip()
    record.rejected_by = rejected_by
    record.rejected_at = datetime.utcnow()
    db.commit()
    db.refresh(record)
    logger.info("Savings %s rejected: %s", record.id, record.rejection_reason)
    return record


def mark_savings_partial(db: Session, savings_id: UUID, notes: str = None) -> Savings:
    record = get_savings(db, savings_id)
    if record.status != SavingsStatus.PENDING:
        raise ValidationError("Only pending savings can be marked as partial")

    record.status = SavingsStatus.PARTIAL
    record.payment_type = PaymentType.PARTIAL
    if notes:
        record.notes = notes
    db.commit()
    db.refresh(record)
    logger.info("Savings %s marked partial", record.id)
    return record


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def approved_totals_by_type(db: Session, member_id: UUID = None) -> dict:
    query = db.query(Savings.type, func.sum(Savings.amount)).filter(
        Savings.status == SavingsStatus.APPROVED
    )
    if member_id:
        query = query.filter(Savings.member_id == member_id)
    totals = {savings_type: to_money(total) for savings_type, total in query.group_by(Savings.type).all()}
    deposits = totals.get(SavingsType.SETORAN, ZERO)
    withdrawals = totals.get(SavingsType.PENARIKAN, ZERO)
    return {"deposits": deposits, "withdrawals": withdrawals, "balance": deposits - withdrawals}


def list_savings(
    db: Session,
    status: SavingsStatus = None,
    member_id: UUID = None,
    savings_type: SavingsType = None,
    page: int = 1,
    limit: int = 10
) -> dict:
    if page < 1 or limit < 1:
        raise ValidationError("Page and limit must be positive")

    query = db.query(Savings)
    if status:
        query = query.filter(Savings.status == status)
    if member_id:
        query = query.filter(Savings.member_id == member_id)
    if savings_type:
        query = query.filter(Savings.type == savings_type)

    total = query.count()
    records = query.order_by(Savings.created_at.desc(), Savings.savings_date.desc()).offset(
        (page - 1) * limit
    ).limit(limit).all()

    totals = approved_totals_by_type(db)
    return {
        "savings": [savings_to_dict(r) for r in records],
        "summary": {
            "totalSetoran": as_float(totals["deposits"]),
            "totalPenarikan": as_float(totals["withdrawals"]),
            "saldo": as_float(totals["balance"]),
        },
        "pagination": {
            "currentPage": page,
            "totalPages": math.ceil(total / limit),
            "totalItems": total,
            "itemsPerPage": limit,
        },
    }


def member_savings_summary(db: Session, member_id: UUID) -> dict:
    member = db.query(Member).filter(Member.id == member_id).first()
    if not member:
        raise NotFoundError("Member not found")
    records = db.query(Savings).filter(Savings.member_id == member_id).order_by(
        Savings.savings_date.desc()
    ).all()
    totals = approved_totals_by_type(db, member_id)
    return {
        "savings": [savings_to_dict(r) for r in records],
        "summary": {
            "totalSavings": as_float(totals["deposits"]),
            "totalWithdrawals": as_float(totals["withdrawals"]),
            "balance": as_float(totals["balance"]),
        },
    }


def period_summary(db: Session, member_id: UUID, product_id: UUID, period: int) -> dict:
    """One aggregated period row with its transactions."""
    if period < 1:
        raise ValidationError("Installment period must be at least 1")
    member = db.query(Member).filter(Member.id == member_id).first()
    if not member:
        raise NotFoundError("Member not found")
    product = _get_product(db, product_id)
    upgrade = get_member_upgrade(db, member)

    records = db.query(Savings).filter(
        Savings.member_id == member_id,
        Savings.installment_period == period
    ).all()
    row = summarize_period(period, records, product, upgrade)
    return {
        "memberId": str(member_id),
        "productId": str(product_id),
        "installmentPeriod": period,
        "required": as_float(row.required),
        "paid": as_float(row.paid),
        "remaining": as_float(row.remaining),
        "status": row.status.value,
        "percentage": round(row.percentage, 2),
        "transactionCount": len(row.transactions),
        "transactions": [savings_to_dict(r) for r in row.transactions],
    }


def check_period(db: Session, member_id: UUID, product_id: UUID) -> dict:
    """
    What the payment form should offer next for a member.

    Payment history is read across every product the member has saved
    under, so an upgrade never resets period numbering; the product in the
    path only supplies ``depositAmount`` and the requirement for members
    without an upgrade.
    """
    member = db.query(Member).filter(Member.id == member_id).first()
    if not member:
        raise NotFoundError("Member not found")
    product = _get_product(db, product_id)
    upgrade = get_member_upgrade(db, member)

    payments = db.query(Savings).filter(Savings.member_id == member_id).all()
    suggestion = suggest_next_period(payments, product, upgrade)

    deposits = sorted(
        (r for r in payments if r.type == SavingsType.SETORAN),
        key=lambda r: (r.installment_period, r.created_at or datetime.min),
    )
    transactions_by_period = {
        str(period): [
            {
                "amount": as_float(r.amount),
                "status": r.status.value,
                "date": r.created_at.isoformat() if r.created_at else None,
                "rejectionReason": r.rejection_reason or None,
            }
            for r in records
        ]
        for period, records in group_by_period(deposits).items()
    }

    if suggestion.is_partial_continuation:
        expected = suggestion.remaining_amount
    else:
        expected = suggestion.required_amount

    term = resolve_total_periods(
        product, payments, settings.DEFAULT_TERM_DURATION, settings.MIN_FALLBACK_TERM,
        settings.MAX_INSTALLMENT_PERIOD,
    )
    logger.debug(
        "check-period member=%s next=%d partial=%s expected=%s",
        member_id, suggestion.period, suggestion.is_partial_continuation, expected,
    )

    return {
        "lastPeriod": suggestion.last_completed_period,
        "nextPeriod": suggestion.period,
        "isPartialPayment": suggestion.is_partial_continuation,
        "remainingAmount": as_float(suggestion.remaining_amount),
        "depositAmount": as_float(product.deposit_amount),
        "expectedAmount": as_float(expected),
        "hasUpgrade": upgrade is not None,
        "upgradeInfo": upgrade_info_to_dict(upgrade),
        "incompletePeriods": [
            {
                "period": p.period,
                "paidAmount": as_float(p.paid),
                "remainingAmount": as_float(p.remaining),
            }
            for p in suggestion.incomplete_periods
        ],
        "pendingTransactions": [
            {
                "id": str(r.id),
                "installmentPeriod": r.installment_period,
                "amount": as_float(r.amount),
                "description": r.description,
                "createdAt": r.created_at.isoformat() if r.created_at else None,
            }
            for r in deposits if r.status == SavingsStatus.PENDING
        ],
        "rejectedTransactions": [
            {
                "id": str(r.id),
                "installmentPeriod": r.installment_period,
                "rejectionReason": r.rejection_reason,
                "createdAt": r.created_at.isoformat() if r.created_at else None,
            }
            for r in deposits if r.status == SavingsStatus.REJECTED
        ],
        "transactionsByPeriod": transactions_by_period,
        "termDuration": term,
        "termCompleted": suggestion.last_completed_period >= term and not suggestion.is_partial_continuation,
    }


def savings_to_dict(record: Savings) -> dict:
    data = transaction_to_dict(record)
    data.update({
        "memberId": str(record.member_id),
        "memberName": record.member.name if record.member else None,
        "productId": str(record.product_id),
        "productTitle": record.product.title if record.product else None,
        "installmentPeriod": record.installment_period,
        "savingsDate": record.savings_date.isoformat() if record.savings_date else None,
        "description": record.description,
        "paymentType": record.payment_type.value if record.payment_type else None,
        "notes": record.notes,
        "proofFile": record.proof_file,
        "approvedAt": record.approved_at.isoformat() if record.approved_at else None,
        "rejectedAt": record.rejected_at.isoformat() if record.rejected_at else None,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
    })
    return data
