from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session
from koperasi.db.base import get_db
from koperasi.core.audit import audit_user, write_audit_log
from koperasi.core.dependencies import parse_id, require_staff
from koperasi.models.savings import SavingsStatus, SavingsType
from koperasi.models.user import User
from koperasi.schemas.savings import SavingsReject, SavingsReview, SavingsUpdate
from koperasi.services.exceptions import KoperasiError, ValidationError
from koperasi.services.savings import (
    approve_savings,
    check_period,
    create_savings,
    delete_savings,
    get_savings,
    list_savings,
    mark_savings_partial,
    member_savings_summary,
    period_summary,
    reject_savings,
    remove_proof_file,
    save_proof_file,
    savings_to_dict,
    update_savings,
)

router = APIRouter(prefix="/api/admin/savings", tags=["savings"])


def _enum_value(enum_cls, value: Optional[str], label: str):
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid {label}. Allowed: {allowed}")


@router.get("")
def get_all_savings(
    status: Optional[str] = None,
    memberId: Optional[str] = None,
    type: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Paged savings list with the approved totals of every record."""
    data = list_savings(
        db,
        status=_enum_value(SavingsStatus, status, "status"),
        member_id=parse_id(memberId, "member ID") if memberId else None,
        savings_type=_enum_value(SavingsType, type, "type"),
        page=page,
        limit=limit,
    )
    return {"success": True, "data": data, "message": "Savings retrieved"}


@router.post("", status_code=201)
def post_savings(
    memberId: Optional[str] = Form(None),
    productId: Optional[str] = Form(None),
    installmentPeriod: Optional[int] = Form(None),
    amount: Optional[Decimal] = Form(None),
    savingsDate: Optional[datetime] = Form(None),
    paymentDate: Optional[date] = Form(None),
    type: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    proofFile: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """
    Submit a payment (multipart form).

    The record always starts Pending; Full or Partial is derived from the
    amount the period requires at submission time.
    """
    if not memberId or not productId:
        raise ValidationError("Member ID and Product ID are required")
    if installmentPeriod is None:
        raise ValidationError("Installment period is required")
    if amount is None:
        raise ValidationError("Amount is required")
    member_id = parse_id(memberId, "member ID")
    product_id = parse_id(productId, "product ID")
    savings_type = _enum_value(SavingsType, type, "type") or SavingsType.SETORAN

    stored_proof = None
    if proofFile is not None and proofFile.filename:
        stored_proof = save_proof_file(proofFile.filename, proofFile.file.read())

    try:
        record = create_savings(
            db,
            member_id=member_id,
            product_id=product_id,
            installment_period=installmentPeriod,
            amount=amount,
            savings_date=savingsDate,
            payment_date=paymentDate,
            savings_type=savings_type,
            description=description,
            notes=notes,
            proof_file=stored_proof,
            created_by=current_user.id,
        )
    except KoperasiError:
        remove_proof_file(stored_proof)
        raise

    user_name, user_role = audit_user(current_user)
    write_audit_log(
        user_name, user_role, "Create savings",
        f"member={member_id} period={record.installment_period} amount={record.amount} type={record.payment_type.value}"
    )
    return {"success": True, "data": savings_to_dict(record), "message": "Savings created"}


@router.get("/check-period/{member_id}/{product_id}")
def get_check_period(
    member_id: str,
    product_id: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Next period to pay, outstanding partial periods and the amount expected."""
    data = check_period(db, parse_id(member_id, "member ID"), parse_id(product_id, "product ID"))
    return {"success": True, "data": data, "message": "Installment period retrieved"}


@router.get("/period-summary/{member_id}/{product_id}/{installment_period}")
def get_period_summary(
    member_id: str,
    product_id: str,
    installment_period: int,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    data = period_summary(
        db, parse_id(member_id, "member ID"), parse_id(product_id, "product ID"), installment_period
    )
    return {"success": True, "data": data, "message": "Period summary retrieved"}


@router.get("/member/{member_id}")
def get_member_savings(
    member_id: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    data = member_savings_summary(db, parse_id(member_id, "member ID"))
    return {"success": True, "data": data, "message": "Member savings retrieved"}


@router.get("/{savings_id}")
def get_savings_detail(
    savings_id: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    record = get_savings(db, parse_id(savings_id, "savings ID"))
    return {"success": True, "data": savings_to_dict(record), "message": "Savings retrieved"}


@router.put("/{savings_id}")
def put_savings(
    savings_id: str,
    payload: SavingsUpdate,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    record = update_savings(db, parse_id(savings_id, "savings ID"), payload.model_dump(exclude_unset=True))
    user_name, user_role = audit_user(current_user)
    write_audit_log(user_name, user_role, "Update savings", f"savings={record.id}")
    return {"success": True, "data": savings_to_dict(record), "message": "Savings updated"}


@router.delete("/{savings_id}")
def remove_savings(
    savings_id: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    record_id = parse_id(savings_id, "savings ID")
    delete_savings(db, record_id)
    user_name, user_role = audit_user(current_user)
    write_audit_log(user_name, user_role, "Delete savings", f"savings={record_id}")
    return {"success": True, "data": None, "message": "Savings and proof deleted"}


@router.patch("/{savings_id}/approve")
def patch_approve_savings(
    savings_id: str,
    payload: Optional[SavingsReview] = None,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    record = approve_savings(
        db, parse_id(savings_id, "savings ID"),
        approved_by=current_user.id,
        notes=payload.notes if payload else None,
    )
    user_name, user_role = audit_user(current_user)
    write_audit_log(
        user_name, user_role, "Approve savings",
        f"savings={record.id} period={record.installment_period} amount={record.amount}"
    )
    return {"success": True, "data": savings_to_dict(record), "message": "Savings approved"}


@router.patch("/{savings_id}/reject")
def patch_reject_savings(
    savings_id: str,
    payload: Optional[SavingsReject] = None,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    record = reject_savings(
        db, parse_id(savings_id, "savings ID"),
        rejection_reason=payload.rejection_reason if payload else None,
        rejected_by=current_user.id,
    )
    user_name, user_role = audit_user(current_user)
    write_audit_log(user_name, user_role, "Reject savings", f"savings={record.id} reason={record.rejection_reason}")
    return {"success": True, "data": savings_to_dict(record), "message": "Savings rejected"}


@router.patch("/{savings_id}/partial")
def patch_partial_savings(
    savings_id: str,
    payload: Optional[SavingsReview] = None,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    record = mark_savings_partial(db, parse_id(savings_id, "savings ID"), notes=payload.notes if payload else None)
    user_name, user_role = audit_user(current_user)
    write_audit_log(user_name, user_role, "Mark savings partial", f"savings={record.id}")
    return {"success": True, "data": savings_to_dict(record), "message": "Savings marked as partial"}
