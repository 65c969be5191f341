from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from koperasi.db.base import get_db
from koperasi.core.dependencies import parse_id, require_staff
from koperasi.models.user import User
from koperasi.services.report import payment_status_report

router = APIRouter(prefix="/api/admin/reports", tags=["reports"])


@router.get("/payment-status")
def get_payment_status(
    productId: Optional[str] = None,
    status: Optional[str] = None,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Per-member, per-period payment status against the calendar."""
    data = payment_status_report(
        db,
        product_id=parse_id(productId, "product ID") if productId else None,
        status_filter=status,
    )
    return {"success": True, "data": data, "message": "Payment status report generated"}
