from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from koperasi.db.base import get_db
from koperasi.core.audit import audit_user, write_audit_log
from koperasi.core.dependencies import parse_id, require_staff
from koperasi.models.user import User
from koperasi.schemas.upgrade import UpgradeCalculateRequest, UpgradeExecuteRequest
from koperasi.services.member import get_member
from koperasi.services.upgrade import (
    execute_upgrade,
    get_upgrade_history,
    preview_upgrade,
    upgrade_result_to_dict,
    upgrade_to_dict,
)

router = APIRouter(prefix="/api/admin/product-upgrade", tags=["product-upgrade"])


@router.post("/calculate")
def calculate(
    payload: UpgradeCalculateRequest,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Preview the compensation for moving a member to another product. Nothing is saved."""
    result = preview_upgrade(db, payload.member_id, payload.new_product_id)
    return {"success": True, "data": upgrade_result_to_dict(result), "message": "Upgrade calculated"}


@router.post("/execute")
def execute(
    payload: UpgradeExecuteRequest,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """
    Apply an upgrade.

    The figures in ``calculationResult`` are checked against a fresh
    calculation; a mismatch answers 409 and nothing is saved.
    """
    upgrade = execute_upgrade(
        db,
        member_id=payload.member_id,
        new_product_id=payload.new_product_id,
        submitted=payload.calculation_result,
        executed_by=current_user.id,
        notes=payload.notes,
    )
    user_name, user_role = audit_user(current_user)
    write_audit_log(
        user_name, user_role, "Execute upgrade",
        f"member={upgrade.member_id} old={upgrade.old_product_id} new={upgrade.new_product_id} "
        f"compensation={upgrade.compensation_per_month}"
    )
    return {"success": True, "data": upgrade_to_dict(upgrade), "message": "Product upgraded"}


@router.get("/history/{member_id}")
def history(
    member_id: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    member = get_member(db, parse_id(member_id, "member ID"))
    upgrades = get_upgrade_history(db, member.id)
    return {"success": True, "data": [upgrade_to_dict(u) for u in upgrades], "message": "Upgrade history retrieved"}
