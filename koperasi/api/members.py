from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from koperasi.db.base import get_db
from koperasi.core.audit import audit_user, write_audit_log
from koperasi.core.dependencies import parse_id, require_staff
from koperasi.models.user import User
from koperasi.schemas.member import MemberCreate, MemberUpdate
from koperasi.services.member import (
    create_member,
    get_member_by_uuid,
    list_members,
    mark_member_completed,
    member_period_status,
    member_projection,
    member_to_dict,
    unmark_member_completed,
    update_member,
)

router = APIRouter(prefix="/api/admin/members", tags=["members"])


@router.get("")
def get_members(
    product_id: Optional[str] = None,
    search: Optional[str] = None,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """List members with their current balance."""
    product_uuid = parse_id(product_id, "product ID") if product_id else None
    members = list_members(db, product_id=product_uuid, search=search)
    return {"success": True, "data": members, "message": "Members retrieved"}


@router.post("", status_code=status.HTTP_201_CREATED)
def post_member(
    payload: MemberCreate,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    member = create_member(
        db,
        name=payload.name,
        gender=payload.gender,
        uuid=payload.uuid,
        phone=payload.phone,
        city=payload.city,
        complete_address=payload.complete_address,
        account_number=payload.account_number,
        product_id=payload.product_id,
        savings_start_date=payload.savings_start_date,
    )
    user_name, user_role = audit_user(current_user)
    write_audit_log(user_name, user_role, "Create member", f"member={member.uuid} name={member.name}")
    return {"success": True, "data": member_to_dict(member), "message": "Member created"}


@router.get("/{member_uuid}")
def get_member_detail(
    member_uuid: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Member detail with the upgrade in force and the full upgrade history."""
    member = get_member_by_uuid(db, member_uuid)
    return {"success": True, "data": member_to_dict(member, include_history=True), "message": "Member retrieved"}


@router.put("/{member_uuid}")
def put_member(
    member_uuid: str,
    payload: MemberUpdate,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    member = get_member_by_uuid(db, member_uuid)
    member = update_member(db, member, payload.model_dump(exclude_unset=True))
    user_name, user_role = audit_user(current_user)
    write_audit_log(user_name, user_role, "Update member", f"member={member.uuid}")
    return {"success": True, "data": member_to_dict(member, include_history=True), "message": "Member updated"}


@router.patch("/{member_uuid}/complete")
def patch_member_complete(
    member_uuid: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    member = mark_member_completed(db, get_member_by_uuid(db, member_uuid), completed_by=current_user.id)
    user_name, user_role = audit_user(current_user)
    write_audit_log(user_name, user_role, "Complete member", f"member={member.uuid}")
    return {"success": True, "data": member_to_dict(member), "message": "Member marked as completed"}


@router.patch("/{member_uuid}/uncomplete")
def patch_member_uncomplete(
    member_uuid: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    member = unmark_member_completed(db, get_member_by_uuid(db, member_uuid))
    user_name, user_role = audit_user(current_user)
    write_audit_log(user_name, user_role, "Uncomplete member", f"member={member.uuid}")
    return {"success": True, "data": member_to_dict(member), "message": "Member completion cleared"}


@router.get("/{member_uuid}/period-status")
def get_member_period_status(
    member_uuid: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    member = get_member_by_uuid(db, member_uuid)
    return {"success": True, "data": member_period_status(db, member), "message": "Period status retrieved"}


@router.get("/{member_uuid}/projection")
def get_member_projection(
    member_uuid: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    member = get_member_by_uuid(db, member_uuid)
    return {"success": True, "data": member_projection(db, member), "message": "Projection retrieved"}
