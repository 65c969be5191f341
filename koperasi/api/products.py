from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from koperasi.db.base import get_db
from koperasi.core.audit import audit_user, write_audit_log
from koperasi.core.dependencies import parse_id, require_staff
from koperasi.models.user import User
from koperasi.schemas.product import ProductCreate, ProductUpdate
from koperasi.services.product import (
    create_product, get_product, list_products, update_product, toggle_product_status, product_to_dict,
)

router = APIRouter(prefix="/api/admin/products", tags=["products"])


@router.get("")
def get_products(
    active_only: bool = False,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """List savings products, newest first."""
    products = list_products(db, active_only=active_only)
    return {"success": True, "data": [product_to_dict(p) for p in products], "message": "Products retrieved"}


@router.post("", status_code=status.HTTP_201_CREATED)
def post_product(
    payload: ProductCreate,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    product = create_product(
        db,
        title=payload.title,
        deposit_amount=payload.deposit_amount,
        term_duration=payload.term_duration,
        return_profit=payload.return_profit,
        description=payload.description,
        is_active=payload.is_active,
    )
    user_name, user_role = audit_user(current_user)
    write_audit_log(user_name, user_role, "Create product", f"product={product.title} deposit={product.deposit_amount}")
    return {"success": True, "data": product_to_dict(product), "message": "Product created"}


@router.get("/{product_id}")
def get_product_detail(
    product_id: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    product = get_product(db, parse_id(product_id, "product ID"))
    return {"success": True, "data": product_to_dict(product), "message": "Product retrieved"}


@router.put("/{product_id}")
def put_product(
    product_id: str,
    payload: ProductUpdate,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    product = update_product(db, parse_id(product_id, "product ID"), **payload.model_dump(exclude_unset=True))
    user_name, user_role = audit_user(current_user)
    write_audit_log(user_name, user_role, "Update product", f"product={product.id}")
    return {"success": True, "data": product_to_dict(product), "message": "Product updated"}


@router.patch("/{product_id}/toggle-status")
def patch_product_status(
    product_id: str,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    product = toggle_product_status(db, parse_id(product_id, "product ID"))
    state = "activated" if product.is_active else "deactivated"
    user_name, user_role = audit_user(current_user)
    write_audit_log(user_name, user_role, "Toggle product", f"product={product.id} {state}")
    return {"success": True, "data": product_to_dict(product), "message": f"Product {state}"}
