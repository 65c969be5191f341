import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from koperasi.models.product import Product
from koperasi.services.exceptions import NotFoundError, ValidationError
from koperasi.services.reconciliation import as_float, to_money

logger = logging.getLogger(__name__)


def _validate_terms(deposit_amount, term_duration):
    if deposit_amount is not None and to_money(deposit_amount) <= 0:
        raise ValidationError("Deposit amount must be greater than 0")
    if term_duration is not None and term_duration < 1:
        raise ValidationError("Term duration must be at least 1 period")


def create_product(
    db: Session,
    title: str,
    deposit_amount: Decimal,
    term_duration: Optional[int] = None,
    return_profit: Optional[Decimal] = None,
    description: str = None,
    is_active: bool = True
) -> Product:
    if not title or not title.strip():
        raise ValidationError("Product title is required")
    if deposit_amount is None:
        raise ValidationError("Deposit amount is required")
    _validate_terms(deposit_amount, term_duration)

    product = Product(
        title=title.strip(),
        deposit_amount=to_money(deposit_amount),
        term_duration=term_duration,
        return_profit=return_profit,
        description=description,
        is_active=is_active,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Created product %s (%s)", product.title, product.id)
    return product


def get_product(db: Session, product_id: UUID) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def list_products(db: Session, active_only: bool = False) -> List[Product]:
    query = db.query(Product)
    if active_only:
        query = query.filter(Product.is_active == True)
    return query.order_by(Product.created_at.desc()).all()


def update_product(db: Session, product_id: UUID, **changes) -> Product:
    """Apply the given field changes; ``None`` values are ignored."""
    product = get_product(db, product_id)
    changes = {k: v for k, v in changes.items() if v is not None}
    _validate_terms(changes.get("deposit_amount"), changes.get("term_duration"))

    if "title" in changes:
        if not changes["title"].strip():
            raise ValidationError("Product title is required")
        changes["title"] = changes["title"].strip()
    if "deposit_amount" in changes:
        changes["deposit_amount"] = to_money(changes["deposit_amount"])

    for key, value in changes.items():
        setattr(product, key, value)
    product.updated_at = datetime.utcnow()

    db.commit()
    db.refresh(product)
    return product


def toggle_product_status(db: Session, product_id: UUID) -> Product:
    product = get_product(db, product_id)
    product.is_active = not product.is_active
    db.commit()
    db.refresh(product)
    logger.info("Product %s is now %s", product.id, "active" if product.is_active else "inactive")
    return product


def product_to_dict(product: Product) -> dict:
    return {
        "id": str(product.id),
        "title": product.title,
        "depositAmount": as_float(product.deposit_amount),
        "termDuration": product.term_duration,
        "returnProfit": as_float(product.return_profit),
        "description": product.description,
        "isActive": product.is_active,
        "createdAt": product.created_at.isoformat() if product.created_at else None,
    }
