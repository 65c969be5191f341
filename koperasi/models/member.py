from sqlalchemy import Column, String, ForeignKey, DateTime, Date, Boolean, Integer, Numeric, Text, Uuid, text, func
from sqlalchemy.orm import relationship
import uuid
from koperasi.db.base import Base


class Member(Base):
    """Koperasi member saving under one product at a time."""
    __tablename__ = "member"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    uuid = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(150), nullable=False)
    gender = Column(String(1), nullable=True)  # "L" or "P"
    phone = Column(String(30), nullable=True)
    city = Column(String(100), nullable=True)
    complete_address = Column(Text, nullable=True)
    account_number = Column(String(50), nullable=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=True, index=True)
    has_upgraded = Column(Boolean, nullable=False, default=False, index=True)
    current_upgrade_id = Column(Uuid(as_uuid=True), ForeignKey("product_upgrade.id", use_alter=True, name="fk_member_current_upgrade"), nullable=True)
    savings_start_date = Column(Date, nullable=True)  # None = month the member was created
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=True)
    last_activity_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    product = relationship("Product", back_populates="members")
    current_upgrade = relationship(
        "ProductUpgrade",
        primaryjoin="Member.current_upgrade_id == ProductUpgrade.id",
        foreign_keys=[current_upgrade_id],
        viewonly=True,
    )
    upgrade_history = relationship(
        "ProductUpgrade",
        back_populates="member",
        foreign_keys="[ProductUpgrade.member_id]",
        order_by="ProductUpgrade.upgrade_date",
    )
    savings = relationship("Savings", back_populates="member")

    __mapper_args__ = {"version_id_col": version}


class ProductUpgrade(Base):
    """Immutable record of a member moving to another product mid-term."""
    __tablename__ = "product_upgrade"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False, index=True)
    old_product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False)
    new_product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False)
    old_monthly_deposit = Column(Numeric(14, 2), nullable=False)
    new_monthly_deposit = Column(Numeric(14, 2), nullable=False)
    completed_periods_at_upgrade = Column(Integer, nullable=False, default=0)
    total_periods = Column(Integer, nullable=False)
    remaining_periods = Column(Integer, nullable=False)
    total_shortfall = Column(Numeric(14, 2), nullable=False, default=0)
    compensation_per_month = Column(Numeric(14, 2), nullable=False, default=0)
    new_payment_with_compensation = Column(Numeric(14, 2), nullable=False)
    upgrade_date = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    created_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    member = relationship("Member", back_populates="upgrade_history", foreign_keys=[member_id])
    old_product = relationship("Product", foreign_keys=[old_product_id])
    new_product = relationship("Product", foreign_keys=[new_product_id])
