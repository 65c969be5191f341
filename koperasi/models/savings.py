from sqlalchemy import Column, String, ForeignKey, DateTime, Date, Integer, Numeric, Enum as SQLEnum, Text, Uuid, Index, text, func
from sqlalchemy.orm import relationship
import uuid
from koperasi.db.base import Base
import enum


class SavingsStatus(str, enum.Enum):
    """Review status of a single payment record."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    PARTIAL = "Partial"


class SavingsType(str, enum.Enum):
    """Transaction direction."""
    SETORAN = "Setoran"  # deposit
    PENARIKAN = "Penarikan"  # withdrawal


class PaymentType(str, enum.Enum):
    """Whether a submission covers the whole period requirement."""
    FULL = "Full"
    PARTIAL = "Partial"


def _enum_column(enum_cls, **kwargs):
    return Column(SQLEnum(enum_cls, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), **kwargs)


class Savings(Base):
    """One submitted savings transaction for an installment period."""
    __tablename__ = "savings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False, index=True)
    installment_period = Column(Integer, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    savings_date = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    payment_date = Column(Date, nullable=True)  # actual transfer date, distinct from upload
    type = _enum_column(SavingsType, default=SavingsType.SETORAN, nullable=False)
    description = Column(String(255), nullable=True)
    status = _enum_column(SavingsStatus, default=SavingsStatus.PENDING, nullable=False, index=True)
    payment_type = _enum_column(PaymentType, default=PaymentType.FULL, nullable=False)
    partial_sequence = Column(Integer, nullable=False, default=1)
    rejection_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    proof_file = Column(String(255), nullable=True)  # filename only, under SAVINGS_PROOFS_DIR
    created_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=True)
    approved_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    member = relationship("Member", back_populates="savings")
    product = relationship("Product", back_populates="savings")

    __table_args__ = (
        Index("ix_savings_member_period", "member_id", "installment_period"),
    )
