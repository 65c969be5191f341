from sqlalchemy import Column, String, Boolean, DateTime, Integer, Numeric, Text, Uuid, text, func
from sqlalchemy.orm import relationship
import uuid
from koperasi.db.base import Base


class Product(Base):
    """Savings product: a fixed monthly deposit over a number of periods."""
    __tablename__ = "product"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(150), nullable=False)
    deposit_amount = Column(Numeric(14, 2), nullable=False)
    term_duration = Column(Integer, nullable=True)  # number of monthly periods
    return_profit = Column(Numeric(5, 2), nullable=True)  # informational, percent
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    members = relationship("Member", back_populates="product")
    savings = relationship("Savings", back_populates="product")
