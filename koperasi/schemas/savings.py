from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal


class SavingsUpdate(BaseModel):
    """Editable fields of a savings record that is not yet approved."""
    installment_period: Optional[int] = Field(None, alias="installmentPeriod")
    amount: Optional[Decimal] = None
    savings_date: Optional[datetime] = Field(None, alias="savingsDate")
    payment_date: Optional[date] = Field(None, alias="paymentDate")
    description: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        populate_by_name = True


class SavingsReview(BaseModel):
    notes: Optional[str] = None


class SavingsReject(BaseModel):
    # required; enforced by reject_savings
    rejection_reason: Optional[str] = Field(None, alias="rejectionReason")

    class Config:
        populate_by_name = True
