from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal


class ProductCreate(BaseModel):
    """Schema for creating a savings product."""
    title: str = Field(..., min_length=1, description="Product name")
    deposit_amount: Decimal = Field(..., gt=0, alias="depositAmount", description="Required deposit per period")
    term_duration: Optional[int] = Field(None, ge=1, alias="termDuration", description="Number of monthly periods")
    return_profit: Optional[Decimal] = Field(None, ge=0, alias="returnProfit", description="Informational return, percent")
    description: Optional[str] = None
    is_active: bool = Field(True, alias="isActive")

    class Config:
        populate_by_name = True


class ProductUpdate(BaseModel):
    """Schema for updating a savings product; omitted fields are left unchanged."""
    title: Optional[str] = None
    deposit_amount: Optional[Decimal] = Field(None, gt=0, alias="depositAmount")
    term_duration: Optional[int] = Field(None, ge=1, alias="termDuration")
    return_profit: Optional[Decimal] = Field(None, ge=0, alias="returnProfit")
    description: Optional[str] = None
    is_active: Optional[bool] = Field(None, alias="isActive")

    class Config:
        populate_by_name = True
