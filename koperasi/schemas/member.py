from pydantic import BaseModel, Field
from typing import Optional
from datetime import date
from uuid import UUID


class MemberCreate(BaseModel):
    """Schema for registering a koperasi member."""
    uuid: Optional[str] = Field(None, description="Public member code; generated when omitted")
    name: str
    gender: str = Field(..., description="L or P")
    phone: Optional[str] = None
    city: Optional[str] = None
    complete_address: Optional[str] = Field(None, alias="completeAddress")
    account_number: Optional[str] = Field(None, alias="accountNumber")
    product_id: Optional[UUID] = Field(None, alias="productId")
    savings_start_date: Optional[date] = Field(None, alias="savingsStartDate", description="Month of period 1; defaults to creation date")

    class Config:
        populate_by_name = True


class MemberUpdate(BaseModel):
    uuid: Optional[str] = None
    name: Optional[str] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    complete_address: Optional[str] = Field(None, alias="completeAddress")
    account_number: Optional[str] = Field(None, alias="accountNumber")
    product_id: Optional[UUID] = Field(None, alias="productId")
    savings_start_date: Optional[date] = Field(None, alias="savingsStartDate")

    class Config:
        populate_by_name = True
