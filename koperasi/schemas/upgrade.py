from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from uuid import UUID


class UpgradeCalculateRequest(BaseModel):
    member_id: UUID = Field(..., alias="memberId")
    new_product_id: UUID = Field(..., alias="newProductId")

    class Config:
        populate_by_name = True


class UpgradeExecuteRequest(BaseModel):
    """Execute an upgrade; ``calculationResult`` is what the client was shown."""
    member_id: UUID = Field(..., alias="memberId")
    new_product_id: UUID = Field(..., alias="newProductId")
    calculation_result: Optional[Dict[str, Any]] = Field(None, alias="calculationResult")
    notes: Optional[str] = None

    class Config:
        populate_by_name = True
