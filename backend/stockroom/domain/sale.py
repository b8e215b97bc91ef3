"""
Sale Domain Model
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from decimal import Decimal


class Sale(BaseModel):
    """A recorded sale of `quantity` units of one product"""
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int = Field(..., gt=0)
    total_price: Decimal = Field(..., ge=0)
    sale_date: datetime

    model_config = ConfigDict(from_attributes=True)

    def to_dict(self) -> dict:
        data = self.model_dump()
        data['total_price'] = float(self.total_price)
        return data


class SaleCreate(BaseModel):
    """Schema for recording a sale"""
    product_id: int
    quantity: int = Field(..., ge=1)
