"""
Product Domain Model

Represents a catalog product and its links to remote sales channels.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Dict, Optional
from datetime import datetime
from decimal import Decimal


class ProductType(BaseModel):
    """Product category (e.g. "Accessories"); names are unique"""
    id: int
    name: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Product(BaseModel):
    """
    Product domain model - represents a product in our catalog

    Fields:
        id: Internal product ID (primary key)
        name: Product name
        description: Rich text (HTML) description
        barcode: Globally unique barcode, optional
        price: Unit sale price
        stock_count: Units on hand
        image_url: Image reference, absolute URL or /uploads/... path
        product_type_id / product_type_name: Category
        sku_id / sku_code: Optional SKU
        external_ids: Remote system name -> remote product id.
            At most one entry per remote system. A missing entry means
            the product is not linked to that system yet.
    """

    id: int = Field(..., description="Internal product ID")
    name: str = Field(..., description="Product name")
    description: Optional[str] = Field(None, description="Product description (HTML)")
    barcode: Optional[str] = Field(None, description="Unique barcode")

    price: Decimal = Field(Decimal("0"), description="Sale price", ge=0)
    stock_count: int = Field(0, description="Units on hand", ge=0)
    image_url: Optional[str] = Field(None, description="Image reference")

    product_type_id: Optional[int] = Field(None, description="Product type ID")
    product_type_name: Optional[str] = Field(None, description="Product type name")
    sku_id: Optional[int] = Field(None, description="SKU ID")
    sku_code: Optional[str] = Field(None, description="SKU code")

    external_ids: Dict[str, str] = Field(default_factory=dict, description="Remote system -> remote ID")

    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True)

    def external_id_for(self, system: str) -> Optional[str]:
        """Remote id for `system`, or None when the product is not linked"""
        value = self.external_ids.get(system)
        return str(value) if value else None

    def is_linked(self, system: str) -> bool:
        return self.external_id_for(system) is not None

    def to_dict(self) -> dict:
        """JSON-friendly dict (Decimal -> float)"""
        data = self.model_dump()
        data['price'] = float(self.price)
        return data


class ProductCreate(BaseModel):
    """Schema for creating a new product"""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    barcode: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    stock_count: int = Field(0, ge=0)
    image_url: Optional[str] = None
    product_type_id: int
    sku_id: Optional[int] = None
    external_ids: Dict[str, str] = Field(default_factory=dict)


class ProductUpdate(BaseModel):
    """Schema for updating an existing product; unset fields are left untouched"""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    barcode: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    stock_count: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = None
    product_type_id: Optional[int] = None
    sku_id: Optional[int] = None
