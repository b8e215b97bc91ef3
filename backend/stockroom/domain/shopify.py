"""
Shopify REST Admin API resources (transient)

Only the fields the sync engine reads are declared; everything else in
Shopify's payloads is ignored. Remote ids are kept as strings locally.
"""
from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional
from decimal import Decimal


def id_to_str(value):
    """Shopify ids arrive as integers; store them as strings"""
    if value is None or value == "":
        return None
    return str(value)


class ShopifyImage(BaseModel):
    id: Optional[str] = None
    src: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, value):
        return id_to_str(value)


class ShopifyVariant(BaseModel):
    id: Optional[str] = None
    price: Optional[Decimal] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    inventory_quantity: Optional[int] = None
    inventory_item_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("id", "inventory_item_id", mode="before")
    @classmethod
    def normalize_ids(cls, value):
        return id_to_str(value)

    @field_validator("price", mode="before")
    @classmethod
    def blank_price(cls, value):
        return None if value in (None, "") else value


class ShopifyProduct(BaseModel):
    """A product as returned by /products.json and friends"""
    id: str
    title: str = ""
    body_html: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    variants: List[ShopifyVariant] = []
    images: List[ShopifyImage] = []
    image: Optional[ShopifyImage] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, value):
        return id_to_str(value)

    @property
    def first_variant(self) -> Optional[ShopifyVariant]:
        return self.variants[0] if self.variants else None

    @property
    def image_src(self) -> Optional[str]:
        if self.image and self.image.src:
            return self.image.src
        if self.images and self.images[0].src:
            return self.images[0].src
        return None


class InventoryLevel(BaseModel):
    """Available quantity of one inventory item at one location"""
    inventory_item_id: str
    location_id: str
    available: Optional[int] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("inventory_item_id", "location_id", mode="before")
    @classmethod
    def normalize_ids(cls, value):
        return id_to_str(value)
