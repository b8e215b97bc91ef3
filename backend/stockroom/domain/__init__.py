"""
Domain Layer - Business Entities

Pydantic models representing catalog, sales and integration entities.
"""
from stockroom.domain.product import Product, ProductType, ProductCreate, ProductUpdate
from stockroom.domain.sale import Sale, SaleCreate
from stockroom.domain.integration import IntegrationSettings, ShopifySettings, SHOPIFY
from stockroom.domain.shopify import ShopifyProduct, ShopifyVariant, ShopifyImage, InventoryLevel

__all__ = [
    'Product', 'ProductType', 'ProductCreate', 'ProductUpdate',
    'Sale', 'SaleCreate',
    'IntegrationSettings', 'ShopifySettings', 'SHOPIFY',
    'ShopifyProduct', 'ShopifyVariant', 'ShopifyImage', 'InventoryLevel',
]
