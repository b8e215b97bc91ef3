"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.
"""
from stockroom.repositories.product_repository import ProductRepository
from stockroom.repositories.product_type_repository import ProductTypeRepository
from stockroom.repositories.sale_repository import SaleRepository
from stockroom.repositories.integration_settings_repository import IntegrationSettingsRepository
from stockroom.repositories.inventory_item_repository import InventoryItemRepository

__all__ = [
    'ProductRepository',
    'ProductTypeRepository',
    'SaleRepository',
    'IntegrationSettingsRepository',
    'InventoryItemRepository',
]
