"""
Request-scoped providers for repositories and services

Routers depend on these instead of instantiating classes inline so tests
can swap them through app.dependency_overrides.
"""
from stockroom.repositories.product_repository import ProductRepository
from stockroom.repositories.sale_repository import SaleRepository
from stockroom.repositories.integration_settings_repository import IntegrationSettingsRepository
from stockroom.services.shopify_sync_service import ShopifySyncService
from stockroom.services.shopify_webhook_service import ShopifyWebhookService


def get_product_repository() -> ProductRepository:
    return ProductRepository()


def get_sale_repository() -> SaleRepository:
    return SaleRepository()


def get_integration_settings_repository() -> IntegrationSettingsRepository:
    return IntegrationSettingsRepository()


def get_sync_service() -> ShopifySyncService:
    return ShopifySyncService()


def get_webhook_service() -> ShopifyWebhookService:
    return ShopifyWebhookService()
