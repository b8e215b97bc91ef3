"""
Shopify Sync Service - keeps the local catalog and a Shopify store in step

Outbound: push products, stock levels and deletions to Shopify.
Inbound: bulk import of the remote catalog.

Integration settings are re-read from the database on every call, so
saving new credentials takes effect immediately. Automatic paths never
raise: failures are logged and reported as False / failure counts.

Author: Stockroom team
Date: 2026-10-18
"""
import logging
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional

from stockroom.core.config import settings
from stockroom.connectors.shopify_connector import ShopifyConnector, ShopifyNotFoundError
from stockroom.domain.integration import SHOPIFY, ShopifySettings
from stockroom.domain.product import Product, ProductCreate
from stockroom.domain.shopify import ShopifyProduct, ShopifyVariant
from stockroom.repositories.product_repository import ProductRepository
from stockroom.repositories.product_type_repository import ProductTypeRepository
from stockroom.repositories.integration_settings_repository import IntegrationSettingsRepository
from stockroom.repositories.inventory_item_repository import InventoryItemRepository

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_PRODUCT_TYPE = "Default"
DEFAULT_IMPORT_PRODUCT_TYPE = "General"

ConnectorFactory = Callable[[ShopifySettings], ShopifyConnector]


# ============================================================================
# Response Models
# ============================================================================

@dataclass
class BulkSyncResult:
    success: bool
    configured: bool
    total: int = 0
    synced: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ImportResult:
    success: bool
    configured: bool
    total: int = 0
    imported: int = 0
    updated: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


async def run_best_effort(operation: Awaitable[bool], description: str) -> bool:
    """
    Await a sync operation triggered by a local change

    The local change has already been committed; nothing raised here may
    reach the caller's response.
    """
    try:
        return bool(await operation)
    except Exception as e:
        logger.error(f"{description} failed: {e}")
        return False


# ============================================================================
# Sync Service
# ============================================================================

class ShopifySyncService:
    """
    Synchronization engine between the local catalog and Shopify

    A product is linked when external_ids["shopify"] holds the remote
    product id; that entry alone decides update vs create.
    """

    def __init__(
        self,
        product_repo: Optional[ProductRepository] = None,
        product_type_repo: Optional[ProductTypeRepository] = None,
        settings_repo: Optional[IntegrationSettingsRepository] = None,
        inventory_item_repo: Optional[InventoryItemRepository] = None,
        connector_factory: Optional[ConnectorFactory] = None
    ):
        self.product_repo = product_repo or ProductRepository()
        self.product_type_repo = product_type_repo or ProductTypeRepository()
        self.settings_repo = settings_repo or IntegrationSettingsRepository()
        self.inventory_item_repo = inventory_item_repo or InventoryItemRepository()
        self.connector_factory = connector_factory or ShopifyConnector.from_settings

    # =========================================================================
    # Client
    # =========================================================================

    def get_client(self) -> Optional[ShopifyConnector]:
        """
        Build a connector from the stored settings

        Returns:
            ShopifyConnector, or None when the integration is missing,
            disabled, incomplete or the connector cannot be built
        """
        try:
            stored = self.settings_repo.get(SHOPIFY)
            if not stored or not stored.is_enabled:
                logger.info("Shopify integration is not enabled")
                return None

            shopify_settings = stored.shopify_settings()
            if not shopify_settings.has_credentials:
                logger.error("Missing required Shopify credentials (shop_name, access_token)")
                return None

            return self.connector_factory(shopify_settings)

        except Exception as e:
            logger.error(f"Failed to initialize Shopify client: {e}")
            return None

    async def test_connection(self, candidate: ShopifySettings) -> bool:
        """Check unsaved credentials by fetching the shop metadata"""
        try:
            connector = self.connector_factory(candidate)
            shop = await connector.get_shop()
            return bool(shop)
        except Exception as e:
            logger.warning(f"Shopify connection test failed: {e}")
            return False

    # =========================================================================
    # Outbound
    # =========================================================================

    @staticmethod
    def _public_image_url(image_url: Optional[str]) -> Optional[str]:
        """Relative upload paths are made absolute so Shopify can fetch them"""
        if not image_url:
            return None
        if image_url.startswith("/") and settings.PUBLIC_BASE_URL:
            return settings.PUBLIC_BASE_URL.rstrip("/") + image_url
        return image_url

    def build_remote_product(self, product: Product) -> Dict[str, Any]:
        """Map a local product to the Shopify product payload"""
        image_url = self._public_image_url(product.image_url)
        return {
            "title": product.name,
            "body_html": product.description or "",
            "vendor": settings.SHOPIFY_DEFAULT_VENDOR,
            "product_type": product.product_type_name or DEFAULT_REMOTE_PRODUCT_TYPE,
            "barcode": product.barcode or "",
            "published": True,
            "variants": [
                {
                    "price": str(product.price),
                    "sku": product.sku_code or "",
                    "barcode": product.barcode or "",
                    "inventory_quantity": product.stock_count,
                    "inventory_management": "shopify",
                }
            ],
            "images": [{"src": image_url}] if image_url else [],
        }

    def _record_inventory_item(self, product_id: int, remote: ShopifyProduct) -> None:
        """Remember which local product owns the remote inventory item"""
        variant = remote.first_variant
        if not variant or not variant.inventory_item_id:
            return
        try:
            self.inventory_item_repo.record(variant.inventory_item_id, product_id, remote.id)
        except Exception as e:
            logger.warning(f"Could not record inventory item {variant.inventory_item_id} for product {product_id}: {e}")

    async def sync_product(self, product_id: int) -> bool:
        """
        Push one product to Shopify

        Linked products are updated in place; unlinked products are created
        and the returned remote id is stored in external_ids. The product is
        re-read here, so a repeated call after a create takes the update path.

        Returns:
            True on success, False otherwise (never raises)
        """
        client = self.get_client()
        if client is None:
            return False

        remote_id = None
        try:
            product = self.product_repo.find_by_id(product_id)
            if product is None:
                logger.warning(f"Cannot sync product {product_id}: not found")
                return False

            payload = self.build_remote_product(product)
            remote_id = product.external_id_for(SHOPIFY)

            if remote_id:
                remote = await client.update_product(remote_id, payload)
                logger.info(f"Updated Shopify product {remote_id} from product {product_id}")
            else:
                remote = await client.create_product(payload)
                remote_id = remote.id
                self.product_repo.set_external_id(product_id, SHOPIFY, remote_id)
                logger.info(f"Created Shopify product {remote_id} for product {product_id}")

            self._record_inventory_item(product_id, remote)
            return True

        except Exception as e:
            logger.error(f"Failed to sync product {product_id} to Shopify (remote id {remote_id}): {e}")
            return False

    async def sync_inventory(self, product_id: int, quantity: int) -> bool:
        """
        Set the remote available quantity of a linked product

        The quantity is written at the first location that stocks the
        product's first variant.
        """
        client = self.get_client()
        if client is None:
            return False

        remote_id = None
        try:
            product = self.product_repo.find_by_id(product_id)
            remote_id = product.external_id_for(SHOPIFY) if product else None
            if not remote_id:
                logger.info(f"Product {product_id} is not linked to Shopify, skipping inventory sync")
                return False

            remote = await client.get_product(remote_id)
            variant = remote.first_variant
            if not variant or not variant.inventory_item_id:
                logger.error(f"No variants found for Shopify product {remote_id}")
                return False

            levels = await client.list_inventory_levels([variant.inventory_item_id])
            if not levels:
                logger.error(f"No inventory levels found for Shopify product {remote_id}")
                return False

            await client.set_inventory_level(variant.inventory_item_id, levels[0].location_id, quantity)
            logger.info(f"Set Shopify inventory of product {product_id} (remote id {remote_id}) to {quantity}")
            return True

        except Exception as e:
            logger.error(f"Failed to sync inventory of product {product_id} to Shopify (remote id {remote_id}): {e}")
            return False

    async def delete_product(self, product_id: int) -> bool:
        """
        Delete the remote counterpart of a product

        Call before deleting locally. Returns False when the integration is
        disabled or the remote delete fails; True when there was nothing to
        delete or the remote product is gone.
        """
        client = self.get_client()
        if client is None:
            return False

        remote_id = None
        try:
            product = self.product_repo.find_by_id(product_id)
            remote_id = product.external_id_for(SHOPIFY) if product else None
            if not remote_id:
                logger.info(f"Product {product_id} has no Shopify ID, nothing to delete")
                return True

            await client.delete_product(remote_id)
            logger.info(f"Deleted Shopify product {remote_id} (product {product_id})")
            return True

        except ShopifyNotFoundError:
            logger.info(f"Shopify product {remote_id} was already deleted (product {product_id})")
            return True

        except Exception as e:
            logger.error(f"Failed to delete product {product_id} from Shopify (remote id {remote_id}): {e}")
            return False

    async def sync_all_products(self) -> BulkSyncResult:
        """Push every local product, one at a time"""
        if self.get_client() is None:
            return BulkSyncResult(success=False, configured=False)

        try:
            products, _ = self.product_repo.find_all()
        except Exception as e:
            logger.error(f"Failed to load products for Shopify sync: {e}")
            return BulkSyncResult(success=False, configured=True)

        synced = 0
        failed = 0
        for product in products:
            if await self.sync_product(product.id):
                synced += 1
            else:
                failed += 1

        logger.info(f"Shopify bulk sync finished: {synced} synced, {failed} failed of {len(products)}")
        return BulkSyncResult(
            success=synced > 0,
            configured=True,
            total=len(products),
            synced=synced,
            failed=failed
        )

    # =========================================================================
    # Inbound
    # =========================================================================

    async def _remote_stock(self, client: ShopifyConnector, variant: Optional[ShopifyVariant]) -> int:
        """Available quantity at the first location; 0 when unknown"""
        if not variant or not variant.inventory_item_id:
            return 0
        try:
            levels = await client.list_inventory_levels([variant.inventory_item_id])
        except Exception as e:
            logger.warning(f"Failed to get inventory for inventory item {variant.inventory_item_id}: {e}")
            return 0
        if not levels or levels[0].available is None:
            return 0
        return max(levels[0].available, 0)

    def _resolve_barcode(
        self,
        barcode: Optional[str],
        remote_id: str,
        product_id: Optional[int] = None
    ) -> str:
        """
        Barcode for an imported product

        The remote barcode is kept when no other product holds it, otherwise
        it is suffixed with the remote id. No barcode -> "shopify-<remote id>".
        """
        if not barcode:
            return f"shopify-{remote_id}"

        holder = self.product_repo.find_by_barcode(barcode)
        if holder is None or holder.id == product_id:
            return barcode
        return f"{barcode}-{remote_id}"

    async def _import_product(self, client: ShopifyConnector, remote: ShopifyProduct) -> bool:
        """
        Create or update the local copy of one remote product

        Returns:
            True if an existing product was updated, False if one was created
        """
        remote_id = remote.id
        existing = self.product_repo.find_by_external_id(SHOPIFY, remote_id)

        type_name = remote.product_type or DEFAULT_IMPORT_PRODUCT_TYPE
        product_type = self.product_type_repo.get_or_create(
            type_name, f"Imported from Shopify: {type_name}"
        )

        variant = remote.first_variant
        stock_count = await self._remote_stock(client, variant)
        price = variant.price if variant and variant.price is not None else Decimal("0")
        barcode = variant.barcode.strip() if variant and variant.barcode else None

        if existing:
            external_ids = dict(existing.external_ids)
            external_ids[SHOPIFY] = remote_id
            self.product_repo.update(existing.id, {
                "name": remote.title.strip() or existing.name,
                "description": remote.body_html,
                "price": price,
                "stock_count": stock_count,
                "barcode": self._resolve_barcode(barcode, remote_id, existing.id) if barcode else None,
                "external_ids": external_ids,
            })
            self._record_inventory_item(existing.id, remote)
            return True

        created = self.product_repo.create(ProductCreate(
            name=remote.title,
            description=remote.body_html,
            barcode=self._resolve_barcode(barcode, remote_id),
            price=price,
            stock_count=stock_count,
            image_url=remote.image_src,
            product_type_id=product_type.id,
            external_ids={SHOPIFY: remote_id},
        ))
        self._record_inventory_item(created.id, remote)
        return False

    async def import_products(self) -> ImportResult:
        """
        Import the whole remote catalog

        Every page is fetched. A product that fails is counted and skipped;
        a failure while listing stops the import with success=False.
        """
        client = self.get_client()
        if client is None:
            return ImportResult(success=False, configured=False)

        result = ImportResult(success=True, configured=True)

        try:
            async for remote in client.iter_products():
                result.total += 1
                try:
                    if await self._import_product(client, remote):
                        result.updated += 1
                    else:
                        result.imported += 1
                except Exception as e:
                    logger.error(f"Failed to import Shopify product {remote.id}: {e}")
                    result.failed += 1

        except Exception as e:
            logger.error(f"Failed to list products from Shopify: {e}")
            result.success = False

        logger.info(
            f"Shopify import finished: {result.imported} imported, {result.updated} updated, "
            f"{result.failed} failed of {result.total}"
        )
        return result
