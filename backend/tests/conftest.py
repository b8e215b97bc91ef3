"""
Pytest fixtures and configuration for Stockroom backend tests

Provides in-memory stand-ins for the repositories and the Shopify
connector so the sync engine and webhook flow run without a database
or network.
"""
import base64
import hashlib
import hmac
import itertools
import json
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from stockroom.api.dependencies import (
    get_integration_settings_repository,
    get_product_repository,
    get_sale_repository,
    get_sync_service,
    get_webhook_service,
)
from stockroom.connectors.shopify_connector import ShopifyNotFoundError
from stockroom.core.auth import TokenUser, require_admin, require_user
from stockroom.domain.integration import IntegrationSettings, SHOPIFY
from stockroom.domain.product import Product, ProductCreate, ProductType
from stockroom.domain.sale import Sale
from stockroom.domain.shopify import InventoryLevel, ShopifyProduct
from stockroom.main import app
from stockroom.repositories.sale_repository import InsufficientStockError, ProductNotFoundError
from stockroom.services.shopify_sync_service import ShopifySyncService
from stockroom.services.shopify_webhook_service import ShopifyWebhookService

WEBHOOK_SECRET = "shpss_test_secret"
LOCATION_ID = "777"


# ============================================================================
# In-memory repositories
# ============================================================================

class InMemoryProductRepository:
    def __init__(self, products: Optional[List[Product]] = None):
        self.products: Dict[int, Product] = {p.id: p for p in products or []}
        self._ids = itertools.count(max(self.products, default=0) + 1)

    def _copy(self, product: Optional[Product]) -> Optional[Product]:
        return product.model_copy(deep=True) if product else None

    def find_by_id(self, product_id):
        return self._copy(self.products.get(product_id))

    def find_all(self, search=None, limit=None, offset=0):
        products = sorted(self.products.values(), key=lambda p: (p.name, p.id))
        page = products[offset:offset + limit] if limit is not None else products[offset:]
        return [self._copy(p) for p in page], len(products)

    def find_by_external_id(self, system, external_id):
        for product in self.products.values():
            if product.external_ids.get(system) == str(external_id):
                return self._copy(product)
        return None

    def find_by_barcode(self, barcode):
        for product in self.products.values():
            if product.barcode == barcode:
                return self._copy(product)
        return None

    def create(self, data: ProductCreate):
        if data.barcode and self.find_by_barcode(data.barcode):
            raise ValueError(f"duplicate barcode {data.barcode}")
        product = Product(id=next(self._ids), **data.model_dump())
        self.products[product.id] = product
        return self._copy(product)

    def update(self, product_id, fields):
        product = self.products.get(product_id)
        if product is None:
            return None
        self.products[product_id] = product.model_copy(update=dict(fields))
        return self._copy(self.products[product_id])

    def set_external_id(self, product_id, system, external_id):
        product = self.products.get(product_id)
        if product is None:
            return False
        external_ids = dict(product.external_ids)
        external_ids[system] = str(external_id)
        self.products[product_id] = product.model_copy(update={"external_ids": external_ids})
        return True

    def clear_external_ids(self, product_id):
        return self.update(product_id, {"external_ids": {}}) is not None

    def set_stock(self, product_id, stock_count):
        return self.update(product_id, {"stock_count": stock_count})

    def delete(self, product_id):
        return self.products.pop(product_id, None) is not None


class InMemorySaleRepository:
    """Decrements stock on the shared in-memory product repository"""

    def __init__(self, product_repo: InMemoryProductRepository):
        self.product_repo = product_repo
        self.sales: List[Sale] = []
        self.sale_date = datetime(2026, 3, 1, 12, 0)

    def create(self, product_id, quantity):
        product = self.product_repo.find_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(f"Product {product_id} not found")
        if product.stock_count < quantity:
            raise InsufficientStockError(product_id, product.stock_count, quantity)

        new_stock = product.stock_count - quantity
        self.product_repo.set_stock(product_id, new_stock)
        sale = Sale(
            id=len(self.sales) + 1, product_id=product_id, product_name=product.name,
            quantity=quantity, total_price=product.price * quantity, sale_date=self.sale_date
        )
        self.sales.append(sale)
        return sale, new_stock

    def find_recent(self, limit=50, offset=0, start_date=None, end_date=None):
        matching = [
            s for s in self.sales
            if (start_date is None or s.sale_date.date() >= start_date)
            and (end_date is None or s.sale_date.date() <= end_date)
        ]
        sales = list(reversed(matching))[offset:offset + limit]
        summary = {
            "count": len(matching),
            "total_quantity": sum(s.quantity for s in matching),
            "total_revenue": float(sum(s.total_price for s in matching)),
        }
        return sales, summary


class InMemoryProductTypeRepository:
    def __init__(self):
        self.types: Dict[str, ProductType] = {}
        self._ids = itertools.count(1)

    def find_by_name(self, name):
        return self.types.get(name)

    def get_or_create(self, name, description=None):
        if name not in self.types:
            self.types[name] = ProductType(id=next(self._ids), name=name, description=description)
        return self.types[name]


class InMemorySettingsRepository:
    def __init__(self, stored: Optional[IntegrationSettings] = None):
        self.stored = stored
        self.reads = 0

    def get(self, integration_type):
        self.reads += 1
        if self.stored and self.stored.integration_type == integration_type:
            return self.stored
        return None

    def upsert(self, integration_type, is_enabled, settings):
        self.stored = IntegrationSettings(
            id=1, integration_type=integration_type, is_enabled=is_enabled, settings=settings
        )
        return self.stored


class InMemoryInventoryItemRepository:
    def __init__(self):
        self.items: Dict[str, tuple] = {}

    def record(self, inventory_item_id, product_id, remote_product_id):
        self.items[str(inventory_item_id)] = (product_id, str(remote_product_id))

    def find_product_id(self, inventory_item_id):
        entry = self.items.get(str(inventory_item_id))
        return entry[0] if entry else None

    def delete_for_product(self, product_id):
        stale = [key for key, value in self.items.items() if value[0] == product_id]
        for key in stale:
            del self.items[key]
        return len(stale)


# ============================================================================
# Fake Shopify store
# ============================================================================

class FakeShopifyConnector:
    """Behaves like a small Shopify store and records every call"""

    def __init__(self):
        self.products: Dict[str, dict] = {}
        self.levels: Dict[str, InventoryLevel] = {}
        self.calls: List[tuple] = []
        self._product_ids = itertools.count(1001)
        self._item_ids = itertools.count(5001)

    def add_remote_product(self, title, barcode=None, price="9.99", available=0, product_type=None, image=None):
        remote_id = str(next(self._product_ids))
        item_id = str(next(self._item_ids))
        self.products[remote_id] = {
            "id": int(remote_id),
            "title": title,
            "body_html": f"<p>{title}</p>",
            "product_type": product_type,
            "variants": [{"id": 1, "price": price, "barcode": barcode, "inventory_item_id": int(item_id)}],
            "images": [],
            "image": {"src": image} if image else None,
        }
        self.levels[item_id] = InventoryLevel(inventory_item_id=item_id, location_id=LOCATION_ID, available=available)
        return remote_id

    async def get_shop(self):
        self.calls.append(("get_shop",))
        return {"name": "Test Shop"}

    async def create_product(self, product):
        self.calls.append(("create_product", product))
        remote_id = str(next(self._product_ids))
        item_id = str(next(self._item_ids))
        variant = dict(product["variants"][0], id=1, inventory_item_id=int(item_id))
        self.products[remote_id] = dict(product, id=int(remote_id), variants=[variant])
        self.levels[item_id] = InventoryLevel(
            inventory_item_id=item_id, location_id=LOCATION_ID, available=variant.get("inventory_quantity")
        )
        return ShopifyProduct.model_validate(self.products[remote_id])

    async def update_product(self, remote_id, product):
        self.calls.append(("update_product", remote_id, product))
        if remote_id not in self.products:
            raise ShopifyNotFoundError(f"product {remote_id} not found", status_code=404)
        current = self.products[remote_id]
        variant = dict(product["variants"][0], id=1, inventory_item_id=current["variants"][0]["inventory_item_id"])
        self.products[remote_id] = dict(current, **dict(product, variants=[variant]))
        return ShopifyProduct.model_validate(self.products[remote_id])

    async def delete_product(self, remote_id):
        self.calls.append(("delete_product", remote_id))
        if remote_id not in self.products:
            raise ShopifyNotFoundError(f"product {remote_id} not found", status_code=404)
        del self.products[remote_id]

    async def get_product(self, remote_id):
        self.calls.append(("get_product", remote_id))
        if remote_id not in self.products:
            raise ShopifyNotFoundError(f"product {remote_id} not found", status_code=404)
        return ShopifyProduct.model_validate(self.products[remote_id])

    async def iter_products(self, page_size=None):
        self.calls.append(("iter_products",))
        for data in list(self.products.values()):
            yield ShopifyProduct.model_validate(data)

    async def list_inventory_levels(self, inventory_item_ids):
        ids = [str(item_id) for item_id in inventory_item_ids]
        self.calls.append(("list_inventory_levels", ids))
        return [self.levels[item_id] for item_id in ids if item_id in self.levels]

    async def set_inventory_level(self, inventory_item_id, location_id, available):
        self.calls.append(("set_inventory_level", str(inventory_item_id), str(location_id), available))
        level = InventoryLevel(inventory_item_id=inventory_item_id, location_id=location_id, available=available)
        self.levels[str(inventory_item_id)] = level
        return level

    def remote_calls(self, name=None):
        return [call for call in self.calls if name is None or call[0] == name]


# ============================================================================
# Fixtures
# ============================================================================

def make_product(product_id=1, **overrides) -> Product:
    data = {
        "id": product_id,
        "name": "Canvas Tote",
        "description": "<p>Heavy canvas tote bag</p>",
        "barcode": f"BC-{product_id:04d}",
        "price": Decimal("24.50"),
        "stock_count": 10,
        "image_url": None,
        "product_type_id": 1,
        "product_type_name": "Bags",
        "sku_id": None,
        "sku_code": None,
        "external_ids": {},
    }
    data.update(overrides)
    return Product(**data)


def shopify_integration(is_enabled=True, **settings) -> IntegrationSettings:
    blob = {
        "shop_name": "test-shop",
        "api_key": "key",
        "api_secret": WEBHOOK_SECRET,
        "access_token": "shpat_token",
        "api_version": "2023-10",
    }
    blob.update(settings)
    return IntegrationSettings(id=1, integration_type=SHOPIFY, is_enabled=is_enabled, settings=blob)


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


def webhook_request(topic: str, payload: dict, secret: str = WEBHOOK_SECRET):
    """(raw body, headers) for a signed Shopify webhook delivery"""
    body = json.dumps(payload).encode()
    headers = {
        "X-Shopify-Hmac-Sha256": sign(body, secret),
        "X-Shopify-Shop-Domain": "test-shop.myshopify.com",
        "X-Shopify-Topic": topic,
    }
    return body, headers


@pytest.fixture
def product_repo():
    return InMemoryProductRepository([make_product(1)])


@pytest.fixture
def product_type_repo():
    return InMemoryProductTypeRepository()


@pytest.fixture
def settings_repo():
    return InMemorySettingsRepository(shopify_integration())


@pytest.fixture
def inventory_item_repo():
    return InMemoryInventoryItemRepository()


@pytest.fixture
def connector():
    return FakeShopifyConnector()


@pytest.fixture
def connector_factory(connector):
    """Records every ShopifySettings a connector was built from"""
    built = []

    def factory(shopify_settings):
        built.append(shopify_settings)
        return connector

    factory.built = built
    return factory


@pytest.fixture
def sync_service(product_repo, product_type_repo, settings_repo, inventory_item_repo, connector_factory):
    return ShopifySyncService(
        product_repo=product_repo,
        product_type_repo=product_type_repo,
        settings_repo=settings_repo,
        inventory_item_repo=inventory_item_repo,
        connector_factory=connector_factory
    )


@pytest.fixture
def webhook_service(product_repo, settings_repo, inventory_item_repo):
    return ShopifyWebhookService(
        product_repo=product_repo,
        settings_repo=settings_repo,
        inventory_item_repo=inventory_item_repo
    )


@pytest.fixture
def sale_repo(product_repo):
    return InMemorySaleRepository(product_repo)


ADMIN = TokenUser(id="1", email="admin@example.com", name="Admin", role="admin")


@pytest.fixture
def client(product_repo, sale_repo, settings_repo, sync_service, webhook_service):
    """TestClient wired to the in-memory stores; authenticated as admin"""
    app.dependency_overrides[get_product_repository] = lambda: product_repo
    app.dependency_overrides[get_sale_repository] = lambda: sale_repo
    app.dependency_overrides[get_integration_settings_repository] = lambda: settings_repo
    app.dependency_overrides[get_sync_service] = lambda: sync_service
    app.dependency_overrides[get_webhook_service] = lambda: webhook_service
    app.dependency_overrides[require_admin] = lambda: ADMIN
    app.dependency_overrides[require_user] = lambda: ADMIN

    yield TestClient(app)

    app.dependency_overrides.clear()
