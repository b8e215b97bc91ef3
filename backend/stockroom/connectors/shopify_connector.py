"""
Shopify REST Admin API Connector
Handles all outbound calls to a Shopify store

Every call opens its own httpx.AsyncClient with a bounded timeout.
Transport errors, 429 and 5xx responses are retried with exponential
backoff (Retry-After is honoured when Shopify sends it, up to the request
timeout). Product creation is not idempotent, so it is only retried when
the request never reached Shopify.

Author: Stockroom team
Date: 2026-10-18
"""
import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import httpx
from pydantic import ValidationError

from stockroom.core.config import settings
from stockroom.domain.integration import ShopifySettings
from stockroom.domain.shopify import InventoryLevel, ShopifyProduct

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}
# Failures where the request was never delivered
UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)
MAX_PAGE_SIZE = 250


class ShopifyApiError(Exception):
    """Base error for Shopify API calls"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ShopifyAuthError(ShopifyApiError):
    """Credentials rejected (401/403)"""


class ShopifyNotFoundError(ShopifyApiError):
    """Remote resource does not exist (404)"""


class ShopifyConnectionError(ShopifyApiError):
    """Store unreachable: transport error, timeout, or 429/5xx after retries"""


class ShopifyResponseError(ShopifyApiError):
    """Unexpected 4xx or a body that could not be parsed"""


def normalize_shop_domain(shop_name: str) -> str:
    """
    Normalize a shop name to its myshopify.com domain

    Handles these formats:
    - "my-store" -> "my-store.myshopify.com"
    - "my-store.myshopify.com" -> unchanged
    - "https://my-store.myshopify.com/" -> "my-store.myshopify.com"
    """
    domain = shop_name.strip().replace("https://", "").replace("http://", "").rstrip("/")
    if not domain.endswith(".myshopify.com"):
        domain = f"{domain}.myshopify.com"
    return domain


def _numeric_id(value: str) -> Any:
    """Shopify expects numeric ids in request bodies"""
    text = str(value)
    return int(text) if text.isdigit() else text


class ShopifyConnector:
    """
    Connector for the Shopify REST Admin API

    Handles:
    - Shop metadata (connection test)
    - Product create/update/delete/get/list
    - Inventory level lookup and set
    """

    def __init__(
        self,
        shop_name: str,
        access_token: str,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Shopify connector

        Args:
            shop_name: Store name or domain (e.g. 'my-store')
            access_token: Admin API access token
            api_version: REST API version (default: settings.SHOPIFY_DEFAULT_API_VERSION)
            transport: Optional httpx transport (tests inject httpx.MockTransport)

        Raises:
            ValueError: If shop_name or access_token is empty
        """
        if not shop_name or not access_token:
            raise ValueError("Shopify credentials not configured: shop_name and access_token are required")

        self.shop_domain = normalize_shop_domain(shop_name)
        self.api_version = api_version or settings.SHOPIFY_DEFAULT_API_VERSION
        self.base_url = f"https://{self.shop_domain}/admin/api/{self.api_version}"
        self.headers = {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'X-Shopify-Access-Token': access_token
        }
        self.timeout = settings.SHOPIFY_REQUEST_TIMEOUT if timeout is None else timeout
        self.max_retries = max(1, settings.SHOPIFY_MAX_RETRIES if max_retries is None else max_retries)
        self.retry_backoff = settings.SHOPIFY_RETRY_BACKOFF if retry_backoff is None else retry_backoff
        self.transport = transport

    @classmethod
    def from_settings(cls, shopify_settings: ShopifySettings, **kwargs) -> "ShopifyConnector":
        """Build a connector from stored (or candidate) integration settings"""
        return cls(
            shop_name=shopify_settings.shop_name,
            access_token=shopify_settings.access_token,
            api_version=shopify_settings.api_version or None,
            **kwargs
        )

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _backoff(self, attempt: int) -> float:
        return self.retry_backoff * (2 ** (attempt - 1))

    def _retry_after(self, response: httpx.Response) -> Optional[float]:
        value = response.headers.get("Retry-After")
        if not value:
            return None
        try:
            delay = max(0.0, float(value))
        except ValueError:
            return None
        return min(delay, self.timeout)

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
        status = response.status_code
        if status < 400:
            return

        message = f"Shopify {method} {path} returned {status}: {response.text[:300]}"
        if status in (401, 403):
            raise ShopifyAuthError(message, status_code=status)
        if status == 404:
            raise ShopifyNotFoundError(message, status_code=status)
        raise ShopifyResponseError(message, status_code=status)

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        retry: bool = True
    ) -> httpx.Response:
        """
        Perform one API call with retries

        Args:
            retry: False for calls that must not be repeated once Shopify may
                have received them; only connection failures are retried then

        Raises:
            ShopifyConnectionError: Retries exhausted
            ShopifyAuthError / ShopifyNotFoundError / ShopifyResponseError: Non-retryable status
        """
        url = f"{self.base_url}{path}"
        last_error: Optional[ShopifyApiError] = None

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(1, self.max_retries + 1):
                try:
                    response = await client.request(method, url, params=params, json=json, headers=self.headers)
                except httpx.TransportError as e:
                    last_error = ShopifyConnectionError(f"Shopify {method} {path} failed: {e}")
                    if not retry and not isinstance(e, UNSENT_ERRORS):
                        logger.error(f"{last_error}; not retried, the request may have been applied")
                        raise last_error
                    delay = self._backoff(attempt)
                else:
                    if response.status_code not in RETRYABLE_STATUS:
                        self._raise_for_status(response, method, path)
                        return response

                    last_error = ShopifyConnectionError(
                        f"Shopify {method} {path} returned {response.status_code}",
                        status_code=response.status_code
                    )
                    # 429 means the request was rejected before processing
                    if not retry and response.status_code != 429:
                        logger.error(f"{last_error}; not retried, the request may have been applied")
                        raise last_error
                    delay = self._retry_after(response)
                    if delay is None:
                        delay = self._backoff(attempt)

                if attempt < self.max_retries:
                    logger.warning(f"{last_error} (attempt {attempt}/{self.max_retries}), retrying in {delay:.2f}s")
                    await asyncio.sleep(delay)

        logger.error(f"Shopify {method} {path}: all {self.max_retries} attempts failed")
        raise last_error

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ShopifyResponseError(f"Invalid JSON from Shopify: {e}", status_code=response.status_code)
        if not isinstance(data, dict):
            raise ShopifyResponseError("Unexpected response body from Shopify", status_code=response.status_code)
        return data

    @staticmethod
    def _parse_product(data: Any) -> ShopifyProduct:
        if not isinstance(data, dict):
            raise ShopifyResponseError("Response did not contain a product")
        try:
            return ShopifyProduct.model_validate(data)
        except ValidationError as e:
            raise ShopifyResponseError(f"Malformed product in response: {e}")

    @staticmethod
    def _next_page_info(response: httpx.Response) -> Optional[str]:
        """Extract page_info from the Link: <...>; rel="next" header"""
        next_url = response.links.get("next", {}).get("url")
        if not next_url:
            return None
        values = parse_qs(urlparse(next_url).query).get("page_info")
        return values[0] if values else None

    # ------------------------------------------------------------------
    # Shop
    # ------------------------------------------------------------------

    async def get_shop(self) -> Dict[str, Any]:
        """
        Get shop metadata; used to test credentials

        Returns:
            The "shop" object (name, domain, email, ...)
        """
        response = await self._request("GET", "/shop.json")
        shop = self._json(response).get("shop")
        if not shop:
            raise ShopifyResponseError("Response did not contain shop metadata")
        return shop

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def create_product(self, product: Dict[str, Any]) -> ShopifyProduct:
        """Create a product; returns it with its remote id"""
        response = await self._request("POST", "/products.json", json={"product": product}, retry=False)
        return self._parse_product(self._json(response).get("product"))

    async def update_product(self, remote_id: str, product: Dict[str, Any]) -> ShopifyProduct:
        """Replace the writable fields of an existing product"""
        body = dict(product)
        body["id"] = _numeric_id(remote_id)
        response = await self._request("PUT", f"/products/{remote_id}.json", json={"product": body})
        return self._parse_product(self._json(response).get("product"))

    async def delete_product(self, remote_id: str) -> None:
        await self._request("DELETE", f"/products/{remote_id}.json")

    async def get_product(self, remote_id: str) -> ShopifyProduct:
        response = await self._request("GET", f"/products/{remote_id}.json")
        return self._parse_product(self._json(response).get("product"))

    async def list_products(
        self,
        params: Optional[Dict[str, Any]] = None
    ) -> Tuple[List[ShopifyProduct], Optional[str]]:
        """
        Get one page of products

        Args:
            params: Query parameters (limit, page_info, fields, ...)

        Malformed items are logged and skipped so one bad record does not
        hide the rest of the page.

        Returns:
            Tuple of (products, page_info of the next page or None)
        """
        response = await self._request("GET", "/products.json", params=params)
        items = self._json(response).get("products") or []
        if not isinstance(items, list):
            raise ShopifyResponseError("Response did not contain a product list", status_code=response.status_code)

        products = []
        for item in items:
            try:
                products.append(self._parse_product(item))
            except ShopifyResponseError as e:
                item_id = item.get("id") if isinstance(item, dict) else None
                logger.warning(f"Skipping Shopify product {item_id}: {e}")
        return products, self._next_page_info(response)

    async def iter_products(self, page_size: Optional[int] = None) -> AsyncIterator[ShopifyProduct]:
        """Yield every product in the store, following cursor pagination"""
        limit = min(page_size or settings.SHOPIFY_IMPORT_PAGE_SIZE, MAX_PAGE_SIZE)
        params: Dict[str, Any] = {"limit": limit}

        while True:
            products, page_info = await self.list_products(params)
            for product in products:
                yield product

            if not page_info:
                break
            # Shopify rejects other filters alongside page_info
            params = {"limit": limit, "page_info": page_info}

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def list_inventory_levels(self, inventory_item_ids: Iterable[str]) -> List[InventoryLevel]:
        """Inventory levels of the given items across all locations"""
        ids = ",".join(str(item_id) for item_id in inventory_item_ids)
        response = await self._request("GET", "/inventory_levels.json", params={"inventory_item_ids": ids})
        levels = self._json(response).get("inventory_levels") or []
        try:
            return [InventoryLevel.model_validate(level) for level in levels]
        except ValidationError as e:
            raise ShopifyResponseError(f"Malformed inventory level in response: {e}")

    async def set_inventory_level(self, inventory_item_id: str, location_id: str, available: int) -> InventoryLevel:
        """Set the available quantity of an item at a location"""
        response = await self._request("POST", "/inventory_levels/set.json", json={
            "location_id": _numeric_id(location_id),
            "inventory_item_id": _numeric_id(inventory_item_id),
            "available": int(available)
        })
        level = self._json(response).get("inventory_level")
        try:
            return InventoryLevel.model_validate(level)
        except ValidationError as e:
            raise ShopifyResponseError(f"Malformed inventory level in response: {e}")
