"""
Shopify Webhook Service - verifies and applies inbound Shopify webhooks

Flow: received -> verified -> dispatched -> applied | ignored, or rejected.
Nothing is written before the signature is verified, and no handler
calls back into Shopify.

Author: Stockroom team
Date: 2026-10-18
"""
import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from stockroom.domain.integration import SHOPIFY
from stockroom.domain.shopify import id_to_str
from stockroom.repositories.product_repository import ProductRepository
from stockroom.repositories.integration_settings_repository import IntegrationSettingsRepository
from stockroom.repositories.inventory_item_repository import InventoryItemRepository

logger = logging.getLogger(__name__)

HMAC_HEADER = "x-shopify-hmac-sha256"
SHOP_DOMAIN_HEADER = "x-shopify-shop-domain"
TOPIC_HEADER = "x-shopify-topic"

APPLIED = "applied"
IGNORED = "ignored"


class WebhookError(Exception):
    """Webhook refused; status_code is the HTTP status to answer with"""
    status_code = 500
    message = "Failed to process webhook"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class IntegrationNotEnabledError(WebhookError):
    status_code = 400
    message = "Shopify integration not enabled"


class WebhookVerificationError(WebhookError):
    # Same message for every authenticity failure
    status_code = 401
    message = "Invalid webhook request"


@dataclass
class WebhookResult:
    topic: Optional[str]
    status: str
    product_id: Optional[int] = None


def verify_shopify_hmac(raw_body: bytes, secret: Optional[str], hmac_header: Optional[str]) -> bool:
    """
    Check X-Shopify-Hmac-Sha256 against the raw request body

    The header is base64(HMAC-SHA256(secret, body)). Compared in constant time.
    """
    if not secret or not hmac_header:
        return False

    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest)
    return hmac.compare_digest(expected, hmac_header.strip().encode("utf-8"))


class ShopifyWebhookService:
    """Verifies webhook signatures and applies product/inventory changes locally"""

    def __init__(
        self,
        product_repo: Optional[ProductRepository] = None,
        settings_repo: Optional[IntegrationSettingsRepository] = None,
        inventory_item_repo: Optional[InventoryItemRepository] = None
    ):
        self.product_repo = product_repo or ProductRepository()
        self.settings_repo = settings_repo or IntegrationSettingsRepository()
        self.inventory_item_repo = inventory_item_repo or InventoryItemRepository()
        self.handlers = {
            "products/update": self.handle_product_update,
            "products/delete": self.handle_product_delete,
            "inventory_levels/update": self.handle_inventory_update,
        }

    def process(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        """
        Verify and dispatch one webhook delivery

        Args:
            raw_body: Request body exactly as received
            headers: Request headers (any case)

        Returns:
            WebhookResult; every verified delivery is acknowledged

        Raises:
            IntegrationNotEnabledError: Integration missing or disabled
            WebhookVerificationError: Missing headers or bad signature
        """
        stored = self.settings_repo.get(SHOPIFY)
        if not stored or not stored.is_enabled:
            raise IntegrationNotEnabledError()

        normalized = {key.lower(): value for key, value in headers.items()}
        hmac_header = normalized.get(HMAC_HEADER)
        shop_domain = normalized.get(SHOP_DOMAIN_HEADER)

        if not hmac_header or not shop_domain:
            logger.warning("Missing required Shopify webhook headers")
            raise WebhookVerificationError()

        secret = stored.shopify_settings().api_secret
        if not verify_shopify_hmac(raw_body, secret, hmac_header):
            logger.warning(f"Invalid webhook signature from {shop_domain}")
            raise WebhookVerificationError()

        topic = normalized.get(TOPIC_HEADER)

        try:
            payload = json.loads(raw_body)
        except ValueError as e:
            logger.error(f"Malformed {topic} webhook payload from {shop_domain}: {e}")
            return WebhookResult(topic=topic, status=IGNORED)

        handler = self.handlers.get(topic)
        if handler is None:
            logger.info(f"Unhandled webhook topic: {topic}")
            return WebhookResult(topic=topic, status=IGNORED)

        if not isinstance(payload, dict):
            logger.error(f"Unexpected {topic} webhook payload from {shop_domain}")
            return WebhookResult(topic=topic, status=IGNORED)

        try:
            product_id = handler(payload)
        except Exception as e:
            logger.error(f"Error handling {topic} webhook: {e}")
            return WebhookResult(topic=topic, status=IGNORED)

        if product_id is None:
            return WebhookResult(topic=topic, status=IGNORED)
        return WebhookResult(topic=topic, status=APPLIED, product_id=product_id)

    # =========================================================================
    # Topic handlers: return the local product id changed, or None
    # =========================================================================

    def _find_linked_product_id(self, payload: Dict[str, Any]) -> Optional[int]:
        remote_id = id_to_str(payload.get("id"))
        if not remote_id:
            return None

        product = self.product_repo.find_by_external_id(SHOPIFY, remote_id)
        if product is None:
            logger.info(f"Product with Shopify ID {remote_id} not found in our system")
            return None
        return product.id

    def handle_product_update(self, payload: Dict[str, Any]) -> Optional[int]:
        """Copy title and description; other fields stay local"""
        product_id = self._find_linked_product_id(payload)
        if product_id is None:
            return None

        fields = {}
        if payload.get("title"):
            fields["name"] = payload["title"]
        if "body_html" in payload:
            fields["description"] = payload["body_html"]

        self.product_repo.update(product_id, fields)
        logger.info(f"Updated product {product_id} from Shopify webhook")
        return product_id

    def handle_product_delete(self, payload: Dict[str, Any]) -> Optional[int]:
        """Unlink the product; it is kept locally"""
        product_id = self._find_linked_product_id(payload)
        if product_id is None:
            return None

        self.product_repo.clear_external_ids(product_id)
        self.inventory_item_repo.delete_for_product(product_id)
        logger.info(f"Removed Shopify ID from product {product_id} after deletion in Shopify")
        return product_id

    def handle_inventory_update(self, payload: Dict[str, Any]) -> Optional[int]:
        """Set local stock to the remote available quantity"""
        inventory_item_id = id_to_str(payload.get("inventory_item_id"))
        available = payload.get("available")
        if not inventory_item_id or available is None:
            return None

        product_id = self.inventory_item_repo.find_product_id(inventory_item_id)
        if product_id is None:
            logger.info(f"Inventory item {inventory_item_id} is not linked to a product")
            return None

        self.product_repo.set_stock(product_id, max(int(available), 0))
        logger.info(f"Set stock of product {product_id} to {available} from Shopify webhook")
        return product_id
