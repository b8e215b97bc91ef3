"""
Integrations API Endpoints (admin only)
Shopify credentials, connection test, bulk sync and import.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from stockroom.api.dependencies import get_integration_settings_repository, get_sync_service
from stockroom.core.auth import TokenUser, require_admin
from stockroom.domain.integration import SECRET_FIELDS, SECRET_MASK, SHOPIFY, ShopifySettings
from stockroom.repositories.integration_settings_repository import IntegrationSettingsRepository
from stockroom.services.shopify_sync_service import ShopifySyncService

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_CONFIGURED = "Shopify integration is not configured"


class ShopifySettingsRequest(BaseModel):
    is_enabled: bool
    settings: ShopifySettings


@router.get("/shopify")
async def get_shopify_settings(
    user: TokenUser = Depends(require_admin),
    repo: IntegrationSettingsRepository = Depends(get_integration_settings_repository)
):
    """Stored Shopify settings with secrets masked"""
    stored = repo.get(SHOPIFY)
    if not stored:
        return {
            "status": "success",
            "data": {"is_enabled": False, "settings": ShopifySettings().masked()}
        }

    return {
        "status": "success",
        "data": {
            "is_enabled": stored.is_enabled,
            "settings": stored.shopify_settings().masked(),
            "updated_at": stored.updated_at
        }
    }


@router.post("/shopify")
async def save_shopify_settings(
    request: ShopifySettingsRequest,
    user: TokenUser = Depends(require_admin),
    repo: IntegrationSettingsRepository = Depends(get_integration_settings_repository)
):
    """
    Save Shopify settings

    Secrets sent back still masked keep their stored value.
    """
    new_settings = request.settings.model_dump()

    if any(new_settings.get(key) == SECRET_MASK for key in SECRET_FIELDS):
        stored = repo.get(SHOPIFY)
        current = stored.shopify_settings().model_dump() if stored else {}
        for key in SECRET_FIELDS:
            if new_settings.get(key) == SECRET_MASK:
                new_settings[key] = current.get(key, "")

    saved = repo.upsert(SHOPIFY, request.is_enabled, new_settings)
    logger.info(f"Shopify settings saved by {user.email} (enabled={saved.is_enabled})")

    return {
        "status": "success",
        "data": {
            "is_enabled": saved.is_enabled,
            "settings": saved.shopify_settings().masked(),
            "updated_at": saved.updated_at
        }
    }


@router.post("/shopify/test")
async def test_shopify_connection(
    candidate: ShopifySettings,
    user: TokenUser = Depends(require_admin),
    sync: ShopifySyncService = Depends(get_sync_service)
):
    """Test unsaved credentials against the store"""
    if not candidate.has_credentials:
        raise HTTPException(status_code=400, detail="shop_name and access_token are required")

    success = await sync.test_connection(candidate)
    return {
        "success": success,
        "message": "Successfully connected to Shopify" if success else "Failed to connect to Shopify"
    }


@router.post("/shopify/sync")
async def sync_all_products(
    user: TokenUser = Depends(require_admin),
    sync: ShopifySyncService = Depends(get_sync_service)
):
    """Push every local product to Shopify"""
    result = await sync.sync_all_products()
    if not result.configured:
        raise HTTPException(status_code=400, detail=NOT_CONFIGURED)

    return {"status": "success" if result.success else "error", "data": result.to_dict()}


@router.post("/shopify/import")
async def import_products(
    user: TokenUser = Depends(require_admin),
    sync: ShopifySyncService = Depends(get_sync_service)
):
    """Import the Shopify catalog into the local store"""
    result = await sync.import_products()
    if not result.configured:
        raise HTTPException(status_code=400, detail=NOT_CONFIGURED)

    return {"status": "success" if result.success else "error", "data": result.to_dict()}
