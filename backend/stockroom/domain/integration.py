"""
Integration Settings Domain Model

One row per integration type. For Shopify, the settings blob holds the
shop name and API credentials.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, Optional
from datetime import datetime

from stockroom.core.config import settings as app_settings

SHOPIFY = "shopify"
SECRET_FIELDS = ("api_secret", "access_token")
SECRET_MASK = "********"


class ShopifySettings(BaseModel):
    """Connection settings for a Shopify store"""
    shop_name: str = ""
    api_key: str = ""
    api_secret: str = ""
    access_token: str = ""
    api_version: str = Field(default_factory=lambda: app_settings.SHOPIFY_DEFAULT_API_VERSION)

    @property
    def has_credentials(self) -> bool:
        """shop_name and access_token are required to talk to the Admin API"""
        return bool(self.shop_name and self.access_token)

    def masked(self) -> Dict[str, Any]:
        """Settings safe to return to the browser"""
        data = self.model_dump()
        for key in SECRET_FIELDS:
            if data.get(key):
                data[key] = SECRET_MASK
        return data


class IntegrationSettings(BaseModel):
    """Stored settings for one integration type"""
    id: Optional[int] = None
    integration_type: str
    is_enabled: bool = False
    settings: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def shopify_settings(self) -> ShopifySettings:
        """Parse the blob as Shopify settings; unknown keys are ignored"""
        data = {k: v for k, v in (self.settings or {}).items() if v is not None}
        if not data.get("api_version"):
            data.pop("api_version", None)
        return ShopifySettings.model_validate(data)
