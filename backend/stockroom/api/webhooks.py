"""
Webhooks API Endpoints
Shopify delivers product and inventory events here. The raw body is
read before parsing so the HMAC signature can be checked.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from stockroom.api.dependencies import get_webhook_service
from stockroom.services.shopify_webhook_service import ShopifyWebhookService, WebhookError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/shopify")
async def shopify_webhook(
    request: Request,
    service: ShopifyWebhookService = Depends(get_webhook_service)
):
    raw_body = await request.body()

    try:
        result = service.process(raw_body, request.headers)
    except WebhookError as e:
        return JSONResponse(status_code=e.status_code, content={"error": str(e)})
    except Exception as e:
        logger.error(f"Error processing Shopify webhook: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to process webhook"})

    logger.debug(f"Shopify webhook {result.topic}: {result.status}")
    return {"success": True}
