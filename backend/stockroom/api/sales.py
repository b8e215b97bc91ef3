"""
Sales API Endpoints
Recording a sale decrements stock and pushes the new level to Shopify.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from stockroom.api.dependencies import get_sale_repository, get_sync_service
from stockroom.core.auth import TokenUser, require_user
from stockroom.domain.sale import SaleCreate
from stockroom.repositories.sale_repository import (
    InsufficientStockError,
    ProductNotFoundError,
    SaleRepository,
)
from stockroom.services.shopify_sync_service import ShopifySyncService, run_best_effort

router = APIRouter()


@router.post("/", status_code=201)
async def create_sale(
    data: SaleCreate,
    user: TokenUser = Depends(require_user),
    repo: SaleRepository = Depends(get_sale_repository),
    sync: ShopifySyncService = Depends(get_sync_service)
):
    try:
        sale, new_stock = repo.create(data.product_id, data.quantity)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InsufficientStockError as e:
        raise HTTPException(status_code=400, detail=str(e))

    synced = await run_best_effort(
        sync.sync_inventory(data.product_id, new_stock),
        f"Shopify inventory sync of product {data.product_id}"
    )

    return {
        "status": "success",
        "data": sale.to_dict(),
        "stock_count": new_stock,
        "shopify_synced": synced
    }


@router.get("/")
async def get_sales(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    start_date: Optional[date] = Query(None, description="First day to include (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Last day to include (YYYY-MM-DD)"),
    user: TokenUser = Depends(require_user),
    repo: SaleRepository = Depends(get_sale_repository)
):
    """Most recent sales, optionally within a date range, with totals for that range"""
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")

    sales, summary = repo.find_recent(limit=limit, offset=offset, start_date=start_date, end_date=end_date)

    return {
        "status": "success",
        "limit": limit,
        "offset": offset,
        "count": len(sales),
        "summary": summary,
        "data": [sale.to_dict() for sale in sales]
    }
