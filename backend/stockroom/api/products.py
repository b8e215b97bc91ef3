"""
Products API Endpoints
Product catalog management; every local change is pushed to Shopify
on a best-effort basis after it is committed.
"""
from typing import Literal, Optional

import psycopg2
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from stockroom.api.dependencies import get_product_repository, get_sync_service
from stockroom.core.auth import TokenUser, require_admin, require_user
from stockroom.domain.product import ProductCreate, ProductUpdate
from stockroom.repositories.product_repository import ProductRepository
from stockroom.services.shopify_sync_service import ShopifySyncService, run_best_effort

router = APIRouter()

# Columns that cannot be cleared with an explicit null
NON_NULLABLE_FIELDS = ("name", "price", "stock_count", "product_type_id")


# Request models
class ProductUpdateRequest(ProductUpdate):
    sync_to_shopify: bool = True


class StockAdjustment(BaseModel):
    operation: Literal["set", "add", "subtract"]
    quantity: int = Field(..., ge=0)


@router.get("/")
async def get_products(
    search: Optional[str] = Query(None, description="Search by name, description or barcode"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(require_user),
    repo: ProductRepository = Depends(get_product_repository)
):
    """Get products ordered by name"""
    products, total = repo.find_all(search=search, limit=limit, offset=offset)

    return {
        "status": "success",
        "total": total,
        "limit": limit,
        "offset": offset,
        "count": len(products),
        "data": [product.to_dict() for product in products]
    }


@router.get("/{product_id}")
async def get_product(
    product_id: int,
    user: TokenUser = Depends(require_user),
    repo: ProductRepository = Depends(get_product_repository)
):
    product = repo.find_by_id(product_id)
    if not product:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

    return {"status": "success", "data": product.to_dict()}


@router.post("/", status_code=201)
async def create_product(
    data: ProductCreate,
    user: TokenUser = Depends(require_admin),
    repo: ProductRepository = Depends(get_product_repository),
    sync: ShopifySyncService = Depends(get_sync_service)
):
    """Create a product, then push it to Shopify"""
    try:
        product = repo.create(data)
    except psycopg2.IntegrityError as e:
        raise HTTPException(status_code=400, detail=f"Invalid product data: {e.pgerror or e}")

    synced = await run_best_effort(sync.sync_product(product.id), f"Shopify sync of product {product.id}")

    return {
        "status": "success",
        "data": product.to_dict(),
        "shopify_synced": synced
    }


@router.put("/{product_id}")
async def update_product(
    product_id: int,
    data: ProductUpdateRequest,
    user: TokenUser = Depends(require_admin),
    repo: ProductRepository = Depends(get_product_repository),
    sync: ShopifySyncService = Depends(get_sync_service)
):
    """
    Update a product

    Only the fields sent are changed. Set sync_to_shopify=false to skip
    pushing the change to Shopify.
    """
    fields = data.model_dump(exclude_unset=True, exclude={"sync_to_shopify"})
    for key in NON_NULLABLE_FIELDS:
        if key in fields and fields[key] is None:
            fields.pop(key)

    try:
        product = repo.update(product_id, fields)
    except psycopg2.IntegrityError as e:
        raise HTTPException(status_code=400, detail=f"Invalid product data: {e.pgerror or e}")

    if not product:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

    synced = False
    if data.sync_to_shopify:
        synced = await run_best_effort(sync.sync_product(product_id), f"Shopify sync of product {product_id}")

    return {
        "status": "success",
        "data": product.to_dict(),
        "shopify_synced": synced
    }


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    user: TokenUser = Depends(require_admin),
    repo: ProductRepository = Depends(get_product_repository),
    sync: ShopifySyncService = Depends(get_sync_service)
):
    """Delete the Shopify counterpart (best effort), then the local product"""
    if not repo.find_by_id(product_id):
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

    remote_deleted = await run_best_effort(
        sync.delete_product(product_id), f"Shopify delete of product {product_id}"
    )
    repo.delete(product_id)

    return {
        "status": "success",
        "message": f"Product {product_id} deleted",
        "shopify_deleted": remote_deleted
    }


@router.post("/{product_id}/stock")
async def adjust_stock(
    product_id: int,
    adjustment: StockAdjustment,
    user: TokenUser = Depends(require_user),
    repo: ProductRepository = Depends(get_product_repository),
    sync: ShopifySyncService = Depends(get_sync_service)
):
    """
    Change the units on hand

    - set: stock = quantity
    - add: stock + quantity
    - subtract: stock - quantity, never below 0
    """
    product = repo.find_by_id(product_id)
    if not product:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

    if adjustment.operation == "set":
        new_stock = adjustment.quantity
    elif adjustment.operation == "add":
        new_stock = product.stock_count + adjustment.quantity
    else:
        new_stock = max(product.stock_count - adjustment.quantity, 0)

    updated = repo.set_stock(product_id, new_stock)
    if not updated:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

    synced = await run_best_effort(
        sync.sync_inventory(product_id, new_stock), f"Shopify inventory sync of product {product_id}"
    )

    return {
        "status": "success",
        "data": updated.to_dict(),
        "previous_stock": product.stock_count,
        "shopify_synced": synced
    }
