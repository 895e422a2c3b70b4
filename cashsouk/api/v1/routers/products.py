from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from cashsouk.api import deps
from cashsouk.core.permissions import PermissionCode
from cashsouk.db.session import get_db
from cashsouk.schemas.product import (
    ProductCreateRequest,
    ProductDTO,
    ProductListResponse,
    ProductUpdateRequest,
)
from cashsouk.services import products

router = APIRouter(prefix="/products", tags=["products"])


async def _require_product(db: AsyncSession, product_id: UUID):
    product = await products.get_product(db, product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.get("", response_model=ProductListResponse, summary="List live products")
async def list_products(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=100, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    _: deps.Actor = Depends(deps.get_current_actor),
):
    return await products.list_products(db, page=page, page_size=page_size)


@router.get("/{product_id}", response_model=ProductDTO, summary="Get a product")
async def get_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: deps.Actor = Depends(deps.get_current_actor),
):
    return await _require_product(db, product_id)


@router.post("", response_model=ProductDTO, status_code=status.HTTP_201_CREATED, summary="Create a product")
async def create_product(
    payload: ProductCreateRequest,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.PRODUCT_MANAGE)),
):
    try:
        product = await products.create_product(db, payload, actor_id=actor.user_id)
    except products.ProductError as exc:
        raise deps.service_error(exc) from exc
    await db.commit()
    return product


@router.patch("/{product_id}", response_model=ProductDTO, summary="Edit a product as a new version")
async def update_product(
    product_id: UUID,
    payload: ProductUpdateRequest,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.PRODUCT_MANAGE)),
):
    product = await _require_product(db, product_id)
    try:
        product = await products.update_product(db, product, payload, actor_id=actor.user_id)
    except products.ProductError as exc:
        raise deps.service_error(exc) from exc
    await db.commit()
    return product


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a product")
async def delete_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: deps.Actor = Depends(deps.require_permission(PermissionCode.PRODUCT_MANAGE)),
):
    product = await _require_product(db, product_id)
    await products.delete_product(db, product, actor_id=actor.user_id)
    await db.commit()
