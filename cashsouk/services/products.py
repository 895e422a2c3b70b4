from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cashsouk.core.settings import settings
from cashsouk.models.product import Product
from cashsouk.schemas.product import (
    ProductCreateRequest,
    ProductDTO,
    ProductListResponse,
    ProductUpdateRequest,
    StepDefinitionSchema,
)
from cashsouk.services.audit import model_snapshot, record_audit_log
from cashsouk.utils.redis_client import get_redis_client
from cashsouk.workflow.step_catalog import StepDefinition, build_step_key_map

logger = logging.getLogger(__name__)

CATALOG_GENERATION_KEY = "products:catalog:generation"


@dataclass(frozen=True)
class ProductError(ValueError):
    code: str
    message: str
    details: dict

    def __str__(self) -> str:
        return self.message


def _cache_key(generation: int, page: int, page_size: int) -> str:
    return f"products:catalog:{generation}:{page}:{page_size}"


async def _catalog_generation() -> int | None:
    try:
        redis = get_redis_client()
        value = await redis.get(CATALOG_GENERATION_KEY)
        return int(value) if value else 0
    except Exception:
        return None


async def _get_cached_catalog(generation: int, page: int, page_size: int) -> ProductListResponse | None:
    try:
        redis = get_redis_client()
        cached = await redis.get(_cache_key(generation, page, page_size))
        if cached:
            return ProductListResponse.model_validate_json(cached)
    except Exception:
        return None
    return None


async def _set_cached_catalog(catalog: ProductListResponse, generation: int) -> None:
    try:
        redis = get_redis_client()
        await redis.setex(
            _cache_key(generation, catalog.page, catalog.page_size),
            settings.product_cache_ttl_seconds,
            catalog.model_dump_json(),
        )
    except Exception:
        return None


async def invalidate_catalog_cache() -> None:
    """Move readers to a fresh cache generation; old entries expire on their TTL."""
    try:
        redis = get_redis_client()
        await redis.incr(CATALOG_GENERATION_KEY)
    except Exception:
        logger.warning("product catalog cache invalidation failed", exc_info=True)


def _product_snapshot(product: Product) -> dict:
    return model_snapshot(product, exclude={"created_at", "updated_at"})


def _workflow_payload(workflow: list[StepDefinitionSchema]) -> tuple[list[dict], dict[str, str]]:
    raw = [step.model_dump() for step in workflow]
    definitions = [StepDefinition.from_dict(step) for step in raw]
    ids = [definition.id for definition in definitions]
    duplicates = sorted({step_id for step_id in ids if ids.count(step_id) > 1})
    if duplicates:
        raise ProductError(
            code="duplicate_step_id",
            message="Workflow step ids must be unique",
            details={"step_ids": duplicates},
        )
    return raw, build_step_key_map(definitions)


async def get_product(db: AsyncSession, product_id: UUID, *, include_deleted: bool = False) -> Product | None:
    stmt = select(Product).where(Product.id == product_id)
    if not include_deleted:
        stmt = stmt.where(Product.deleted_at.is_(None))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_products(db: AsyncSession, *, page: int = 1, page_size: int = 100) -> ProductListResponse:
    generation = await _catalog_generation()
    if generation is not None:
        cached = await _get_cached_catalog(generation, page, page_size)
        if cached:
            return cached

    total_stmt = select(func.count()).select_from(Product).where(Product.deleted_at.is_(None))
    total = int((await db.execute(total_stmt)).scalar_one() or 0)
    stmt = (
        select(Product)
        .where(Product.deleted_at.is_(None))
        .order_by(Product.created_at.asc(), Product.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    products = (await db.execute(stmt)).scalars().all()
    catalog = ProductListResponse(
        products=[ProductDTO.model_validate(product) for product in products],
        total=total,
        page=page,
        page_size=page_size,
    )
    if generation is not None:
        await _set_cached_catalog(catalog, generation)
    return catalog


async def create_product(db: AsyncSession, payload: ProductCreateRequest, *, actor_id: str | None) -> Product:
    workflow, step_key_map = _workflow_payload(payload.workflow)
    product = Product(name=payload.name, workflow=workflow, step_key_map=step_key_map, version=1)
    db.add(product)
    await db.flush()
    record_audit_log(
        db,
        org_id=None,
        actor_id=actor_id,
        action="product.created",
        resource_type="product",
        resource_id=str(product.id),
        new_value=_product_snapshot(product),
    )
    await db.flush()
    await db.refresh(product)
    await invalidate_catalog_cache()
    return product


async def update_product(
    db: AsyncSession, product: Product, payload: ProductUpdateRequest, *, actor_id: str | None
) -> Product:
    """Apply an edit as a new product version.

    Applications created on an older version see the bump as drift.
    """
    old_snapshot = _product_snapshot(product)
    if payload.name is not None:
        product.name = payload.name
    if payload.workflow is not None:
        product.workflow, product.step_key_map = _workflow_payload(payload.workflow)
    product.version = int(product.version or 1) + 1
    db.add(product)
    record_audit_log(
        db,
        org_id=None,
        actor_id=actor_id,
        action="product.updated",
        resource_type="product",
        resource_id=str(product.id),
        old_value=old_snapshot,
        new_value=_product_snapshot(product),
    )
    await db.flush()
    await db.refresh(product)
    await invalidate_catalog_cache()
    return product


async def delete_product(db: AsyncSession, product: Product, *, actor_id: str | None) -> Product:
    old_snapshot = _product_snapshot(product)
    product.deleted_at = datetime.now(timezone.utc)
    db.add(product)
    record_audit_log(
        db,
        org_id=None,
        actor_id=actor_id,
        action="product.deleted",
        resource_type="product",
        resource_id=str(product.id),
        old_value=old_snapshot,
        new_value=_product_snapshot(product),
    )
    await db.flush()
    await invalidate_catalog_cache()
    return product
