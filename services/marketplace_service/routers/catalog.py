"""Marketplace catalog router: seller store and product management, product reads."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import require_seller
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.marketplace_service.routers._helpers import envelope
from services.marketplace_service.schemas import (
    Envelope,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    RestockRequest,
    StoreCreate,
    StoreResponse,
    VariantsReplace,
)
from services.marketplace_service.services import catalog_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["catalog"])


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("/products/{product_id}", response_model=Envelope[ProductResponse])
async def get_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    product = await catalog_ops.get_product(db, product_id)
    return envelope(ProductResponse.model_validate(product))


# ============================================================================
# SELLER - STORE
# ============================================================================


@router.post(
    "/seller/store",
    response_model=Envelope[StoreResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_store(
    payload: StoreCreate,
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    store = await catalog_ops.create_store(
        db, owner_id=current_user.user_id, **payload.model_dump()
    )
    return envelope(StoreResponse.model_validate(store), "Store created")


@router.get("/seller/store", response_model=Envelope[StoreResponse])
async def get_my_store(
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    store = await catalog_ops.get_store_for_owner(db, current_user.user_id)
    return envelope(StoreResponse.model_validate(store))


# ============================================================================
# SELLER - PRODUCTS
# ============================================================================


@router.post(
    "/seller/products",
    response_model=Envelope[ProductResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_product(
    payload: ProductCreate,
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    data = payload.model_dump()
    variant_categories = data.pop("variant_categories")
    product = await catalog_ops.create_product(
        db,
        owner_id=current_user.user_id,
        fields=data,
        variant_categories=variant_categories,
    )
    return envelope(ProductResponse.model_validate(product), "Product created")


@router.patch("/seller/products/{product_id}", response_model=Envelope[ProductResponse])
async def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    product = await catalog_ops.update_product(
        db,
        owner_id=current_user.user_id,
        product_id=product_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return envelope(ProductResponse.model_validate(product), "Product updated")


@router.put(
    "/seller/products/{product_id}/variants",
    response_model=Envelope[ProductResponse],
)
async def replace_variants(
    product_id: uuid.UUID,
    payload: VariantsReplace,
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    product = await catalog_ops.replace_variants(
        db,
        owner_id=current_user.user_id,
        product_id=product_id,
        variant_categories=payload.model_dump()["variant_categories"],
    )
    return envelope(ProductResponse.model_validate(product), "Variants updated")


@router.post(
    "/seller/products/{product_id}/restock",
    response_model=Envelope[ProductResponse],
)
async def restock_product(
    product_id: uuid.UUID,
    payload: RestockRequest,
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    product = await catalog_ops.restock_product(
        db,
        owner_id=current_user.user_id,
        product_id=product_id,
        quantity=payload.quantity,
    )
    return envelope(ProductResponse.model_validate(product), "Stock updated")


@router.post(
    "/seller/products/{product_id}/choices/{choice_id}/restock",
    response_model=Envelope[ProductResponse],
)
async def restock_choice(
    product_id: uuid.UUID,
    choice_id: uuid.UUID,
    payload: RestockRequest,
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    product = await catalog_ops.restock_choice(
        db,
        owner_id=current_user.user_id,
        product_id=product_id,
        choice_id=choice_id,
        quantity=payload.quantity,
    )
    return envelope(ProductResponse.model_validate(product), "Stock updated")
