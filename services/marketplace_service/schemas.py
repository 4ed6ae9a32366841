"""Pydantic schemas for marketplace service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from services.marketplace_service.models import (
    CanceledBy,
    OrderSource,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentProofStatus,
    PaymentStatus,
)

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Standard response wrapper for every marketplace endpoint."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    error: Optional[dict[str, Any]] = None


# ============================================================================
# CATALOG SCHEMAS
# ============================================================================


class StoreCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=512)


class StoreResponse(StoreCreate):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: str
    is_active: bool
    created_at: datetime


class VariantChoiceIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    price: Optional[Decimal] = Field(None, ge=0)
    price_adjustment: Optional[Decimal] = None
    stock: int = Field(0, ge=0)
    is_available: bool = True
    image_url: Optional[str] = Field(None, max_length=512)
    sku: Optional[str] = Field(None, max_length=100)


class VariantCategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    is_required: bool = True
    allow_multiple: bool = False
    choices: list[VariantChoiceIn] = Field(..., min_length=1)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=512)
    category: Optional[str] = Field(None, max_length=100)
    base_price: Decimal = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    estimated_time: int = Field(30, ge=1)
    shipping_fee: Decimal = Field(Decimal("0"), ge=0)
    variant_categories: list[VariantCategoryIn] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=512)
    category: Optional[str] = Field(None, max_length=100)
    base_price: Optional[Decimal] = Field(None, ge=0)
    estimated_time: Optional[int] = Field(None, ge=1)
    shipping_fee: Optional[Decimal] = Field(None, ge=0)


class VariantsReplace(BaseModel):
    variant_categories: list[VariantCategoryIn]


class RestockRequest(BaseModel):
    quantity: int = Field(..., ge=1)


class VariantChoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    price: Optional[Decimal] = None
    price_adjustment: Optional[Decimal] = None
    stock: int
    is_available: bool
    image_url: Optional[str] = None
    sku: Optional[str] = None


class VariantCategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    is_required: bool
    allow_multiple: bool
    choices: list[VariantChoiceResponse] = []


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_id: uuid.UUID
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    base_price: Decimal
    stock: int
    is_available: bool
    estimated_time: int
    shipping_fee: Decimal
    total_sold: int
    variant_categories: list[VariantCategoryResponse] = []


# ============================================================================
# CART SCHEMAS
# ============================================================================


class VariantSelectionIn(BaseModel):
    category: str = Field(..., min_length=1)
    choice: str = Field(..., min_length=1)


class CartItemAdd(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(1, ge=1)
    variant_selections: list[VariantSelectionIn] = Field(default_factory=list)


class CartItemQuantityUpdate(BaseModel):
    quantity: int  # <= 0 removes the line


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    product_snapshot: dict
    variant_selections: list[dict] = []
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    is_modified: bool = False
    modification_note: Optional[str] = None


class CartResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[uuid.UUID] = None
    customer_id: str
    items: list[CartItemResponse] = []
    total: Decimal = Decimal("0")
    line_count: int = 0
    item_count: int = 0


class CartMutationResponse(BaseModel):
    action: str  # added | updated | removed | cleared
    cart: CartResponse


class CartSummary(BaseModel):
    line_count: int = 0
    item_count: int = 0
    total: Decimal = Decimal("0")


class CartIssue(BaseModel):
    line_id: uuid.UUID
    product_id: uuid.UUID
    issue: str
    action: str  # remove | review | reduce_quantity
    available_quantity: Optional[int] = None


class PriceChange(BaseModel):
    line_id: uuid.UUID
    product_id: uuid.UUID
    name: Optional[str] = None
    old_price: Decimal
    new_price: Decimal


class CartValidationResponse(BaseModel):
    valid: bool
    issues: list[CartIssue] = []
    price_changes: list[PriceChange] = []
    cart: CartResponse


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class DeliveryDetailsIn(BaseModel):
    receiver_name: Optional[str] = None
    contact_number: Optional[str] = None
    building: Optional[str] = None
    room_number: Optional[str] = None
    additional_instructions: Optional[str] = None


class PickupDetailsIn(BaseModel):
    contact_number: Optional[str] = None
    pickup_time: Optional[datetime] = None


class _OrderPlacement(BaseModel):
    order_type: OrderType
    payment_method: Optional[PaymentMethod] = None
    delivery_details: Optional[DeliveryDetailsIn] = None
    pickup_details: Optional[PickupDetailsIn] = None
    notes: Optional[str] = Field(None, max_length=1000)


class CheckoutRequest(_OrderPlacement):
    selected_product_ids: list[uuid.UUID] = Field(..., min_length=1)


class DirectOrderItemIn(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(1, ge=1)
    variant_selections: list[VariantSelectionIn] = Field(default_factory=list)


class DirectOrderRequest(_OrderPlacement):
    items: list[DirectOrderItemIn] = Field(..., min_length=1)


class AcceptOrderRequest(BaseModel):
    estimated_preparation_time: int = Field(..., ge=1, le=24 * 60)  # minutes
    note: Optional[str] = None


class RejectOrderRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: Optional[str] = None
    estimated_time: Optional[int] = Field(None, ge=1)  # minutes


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    product_snapshot: dict
    variant_selections: list[dict] = []
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class OrderStatusHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: OrderStatus
    note: Optional[str] = None
    changed_by: Optional[str] = None
    created_at: datetime


class PaymentProofResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reference: str
    proof_image_url: str
    status: PaymentProofStatus
    uploaded_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    customer_id: str
    seller_id: str
    store_id: uuid.UUID
    order_type: OrderType
    status: OrderStatus
    source: OrderSource
    subtotal: Decimal
    shipping_fee: Decimal
    total_amount: Decimal
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    delivery_details: Optional[dict] = None
    pickup_details: Optional[dict] = None
    estimated_delivery_time: Optional[int] = None
    estimated_preparation_time: Optional[int] = None
    estimated_completion_time: Optional[datetime] = None
    notes: Optional[str] = None
    seller_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    canceled_by: Optional[CanceledBy] = None
    accepted_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    items: list[OrderItemResponse] = []
    status_history: list[OrderStatusHistoryResponse] = []
    payment_proof: Optional[PaymentProofResponse] = None


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    page: int
    page_size: int


class CheckoutResponse(BaseModel):
    orders: list[OrderResponse]


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================


class PaymentProofUpload(BaseModel):
    reference: str = Field(..., min_length=1, max_length=100)
    proof_image_url: str = Field(..., min_length=1, max_length=512)


class PaymentProofReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class PaymentConfirmation(BaseModel):
    reference: Optional[str] = Field(None, max_length=100)
