"""Marketplace commerce models: carts, orders, status history, payment proofs."""

import random
import string
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.marketplace_service.models.enums import (
    CanceledBy,
    OrderSource,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentProofStatus,
    PaymentStatus,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

SelectionKey = tuple[str, tuple[tuple[str, str], ...]]

# Shared by orders and their status history
order_status_type = SAEnum(
    OrderStatus, values_callable=enum_values, name="market_order_status_enum"
)


def selection_key(product_id, selections: Optional[Iterable[dict]]) -> SelectionKey:
    """Order-independent identity of a product + variant selection combination."""
    pairs = sorted(
        (str(s.get("category", "")), str(s.get("choice", "")))
        for s in (selections or [])
    )
    return str(product_id), tuple(pairs)


# ============================================================================
# CART MODELS
# ============================================================================


class Cart(Base):
    """Shopping cart. Exactly one per customer."""

    __tablename__ = "market_carts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )

    # Derived, see recalculate_totals()
    total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default="0"
    )
    line_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    item_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    # Relationships
    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.created_at",
    )

    def recalculate_totals(self) -> None:
        """Recompute every line subtotal and the cart aggregates."""
        total = Decimal("0")
        item_count = 0
        for item in self.items:
            item.subtotal = item.unit_price * item.quantity
            total += item.subtotal
            item_count += item.quantity
        self.total = total
        self.line_count = len(self.items)
        self.item_count = item_count
        self.updated_at = utc_now()

    def find_line(self, key: SelectionKey) -> Optional["CartItem"]:
        return next((item for item in self.items if item.selection_key == key), None)

    def __repr__(self):
        return f"<Cart {self.customer_id} lines={self.line_count}>"


class CartItem(Base):
    """Cart line: a product + variant selection combination with snapshot price."""

    __tablename__ = "market_cart_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cart_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("market_carts.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    # No FK: the line survives product deletion and is flagged by validation
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    # Snapshot at add time: {"name", "image", "base_price"}
    product_snapshot: Mapped[dict] = mapped_column(JSONType, nullable=False)
    # [{"category", "choice", "choice_id", "price", "image"}]
    variant_selections: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list
    )

    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Set by cart validation when the catalog drifted since add time
    is_modified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="0"
    )
    modification_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (CheckConstraint("quantity > 0", name="cart_positive_quantity"),)

    # Relationships
    cart = relationship("Cart", back_populates="items")

    @property
    def selection_key(self) -> SelectionKey:
        return selection_key(self.product_id, self.variant_selections)

    def __repr__(self):
        return f"<CartItem product={self.product_id} qty={self.quantity}>"


# ============================================================================
# ORDER MODELS
# ============================================================================


class Order(Base):
    """Per-store order created from a checkout."""

    __tablename__ = "market_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(
        String(30), unique=True, nullable=False, index=True
    )

    customer_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    seller_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("market_stores.id"),
        index=True,
        nullable=False,
    )

    # Pricing
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping_fee: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default="0"
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order_type: Mapped[OrderType] = mapped_column(
        SAEnum(OrderType, values_callable=enum_values, name="market_order_type_enum"),
        nullable=False,
    )
    status: Mapped[OrderStatus] = mapped_column(
        order_status_type,
        default=OrderStatus.PENDING,
        server_default="pending",
        index=True,
    )
    source: Mapped[OrderSource] = mapped_column(
        SAEnum(
            OrderSource, values_callable=enum_values, name="market_order_source_enum"
        ),
        default=OrderSource.CART,
        server_default="cart",
    )
    # True once stock for every item has been taken out of the catalog
    stock_deducted: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="0"
    )

    # Payment
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus,
            values_callable=enum_values,
            name="market_payment_status_enum",
        ),
        default=PaymentStatus.PENDING,
        server_default="pending",
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            values_callable=enum_values,
            name="market_payment_method_enum",
        ),
        nullable=False,
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True
    )  # Gateway reference for online payments

    # Fulfillment, exactly one populated depending on order_type
    delivery_details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    pickup_details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    # Minutes
    estimated_delivery_time: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    estimated_preparation_time: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    estimated_completion_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Notes
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    seller_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    canceled_by: Mapped[Optional[CanceledBy]] = mapped_column(
        SAEnum(
            CanceledBy, values_callable=enum_values, name="market_canceled_by_enum"
        ),
        nullable=True,
    )

    # Timestamps
    accepted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    canceled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index("ix_market_orders_customer_created", "customer_id", "created_at"),
        Index("ix_market_orders_seller_created", "seller_id", "created_at"),
    )

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.sequence",
    )
    payment_proof = relationship(
        "PaymentProof",
        back_populates="order",
        uselist=False,
        cascade="all, delete-orphan",
    )
    store = relationship("Store")

    @staticmethod
    def generate_order_number(prefix: str = "BF") -> str:
        """Generate a unique order number like BF-20260104-A1B2C."""
        date_part = utc_now().strftime("%Y%m%d")
        random_part = "".join(
            random.choices(string.ascii_uppercase + string.digits, k=5)
        )
        return f"{prefix}-{date_part}-{random_part}"

    def record_status(
        self,
        status: OrderStatus,
        *,
        changed_by: Optional[str] = None,
        note: Optional[str] = None,
    ) -> "OrderStatusHistory":
        """Set the status and append the transition to the history log."""
        self.status = status
        entry = OrderStatusHistory(
            status=status,
            note=note,
            changed_by=changed_by,
            sequence=len(self.status_history),
        )
        self.status_history.append(entry)
        return entry

    def __repr__(self):
        return f"<Order {self.order_number} {self.status}>"


class OrderItem(Base):
    """Order line (snapshot at order time, never re-priced)."""

    __tablename__ = "market_order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("market_orders.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    product_snapshot: Mapped[dict] = mapped_column(JSONType, nullable=False)
    variant_selections: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (CheckConstraint("quantity > 0", name="order_positive_quantity"),)

    # Relationships
    order = relationship("Order", back_populates="items")

    @property
    def product_name(self) -> Optional[str]:
        return (self.product_snapshot or {}).get("name")

    def __repr__(self):
        return f"<OrderItem {self.product_name} qty={self.quantity}>"


class OrderStatusHistory(Base):
    """Append-only log of order status transitions."""

    __tablename__ = "market_order_status_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("market_orders.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    status: Mapped[OrderStatus] = mapped_column(
        order_status_type,
        nullable=False,
    )
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    changed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    # Relationships
    order = relationship("Order", back_populates="status_history")

    def __repr__(self):
        return f"<OrderStatusHistory {self.order_id} {self.status}>"


class PaymentProof(Base):
    """Customer-submitted transfer proof for manual GCash payments."""

    __tablename__ = "market_payment_proofs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("market_orders.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    reference: Mapped[str] = mapped_column(String(100), nullable=False)
    proof_image_url: Mapped[str] = mapped_column(String(512), nullable=False)
    status: Mapped[PaymentProofStatus] = mapped_column(
        SAEnum(
            PaymentProofStatus,
            values_callable=enum_values,
            name="market_payment_proof_status_enum",
        ),
        default=PaymentProofStatus.PENDING_VERIFICATION,
        server_default="pending_verification",
    )

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    order = relationship("Order", back_populates="payment_proof")

    def __repr__(self):
        return f"<PaymentProof {self.reference} {self.status}>"
