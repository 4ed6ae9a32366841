"""Marketplace catalog models: stores, products, variant categories and choices."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# STORE
# ============================================================================


class Store(Base):
    """A seller's store. One store per seller; the owner receives its orders."""

    __tablename__ = "market_stores"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )  # Seller principal id

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="1"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    products = relationship("Product", back_populates="store")

    def __repr__(self):
        return f"<Store {self.name}>"


# ============================================================================
# PRODUCTS
# ============================================================================


class Product(Base):
    """A menu item (e.g., 'Milk Tea'), optionally customised by variant categories."""

    __tablename__ = "market_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("market_stores.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Price before any variant selection
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Flat stock, used when no variant selection is made
    stock: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    # Derived, see refresh_availability()
    is_available: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="0"
    )

    estimated_time: Mapped[int] = mapped_column(
        Integer, default=30, server_default="30"
    )  # minutes
    shipping_fee: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), server_default="0"
    )
    total_sold: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="product_positive_stock"),
        CheckConstraint("base_price >= 0", name="product_positive_price"),
    )

    # Relationships
    store = relationship("Store", back_populates="products")
    variant_categories = relationship(
        "VariantCategory",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="VariantCategory.position",
    )

    @property
    def seller_id(self) -> str:
        return self.store.owner_id

    @property
    def has_variants(self) -> bool:
        return bool(self.variant_categories)

    def refresh_availability(self) -> bool:
        """Re-derive ``is_available`` from stock.

        With required categories, every required category needs at least one
        in-stock, available choice. Otherwise flat stock decides.
        """
        required = [c for c in self.variant_categories if c.is_required]
        if required:
            self.is_available = all(
                any(choice.is_in_stock for choice in category.choices)
                for category in required
            )
        else:
            self.is_available = self.stock > 0
        return self.is_available

    def __repr__(self):
        return f"<Product {self.name}>"


class VariantCategory(Base):
    """A customisation axis (e.g., 'Size', 'Add-ons')."""

    __tablename__ = "market_variant_categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("market_products.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_required: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="1"
    )
    allow_multiple: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="0"
    )
    position: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    # Relationships
    product = relationship("Product", back_populates="variant_categories")
    choices = relationship(
        "VariantChoice",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="VariantChoice.position",
    )

    def __repr__(self):
        return f"<VariantCategory {self.name}>"


class VariantChoice(Base):
    """One option within a category, with its own price and stock."""

    __tablename__ = "market_variant_choices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("market_variant_categories.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Absolute unit price when selected, or a delta on the running price
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    price_adjustment: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )

    stock: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    is_available: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="1"
    )
    position: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    __table_args__ = (CheckConstraint("stock >= 0", name="choice_positive_stock"),)

    # Relationships
    category = relationship("VariantCategory", back_populates="choices")

    @property
    def is_in_stock(self) -> bool:
        return self.is_available and self.stock > 0

    @property
    def snapshot_price(self) -> Decimal:
        """Price recorded on a cart selection at add time."""
        if self.price is not None:
            return self.price
        return self.price_adjustment or Decimal("0")

    def __repr__(self):
        return f"<VariantChoice {self.name} stock={self.stock}>"
