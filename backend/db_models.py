"""
SQLAlchemy ORM models for the storefront order service.

Tables:
    users              — customers and staff (role: customer | staff | admin)
    products           — sellable products with stock counters
    carts / cart_items — one cart per user, cleared after payment
    orders             — order aggregate with payment / shipping fields
    order_items        — the single line-item collection of an order
    pending_cod_orders — COD checkouts waiting for email-code verification

Statuses are stored as canonical OrderStatus values only. The legacy
`orderItems` / `products` arrays and the admin vocabulary are rendered
by domain.legacy_shape at the API boundary.
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey, JSON,
    Index,
)
from sqlalchemy.orm import relationship

from database import Base
from domain.enums import OrderStatus, PaymentMethod, PaymentStatus, UserRole


class User(Base):
    """Storefront accounts. Identity is issued elsewhere; we only mirror it."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    name = Column(String(200), nullable=True)
    phone_number = Column(String(20), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.CUSTOMER.value)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    cart = relationship("Cart", back_populates="user", uselist=False, lazy="select")
    orders = relationship("Order", back_populates="user", lazy="select")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=True, index=True)
    price = Column(Float, nullable=False, default=0.0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    sold = Column(Integer, nullable=False, default=0)
    weight_grams = Column(Integer, nullable=True)  # used for shipment payloads
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ════════════════════════════════════════════════════════════════════
# Cart
# ════════════════════════════════════════════════════════════════════

class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="cart")
    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    size = Column(String(20), nullable=True)

    cart = relationship("Cart", back_populates="items")


# ════════════════════════════════════════════════════════════════════
# Orders
# ════════════════════════════════════════════════════════════════════

class Order(Base):
    """
    Order aggregate.

    Lifecycle:
        1. Checkout creates the row with status=pending (prepaid) or the COD
           verification step creates it with status=processing
        2. Payment confirmation (webhook or client verification) sets is_paid
        3. Staff move items through processing -> shipped -> delivered
        4. Cancellation / refund end the lifecycle; rows are never deleted
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    legacy_id = Column(String(64), unique=True, nullable=True)  # id in the old document store
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)

    # Payment
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.RAZORPAY.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_intent_id = Column(String(100), nullable=True, index=True)  # gateway order id
    payment_id = Column(String(100), nullable=True)  # gateway payment id
    payment_provider = Column(String(20), nullable=True)
    payment_result = Column(JSON, nullable=True)  # {id, status, method, email, contact}
    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime, nullable=True)

    # Shipping
    shipping_address = Column(JSON, nullable=True)
    tracking_number = Column(String(64), nullable=True)  # carrier waybill
    manifest_id = Column(String(100), nullable=True)
    delivery_status = Column(String(50), nullable=True)
    delivered_at = Column(DateTime, nullable=True)

    # Money
    items_price = Column(Float, nullable=False, default=0.0)
    shipping_price = Column(Float, nullable=False, default=0.0)
    tax_price = Column(Float, nullable=False, default=0.0)
    discount_amount = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False, default=0.0)
    coupon_code = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="orders", lazy="selectin")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
    )


class OrderItem(Base):
    """One line of an order. The only place item status is stored."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True, index=True)
    name = Column(String(200), nullable=False, default="")
    size = Column(String(20), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Float, nullable=False, default=0.0)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)

    cancel_requested = Column(Boolean, nullable=False, default=False)
    cancel_reason = Column(Text, nullable=True)
    cancel_requested_at = Column(DateTime, nullable=True)
    reviewed = Column(Boolean, nullable=False, default=False)
    reviewed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    order = relationship("Order", back_populates="items")


class PendingCodOrder(Base):
    """
    A cash-on-delivery checkout waiting for the customer's email code.

    Only the bcrypt hash of the code is stored. The row is deleted when
    it is promoted to an Order; unverified rows simply expire.
    """
    __tablename__ = "pending_cod_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    items = Column(JSON, nullable=False)  # [{productId, name, size, quantity, price}]
    shipping_address = Column(JSON, nullable=False)
    items_price = Column(Float, nullable=False, default=0.0)
    shipping_price = Column(Float, nullable=False, default=0.0)
    tax_price = Column(Float, nullable=False, default=0.0)
    discount_amount = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False, default=0.0)
    coupon_code = Column(String(50), nullable=True)
    code_hash = Column(String(100), nullable=False)
    code_expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", lazy="selectin")
