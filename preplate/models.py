"""
SQLAlchemy Database Models

Two disjoint account kinds (users and restaurants) share one login
surface; restaurants own a menu (categories -> menu items) and business
hours; users place orders, write reviews and keep favorites.

Money is stored as NUMERIC(10, 2) and handled as Decimal in Python.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from preplate.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


Money = Numeric(10, 2, asdecimal=True)


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    """Payment status, tracked independently of the order status."""
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


# =============================================================================
# ACCOUNTS
# =============================================================================

class User(Base):
    """Diner account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False)
    address = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    orders = relationship("Order", back_populates="user")
    reviews = relationship("Review", back_populates="user")
    favorites = relationship("FavoriteRestaurant", back_populates="user")

    def __repr__(self):
        return f"<User #{self.id} - {self.email}>"


class Restaurant(Base):
    """
    Restaurant account.

    ``rating`` is the stored aggregate used when the restaurant has no
    reviews yet; listings otherwise show the live review average.
    """
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False, index=True)
    phone = Column(String(20), nullable=False)
    description = Column(Text, nullable=True)
    cuisine = Column(String(100), nullable=True, index=True)
    address = Column(String(500), nullable=True)
    rating = Column(Float, nullable=False, default=0.0)
    is_open = Column(Boolean, nullable=False, default=True)
    featured = Column(Boolean, nullable=False, default=False)
    estimated_time = Column(String(50), nullable=True)
    image = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    categories = relationship("Category", back_populates="restaurant")
    business_hours = relationship("BusinessHour", back_populates="restaurant")
    orders = relationship("Order", back_populates="restaurant")
    reviews = relationship("Review", back_populates="restaurant")

    def __repr__(self):
        return f"<Restaurant #{self.id} - {self.name}>"


class AccountEmail(Base):
    """
    One row per registered email, whatever the account kind.

    The unique index spans both account tables, so two registrations of
    the same email cannot both commit even when they race.
    """
    __tablename__ = "account_emails"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    kind = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    def __repr__(self):
        return f"<AccountEmail {self.email} ({self.kind})>"


class BusinessHour(Base):
    __tablename__ = "business_hours"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday
    open_time = Column(String(5), nullable=False)  # "HH:MM"
    close_time = Column(String(5), nullable=False)
    is_open = Column(Boolean, nullable=False, default=True)

    restaurant = relationship("Restaurant", back_populates="business_hours")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_business_hours_day"),
    )


# =============================================================================
# MENU
# =============================================================================

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    restaurant = relationship("Restaurant", back_populates="categories")
    menu_items = relationship("MenuItem", back_populates="category")


class MenuItem(Base):
    """
    A dish on a restaurant's menu.

    ``price`` is the price actually charged (already discounted);
    ``original_price`` and ``discount`` (percent) are for display.
    """
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Money, nullable=False)
    original_price = Column(Money, nullable=True)
    discount = Column(Integer, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    image = Column(String(500), nullable=True)
    allergens = Column(JSON, nullable=False, default=list)
    nutrition = Column(JSON, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    category = relationship("Category", back_populates="menu_items")

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name} @ {self.price}>"


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    """
    One booking: a table reservation with a pre-ordered meal.

    Orders are never deleted; cancellation is a status.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_number = Column(String(40), nullable=False, unique=True, index=True)

    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    payment_status = Column(
        Enum(PaymentStatus),
        default=PaymentStatus.PENDING,
        nullable=False
    )

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Money, nullable=False)
    platform_fee = Column(Money, nullable=False)
    total = Column(Money, nullable=False)

    # =========================================================================
    # BOOKING
    # =========================================================================
    booking_date_time = Column(DateTime(timezone=True), nullable=False)
    guests = Column(Integer, nullable=False, default=1)
    special_requests = Column(Text, nullable=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=utc_now, nullable=True)

    user = relationship("User", back_populates="orders")
    restaurant = relationship("Restaurant", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("guests >= 1", name="ck_orders_guests"),
    )

    def __repr__(self):
        return f"<Order {self.order_number} - {self.status.value}/{self.payment_status.value}>"


class OrderItem(Base):
    """Line item; price and discount are snapshots taken when the order was placed."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Money, nullable=False)
    discount = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity"),
    )


# =============================================================================
# REVIEWS & FAVORITES
# =============================================================================

class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    user = relationship("User", back_populates="reviews")
    restaurant = relationship("Restaurant", back_populates="reviews")

    __table_args__ = (
        UniqueConstraint("user_id", "restaurant_id", name="uq_reviews_user_restaurant"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
    )


class FavoriteRestaurant(Base):
    __tablename__ = "favorite_restaurants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    user = relationship("User", back_populates="favorites")
    restaurant = relationship("Restaurant")

    __table_args__ = (
        UniqueConstraint("user_id", "restaurant_id", name="uq_favorites_user_restaurant"),
    )
