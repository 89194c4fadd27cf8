"""
Pydantic Schemas for Request/Response Validation

Request bodies, query filter criteria and response shapes for the
PrePlate API. Money fields are Decimal and serialize as strings with two
decimal places ("25.00").
"""

from datetime import datetime
from decimal import Decimal
from math import ceil
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from preplate.models import OrderStatus, PaymentStatus

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


# =============================================================================
# AUTH REQUEST SCHEMAS
# =============================================================================

class RegisterRequest(BaseModel):
    """Register a user or restaurant account."""
    type: Literal["user", "restaurant"]
    email: str = Field(..., min_length=1, max_length=255, examples=["a@x.com"])
    password: str = Field(..., min_length=1, examples=["secret1"])
    name: str = Field(..., min_length=1, max_length=100, examples=["Ada Lovelace"])
    phone: str = Field(..., min_length=1, max_length=20, examples=["+15551234567"])
    address: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = Field(None, max_length=1000)
    cuisine: Optional[str] = Field(None, max_length=100)


class LoginRequest(BaseModel):
    type: Literal["user", "restaurant"]
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)
    confirm_password: str


# =============================================================================
# ACCOUNT RESPONSE SCHEMAS
# =============================================================================

class UserAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    phone: str
    address: Optional[str] = None
    created_at: datetime


class RestaurantAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    phone: str
    description: Optional[str] = None
    cuisine: Optional[str] = None
    address: Optional[str] = None
    rating: float
    is_open: bool
    featured: bool
    created_at: datetime


class AuthResponse(BaseModel):
    """Returned by register and login."""
    message: str
    token: str
    type: Literal["user", "restaurant"]
    account: UserAccountResponse | RestaurantAccountResponse


class IdentityResponse(BaseModel):
    id: int
    email: str
    role: str
    type: str


class MeResponse(BaseModel):
    authenticated: bool = True
    identity: IdentityResponse
    account: UserAccountResponse | RestaurantAccountResponse


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# PAGINATION & FILTER CRITERIA
# =============================================================================

MAX_PAGE = 10_000


class PageParams(BaseModel):
    page: int = Field(1, ge=1, le=MAX_PAGE)
    limit: int = Field(10, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, params: PageParams, total: int) -> "Pagination":
        return cls(
            page=params.page,
            limit=params.limit,
            total=total,
            total_pages=ceil(total / params.limit) if total else 0,
        )


class RestaurantFilter(BaseModel):
    """
    Restaurant listing criteria. Every dimension is optional; ``None``
    means "do not filter on this".
    """
    cuisine: Optional[str] = Field(None, max_length=100)
    is_open: Optional[bool] = None
    featured: Optional[bool] = None
    search: Optional[str] = Field(None, max_length=100)

    @field_validator("cuisine", "search")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("cuisine")
    @classmethod
    def all_cuisines(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.lower() == "all":
            return None
        return v


class OrderFilter(BaseModel):
    """Order listing criteria; ``status='all'`` or absent means every status."""
    status: Optional[OrderStatus] = None

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> Optional[OrderStatus]:
        if v is None or v == "" or (isinstance(v, str) and v.lower() == "all"):
            return None
        if isinstance(v, str):
            v = v.upper()
        try:
            return OrderStatus(v)
        except ValueError:
            valid = [s.value for s in OrderStatus]
            raise ValueError(f"Invalid status. Options: {valid}")


# =============================================================================
# RESTAURANT SCHEMAS
# =============================================================================

class RestaurantSummary(BaseModel):
    """Listing entry; ``rating`` is the derived review average."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    cuisine: Optional[str] = None
    address: Optional[str] = None
    phone: str
    rating: float
    review_count: int = 0
    is_open: bool
    featured: bool
    estimated_time: Optional[str] = None
    image: Optional[str] = None


class RestaurantListResponse(BaseModel):
    restaurants: List[RestaurantSummary]
    pagination: Pagination


class MenuItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    original_price: Optional[Decimal] = None
    discount: Optional[int] = None
    is_available: bool
    is_featured: bool
    image: Optional[str] = None
    allergens: List[str] = Field(default_factory=list)
    nutrition: Optional[dict[str, Any]] = None


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    sort_order: int
    menu_items: List[MenuItemResponse]


class BusinessHourResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day_of_week: int
    day_name: str
    open_time: str
    close_time: str
    is_open: bool


class ReviewerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str


class RestaurantRefResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rating: int
    comment: Optional[str] = None
    user_id: int
    restaurant_id: int
    order_id: Optional[int] = None
    created_at: datetime
    user: ReviewerResponse
    restaurant: RestaurantRefResponse


class RestaurantDetailResponse(RestaurantSummary):
    email: str
    categories: List[CategoryResponse]
    reviews: List[ReviewResponse]
    business_hours: List[BusinessHourResponse]


# =============================================================================
# REVIEW & FAVORITE SCHEMAS
# =============================================================================

class ReviewCreate(BaseModel):
    restaurant_id: int
    rating: int
    comment: Optional[str] = Field(None, max_length=2000)
    order_id: Optional[int] = None

    @field_validator("rating")
    @classmethod
    def validate_rating(cls, v: int) -> int:
        if v < 1 or v > 5:
            raise ValueError("Rating must be between 1 and 5")
        return v


class ReviewCreateResponse(BaseModel):
    message: str
    review: ReviewResponse


class ReviewListResponse(BaseModel):
    reviews: List[ReviewResponse]
    pagination: Pagination


class FavoriteCreate(BaseModel):
    restaurant_id: int


class FavoriteResponse(BaseModel):
    id: int
    created_at: datetime
    restaurant: RestaurantSummary


class FavoriteCreateResponse(BaseModel):
    message: str
    favorite: FavoriteResponse


class FavoriteListResponse(BaseModel):
    favorites: List[FavoriteResponse]


# =============================================================================
# ORDER REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(BaseModel):
    """Single line of a booking; price is looked up server-side."""
    menu_item_id: int
    quantity: int = Field(..., ge=1, le=99, examples=[2])
    notes: Optional[str] = Field(None, max_length=200)


class OrderCreate(BaseModel):
    """Request schema for creating a new booking."""
    restaurant_id: int
    items: List[OrderItemCreate] = Field(..., min_length=1)
    booking_date_time: datetime = Field(..., examples=["2026-11-02T19:30:00"])
    guests: int = Field(default=1, ge=1, le=50)
    special_requests: Optional[str] = Field(None, max_length=500)


class OrderUpdate(BaseModel):
    """
    Only status and payment status are writable. Values arrive as raw
    strings so unknown names are reported as validation errors by the
    lifecycle layer. An empty string counts as not given.
    """
    status: Optional[str] = None
    payment_status: Optional[str] = None

    @field_validator("status", "payment_status")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


# =============================================================================
# ORDER RESPONSE SCHEMAS
# =============================================================================

class OrderUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    email: str
    phone: str


class OrderRestaurantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    phone: str


class OrderMenuItemRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    description: Optional[str] = None


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    menu_item_id: int
    quantity: int
    unit_price: Decimal
    discount: int
    notes: Optional[str] = None
    menu_item: OrderMenuItemRef


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    status: OrderStatus
    payment_status: PaymentStatus
    subtotal: Decimal
    platform_fee: Decimal
    total: Decimal
    booking_date_time: datetime
    guests: int
    special_requests: Optional[str] = None
    user_id: int
    restaurant_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    user: OrderUserResponse
    restaurant: OrderRestaurantResponse
    items: List[OrderItemResponse]


class OrderEnvelope(BaseModel):
    message: Optional[str] = None
    order: OrderResponse


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    orders: List[OrderResponse]
    pagination: Pagination


# =============================================================================
# MISC
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    timestamp: datetime
