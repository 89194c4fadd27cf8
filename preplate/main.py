"""
FastAPI Application Entry Point

PrePlate - restaurant pre-booking API.

Endpoints:
    - POST /api/auth/register, /api/auth/login, /api/auth/logout
    - GET  /api/auth/me, POST /api/auth/change-password
    - GET  /api/restaurants, /api/restaurants/{id}
    - GET/POST /api/restaurants/reviews
    - GET/POST /api/orders, GET/PATCH /api/orders/{id}
    - GET/POST/DELETE /api/favorites
    - GET  /health: System health check

Every error response is ``{"error": "..."}`` with a 4xx/5xx status.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional, Union

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from preplate.core.config import get_settings, setup_logging
from preplate.core.exceptions import ConfigurationError, PrePlateError, ValidationError
from preplate.core.tokens import AccountKind, Identity, SessionTokenService, get_token_service
from preplate.database import engine, get_db, init_db
from preplate.models import Restaurant, User
from preplate.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    ErrorResponse,
    FavoriteCreate,
    FavoriteCreateResponse,
    FavoriteListResponse,
    HealthResponse,
    IdentityResponse,
    LoginRequest,
    MAX_PAGE,
    MeResponse,
    MessageResponse,
    OrderCreate,
    OrderEnvelope,
    OrderFilter,
    OrderListResponse,
    OrderResponse,
    OrderUpdate,
    PageParams,
    RegisterRequest,
    RestaurantAccountResponse,
    RestaurantDetailResponse,
    RestaurantFilter,
    RestaurantListResponse,
    ReviewCreate,
    ReviewCreateResponse,
    ReviewListResponse,
    ReviewResponse,
    UserAccountResponse,
)
from preplate.services import accounts, favorites, orders, restaurants, reviews
from preplate.services.access import get_current_identity, require_user

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

ERROR_RESPONSES: dict[Union[int, str], dict[str, Any]] = {
    code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 409, 500)
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    missing = settings.validate_production_config()
    if missing:
        logger.error(f"Refusing to start, unsafe production config: {missing}")
        raise ConfigurationError(f"Missing or unsafe configuration: {', '.join(missing)}")
    if settings.uses_fallback_secret:
        logger.warning("⚠️ JWT_SECRET not set - development fallback secret in use")

    await init_db()
    logger.info("✅ Database initialized")
    logger.info("✅ Application ready!")

    yield  # Application runs

    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant pre-booking API: browse restaurants, book a table with a "
        "pre-ordered meal, and manage the order lifecycle."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def first_error_message(errors: list[dict[str, Any]]) -> str:
    """Turn the first pydantic error into a short ``field: message`` string."""
    if not errors:
        return "Invalid request"
    error = errors[0]
    message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
    location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    return f"{'.'.join(location)}: {message}" if location else message


def build_criteria(model: type[BaseModel], **values: Any) -> Any:
    try:
        return model(**values)
    except PydanticValidationError as e:
        raise ValidationError(first_error_message(e.errors()))


def page_params(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(10, ge=1, le=100),
) -> PageParams:
    return PageParams(page=page, limit=limit)


def account_response(
    account: Union[User, Restaurant],
    kind: AccountKind,
) -> Union[UserAccountResponse, RestaurantAccountResponse]:
    if kind is AccountKind.USER:
        return UserAccountResponse.model_validate(account)
    return RestaurantAccountResponse.model_validate(account)


def set_auth_cookie(response: Response, token: str, token_service: SessionTokenService) -> None:
    response.set_cookie(
        settings.auth_cookie_name,
        token,
        httponly=True,
        samesite="lax",
        secure=not settings.is_development,
        max_age=int(token_service.lifetime.total_seconds()),
    )


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Verify the database is reachable."""
    db_status = "healthy"
    try:
        await db.execute(select(1))
    except Exception as e:
        db_status = "unhealthy"
        logger.error(f"Database health check failed: {e}")

    return HealthResponse(
        status="operational" if db_status == "healthy" else "degraded",
        database=db_status,
        timestamp=datetime.now(timezone.utc),
    )


# =============================================================================
# AUTH ENDPOINTS
# =============================================================================

@app.post(
    "/api/auth/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Auth"],
)
async def register(
    data: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    token_service: SessionTokenService = Depends(get_token_service),
) -> AuthResponse:
    """Create a user or restaurant account and sign it in."""
    result = await accounts.register_account(db, data)
    token = token_service.issue(result.identity)
    set_auth_cookie(response, token, token_service)

    return AuthResponse(
        message="Registration successful",
        token=token,
        type=result.identity.kind.value,
        account=account_response(result.account, result.identity.kind),
    )


@app.post(
    "/api/auth/login",
    response_model=AuthResponse,
    responses=ERROR_RESPONSES,
    tags=["Auth"],
)
async def login(
    data: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    token_service: SessionTokenService = Depends(get_token_service),
) -> AuthResponse:
    """Verify credentials and issue a session token (body and cookie)."""
    result = await accounts.authenticate(db, data)
    token = token_service.issue(result.identity)
    set_auth_cookie(response, token, token_service)

    return AuthResponse(
        message="Login successful",
        token=token,
        type=result.identity.kind.value,
        account=account_response(result.account, result.identity.kind),
    )


@app.post("/api/auth/logout", response_model=MessageResponse, tags=["Auth"])
async def logout(response: Response) -> MessageResponse:
    """Clear the auth cookie. Issued tokens stay valid until they expire."""
    response.delete_cookie(settings.auth_cookie_name)
    return MessageResponse(message="Logged out")


@app.get("/api/auth/me", response_model=MeResponse, responses=ERROR_RESPONSES, tags=["Auth"])
async def me(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> MeResponse:
    account = await accounts.get_account(db, identity)
    return MeResponse(
        identity=IdentityResponse(
            id=identity.id,
            email=identity.email,
            role=identity.role.value,
            type=identity.kind.value,
        ),
        account=account_response(account, identity.kind),
    )


@app.post(
    "/api/auth/change-password",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    tags=["Auth"],
)
async def change_password(
    data: ChangePasswordRequest,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await accounts.change_password(db, identity, data)
    return MessageResponse(message="Password changed successfully")


# =============================================================================
# RESTAURANT ENDPOINTS
# =============================================================================

@app.get(
    "/api/restaurants",
    response_model=RestaurantListResponse,
    responses=ERROR_RESPONSES,
    tags=["Restaurants"],
)
async def list_restaurants(
    cuisine: Optional[str] = Query(None),
    is_open: Optional[bool] = Query(None),
    featured: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
) -> RestaurantListResponse:
    """Public, paginated restaurant listing."""
    criteria = build_criteria(
        RestaurantFilter,
        cuisine=cuisine,
        is_open=is_open,
        featured=featured,
        search=search,
    )
    return await restaurants.list_restaurants(db, criteria, page)


# Declared before /api/restaurants/{restaurant_id} so "reviews" is not read as an id
@app.get(
    "/api/restaurants/reviews",
    response_model=ReviewListResponse,
    responses=ERROR_RESPONSES,
    tags=["Reviews"],
)
async def list_reviews(
    restaurant_id: Optional[int] = Query(None),
    page: PageParams = Depends(page_params),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> ReviewListResponse:
    items, pagination = await reviews.list_reviews(db, identity, page, restaurant_id)
    return ReviewListResponse(
        reviews=[ReviewResponse.model_validate(r) for r in items],
        pagination=pagination,
    )


@app.post(
    "/api/restaurants/reviews",
    response_model=ReviewCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Reviews"],
)
async def create_review(
    data: ReviewCreate,
    identity: Identity = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> ReviewCreateResponse:
    review = await reviews.create_review(db, identity, data)
    return ReviewCreateResponse(
        message="Review created successfully",
        review=ReviewResponse.model_validate(review),
    )


@app.get(
    "/api/restaurants/{restaurant_id}",
    response_model=RestaurantDetailResponse,
    responses=ERROR_RESPONSES,
    tags=["Restaurants"],
)
async def get_restaurant(
    restaurant_id: int,
    db: AsyncSession = Depends(get_db),
) -> RestaurantDetailResponse:
    """Public restaurant page with menu, reviews and hours."""
    return await restaurants.get_restaurant_detail(db, restaurant_id)


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Create Booking",
)
async def create_order(
    data: OrderCreate,
    identity: Identity = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> OrderEnvelope:
    """Book a table with a pre-ordered meal. Prices come from the live menu."""
    order = await orders.create_order(db, identity, data)
    return OrderEnvelope(
        message="Order created successfully",
        order=OrderResponse.model_validate(order),
    )


@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    order_status: Optional[str] = Query(None, alias="status"),
    page: PageParams = Depends(page_params),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    """The caller's orders (user: placed, restaurant: received), newest first."""
    criteria = build_criteria(OrderFilter, status=order_status)
    items, pagination = await orders.list_orders(db, identity, criteria, page)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in items],
        pagination=pagination,
    )


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderEnvelope,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> OrderEnvelope:
    order = await orders.get_order(db, identity, order_id)
    return OrderEnvelope(order=OrderResponse.model_validate(order))


@app.patch(
    "/api/orders/{order_id}",
    response_model=OrderEnvelope,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def update_order(
    order_id: int,
    data: OrderUpdate,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> OrderEnvelope:
    """Change status and/or payment status."""
    order = await orders.update_order(db, identity, order_id, data)
    return OrderEnvelope(
        message="Order updated successfully",
        order=OrderResponse.model_validate(order),
    )


# =============================================================================
# FAVORITE ENDPOINTS
# =============================================================================

@app.get(
    "/api/favorites",
    response_model=FavoriteListResponse,
    responses=ERROR_RESPONSES,
    tags=["Favorites"],
)
async def list_favorites(
    identity: Identity = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> FavoriteListResponse:
    return FavoriteListResponse(favorites=await favorites.list_favorites(db, identity))


@app.post(
    "/api/favorites",
    response_model=FavoriteCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Favorites"],
)
async def add_favorite(
    data: FavoriteCreate,
    identity: Identity = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> FavoriteCreateResponse:
    favorite = await favorites.add_favorite(db, identity, data.restaurant_id)
    return FavoriteCreateResponse(
        message="Restaurant added to favorites",
        favorite=favorite,
    )


@app.delete(
    "/api/favorites",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    tags=["Favorites"],
)
async def remove_favorite(
    restaurant_id: int = Query(...),
    identity: Identity = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await favorites.remove_favorite(db, identity, restaurant_id)
    return MessageResponse(message="Restaurant removed from favorites")


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(PrePlateError)
async def preplate_exception_handler(request: Request, exc: PrePlateError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": first_error_message(exc.errors())})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")

    content = {"error": "Internal server error"}
    if settings.debug:
        content["detail"] = str(exc)
    return JSONResponse(status_code=500, content=content)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "preplate.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
