"""
Restaurant Service

Public restaurant listing and detail. The rating shown to diners is the
average of review ratings (half-up, one decimal), falling back to the
stored aggregate when a restaurant has no reviews yet.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from preplate.core.exceptions import NotFoundError
from preplate.models import BusinessHour, Category, Restaurant, Review
from preplate.schemas import (
    DAY_NAMES,
    BusinessHourResponse,
    CategoryResponse,
    MenuItemResponse,
    PageParams,
    Pagination,
    RestaurantDetailResponse,
    RestaurantFilter,
    RestaurantListResponse,
    RestaurantSummary,
    ReviewResponse,
)

logger = logging.getLogger(__name__)

RECENT_REVIEWS_LIMIT = 10


def derive_rating(average: Optional[float], stored: Optional[float]) -> float:
    value = average if average is not None else (stored or 0)
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def review_stats():
    return (
        select(
            Review.restaurant_id.label("restaurant_id"),
            func.avg(Review.rating).label("avg_rating"),
            func.count(Review.id).label("review_count"),
        )
        .group_by(Review.restaurant_id)
        .subquery()
    )


def apply_filter(query: Select, criteria: RestaurantFilter) -> Select:
    if criteria.cuisine is not None:
        query = query.where(Restaurant.cuisine == criteria.cuisine)
    if criteria.is_open is not None:
        query = query.where(Restaurant.is_open == criteria.is_open)
    if criteria.featured:
        query = query.where(Restaurant.featured.is_(True))
    if criteria.search is not None:
        pattern = f"%{criteria.search}%"
        query = query.where(
            or_(
                Restaurant.name.ilike(pattern),
                Restaurant.description.ilike(pattern),
                Restaurant.cuisine.ilike(pattern),
            )
        )
    return query


def summarize(restaurant: Restaurant, avg_rating: Optional[float], review_count: Optional[int]) -> RestaurantSummary:
    summary = RestaurantSummary.model_validate(restaurant)
    return summary.model_copy(
        update={
            "rating": derive_rating(avg_rating, restaurant.rating),
            "review_count": review_count or 0,
        }
    )


async def list_restaurants(
    db: AsyncSession,
    criteria: RestaurantFilter,
    page: PageParams,
) -> RestaurantListResponse:
    stats = review_stats()

    query = apply_filter(
        select(Restaurant, stats.c.avg_rating, stats.c.review_count)
        .outerjoin(stats, stats.c.restaurant_id == Restaurant.id),
        criteria,
    )
    count_query = apply_filter(select(func.count(Restaurant.id)), criteria)

    total = (await db.execute(count_query)).scalar() or 0

    query = (
        query.order_by(Restaurant.featured.desc(), Restaurant.rating.desc(), Restaurant.name.asc())
        .offset(page.offset)
        .limit(page.limit)
    )
    rows = (await db.execute(query)).all()

    return RestaurantListResponse(
        restaurants=[summarize(r, avg, count) for r, avg, count in rows],
        pagination=Pagination.build(page, total),
    )


async def get_restaurant_or_404(db: AsyncSession, restaurant_id: int) -> Restaurant:
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    return restaurant


async def get_restaurant_detail(db: AsyncSession, restaurant_id: int) -> RestaurantDetailResponse:
    """
    Full restaurant page: active categories with available items, the
    most recent reviews, and business hours.
    """
    restaurant = await get_restaurant_or_404(db, restaurant_id)

    categories = (
        await db.execute(
            select(Category)
            .options(selectinload(Category.menu_items))
            .where(Category.restaurant_id == restaurant_id, Category.is_active.is_(True))
            .order_by(Category.sort_order, Category.id)
        )
    ).scalars().all()

    reviews = (
        await db.execute(
            select(Review)
            .options(selectinload(Review.user), selectinload(Review.restaurant))
            .where(Review.restaurant_id == restaurant_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .limit(RECENT_REVIEWS_LIMIT)
        )
    ).scalars().all()

    hours = (
        await db.execute(
            select(BusinessHour)
            .where(BusinessHour.restaurant_id == restaurant_id)
            .order_by(BusinessHour.day_of_week)
        )
    ).scalars().all()

    avg_rating, review_count = (
        await db.execute(
            select(func.avg(Review.rating), func.count(Review.id))
            .where(Review.restaurant_id == restaurant_id)
        )
    ).one()

    summary = summarize(restaurant, avg_rating, review_count)
    return RestaurantDetailResponse(
        **summary.model_dump(),
        email=restaurant.email,
        categories=[
            CategoryResponse(
                id=category.id,
                name=category.name,
                description=category.description,
                sort_order=category.sort_order,
                menu_items=[
                    MenuItemResponse.model_validate(item)
                    for item in sorted(category.menu_items, key=lambda i: (i.sort_order, i.id))
                    if item.is_available
                ],
            )
            for category in categories
        ],
        reviews=[ReviewResponse.model_validate(review) for review in reviews],
        business_hours=[
            BusinessHourResponse(
                day_of_week=hour.day_of_week,
                day_name=DAY_NAMES[hour.day_of_week],
                open_time=hour.open_time,
                close_time=hour.close_time,
                is_open=hour.is_open,
            )
            for hour in hours
        ],
    )
