"""
Review Service

One review per (user, restaurant). The existence check gives a friendly
409; the unique constraint settles concurrent submissions.
"""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from preplate.core.exceptions import ConflictError, ValidationError
from preplate.core.tokens import Identity
from preplate.models import Order, Review
from preplate.schemas import PageParams, Pagination, ReviewCreate
from preplate.services.restaurants import get_restaurant_or_404

logger = logging.getLogger(__name__)


def _review_query():
    return select(Review).options(selectinload(Review.user), selectinload(Review.restaurant))


async def list_reviews(
    db: AsyncSession,
    identity: Identity,
    page: PageParams,
    restaurant_id: Optional[int] = None,
) -> tuple[list[Review], Pagination]:
    """
    Restaurants only ever see their own reviews; users may narrow to one
    restaurant or browse all.
    """
    if identity.is_restaurant:
        restaurant_id = identity.id

    query = _review_query()
    count_query = select(func.count(Review.id))
    if restaurant_id is not None:
        query = query.where(Review.restaurant_id == restaurant_id)
        count_query = count_query.where(Review.restaurant_id == restaurant_id)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(Review.created_at.desc(), Review.id.desc())
        .offset(page.offset)
        .limit(page.limit)
    )
    return list(result.scalars().all()), Pagination.build(page, total)


async def create_review(db: AsyncSession, identity: Identity, data: ReviewCreate) -> Review:
    """
    Raises:
        NotFoundError: Restaurant does not exist
        ValidationError: ``order_id`` is not this user's order at this restaurant
        ConflictError: The user already reviewed this restaurant
    """
    restaurant = await get_restaurant_or_404(db, data.restaurant_id)

    if data.order_id is not None:
        order = await db.get(Order, data.order_id)
        if order is None or order.user_id != identity.id or order.restaurant_id != restaurant.id:
            raise ValidationError("Order does not match this restaurant")

    existing = await db.execute(
        select(Review.id).where(Review.user_id == identity.id, Review.restaurant_id == restaurant.id)
    )
    if existing.first() is not None:
        raise ConflictError("You have already reviewed this restaurant")

    review = Review(
        rating=data.rating,
        comment=data.comment,
        user_id=identity.id,
        restaurant_id=restaurant.id,
        order_id=data.order_id,
    )
    db.add(review)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("You have already reviewed this restaurant")

    logger.info(f"User #{identity.id} reviewed restaurant #{restaurant.id} ({data.rating}/5)")

    result = await db.execute(
        _review_query().where(Review.id == review.id).execution_options(populate_existing=True)
    )
    return result.scalar_one()
