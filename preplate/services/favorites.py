"""
Favorite Restaurant Service
"""

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from preplate.core.exceptions import ConflictError, NotFoundError
from preplate.core.tokens import Identity
from preplate.models import FavoriteRestaurant
from preplate.schemas import FavoriteResponse
from preplate.services.restaurants import get_restaurant_or_404, review_stats, summarize

logger = logging.getLogger(__name__)


def _favorites_query():
    """Favorites with the same derived rating the restaurant listing shows."""
    stats = review_stats()
    return (
        select(FavoriteRestaurant, stats.c.avg_rating, stats.c.review_count)
        .outerjoin(stats, stats.c.restaurant_id == FavoriteRestaurant.restaurant_id)
        .options(selectinload(FavoriteRestaurant.restaurant))
    )


def to_response(
    favorite: FavoriteRestaurant,
    avg_rating: Optional[float],
    review_count: Optional[int],
) -> FavoriteResponse:
    return FavoriteResponse(
        id=favorite.id,
        created_at=favorite.created_at,
        restaurant=summarize(favorite.restaurant, avg_rating, review_count),
    )


async def list_favorites(db: AsyncSession, identity: Identity) -> list[FavoriteResponse]:
    result = await db.execute(
        _favorites_query()
        .where(FavoriteRestaurant.user_id == identity.id)
        .order_by(FavoriteRestaurant.created_at.desc(), FavoriteRestaurant.id.desc())
    )
    return [to_response(*row) for row in result.all()]


async def add_favorite(db: AsyncSession, identity: Identity, restaurant_id: int) -> FavoriteResponse:
    """
    Raises:
        NotFoundError: Restaurant does not exist
        ConflictError: Already a favorite
    """
    restaurant = await get_restaurant_or_404(db, restaurant_id)

    existing = await db.execute(
        select(FavoriteRestaurant.id).where(
            FavoriteRestaurant.user_id == identity.id,
            FavoriteRestaurant.restaurant_id == restaurant.id,
        )
    )
    if existing.first() is not None:
        raise ConflictError("Restaurant is already in favorites")

    favorite = FavoriteRestaurant(user_id=identity.id, restaurant_id=restaurant.id)
    db.add(favorite)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Restaurant is already in favorites")

    logger.info(f"User #{identity.id} added restaurant #{restaurant.id} to favorites")

    result = await db.execute(
        _favorites_query()
        .where(FavoriteRestaurant.id == favorite.id)
        .execution_options(populate_existing=True)
    )
    return to_response(*result.one())


async def remove_favorite(db: AsyncSession, identity: Identity, restaurant_id: int) -> None:
    """
    Raises:
        NotFoundError: The restaurant was not a favorite
    """
    result = await db.execute(
        delete(FavoriteRestaurant).where(
            FavoriteRestaurant.user_id == identity.id,
            FavoriteRestaurant.restaurant_id == restaurant_id,
        )
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFoundError("Restaurant not found in favorites")
    await db.commit()
    logger.info(f"User #{identity.id} removed restaurant #{restaurant_id} from favorites")
