"""
Order Service

Booking creation, listing, retrieval and status updates.

Creation protocol:
    1. restaurant must exist and be open
    2. every requested menu item must exist, belong to the restaurant and
       be available - otherwise nothing is written
    3. current menu prices are snapshotted onto the order items
    4. totals come from the pricing engine (20% platform fee)
    5. a unique order number is generated
    6. order and items are committed in one transaction
"""

import logging
import secrets
import string
import time
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from preplate.core.exceptions import ConflictError, NotFoundError, ValidationError
from preplate.core.tokens import Identity
from preplate.models import Category, MenuItem, Order, OrderItem, OrderStatus, PaymentStatus
from preplate.schemas import OrderCreate, OrderFilter, OrderUpdate, PageParams, Pagination
from preplate.services.access import authorize_owner
from preplate.services.lifecycle import parse_payment_status, parse_status, plan_order_update
from preplate.services.pricing import PricedLine, calculate_order_totals, to_money
from preplate.services.restaurants import get_restaurant_or_404

logger = logging.getLogger(__name__)

ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
ORDER_NUMBER_SUFFIX_LENGTH = 9
ORDER_NUMBER_ATTEMPTS = 3


def generate_order_number() -> str:
    """``ORD-<epoch millis>-<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(ORDER_NUMBER_SUFFIX_LENGTH))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def _order_query():
    return select(Order).options(
        selectinload(Order.items).selectinload(OrderItem.menu_item),
        selectinload(Order.user),
        selectinload(Order.restaurant),
    )


async def _unused_order_number(db: AsyncSession) -> str:
    for _ in range(ORDER_NUMBER_ATTEMPTS):
        candidate = generate_order_number()
        taken = await db.execute(select(Order.id).where(Order.order_number == candidate))
        if taken.first() is None:
            return candidate
        logger.warning(f"Order number collision on {candidate}, retrying")
    raise ConflictError("Could not allocate an order number, please retry")


async def _load_menu_items(db: AsyncSession, restaurant_id: int, ids: Sequence[int]) -> dict[int, MenuItem]:
    result = await db.execute(
        select(MenuItem)
        .join(Category, MenuItem.category_id == Category.id)
        .where(MenuItem.id.in_(set(ids)), Category.restaurant_id == restaurant_id)
    )
    return {item.id: item for item in result.scalars().all()}


async def create_order(db: AsyncSession, identity: Identity, data: OrderCreate) -> Order:
    """
    Place a booking for the calling user.

    Raises:
        NotFoundError: Restaurant does not exist
        ValidationError: Restaurant closed, or a menu item missing/unavailable
        ConflictError: No unique order number could be allocated
    """
    restaurant = await get_restaurant_or_404(db, data.restaurant_id)
    if not restaurant.is_open:
        raise ValidationError("Restaurant is currently closed")

    menu_items = await _load_menu_items(db, restaurant.id, [line.menu_item_id for line in data.items])

    order_items = []
    priced_lines = []
    for line in data.items:
        menu_item = menu_items.get(line.menu_item_id)
        if menu_item is None or not menu_item.is_available:
            raise ValidationError(f"Menu item {line.menu_item_id} is not available")

        unit_price = to_money(menu_item.price)
        discount = menu_item.discount or 0
        priced_lines.append(PricedLine(unit_price=unit_price, quantity=line.quantity, discount=discount))
        order_items.append(
            OrderItem(
                menu_item_id=menu_item.id,
                quantity=line.quantity,
                unit_price=unit_price,
                discount=discount,
                notes=line.notes,
            )
        )

    totals = calculate_order_totals(priced_lines)
    order_number = await _unused_order_number(db)

    order = Order(
        order_number=order_number,
        status=OrderStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        subtotal=totals.subtotal,
        platform_fee=totals.platform_fee,
        total=totals.total,
        booking_date_time=data.booking_date_time,
        guests=data.guests,
        special_requests=data.special_requests,
        user_id=identity.id,
        restaurant_id=restaurant.id,
        items=order_items,
    )

    db.add(order)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Order {order_number} rejected by the store")
        raise ConflictError("Order could not be placed, please retry")
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Order {order_number} created for user #{identity.id} at restaurant #{restaurant.id} "
        f"(subtotal={totals.subtotal}, fee={totals.platform_fee}, total={totals.total})"
    )
    return await _fetch_order(db, order.id)


async def _fetch_order(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(
        _order_query()
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def get_order(db: AsyncSession, identity: Identity, order_id: int) -> Order:
    """
    Raises:
        NotFoundError: No such order
        AuthorizationError: The caller does not own it
    """
    order = await _fetch_order(db, order_id)
    authorize_owner(identity, order)
    return order


async def list_orders(
    db: AsyncSession,
    identity: Identity,
    criteria: OrderFilter,
    page: PageParams,
) -> tuple[list[Order], Pagination]:
    """Newest first; users see their bookings, restaurants their incoming orders."""
    owner_column = Order.user_id if identity.is_user else Order.restaurant_id

    query = _order_query().where(owner_column == identity.id)
    count_query = select(func.count(Order.id)).where(owner_column == identity.id)
    if criteria.status is not None:
        query = query.where(Order.status == criteria.status)
        count_query = count_query.where(Order.status == criteria.status)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset(page.offset)
        .limit(page.limit)
    )
    return list(result.scalars().all()), Pagination.build(page, total)


async def update_order(db: AsyncSession, identity: Identity, order_id: int, data: OrderUpdate) -> Order:
    """
    Apply a status and/or payment status change.

    Both values are parsed and checked against the state machine before
    anything is written.

    Raises:
        ValidationError: Unknown value, empty update or illegal transition
        NotFoundError: No such order
        AuthorizationError: Not the owner, or the owner kind may not make this change
    """
    status = parse_status(data.status) if data.status is not None else None
    payment_status = parse_payment_status(data.payment_status) if data.payment_status is not None else None
    if status is None and payment_status is None:
        raise ValidationError("Nothing to update: provide status or payment_status")

    order = await _fetch_order(db, order_id)
    authorize_owner(identity, order)

    plan = plan_order_update(
        actor=identity.kind,
        current_status=order.status,
        current_payment_status=order.payment_status,
        status=status,
        payment_status=payment_status,
    )
    if plan.is_empty:
        return order

    previous = (order.status, order.payment_status)
    if plan.status is not None:
        order.status = plan.status
    if plan.payment_status is not None:
        order.payment_status = plan.payment_status

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Order {order.order_number} updated by {identity.kind.value} #{identity.id}: "
        f"{previous[0].value}/{previous[1].value} -> {order.status.value}/{order.payment_status.value}"
    )
    return await _fetch_order(db, order.id)
