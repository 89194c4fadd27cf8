"""Unit tests for the account, order and review services."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from preplate.core.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from preplate.core.tokens import AccountKind, Identity
from preplate.models import AccountEmail, Category, MenuItem, Order, OrderItem, Restaurant
from preplate.schemas import (
    LoginRequest,
    OrderCreate,
    OrderFilter,
    OrderItemCreate,
    OrderUpdate,
    PageParams,
    RegisterRequest,
    ReviewCreate,
)
from preplate.services import accounts, orders, reviews
from preplate.services.orders import generate_order_number


async def add_restaurant(db: AsyncSession, email: str = "r@x.com", is_open: bool = True) -> tuple[Restaurant, list[MenuItem]]:
    restaurant = Restaurant(email=email, password_hash="x", name="Bistro", phone="+15550000001", is_open=is_open)
    db.add(restaurant)
    await db.flush()
    category = Category(restaurant_id=restaurant.id, name="Mains")
    db.add(category)
    await db.flush()
    items = [
        MenuItem(category_id=category.id, name="Steak", price=Decimal("10.00")),
        MenuItem(category_id=category.id, name="Soup", price=Decimal("5.00")),
    ]
    db.add_all(items)
    await db.commit()
    return restaurant, items


async def add_user(db: AsyncSession, email: str = "a@x.com") -> Identity:
    result = await accounts.register_account(
        db, RegisterRequest(type="user", email=email, password="secret1", name="Ada", phone="+15551234567")
    )
    return result.identity


def booking(restaurant_id: int, *lines: tuple[int, int]) -> OrderCreate:
    return OrderCreate(
        restaurant_id=restaurant_id,
        items=[OrderItemCreate(menu_item_id=item_id, quantity=quantity) for item_id, quantity in lines],
        booking_date_time=datetime(2026, 11, 2, 19, 30),
        guests=2,
    )


@pytest.mark.unit
class TestOrderNumber:
    """Test suite for generate_order_number."""

    def test_format(self) -> None:
        prefix, millis, suffix = generate_order_number().split("-")
        assert prefix == "ORD"
        assert millis.isdigit()
        assert len(suffix) == 9
        assert suffix.isalnum() and suffix.upper() == suffix


@pytest.mark.unit
class TestAccountService:
    """Test suite for register_account / authenticate."""

    @pytest.mark.asyncio
    async def test_register_then_authenticate(self, session: AsyncSession) -> None:
        identity = await add_user(session)
        result = await accounts.authenticate(
            session, LoginRequest(type="user", email="a@x.com", password="secret1")
        )
        assert result.identity == identity
        assert identity.kind is AccountKind.USER

    @pytest.mark.asyncio
    async def test_wrong_password(self, session: AsyncSession) -> None:
        await add_user(session)
        with pytest.raises(AuthenticationError):
            await accounts.authenticate(session, LoginRequest(type="user", email="a@x.com", password="secret2"))

    @pytest.mark.asyncio
    async def test_email_taken_by_restaurant(self, session: AsyncSession) -> None:
        await add_restaurant(session, email="shared@x.com")
        with pytest.raises(ConflictError):
            await add_user(session, email="shared@x.com")

    @pytest.mark.asyncio
    async def test_registration_claims_the_email(self, session: AsyncSession) -> None:
        await add_user(session)
        claims = (await session.execute(select(AccountEmail.email, AccountEmail.kind))).all()
        assert [tuple(c) for c in claims] == [("a@x.com", "user")]

    @pytest.mark.asyncio
    async def test_claimed_email_conflicts_across_kinds(self, session: AsyncSession) -> None:
        # a restaurant registration that committed after our lookup ran
        session.add(AccountEmail(email="a@x.com", kind="restaurant"))
        await session.commit()

        with pytest.raises(ConflictError):
            await add_user(session)
        assert (await session.execute(select(func.count()).select_from(AccountEmail))).scalar() == 1


@pytest.mark.unit
class TestOrderService:
    """Test suite for create_order / update_order."""

    @pytest.mark.asyncio
    async def test_order_and_items_are_written_together(self, session: AsyncSession) -> None:
        restaurant, (steak, soup) = await add_restaurant(session)
        user = await add_user(session)

        order = await orders.create_order(session, user, booking(restaurant.id, (steak.id, 2), (soup.id, 1)))

        assert order.total == Decimal("30.00")
        item_count = (await session.execute(select(func.count(OrderItem.id)))).scalar()
        assert item_count == 2

    @pytest.mark.asyncio
    async def test_rejected_order_writes_nothing(self, session: AsyncSession) -> None:
        restaurant, (steak, _) = await add_restaurant(session)
        user = await add_user(session)

        with pytest.raises(ValidationError):
            await orders.create_order(session, user, booking(restaurant.id, (steak.id, 1), (31337, 1)))

        assert (await session.execute(select(func.count(Order.id)))).scalar() == 0
        assert (await session.execute(select(func.count(OrderItem.id)))).scalar() == 0

    @pytest.mark.asyncio
    async def test_update_unknown_status_is_rejected_before_lookup(self, session: AsyncSession) -> None:
        restaurant, _ = await add_restaurant(session)
        owner = Identity(id=restaurant.id, email=restaurant.email, kind=AccountKind.RESTAURANT)

        with pytest.raises(ValidationError, match="Invalid status"):
            await orders.update_order(session, owner, 12345, OrderUpdate(status="LOST"))

    @pytest.mark.asyncio
    async def test_update_missing_order(self, session: AsyncSession) -> None:
        restaurant, _ = await add_restaurant(session)
        owner = Identity(id=restaurant.id, email=restaurant.email, kind=AccountKind.RESTAURANT)

        with pytest.raises(NotFoundError):
            await orders.update_order(session, owner, 12345, OrderUpdate(status="CONFIRMED"))

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, session: AsyncSession) -> None:
        restaurant, (steak, _) = await add_restaurant(session)
        user = await add_user(session)
        first = await orders.create_order(session, user, booking(restaurant.id, (steak.id, 1)))
        await orders.create_order(session, user, booking(restaurant.id, (steak.id, 1)))
        await orders.update_order(session, user, first.id, OrderUpdate(status="CANCELLED"))

        cancelled, pagination = await orders.list_orders(
            session, user, OrderFilter(status="CANCELLED"), PageParams()
        )

        assert [o.id for o in cancelled] == [first.id]
        assert pagination.total == 1


@pytest.mark.unit
class TestReviewService:
    """Test suite for create_review."""

    @pytest.mark.asyncio
    async def test_second_review_conflicts(self, session: AsyncSession) -> None:
        restaurant, _ = await add_restaurant(session)
        user = await add_user(session)

        await reviews.create_review(session, user, ReviewCreate(restaurant_id=restaurant.id, rating=5))
        with pytest.raises(ConflictError):
            await reviews.create_review(session, user, ReviewCreate(restaurant_id=restaurant.id, rating=1))

    @pytest.mark.asyncio
    async def test_restaurant_listing_is_scoped_to_itself(self, session: AsyncSession) -> None:
        restaurant, _ = await add_restaurant(session)
        other, _ = await add_restaurant(session, email="other@x.com")
        user = await add_user(session)
        await reviews.create_review(session, user, ReviewCreate(restaurant_id=other.id, rating=4))

        owner = Identity(id=restaurant.id, email=restaurant.email, kind=AccountKind.RESTAURANT)
        listed, pagination = await reviews.list_reviews(session, owner, PageParams(), restaurant_id=other.id)

        assert listed == []
        assert pagination.total == 0
