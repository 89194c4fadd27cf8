"""
Account Service

Registration, login and password changes for both account kinds.

Emails live in one namespace across users and restaurants. Registration
checks both tables before inserting and writes an ``account_emails`` claim
in the same transaction; that table's unique index turns a lost race,
including one between a user and a restaurant, into a ConflictError.
"""

import logging
from dataclasses import dataclass
from typing import Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from preplate.core.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from preplate.core.security import (
    hash_password,
    needs_rehash,
    normalize_email,
    validate_email_format,
    validate_password,
    validate_phone,
    verify_password,
)
from preplate.core.tokens import AccountKind, Identity
from preplate.models import AccountEmail, Restaurant, User
from preplate.schemas import ChangePasswordRequest, LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)

Account = Union[User, Restaurant]

_MODELS = {
    AccountKind.USER: User,
    AccountKind.RESTAURANT: Restaurant,
}


@dataclass(frozen=True)
class AuthenticatedAccount:
    account: Account
    identity: Identity


def identity_for(account: Account, kind: AccountKind) -> Identity:
    return Identity(id=account.id, email=account.email, kind=kind)


async def email_in_use(db: AsyncSession, email: str) -> bool:
    for model in _MODELS.values():
        result = await db.execute(select(model.id).where(model.email == email))
        if result.first() is not None:
            return True
    return False


async def register_account(db: AsyncSession, data: RegisterRequest) -> AuthenticatedAccount:
    """
    Create a user or restaurant account.

    Raises:
        ValidationError: Bad email/password/phone format
        ConflictError: Email already used by an account of either kind
    """
    email = normalize_email(data.email)
    if not validate_email_format(email):
        raise ValidationError("Invalid email format")

    password_check = validate_password(data.password)
    if not password_check.valid:
        raise ValidationError(password_check.reason)

    phone = data.phone.strip()
    if not validate_phone(phone):
        raise ValidationError("Invalid phone number format")

    name = data.name.strip()
    if not name:
        raise ValidationError("Name is required")

    if await email_in_use(db, email):
        raise ConflictError("An account with this email already exists")

    kind = AccountKind(data.type)
    if kind is AccountKind.USER:
        account: Account = User(
            email=email,
            password_hash=hash_password(data.password),
            name=name,
            phone=phone,
            address=data.address or None,
        )
    else:
        account = Restaurant(
            email=email,
            password_hash=hash_password(data.password),
            name=name,
            phone=phone,
            address=data.address or None,
            description=data.description or None,
            cuisine=data.cuisine or None,
        )

    db.add(AccountEmail(email=email, kind=kind.value))
    db.add(account)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("An account with this email already exists")
    await db.refresh(account)

    logger.info(f"Registered {kind.value} account #{account.id} ({email})")
    return AuthenticatedAccount(account=account, identity=identity_for(account, kind))


async def authenticate(db: AsyncSession, data: LoginRequest) -> AuthenticatedAccount:
    """
    Check credentials for the requested account kind.

    Legacy SHA-256 hashes are upgraded to bcrypt on success.

    Raises:
        ValidationError: Malformed email
        AuthenticationError: Unknown email or wrong password
    """
    email = normalize_email(data.email)
    if not validate_email_format(email):
        raise ValidationError("Invalid email format")

    kind = AccountKind(data.type)
    model = _MODELS[kind]
    result = await db.execute(select(model).where(model.email == email))
    account = result.scalar_one_or_none()

    if account is None or not verify_password(data.password, account.password_hash):
        logger.info(f"Failed {kind.value} login for {email}")
        raise AuthenticationError("Invalid credentials")

    if needs_rehash(account.password_hash):
        account.password_hash = hash_password(data.password)
        await db.commit()
        logger.info(f"Upgraded legacy password hash for {kind.value} #{account.id}")

    logger.info(f"{kind.value.capitalize()} #{account.id} logged in")
    return AuthenticatedAccount(account=account, identity=identity_for(account, kind))


async def get_account(db: AsyncSession, identity: Identity) -> Account:
    """
    Load the stored account behind an identity.

    Raises:
        NotFoundError: The account no longer exists
    """
    account = await db.get(_MODELS[identity.kind], identity.id)
    if account is None:
        raise NotFoundError("Account not found")
    return account


async def change_password(db: AsyncSession, identity: Identity, data: ChangePasswordRequest) -> None:
    account = await get_account(db, identity)

    if not verify_password(data.current_password, account.password_hash):
        raise ValidationError("Current password is incorrect")

    password_check = validate_password(data.new_password)
    if not password_check.valid:
        raise ValidationError(password_check.reason)

    if data.new_password != data.confirm_password:
        raise ValidationError("Passwords don't match")

    account.password_hash = hash_password(data.new_password)
    await db.commit()
    logger.info(f"Password changed for {identity.kind.value} #{identity.id}")
