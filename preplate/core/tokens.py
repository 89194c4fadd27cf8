"""
Session Token Service

Issues and verifies the signed, time-limited bearer tokens that identify
a user or restaurant account on every request.

Tokens are HS256 JWTs carrying the account id, email, role and kind plus
``iat``/``exp`` claims. Verification never raises: any malformed,
tampered or expired token simply yields ``None``.

Usage:
    from preplate.core.tokens import get_token_service

    service = get_token_service()
    token = service.issue(identity)
    identity = service.verify(token)  # Identity or None
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from functools import lru_cache
from typing import Any, Optional

from jose import JWTError, jwt

from preplate.core.config import get_settings
from preplate.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class AccountKind(str, Enum):
    """Which account table an identity lives in."""
    USER = "user"
    RESTAURANT = "restaurant"

    @property
    def role(self) -> "Role":
        return Role.USER if self is AccountKind.USER else Role.RESTAURANT


class Role(str, Enum):
    USER = "USER"
    RESTAURANT = "RESTAURANT"


@dataclass(frozen=True)
class Identity:
    """
    Authenticated caller, decoded from a session token.

    This is the explicit session object handed to route handlers through
    dependency injection; nothing about the caller lives in global state.
    """
    id: int
    email: str
    kind: AccountKind

    @property
    def role(self) -> Role:
        return self.kind.role

    @property
    def is_user(self) -> bool:
        return self.kind is AccountKind.USER

    @property
    def is_restaurant(self) -> bool:
        return self.kind is AccountKind.RESTAURANT


class SessionTokenService:
    """
    Signs and verifies session tokens with a server-held HMAC secret.

    Attributes:
        lifetime: Validity window counted from issuance
        algorithm: JWS algorithm, always HS256
    """

    def __init__(
        self,
        secret: str,
        lifetime: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
    ):
        if not secret:
            raise ConfigurationError("A signing secret is required")
        self._secret = secret
        self.lifetime = lifetime
        self.algorithm = algorithm

    def issue(self, identity: Identity, issued_at: Optional[datetime] = None) -> str:
        """
        Produce a signed token for ``identity``.

        Args:
            identity: Account the token speaks for
            issued_at: Issuance instant (defaults to now, UTC)

        Returns:
            str: Compact JWS string
        """
        issued_at = issued_at or datetime.now(timezone.utc)
        claims = {
            "id": identity.id,
            "email": identity.email,
            "role": identity.role.value,
            "type": identity.kind.value,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.lifetime).timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> Optional[Identity]:
        """
        Decode ``token`` and return its identity, or ``None`` if it is not
        a well-formed, correctly signed, unexpired token.
        """
        if not token:
            return None
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require_exp": True, "require_iat": True},
            )
        except JWTError as e:
            logger.debug(f"Token rejected: {e}")
            return None
        return self._identity_from_claims(claims)

    @staticmethod
    def _identity_from_claims(claims: dict[str, Any]) -> Optional[Identity]:
        try:
            kind = AccountKind(claims["type"])
            if Role(claims["role"]) is not kind.role:
                return None
            account_id = claims["id"]
            email = claims["email"]
        except (KeyError, ValueError, TypeError):
            logger.debug("Token rejected: malformed claims")
            return None
        if not isinstance(account_id, int) or isinstance(account_id, bool):
            return None
        if not isinstance(email, str):
            return None
        return Identity(id=account_id, email=email, kind=kind)


@lru_cache()
def get_token_service() -> SessionTokenService:
    """
    Get the process-wide token service.

    Raises:
        ConfigurationError: If staging/production would sign with the
            built-in development secret
    """
    settings = get_settings()

    if settings.uses_fallback_secret:
        if settings.requires_real_secrets:
            raise ConfigurationError(
                f"JWT_SECRET must be set in {settings.env_mode.value} mode"
            )
        logger.warning("JWT_SECRET not set - using the development fallback secret")

    return SessionTokenService(
        secret=settings.jwt_secret,
        lifetime=timedelta(days=settings.token_lifetime_days),
        algorithm=settings.jwt_algorithm,
    )
