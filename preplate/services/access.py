"""
Access Control Gate

Resolves the caller of a request into an ``Identity`` and decides whether
that identity may touch a resource.

    - the token comes from ``Authorization: Bearer ...`` or the auth cookie
    - missing/invalid token -> AuthenticationError before any lookup
    - user identities own resources whose ``user_id`` matches
    - restaurant identities own resources whose ``restaurant_id`` matches
    - kind-restricted endpoints reject the other kind outright

Route handlers receive the identity through FastAPI dependencies:

    @app.post("/api/orders")
    async def create_order(identity: Identity = Depends(require_user)):
        ...
"""

import logging
from typing import Any, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from preplate.core.config import get_settings
from preplate.core.exceptions import AuthenticationError, AuthorizationError
from preplate.core.tokens import AccountKind, Identity, SessionTokenService, get_token_service

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    """Bearer header wins over the cookie."""
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(get_settings().auth_cookie_name)


def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    token_service: SessionTokenService = Depends(get_token_service),
) -> Identity:
    token = extract_token(request, credentials)
    if not token:
        raise AuthenticationError("Unauthorized")

    identity = token_service.verify(token)
    if identity is None:
        raise AuthenticationError("Invalid token")
    return identity


def require_user(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_user:
        raise AuthorizationError("User access required")
    return identity


def require_restaurant(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_restaurant:
        raise AuthorizationError("Restaurant access required")
    return identity


def owns(identity: Identity, resource: Any) -> bool:
    """True if ``resource`` belongs to ``identity`` by its owner column."""
    if identity.kind is AccountKind.USER:
        return getattr(resource, "user_id", None) == identity.id
    return getattr(resource, "restaurant_id", None) == identity.id


def authorize_owner(identity: Identity, resource: Any, message: str = "Forbidden") -> None:
    """
    Raises:
        AuthorizationError: ``identity`` does not own ``resource``
    """
    if not owns(identity, resource):
        logger.info(
            f"Denied {identity.kind.value} #{identity.id} access to "
            f"{type(resource).__name__} #{getattr(resource, 'id', '?')}"
        )
        raise AuthorizationError(message)
