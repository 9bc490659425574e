"""Marketplace session dependencies.

The storefront forwards the user's Sharetribe access token as
``Authorization: Bearer <token>``. The token is resolved against the
Marketplace API on every request that needs it; nothing about the session is
cached here.
"""

from fastapi import Depends, Header

from regpay.models.user import MarketplaceUser
from regpay.services.marketplace_session import MarketplaceSessionService, extract_bearer_token
from regpay_api.dependencies import get_session_service


def get_session_user(
    authorization: str | None = Header(default=None),
    sessions: MarketplaceSessionService = Depends(get_session_service),
) -> MarketplaceUser | None:
    """Resolve the caller's session, or None for anonymous requests."""
    return sessions.resolve(extract_bearer_token(authorization))
