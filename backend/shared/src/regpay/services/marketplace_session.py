"""Resolve the calling user's Sharetribe session.

The browser sends its Sharetribe Marketplace API access token as a bearer
token. Asking the Marketplace API who that token belongs to is the only
identity check this service trusts; user ids in request bodies are only
ever compared against the result.
"""

import httpx

from regpay.models.errors import ProfileStoreError
from regpay.models.user import MarketplaceUser
from regpay.utils.logging import get_logger

logger = get_logger(__name__)


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class MarketplaceSessionService:
    """Looks up the current user for a Marketplace API access token."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 5.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.Client(timeout=timeout_seconds)

    def resolve(self, access_token: str | None) -> MarketplaceUser | None:
        """Resolve a token to its user.

        Args:
            access_token: Marketplace API access token, or None.

        Returns:
            The current user, or None when there is no valid session.

        Raises:
            ProfileStoreError: If the Marketplace API could not be reached.
        """
        if not access_token:
            return None

        try:
            response = self._http.get(
                f"{self._base_url}/v1/api/current_user/show",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            logger.error("Marketplace API current_user/show failed: %s", type(e).__name__)
            raise ProfileStoreError(details={"operation": "current_user"}) from e

        if response.status_code in (401, 403):
            logger.info("Rejected marketplace session token (HTTP %d)", response.status_code)
            return None
        if response.status_code >= 400:
            logger.error("Marketplace API current_user/show: HTTP %d", response.status_code)
            raise ProfileStoreError(
                details={"operation": "current_user", "status": str(response.status_code)}
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.error("Marketplace API current_user/show returned a non-JSON body")
            raise ProfileStoreError(
                details={"operation": "current_user", "status": "invalid_body"}
            ) from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return MarketplaceUser.from_api_resource(data)

    def close(self) -> None:
        self._http.close()
