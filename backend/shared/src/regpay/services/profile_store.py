"""Sharetribe profile adapter for paid flags.

Writes paid flags into the operator-only ``profile.metadata`` of a user via
the Sharetribe Integration API. Every write is an unconditional partial
merge (``{flag: true, ...}``): there is no read-modify-write, so concurrent
webhook and mark-paid writes converge, and no code path writes ``false``.
"""

import datetime as dt
import threading
import time
from typing import Any

import httpx

from regpay.models.enums import FeeType
from regpay.models.errors import ProfileStoreError
from regpay.models.payment import PaymentReference, UserPaidStatus
from regpay.models.user import MarketplaceUser
from regpay.utils.logging import get_logger, mask_secret

logger = get_logger(__name__)

# Refresh the client-credentials token this long before it expires
TOKEN_EXPIRY_MARGIN_SECONDS = 60


def paid_metadata_keys(fee_type: FeeType) -> tuple[str, str, str]:
    """Metadata keys for a fee: (flag, paid-at, payment reference).

    registration -> ("registrationPaid", "registrationPaidAt", "registrationPayment")
    """
    flag = fee_type.profile_flag
    stem = flag.removesuffix("Paid")
    return flag, f"{flag}At", f"{stem}Payment"


def paid_status(user: MarketplaceUser, fee_type: FeeType) -> UserPaidStatus:
    """Read the paid state of one fee from a user's profile metadata."""
    flag, paid_at_key, reference_key = paid_metadata_keys(fee_type)
    metadata = user.metadata or {}

    paid_at = None
    raw_paid_at = metadata.get(paid_at_key)
    if isinstance(raw_paid_at, str):
        try:
            paid_at = dt.datetime.fromisoformat(raw_paid_at.replace("Z", "+00:00"))
        except ValueError:
            paid_at = None

    reference = None
    raw_reference = metadata.get(reference_key)
    if isinstance(raw_reference, dict) and raw_reference.get("intentId"):
        reference = PaymentReference(
            intent_id=str(raw_reference["intentId"]),
            amount=raw_reference.get("amount"),
            currency=raw_reference.get("currency"),
            status=str(raw_reference.get("status") or "succeeded"),
        )

    return UserPaidStatus(
        fee_type=fee_type,
        paid=metadata.get(flag) is True,
        paid_at=paid_at,
        payment_reference=reference,
    )


def _json_body(response: httpx.Response, operation: str) -> dict[str, Any]:
    """Decode a 2xx response body, which must be a JSON object."""
    try:
        body = response.json()
    except ValueError as e:
        logger.error("Integration API %s returned a non-JSON body", operation)
        raise ProfileStoreError(details={"operation": operation, "status": "invalid_body"}) from e
    if not isinstance(body, dict):
        logger.error("Integration API %s returned %s, not an object", operation, type(body).__name__)
        raise ProfileStoreError(details={"operation": operation, "status": "invalid_body"})
    return body


class SharetribeProfileStore:
    """Paid-flag store over the Sharetribe Integration API.

    Usage:
        store = SharetribeProfileStore(
            base_url="https://flex-integ-api.sharetribe.com",
            client_id="...",
            client_secret="...",
        )
        store.mark_fee_paid("u1", FeeType.REGISTRATION, reference)
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        *,
        timeout_seconds: float = 5.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = http_client or httpx.Client(timeout=timeout_seconds)
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    def _fetch_token(self) -> str:
        try:
            response = self._http.post(
                f"{self._base_url}/v1/auth/token",
                data={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "grant_type": "client_credentials",
                    "scope": "integ",
                },
            )
        except httpx.HTTPError as e:
            raise ProfileStoreError(details={"operation": "auth_token"}) from e

        if response.status_code != 200:
            logger.error(
                "Integration API token request failed: HTTP %d (client %s)",
                response.status_code,
                mask_secret(self._client_id),
            )
            raise ProfileStoreError(
                details={"operation": "auth_token", "status": str(response.status_code)}
            )

        body = _json_body(response, "auth_token")
        if not body.get("access_token"):
            raise ProfileStoreError(details={"operation": "auth_token"})
        self._token = str(body["access_token"])
        self._token_expires_at = (
            time.monotonic() + float(body.get("expires_in", 3600)) - TOKEN_EXPIRY_MARGIN_SECONDS
        )
        return self._token

    def _get_token(self, *, force_refresh: bool = False) -> str:
        with self._token_lock:
            if force_refresh or self._token is None or time.monotonic() >= self._token_expires_at:
                return self._fetch_token()
            return self._token

    def _send(
        self, method: str, url: str, token: str, operation: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            return self._http.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}"},
                **kwargs,
            )
        except httpx.HTTPError as e:
            logger.error("Integration API %s failed: %s", operation, type(e).__name__)
            raise ProfileStoreError(details={"operation": operation}) from e

    def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> dict[str, Any]:
        """Send an authenticated request, refreshing the token once on 401."""
        url = f"{self._base_url}{path}"
        response = self._send(method, url, self._get_token(), operation, **kwargs)
        if response.status_code == 401:
            # Token revoked or expired early
            response = self._send(
                method, url, self._get_token(force_refresh=True), operation, **kwargs
            )

        if response.status_code >= 400:
            logger.error(
                "Integration API %s failed: HTTP %d", operation, response.status_code
            )
            raise ProfileStoreError(
                details={"operation": operation, "status": str(response.status_code)}
            )
        return _json_body(response, operation)

    def update_metadata(self, user_id: str, metadata: dict[str, Any]) -> None:
        """Merge top-level keys into the user's profile metadata.

        Raises:
            ProfileStoreError: On transport failure or a non-2xx response.
        """
        self._request(
            "POST",
            "/v1/integration_api/users/update_profile",
            "update_profile",
            json={"id": user_id, "metadata": metadata},
        )

    def show_user(self, user_id: str) -> MarketplaceUser:
        """Fetch a user, including profile metadata."""
        body = self._request(
            "GET",
            "/v1/integration_api/users/show",
            "show_user",
            params={"id": user_id},
        )
        return MarketplaceUser.from_api_resource(body.get("data") or {})

    def mark_fee_paid(
        self,
        user_id: str,
        fee_type: FeeType,
        reference: PaymentReference,
        *,
        paid_at: dt.datetime | None = None,
    ) -> dict[str, Any]:
        """Set the fee's paid flag with fresh audit metadata.

        Safe to repeat; the last successful write's reference persists.

        Args:
            user_id: Marketplace user ID.
            fee_type: Which fee was paid.
            reference: Intent audit trail.
            paid_at: Payment time, defaults to now.

        Returns:
            The metadata fields written.

        Raises:
            ProfileStoreError: If the update could not be applied.
        """
        flag, paid_at_key, reference_key = paid_metadata_keys(fee_type)
        metadata: dict[str, Any] = {
            flag: True,
            paid_at_key: (paid_at or dt.datetime.now(dt.UTC)).isoformat(),
            reference_key: reference.to_metadata(),
        }
        self.update_metadata(user_id, metadata)
        logger.info(
            "Marked %s paid for user %s (intent %s)", flag, user_id, reference.intent_id
        )
        return metadata

    def close(self) -> None:
        self._http.close()
