"""Route gate: may this user see this page?

``can_access`` is a pure, total predicate. It never raises and never
performs I/O; the router that calls it owns the redirect. Unknown shapes
fail closed: a route flag that is merely truthy still gates, while a user's
paid flag only counts when it is exactly ``True``.
"""

from collections.abc import Mapping
from typing import Any

from regpay.models.enums import DenyReason, FeeType
from regpay.models.routing import AccessDecision, RouteRequirements
from regpay.models.user import MarketplaceUser

ALLOW = AccessDecision(allowed=True)

# Storefront pages and their gates. Listing management, checkout and
# messaging are the paid features; account pages only need a session.
ROUTES: dict[str, RouteRequirements] = {
    route.name: route
    for route in [
        RouteRequirements(name="LandingPage", path="/"),
        RouteRequirements(name="SearchPage", path="/s"),
        RouteRequirements(name="ListingPage", path="/l/:slug/:id"),
        RouteRequirements(name="ProfilePage", path="/u/:id"),
        RouteRequirements(name="ProviderSignupPage", path="/signup/provider"),
        RouteRequirements(name="ShipperSignupPage", path="/signup/customer"),
        RouteRequirements(
            name="OneTimePaymentPage", path="/register/one-time-payment", requires_auth=True
        ),
        RouteRequirements(
            name="ProfileSettingsPage", path="/profile-settings", requires_auth=True
        ),
        RouteRequirements(name="AccountSettingsPage", path="/account", requires_auth=True),
        RouteRequirements(
            name="PaymentMethodsPage", path="/account/payment-methods", requires_auth=True
        ),
        RouteRequirements(
            name="CheckoutPage", path="/l/:slug/:id/checkout", requires_paid_registration=True
        ),
        RouteRequirements(
            name="NewListingPage", path="/l/new", requires_paid_registration=True
        ),
        RouteRequirements(
            name="EditListingPage",
            path="/l/:slug/:id/:type/:tab",
            requires_paid_registration=True,
        ),
        RouteRequirements(
            name="ManageListingsPage", path="/listings", requires_paid_registration=True
        ),
        RouteRequirements(
            name="InboxPage", path="/inbox/:tab", requires_paid_registration=True
        ),
        RouteRequirements(
            name="OrderDetailsPage", path="/order/:id", requires_paid_registration=True
        ),
        RouteRequirements(
            name="SaleDetailsPage", path="/sale/:id", requires_paid_registration=True
        ),
        RouteRequirements(
            name="ProfilePageVariant",
            path="/u/:id/:variant",
            requires_paid_registration=True,
            requires_profile_unlock=True,
        ),
    ]
}


def get_route(name: str) -> RouteRequirements | None:
    """Look up a named storefront route."""
    return ROUTES.get(name)


def _get(obj: Any, *keys: str) -> Any:
    """First present value among ``keys`` on a mapping or object."""
    for key in keys:
        if isinstance(obj, Mapping):
            if key in obj:
                return obj[key]
        elif hasattr(obj, key):
            return getattr(obj, key)
    return None


def _profile_metadata(user: Any) -> Mapping[str, Any]:
    if isinstance(user, MarketplaceUser):
        return user.metadata
    if not isinstance(user, Mapping):
        return {}
    attributes = user.get("attributes")
    profile = attributes.get("profile") if isinstance(attributes, Mapping) else None
    metadata = profile.get("metadata") if isinstance(profile, Mapping) else None
    return metadata if isinstance(metadata, Mapping) else {}


def _user_id(user: Any) -> str | None:
    if isinstance(user, MarketplaceUser):
        return user.id or None
    if not isinstance(user, Mapping):
        return None
    raw_id = user.get("id")
    if isinstance(raw_id, Mapping):
        raw_id = raw_id.get("uuid")
    return str(raw_id) if raw_id else None


def _is_banned(user: Any) -> bool:
    if isinstance(user, MarketplaceUser):
        return user.banned
    attributes = user.get("attributes") if isinstance(user, Mapping) else None
    if not isinstance(attributes, Mapping):
        return False
    return bool(attributes.get("banned"))


def is_fee_paid(user: Any, fee_type: FeeType) -> bool:
    """Whether the user's profile metadata marks ``fee_type`` as paid."""
    return _profile_metadata(user).get(fee_type.profile_flag) is True


def is_registration_paid(user: Any) -> bool:
    """Whether the user has paid the registration fee."""
    return is_fee_paid(user, FeeType.REGISTRATION)


def is_profile_unlock_paid(user: Any) -> bool:
    """Whether the user has paid the profile unlock fee."""
    return is_fee_paid(user, FeeType.PROFILE_UNLOCK)


def can_access(route: Any, user: Any) -> AccessDecision:
    """Decide whether ``user`` may render ``route``.

    Args:
        route: RouteRequirements, or a mapping with ``requiresAuth`` /
            ``requiresPaidRegistration`` / ``requiresProfileUnlock`` flags
            (camelCase or snake_case).
        user: MarketplaceUser, a Sharetribe ``currentUser`` resource, or
            None for anonymous visitors.

    Returns:
        AccessDecision, truthy when allowed. Denials carry a reason so the
        router can tell "sign in" apart from "pay first".
    """
    if not isinstance(route, (RouteRequirements, Mapping)):
        return AccessDecision(allowed=False, reason=DenyReason.NEEDS_AUTH, redirect_to="LoginPage")

    needs_payment = bool(_get(route, "requires_paid_registration", "requiresPaidRegistration"))
    needs_unlock = bool(_get(route, "requires_profile_unlock", "requiresProfileUnlock"))
    needs_auth = bool(_get(route, "requires_auth", "requiresAuth")) or needs_payment or needs_unlock
    if not needs_auth:
        return ALLOW

    auth_page = _get(route, "auth_page", "authPage") or "LoginPage"
    if _user_id(user) is None:
        return AccessDecision(allowed=False, reason=DenyReason.NEEDS_AUTH, redirect_to=auth_page)

    if _is_banned(user):
        return AccessDecision(allowed=False, reason=DenyReason.BANNED)

    if needs_payment and not is_registration_paid(user):
        return AccessDecision(
            allowed=False,
            reason=DenyReason.NEEDS_PAYMENT,
            redirect_to=_get(route, "payment_page", "paymentPage") or "OneTimePaymentPage",
        )

    if needs_unlock and not is_profile_unlock_paid(user):
        return AccessDecision(
            allowed=False,
            reason=DenyReason.NEEDS_PROFILE_UNLOCK,
            redirect_to=_get(route, "profile_unlock_page", "profileUnlockPage")
            or "ProfileUnlockPage",
        )

    return ALLOW
