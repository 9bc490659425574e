"""Route gate models."""

from pydantic import BaseModel, ConfigDict

from .enums import DenyReason


class RouteRequirements(BaseModel):
    """Access requirements of a named storefront page.

    A page that requires a paid fee implicitly requires authentication.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: str = ""
    requires_auth: bool = False
    requires_paid_registration: bool = False
    requires_profile_unlock: bool = False
    auth_page: str = "LoginPage"
    payment_page: str = "OneTimePaymentPage"
    profile_unlock_page: str = "ProfileUnlockPage"


class AccessDecision(BaseModel):
    """Result of evaluating the route gate.

    Truthy when access is allowed. ``redirect_to`` names the page the router
    should send a denied user to; banned users have no redirect target.
    """

    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: DenyReason | None = None
    redirect_to: str | None = None

    def __bool__(self) -> bool:
        return self.allowed
