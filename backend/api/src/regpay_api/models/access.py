"""API models for route gate checks."""

from regpay_api.models.common import CamelModel


class AccessResponse(CamelModel):
    """Route gate decision for the calling session."""

    route: str
    allowed: bool
    reason: str | None = None
    redirect_to: str | None = None
