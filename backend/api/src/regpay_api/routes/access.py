"""Route gate endpoint.

Lets the storefront server ask whether the current session may render a
named page before it renders it.
"""

from fastapi import APIRouter, Depends

from regpay.models.errors import ErrorCode, ErrorResponse, NotFoundError
from regpay.models.user import MarketplaceUser
from regpay.services.route_gate import can_access, get_route
from regpay_api.models.access import AccessResponse
from regpay_api.security import get_session_user

router = APIRouter(tags=["access"])


@router.get(
    "/access/{route_name}",
    summary="Check page access",
    description="""
Evaluate the route gate for the caller's marketplace session.

Anonymous requests (no ``Authorization`` header) are evaluated as logged-out
visitors. Denials carry a reason (needs-auth, banned, needs-payment,
needs-profile-unlock) and, where one applies, the page to redirect to.
""",
    response_model=AccessResponse,
    responses={
        404: {"description": "Unknown route name", "model": ErrorResponse},
    },
)
def check_access(
    route_name: str,
    session_user: MarketplaceUser | None = Depends(get_session_user),
) -> AccessResponse:
    route = get_route(route_name)
    if route is None:
        raise NotFoundError(code=ErrorCode.UNKNOWN_ROUTE, details={"route": route_name})

    decision = can_access(route, session_user)
    return AccessResponse(
        route=route.name,
        allowed=decision.allowed,
        reason=decision.reason.value if decision.reason else None,
        redirect_to=decision.redirect_to,
    )
