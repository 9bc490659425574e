"""API routes package.

FastAPI routers for all REST API endpoints, organized by domain:

- health: Health check endpoint
- registration: Registration fee intent, mark-paid and the Stripe webhook
- profile_unlock: Profile unlock fee intent and mark-paid
- access: Route gate checks

All routers are registered in main.py with /api prefix.
"""

from regpay_api.routes.access import router as access_router
from regpay_api.routes.health import router as health_router
from regpay_api.routes.profile_unlock import router as profile_unlock_router
from regpay_api.routes.registration import router as registration_router

__all__ = [
    "access_router",
    "health_router",
    "profile_unlock_router",
    "registration_router",
]
