"""FastAPI exception handlers for converting PaymentGateError to HTTP responses.

The ErrorCode-to-HTTP status mapping:
- 400 Bad Request: Malformed input, bad webhook signature, unpaid intent
- 401 Unauthorized: No marketplace session
- 402 Payment Required: Card declined
- 403 Forbidden: Session belongs to another user
- 404 Not Found: Unknown intent or route
- 500 Internal Server Error: Server misconfiguration
- 502 Bad Gateway: Stripe rejected the call
- 503 Service Unavailable: Stripe or Sharetribe temporarily unreachable

Usage:
    from regpay_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_402_PAYMENT_REQUIRED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from regpay.models.errors import ErrorCode, PaymentGateError, ValidationError
from regpay.utils.logging import get_logger

logger = get_logger(__name__)

ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # Request errors -> 400 Bad Request
    ErrorCode.INVALID_REQUEST: HTTP_400_BAD_REQUEST,
    ErrorCode.MISSING_USER_ID: HTTP_400_BAD_REQUEST,
    ErrorCode.MISSING_PAYMENT_REFERENCE: HTTP_400_BAD_REQUEST,
    ErrorCode.PAYMENT_NOT_COMPLETED: HTTP_400_BAD_REQUEST,
    ErrorCode.IDEMPOTENCY_CONFLICT: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: HTTP_400_BAD_REQUEST,
    # Session errors
    ErrorCode.AUTH_REQUIRED: HTTP_401_UNAUTHORIZED,
    ErrorCode.USER_MISMATCH: HTTP_403_FORBIDDEN,
    # Not found
    ErrorCode.INTENT_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.UNKNOWN_ROUTE: HTTP_404_NOT_FOUND,
    # Payment errors
    ErrorCode.CARD_DECLINED: HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.STRIPE_API_ERROR: HTTP_502_BAD_GATEWAY,
    ErrorCode.STRIPE_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
    # Marketplace profile could not be updated
    ErrorCode.PROFILE_UPDATE_FAILED: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.CONFIGURATION_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode, defaulting to 400."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


async def payment_gate_error_handler(request: Request, exc: PaymentGateError) -> JSONResponse:
    """Render a PaymentGateError as an ErrorResponse body.

    Only the sanitized message for the error code is returned; provider
    error text stays in the logs.
    """
    status_code = get_http_status_for_error(exc.code)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.code.value)

    return JSONResponse(
        status_code=status_code,
        content=exc.to_response().model_dump(mode="json"),
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report unparseable request bodies as a 400 with field locations."""
    fields = sorted(
        {".".join(str(part) for part in err.get("loc", ()) if part != "body") for err in exc.errors()}
    )
    error = ValidationError(details={"fields": ", ".join(f for f in fields if f) or "body"})
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content=error.to_response().model_dump(mode="json"),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with a generic error response."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    # Don't expose internal details
    error_response = {
        "success": False,
        "error_code": "ERR_INTERNAL",
        "message": "An unexpected error occurred",
        "recovery": "Please try again later or contact support",
        "details": None,
    }
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(PaymentGateError, payment_gate_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
