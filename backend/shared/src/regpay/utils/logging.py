"""Logging for the payment gate.

Every line carries the correlation ID of the request (or webhook delivery)
that produced it, bound by the API middleware through a ContextVar so it
follows the request across threadpool hops. Payment and webhook events are
logged as ``key=value`` pairs that are also attached to the record as
``extra`` for log processors.

Usage:
    logger = get_logger(__name__)
    log_payment_operation(logger, "mark_paid", user_id="u1", intent_id="pi_1")
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from regpay.config import Settings

_correlation_id: ContextVar[str | None] = ContextVar("regpay_correlation_id", default=None)

NO_CORRELATION_ID = "-"
LOG_FORMAT = "%(asctime)s [%(correlation_id)s] %(levelname)s %(name)s: %(message)s"

# Third-party loggers that are chatty at DEBUG
QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore", "stripe", "uvicorn.access")


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation ID to the current context, generating one if needed."""
    cid = correlation_id or uuid.uuid4().hex
    _correlation_id.set(cid)
    return cid


def clear_correlation_id() -> None:
    _correlation_id.set(None)


def mask_secret(value: str | None) -> str:
    """``sk_live_…abcd`` style mask: key prefix and last four characters only."""
    if not value:
        return "(missing)"
    head, sep, tail = value.rpartition("_")
    prefix = head + sep if sep and len(tail) > 4 else ""
    return f"{prefix}…{value[-4:]}"


class CorrelationIdFilter(logging.Filter):
    """Stamps ``correlation_id`` onto every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get() or NO_CORRELATION_ID
        return True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(settings: "Settings") -> None:
    """Install the correlation-aware handler on the root logger.

    Safe to call more than once (app factory and scripts both call it).
    """
    root = logging.getLogger()
    root.setLevel(logging.INFO if settings.is_production else logging.DEBUG)

    if not root.handlers:
        root.addHandler(logging.StreamHandler(sys.stdout))
    for handler in root.handlers:
        if not any(isinstance(f, CorrelationIdFilter) for f in handler.filters):
            handler.addFilter(CorrelationIdFilter())
        handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _pairs(fields: dict[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items())


def log_payment_operation(
    logger: logging.Logger,
    operation: str,
    *,
    user_id: str | None = None,
    intent_id: str | None = None,
    purpose: str | None = None,
    amount_cents: int | None = None,
    currency: str | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log one step of a fee payment.

    Never pass a client secret or a full API key here. Logged at ERROR when
    ``error`` is set, INFO otherwise.
    """
    fields = {
        key: value
        for key, value in {
            "user_id": user_id,
            "intent_id": intent_id,
            "purpose": purpose,
            "amount_cents": amount_cents,
            "currency": currency,
            "status": status,
            "error": error,
            **extra,
        }.items()
        if value is not None and value != ""
    }
    level = logging.ERROR if error else logging.INFO
    logger.log(level, "payment %s %s", operation, _pairs(fields), extra={"operation": operation, **fields})


def log_webhook_event(
    logger: logging.Logger,
    event_type: str | None,
    event_id: str | None,
    *,
    result: str | None = None,
    **fields: Any,
) -> None:
    """Log the outcome of one Stripe webhook delivery.

    ``error`` results log at ERROR, ``duplicate`` and ``skipped`` at WARNING.
    Extra keyword fields (user_id, intent_id, reconcile_required, ...) are
    appended as ``key=value`` pairs.
    """
    present = {key: value for key, value in fields.items() if value not in (None, "", False)}
    if result == "error":
        level = logging.ERROR
    elif result in ("duplicate", "skipped"):
        level = logging.WARNING
    else:
        level = logging.INFO
    logger.log(
        level,
        "webhook %s (%s) result=%s %s",
        event_type,
        event_id,
        result,
        _pairs(present),
        extra={"event_type": event_type, "event_id": event_id, "result": result, **present},
    )
