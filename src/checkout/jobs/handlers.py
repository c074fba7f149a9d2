"""Job handler registry: one handler per job type, each fed the payload only."""

from collections.abc import Callable

import structlog

from checkout.errors import NotificationError
from checkout.jobs.job import JobType
from checkout.messaging import EMAIL, get_channel
from checkout.messaging.templates import OrderConfirmationTemplate

logger = structlog.get_logger(__name__)

JOB_HANDLERS: dict[str, Callable[[dict], None]] = {}


def job_handler(job_type: str):
    """Register the decorated function as the handler for ``job_type``."""

    def decorator(func):
        JOB_HANDLERS[job_type] = func
        return func

    return decorator


def get_job_handler(job_type: str):
    handler = JOB_HANDLERS.get(job_type)
    if handler is None:
        raise ValueError(f"No handler registered for job type: {job_type}")
    return handler


@job_handler(JobType.CHECKOUT_COMPLETE.value)
def send_checkout_complete_email(payload: dict) -> None:
    if not payload.get("email"):
        raise NotificationError("Payload has no email address")

    content = OrderConfirmationTemplate.render(payload)
    result = get_channel(EMAIL).send(to=payload["email"], subject=content["subject"], body=content["body"])
    if result.get("status") != "sent":
        raise NotificationError(result.get("error", "Unknown dispatch error"))
    logger.info("Checkout complete email sent", order_id=payload.get("order_id"), message_id=result.get("message_id"))
