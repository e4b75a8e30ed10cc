"""
Payment Webhook Endpoint

Receives signed Stripe events. Every non-2xx response makes Stripe retry the
delivery, which is safe because applying an event is idempotent.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse
import structlog

from store_analytics.database.connection import SessionFactory, get_session_factory
from store_analytics.exceptions import WebhookError
from store_analytics.payments.reconciler import PaymentEventReconciler
from store_analytics.payments.secrets import SecretProvider, get_secret_provider

logger = structlog.get_logger(__name__)
router = APIRouter()


def get_reconciler(
    secrets: SecretProvider = Depends(get_secret_provider),
    session_factory: SessionFactory = Depends(get_session_factory),
) -> PaymentEventReconciler:
    """Build a reconciler per request"""
    return PaymentEventReconciler(secrets, session_factory)


@router.post("/payments")
async def handle_payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    reconciler: PaymentEventReconciler = Depends(get_reconciler),
):
    """
    Apply a Stripe event to its order.

    - 400: missing or invalid signature, malformed payload
    - 500: the order update failed
    - 200: processed, including ignored and duplicate events
    """
    payload = await request.body()

    try:
        result = await reconciler.handle(payload, stripe_signature)
    except WebhookError as e:
        return PlainTextResponse(str(e), status_code=e.status_code)

    logger.info(
        "Webhook processed",
        event_id=result.event_id,
        outcome=result.outcome.value,
    )
    return {"received": True}
