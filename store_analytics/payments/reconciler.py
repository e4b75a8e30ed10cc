"""
Payment Event Reconciler

Verifies Stripe webhook deliveries and marks the referenced orders as paid.

Deliveries are at-least-once and unordered, so applying an event is
idempotent: the event id is recorded in the same transaction as the order
update, and ``paid_at`` is only ever set once per order.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import stripe
import structlog
from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from store_analytics.config import get_settings
from store_analytics.database.connection import SessionFactory, dialect_insert, get_db
from store_analytics.database.models import Order, PaymentEventLog, PaymentStatus
from store_analytics.exceptions import (
    ApplyFailure,
    AuthenticationFailure,
    MalformedEventError,
    MissingSignature,
    WebhookConfigurationError,
)
from store_analytics.payments.events import PaymentEvent
from store_analytics.payments.secrets import (
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    SecretProvider,
)

logger = structlog.get_logger(__name__)


class ReconcileOutcome(str, Enum):
    """What happened to a verified event"""
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass
class ReconcileResult:
    event_id: str
    event_type: str
    outcome: ReconcileOutcome
    order_id: Optional[str] = None


async def record_event(db: AsyncSession, event: PaymentEvent, order_id: str) -> bool:
    """
    Insert the event id into the applied-events ledger.

    Returns:
        False when the event id was already recorded
    """
    stmt = (
        dialect_insert(db, PaymentEventLog)
        .values(event_id=event.id, event_type=event.type, order_id=order_id)
        .on_conflict_do_nothing(index_elements=[PaymentEventLog.event_id])
        .returning(PaymentEventLog.event_id)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None


async def mark_order_paid(db: AsyncSession, order_id: str, paid_at: datetime) -> None:
    """Upsert the order as paid, keeping the first ``paid_at`` ever written."""
    stmt = dialect_insert(db, Order).values(
        order_id=order_id,
        status=PaymentStatus.PAID,
        paid_at=paid_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Order.order_id],
        set_={
            "status": stmt.excluded.status,
            "paid_at": func.coalesce(Order.paid_at, stmt.excluded.paid_at),
        },
    )
    await db.execute(stmt)


class PaymentEventReconciler:
    """
    Handles one webhook delivery end to end.

    Secrets are resolved through the injected provider and the Stripe client
    is built per call, so nothing secret outlives the request.

    Example:
        reconciler = PaymentEventReconciler(EnvSecretProvider())
        result = await reconciler.handle(raw_body, request.headers.get("stripe-signature"))
    """

    def __init__(
        self,
        secrets: SecretProvider,
        session_factory: Optional[SessionFactory] = None,
        tolerance_seconds: Optional[int] = None,
    ):
        self.secrets = secrets
        self.session_factory = session_factory or get_db
        self.tolerance_seconds = (
            tolerance_seconds
            if tolerance_seconds is not None
            else get_settings().stripe.signature_tolerance_seconds
        )

    async def verify(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        """
        Authenticate the payload and parse it into a typed event.

        Raises:
            MissingSignature: No signature header or no signing secret
            WebhookConfigurationError: No Stripe API key is available
            AuthenticationFailure: Signature does not match
            MalformedEventError: Signed payload is not a valid event
        """
        webhook_secret = await self.secrets.get(STRIPE_WEBHOOK_SECRET)
        if not signature or not webhook_secret:
            logger.error("Missing signature or webhook secret")
            raise MissingSignature("Missing signature or webhook secret")

        api_key = await self.secrets.get(STRIPE_SECRET_KEY)
        if not api_key:
            logger.error("Stripe API key is not configured")
            raise WebhookConfigurationError("Stripe API key is not configured")

        client = stripe.StripeClient(api_key)

        try:
            client.construct_event(payload, signature, webhook_secret, self.tolerance_seconds)
        except stripe.SignatureVerificationError as e:
            logger.error("Webhook signature verification failed", error=str(e))
            raise AuthenticationFailure(f"Webhook Error: {e}") from e
        except ValueError as e:
            logger.error("Webhook payload is not valid JSON", error=str(e))
            raise MalformedEventError(f"Webhook Error: {e}") from e

        try:
            return PaymentEvent.model_validate_json(payload)
        except ValidationError as e:
            logger.error("Webhook payload is not a valid event", error=str(e))
            raise MalformedEventError(f"Webhook Error: {e}") from e

    async def apply(self, event: PaymentEvent) -> ReconcileResult:
        """
        Apply a verified event.

        Raises:
            ApplyFailure: The order could not be updated; nothing was committed
        """
        log = logger.bind(event_id=event.id, event_type=event.type)

        if not event.is_payment_succeeded:
            log.info("Ignoring unhandled event type")
            return ReconcileResult(event.id, event.type, ReconcileOutcome.IGNORED)

        order_id = event.order_id
        if not order_id:
            log.info("Payment event has no orderId metadata")
            return ReconcileResult(event.id, event.type, ReconcileOutcome.IGNORED)

        try:
            async with self.session_factory() as db:
                if not await record_event(db, event, order_id):
                    log.info("Duplicate payment event", order_id=order_id)
                    return ReconcileResult(event.id, event.type, ReconcileOutcome.DUPLICATE, order_id)
                await mark_order_paid(db, order_id, datetime.now(timezone.utc))
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            log.error("Failed to mark order as paid", order_id=order_id, error=str(e))
            raise ApplyFailure(f"Failed to apply event {event.id}: {e}") from e

        log.info("Order marked as paid", order_id=order_id)
        return ReconcileResult(event.id, event.type, ReconcileOutcome.APPLIED, order_id)

    async def handle(self, payload: bytes, signature: Optional[str]) -> ReconcileResult:
        event = await self.verify(payload, signature)
        return await self.apply(event)
