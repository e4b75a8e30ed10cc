"""
Unit Tests - Payment Event Reconciler
"""
import json
import time
from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from store_analytics.database.models import Order, PaymentEventLog, PaymentStatus
from store_analytics.exceptions import (
    ApplyFailure,
    AuthenticationFailure,
    MalformedEventError,
    MissingSignature,
    WebhookConfigurationError,
)
from store_analytics.payments.events import PaymentEvent
from store_analytics.payments.reconciler import PaymentEventReconciler, ReconcileOutcome
from store_analytics.payments.secrets import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from store_analytics.pipeline import run_monthly_revenue_rollup

from conftest import TEST_WEBHOOK_SECRET, StaticSecretProvider, make_event, sign_payload, utc


async def get_order(session_factory, order_id):
    async with session_factory() as db:
        return await db.get(Order, order_id)


async def count_events(session_factory):
    async with session_factory() as db:
        result = await db.execute(select(func.count()).select_from(PaymentEventLog))
        return result.scalar_one()


@pytest.fixture
async def pending_order(insert_orders):
    await insert_orders([{
        "order_id": "order-1",
        "store_id": "S",
        "customer_id": "U",
        "total_price": Decimal("30.00"),
        "created_at": utc(2024, 3, 3),
    }])


@pytest.fixture
def reconciler(secrets, session_factory):
    return PaymentEventReconciler(secrets, session_factory, tolerance_seconds=300)


class TestPaymentEvent:
    """Tests for typed event parsing"""

    def test_order_id_from_metadata(self):
        event = PaymentEvent.model_validate_json(make_event(order_id="abc"))

        assert event.is_payment_succeeded
        assert event.order_id == "abc"
        assert event.created is not None

    def test_missing_metadata(self):
        event = PaymentEvent.model_validate({"id": "evt", "type": "payment_intent.succeeded", "data": {"object": {"metadata": None}}})

        assert event.order_id is None

    def test_non_object_metadata(self):
        event = PaymentEvent.model_validate({"id": "evt", "type": "payment_intent.succeeded", "data": {"object": {"metadata": "order-1"}}})

        assert event.order_id is None


class TestVerification:
    """Signature checks happen before anything touches the database"""

    async def test_missing_signature_header(self, reconciler, pending_order, session_factory):
        with pytest.raises(MissingSignature):
            await reconciler.handle(make_event(), None)

        assert (await get_order(session_factory, "order-1")).status == PaymentStatus.PENDING

    async def test_missing_webhook_secret(self, session_factory, pending_order):
        reconciler = PaymentEventReconciler(
            StaticSecretProvider({STRIPE_SECRET_KEY: "sk_test", STRIPE_WEBHOOK_SECRET: None}),
            session_factory,
        )
        payload = make_event()

        with pytest.raises(MissingSignature):
            await reconciler.handle(payload, sign_payload(payload))

    async def test_missing_api_key_is_server_error(self, session_factory, pending_order):
        reconciler = PaymentEventReconciler(
            StaticSecretProvider({STRIPE_SECRET_KEY: None, STRIPE_WEBHOOK_SECRET: TEST_WEBHOOK_SECRET}),
            session_factory,
        )
        payload = make_event()

        with pytest.raises(WebhookConfigurationError) as exc_info:
            await reconciler.handle(payload, sign_payload(payload))

        assert exc_info.value.status_code == 500
        assert (await get_order(session_factory, "order-1")).status == PaymentStatus.PENDING

    async def test_invalid_signature_never_mutates(self, reconciler, pending_order, session_factory):
        payload = make_event()
        signature = sign_payload(payload, secret="whsec_attacker")

        with pytest.raises(AuthenticationFailure):
            await reconciler.handle(payload, signature)

        order = await get_order(session_factory, "order-1")
        assert order.status == PaymentStatus.PENDING
        assert order.paid_at is None
        assert await count_events(session_factory) == 0

    async def test_tampered_payload_is_rejected(self, reconciler, pending_order, session_factory):
        signature = sign_payload(make_event(order_id="order-1"))
        tampered = make_event(order_id="order-2")

        with pytest.raises(AuthenticationFailure):
            await reconciler.handle(tampered, signature)

        assert await get_order(session_factory, "order-2") is None

    async def test_expired_signature_is_rejected(self, reconciler, pending_order):
        payload = make_event()
        signature = sign_payload(payload, timestamp=int(time.time()) - 3600)

        with pytest.raises(AuthenticationFailure):
            await reconciler.handle(payload, signature)

    async def test_signed_garbage_is_malformed(self, reconciler):
        payload = b"not json"

        with pytest.raises(MalformedEventError):
            await reconciler.handle(payload, sign_payload(payload))

    async def test_signed_json_without_event_fields_is_malformed(self, reconciler):
        payload = b'{"hello": "world"}'

        with pytest.raises(MalformedEventError):
            await reconciler.handle(payload, sign_payload(payload))

    async def test_secrets_resolved_per_call(self, reconciler, secrets, pending_order):
        payload = make_event(event_type="charge.refunded")

        await reconciler.handle(payload, sign_payload(payload))
        await reconciler.handle(payload, sign_payload(payload))

        assert secrets.lookups.count(STRIPE_WEBHOOK_SECRET) == 2


class TestApply:
    """Tests for applying verified events"""

    async def test_payment_succeeded_marks_order_paid(self, reconciler, pending_order, session_factory):
        payload = make_event()

        result = await reconciler.handle(payload, sign_payload(payload))

        assert result.outcome == ReconcileOutcome.APPLIED
        assert result.order_id == "order-1"
        order = await get_order(session_factory, "order-1")
        assert order.status == PaymentStatus.PAID
        assert order.paid_at is not None
        assert order.total_price == Decimal("30.00")

    async def test_duplicate_delivery_is_a_no_op(self, reconciler, pending_order, session_factory):
        payload = make_event(event_id="evt_dup")

        first = await reconciler.handle(payload, sign_payload(payload))
        paid_at = (await get_order(session_factory, "order-1")).paid_at
        second = await reconciler.handle(payload, sign_payload(payload))

        assert first.outcome == ReconcileOutcome.APPLIED
        assert second.outcome == ReconcileOutcome.DUPLICATE
        order = await get_order(session_factory, "order-1")
        assert order.status == PaymentStatus.PAID
        assert order.paid_at == paid_at
        assert await count_events(session_factory) == 1

    async def test_second_event_for_paid_order_keeps_paid_at(self, reconciler, pending_order, session_factory):
        first_payload = make_event(event_id="evt_a")
        second_payload = make_event(event_id="evt_b")

        await reconciler.handle(first_payload, sign_payload(first_payload))
        paid_at = (await get_order(session_factory, "order-1")).paid_at
        result = await reconciler.handle(second_payload, sign_payload(second_payload))

        assert result.outcome == ReconcileOutcome.APPLIED
        assert (await get_order(session_factory, "order-1")).paid_at == paid_at

    async def test_unrecognized_type_is_acknowledged(self, reconciler, pending_order, session_factory):
        payload = make_event(event_type="customer.created")

        result = await reconciler.handle(payload, sign_payload(payload))

        assert result.outcome == ReconcileOutcome.IGNORED
        assert (await get_order(session_factory, "order-1")).status == PaymentStatus.PENDING
        assert await count_events(session_factory) == 0

    async def test_non_object_metadata_is_acknowledged(self, reconciler, pending_order, session_factory):
        payload = json.dumps({
            "id": "evt_odd",
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_1", "metadata": "order-1"}},
        }).encode("utf-8")

        result = await reconciler.handle(payload, sign_payload(payload))

        assert result.outcome == ReconcileOutcome.IGNORED
        assert (await get_order(session_factory, "order-1")).status == PaymentStatus.PENDING

    async def test_missing_order_id_is_acknowledged(self, reconciler, pending_order, session_factory):
        payload = make_event(order_id=None)

        result = await reconciler.handle(payload, sign_payload(payload))

        assert result.outcome == ReconcileOutcome.IGNORED
        assert result.order_id is None
        assert (await get_order(session_factory, "order-1")).status == PaymentStatus.PENDING

    async def test_unknown_order_is_upserted(self, reconciler, session_factory):
        payload = make_event(order_id="order-new")

        await reconciler.handle(payload, sign_payload(payload))

        order = await get_order(session_factory, "order-new")
        assert order.status == PaymentStatus.PAID
        assert order.store_id is None

        # The placeholder has no store/customer/price and stays out of rollups
        run = await run_monthly_revenue_rollup(session_factory, tz="America/Los_Angeles")
        assert run.orders_skipped == 1
        assert run.summaries_written == 0

    async def test_database_failure_is_apply_failure(self, secrets):
        @asynccontextmanager
        async def broken_session():
            raise OperationalError("UPDATE orders", {}, Exception("database is locked"))
            yield

        reconciler = PaymentEventReconciler(secrets, broken_session)
        payload = make_event()

        with pytest.raises(ApplyFailure) as exc_info:
            await reconciler.handle(payload, sign_payload(payload))

        assert exc_info.value.status_code == 500

    async def test_failed_apply_can_be_retried(self, reconciler, secrets, pending_order, session_factory):
        @asynccontextmanager
        async def broken_session():
            raise OperationalError("INSERT", {}, Exception("timeout"))
            yield

        payload = make_event(event_id="evt_retry")
        with pytest.raises(ApplyFailure):
            await PaymentEventReconciler(secrets, broken_session).handle(payload, sign_payload(payload))

        result = await reconciler.handle(payload, sign_payload(payload))

        assert result.outcome == ReconcileOutcome.APPLIED
        assert (await get_order(session_factory, "order-1")).status == PaymentStatus.PAID

    async def test_event_id_is_released_when_order_update_fails(
        self, reconciler, pending_order, session_factory, monkeypatch
    ):
        """The event row and the order update commit together or not at all"""
        from store_analytics.payments import reconciler as reconciler_module

        async def failing_mark_order_paid(db, order_id, paid_at):
            raise OperationalError("UPDATE orders", {}, Exception("deadlock detected"))

        payload = make_event(event_id="evt_partial")
        monkeypatch.setattr(reconciler_module, "mark_order_paid", failing_mark_order_paid)

        with pytest.raises(ApplyFailure):
            await reconciler.handle(payload, sign_payload(payload))

        assert await count_events(session_factory) == 0

        monkeypatch.undo()
        result = await reconciler.handle(payload, sign_payload(payload))

        assert result.outcome == ReconcileOutcome.APPLIED
        assert (await get_order(session_factory, "order-1")).status == PaymentStatus.PAID
        assert await count_events(session_factory) == 1
