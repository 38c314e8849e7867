"""
Stripe webhook reconciliation for subscriptions and payments
"""
from typing import Any, Dict
import logging

from models.events import (
    CheckoutCompletedEvent,
    CheckoutSession,
    InvoiceObject,
    InvoicePaymentFailedEvent,
    InvoicePaymentSucceededEvent,
    SubscriptionDeletedEvent,
    SubscriptionObject,
    SubscriptionUpdatedEvent,
    UnhandledEvent,
    WebhookEvent,
)
from models.subscription import PaymentStatus, SubscriptionStatus
from services.stripe_service import StripeService
from services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """An event could not be applied yet; Stripe should redeliver it"""


class WebhookService:
    """
    Applies Stripe lifecycle events to the entitlement store. Stripe is the
    source of truth: statuses are mirrored, never derived here. Errors are
    not caught so the webhook answers 500 and Stripe retries the delivery.
    """

    def __init__(self, subscriptions: SubscriptionService, stripe_service: StripeService):
        self.subscriptions = subscriptions
        self.stripe_service = stripe_service

    async def handle_event(self, event: WebhookEvent) -> Dict[str, Any]:
        logger.info(f"Processing webhook event {event.id}: {event.type}")

        if isinstance(event, CheckoutCompletedEvent):
            await self._handle_checkout_completed(event.session)
        elif isinstance(event, SubscriptionUpdatedEvent):
            await self._handle_subscription_updated(event.subscription)
        elif isinstance(event, SubscriptionDeletedEvent):
            await self._handle_subscription_deleted(event.subscription)
        elif isinstance(event, InvoicePaymentSucceededEvent):
            await self._handle_invoice(event.invoice, PaymentStatus.SUCCEEDED, event.invoice.amount_paid)
        elif isinstance(event, InvoicePaymentFailedEvent):
            await self._handle_invoice(event.invoice, PaymentStatus.FAILED, event.invoice.amount_due)
        elif isinstance(event, UnhandledEvent):
            logger.info(f"Unhandled event type: {event.type}")

        return {"received": True}

    async def _handle_checkout_completed(self, session: CheckoutSession):
        """Handle successful checkout completion"""
        if session.mode == "subscription":
            await self._record_subscription_checkout(session)
        elif session.mode == "payment" and session.metadata.get("type") == "consulting":
            await self._record_consulting_payment(session)
        else:
            logger.info(f"Ignoring checkout session {session.id} in mode {session.mode}")

    async def _record_subscription_checkout(self, session: CheckoutSession):
        user_id = session.user_id
        if not user_id:
            raise ReconciliationError(f"Checkout session {session.id} has no client_reference_id")
        if not session.subscription:
            raise ReconciliationError(f"Checkout session {session.id} has no subscription")

        existing = await self.subscriptions.get_subscription_by_stripe_id(session.subscription)
        if existing is not None:
            logger.info(f"Subscription {session.subscription} already recorded, skipping replay")
            return

        subscription = SubscriptionObject(**await self.stripe_service.retrieve_subscription(session.subscription))
        price_id = session.price_id or subscription.price_id
        if not price_id:
            raise ReconciliationError(f"Cannot determine the price purchased in {session.id}")

        plan = await self.subscriptions.get_plan_by_price(price_id)
        if plan is None:
            raise ReconciliationError(f"No subscription plan for price {price_id}")

        created = await self.subscriptions.create_subscription_record(
            user_id=user_id,
            plan_id=plan.id,
            stripe_subscription_id=subscription.id,
            stripe_customer_id=session.customer or subscription.customer,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
        )
        if created:
            logger.info(f"Checkout completed for user {user_id}, plan: {plan.id}")
        else:
            logger.info(f"Subscription {subscription.id} already recorded, skipping replay")

    async def _record_consulting_payment(self, session: CheckoutSession):
        user_id = session.metadata.get("userId")
        if not user_id:
            raise ReconciliationError(f"Consulting checkout {session.id} has no userId metadata")
        if not session.payment_intent:
            raise ReconciliationError(f"Consulting checkout {session.id} has no payment intent")

        status = PaymentStatus.SUCCEEDED if session.payment_status == "paid" else PaymentStatus.PENDING
        created = await self.subscriptions.create_payment_record(
            user_id=user_id,
            amount=session.amount_total or 0,
            currency=session.currency or "usd",
            status=status,
            stripe_payment_intent_id=session.payment_intent,
        )
        if created:
            logger.info(f"Consulting payment {session.payment_intent} recorded for user {user_id}: {status.value}")

    async def _handle_subscription_updated(self, subscription: SubscriptionObject):
        """Mirror status and billing period"""
        try:
            status = SubscriptionStatus(subscription.status)
        except ValueError:
            # incomplete, incomplete_expired, paused: no local equivalent
            logger.warning(f"Subscription {subscription.id} reported status {subscription.status}, keeping stored status")
            status = None

        updated = await self.subscriptions.update_subscription_status(
            subscription.id,
            status=status,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
        )
        if not updated:
            logger.warning(f"No subscription row for {subscription.id}, update ignored")
            return
        logger.info(f"Subscription {subscription.id} updated: {subscription.status}")

    async def _handle_subscription_deleted(self, subscription: SubscriptionObject):
        """Handle subscription cancellation"""
        updated = await self.subscriptions.update_subscription_status(
            subscription.id,
            status=SubscriptionStatus.CANCELED,
        )
        if not updated:
            logger.warning(f"No subscription row for {subscription.id}, cancellation ignored")
            return
        logger.info(f"Subscription {subscription.id} canceled")

    async def _handle_invoice(self, invoice: InvoiceObject, status: PaymentStatus, amount: int):
        if not invoice.subscription:
            logger.info(f"Invoice {invoice.id} is not tied to a subscription, ignoring")
            return

        subscription = await self.subscriptions.get_subscription_by_stripe_id(invoice.subscription)
        if subscription is None:
            # The invoice can beat checkout.session.completed; a retry will find the row
            raise ReconciliationError(f"Invoice {invoice.id} references unknown subscription {invoice.subscription}")

        created = await self.subscriptions.create_payment_record(
            user_id=subscription.user_id,
            subscription_id=subscription.id,
            amount=amount,
            currency=invoice.currency,
            status=status,
            stripe_invoice_id=invoice.id,
            stripe_payment_intent_id=invoice.payment_intent,
            payment_method=invoice.payment_method,
        )
        if created:
            logger.info(f"Payment {status.value} for invoice {invoice.id}, user {subscription.user_id}: {amount}")
        else:
            logger.info(f"Invoice {invoice.id} already recorded as {status.value}, skipping replay")
