"""
Stripe service for recipe subscriptions and consulting purchases
"""
import json
import stripe
from typing import Optional, Dict, Any
import logging

from models.events import WebhookEvent, parse_event

logger = logging.getLogger(__name__)


class WebhookVerificationError(ValueError):
    """Signature header or signing secret missing, or signature invalid"""


class WebhookPayloadError(ValueError):
    """Signed payload that is not a well-formed Stripe event"""


class StripeService:
    """
    Thin gateway over the Stripe API. The secret key is passed on every call
    instead of being set on the ``stripe`` module, so each instance is an
    explicit dependency that tests can replace.
    """

    def __init__(self, api_key: Optional[str], webhook_secret: Optional[str], site_url: str):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.site_url = site_url.rstrip("/")

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise RuntimeError("STRIPE_SECRET_KEY is not configured")
        return self.api_key

    async def create_checkout_session(self, user_id: str, price_id: str, email: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a subscription Checkout Session correlated to the user
        """
        if not user_id:
            raise ValueError("user_id is required")
        if not price_id:
            raise ValueError("price_id is required")

        params: Dict[str, Any] = {
            "payment_method_types": ["card"],
            "mode": "subscription",
            "line_items": [{
                "price": price_id,
                "quantity": 1,
            }],
            "client_reference_id": user_id,
            "metadata": {"userId": user_id},
            "subscription_data": {"metadata": {"userId": user_id}},
            "success_url": f"{self.site_url}/dashboard?success=true",
            "cancel_url": f"{self.site_url}/pricing?canceled=true",
        }
        if email:
            params["customer_email"] = email

        session = stripe.checkout.Session.create(api_key=self._require_api_key(), **params)
        logger.info(f"Created checkout session {session['id']} for user {user_id}")
        return {"id": session["id"], "url": session["url"]}

    async def create_portal_session(self, customer_id: str) -> str:
        """
        Create Stripe customer portal session
        """
        if not customer_id:
            raise ValueError("customer_id is required")

        session = stripe.billing_portal.Session.create(
            api_key=self._require_api_key(),
            customer=customer_id,
            return_url=f"{self.site_url}/dashboard",
        )
        logger.info(f"Created portal session for customer {customer_id}")
        return session["url"]

    async def create_consulting_payment_link(
        self,
        user_id: str,
        option_id: str,
        product_name: str,
        description: str,
        amount: int,
        currency: str = "usd",
    ) -> str:
        """
        Create product, price and payment link for a one-off consulting
        purchase and return the payment link URL
        """
        if not user_id or not option_id:
            raise ValueError("user_id and option_id are required")
        if not isinstance(amount, int) or amount <= 0:
            raise ValueError("amount must be a positive integer in minor units")

        api_key = self._require_api_key()
        metadata = {
            "userId": user_id,
            "optionId": option_id,
            "type": "consulting",
        }

        product = stripe.Product.create(
            api_key=api_key,
            name=product_name,
            description=description,
        )
        price = stripe.Price.create(
            api_key=api_key,
            product=product["id"],
            unit_amount=amount,
            currency=currency,
        )
        payment_link = stripe.PaymentLink.create(
            api_key=api_key,
            line_items=[{
                "price": price["id"],
                "quantity": 1,
            }],
            metadata=metadata,
            after_completion={
                "type": "redirect",
                "redirect": {
                    "url": f"{self.site_url}/consulting/success?session_id={{CHECKOUT_SESSION_ID}}",
                },
            },
        )

        logger.info(f"Created consulting payment link {payment_link['id']} for user {user_id}, option: {option_id}")
        return payment_link["url"]

    async def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        """Fetch a subscription from Stripe as a plain dict"""
        subscription = stripe.Subscription.retrieve(subscription_id, api_key=self._require_api_key())
        return subscription.to_dict()

    async def set_cancel_at_period_end(self, subscription_id: str, cancel: bool) -> Dict[str, Any]:
        """
        Schedule (or undo) cancellation at the end of the billing period.
        Local rows follow once customer.subscription.updated arrives.
        """
        subscription = stripe.Subscription.modify(
            subscription_id,
            api_key=self._require_api_key(),
            cancel_at_period_end=cancel,
        )
        logger.info(f"Set cancel_at_period_end={cancel} on subscription {subscription_id}")
        return subscription.to_dict()

    def construct_event(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        """
        Verify the Stripe-Signature header and decode the event. Nothing is
        parsed before the signature checks out.
        """
        if not signature or not self.webhook_secret:
            raise WebhookVerificationError("Missing signature or webhook secret")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise WebhookPayloadError("Webhook payload is not valid UTF-8") from e

        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self.webhook_secret, stripe.Webhook.DEFAULT_TOLERANCE
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookVerificationError("Invalid signature") from e

        try:
            return parse_event(json.loads(body))
        except ValueError as e:
            # json.JSONDecodeError and pydantic's ValidationError are both ValueErrors
            raise WebhookPayloadError(f"Malformed event payload: {e}") from e
