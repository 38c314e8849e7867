"""
Entitlement store access: plans, user subscriptions and payments
"""
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
import logging
from supabase import Client

from config.decorators import retry_on_ssl_error
from models.subscription import (
    Payment,
    PaymentStatus,
    SubscriptionPlan,
    SubscriptionStatus,
    UserSubscription,
)

logger = logging.getLogger(__name__)

PLANS_TABLE = "subscription_plans"
SUBSCRIPTIONS_TABLE = "user_subscriptions"
PAYMENTS_TABLE = "payments"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class SubscriptionService:
    """
    Reads are open to any caller. The write methods belong to the webhook
    reconciler, which is the only component that mutates subscriptions and
    payments.
    """

    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client

    @retry_on_ssl_error
    async def list_plans(self) -> List[SubscriptionPlan]:
        response = self.supabase.table(PLANS_TABLE).select("*").order("price").execute()
        return [SubscriptionPlan(**row) for row in response.data or []]

    @retry_on_ssl_error
    async def get_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        response = self.supabase.table(PLANS_TABLE).select("*").eq("id", plan_id).limit(1).execute()
        return SubscriptionPlan(**response.data[0]) if response.data else None

    @retry_on_ssl_error
    async def get_plan_by_price(self, stripe_price_id: str) -> Optional[SubscriptionPlan]:
        response = (
            self.supabase.table(PLANS_TABLE)
            .select("*")
            .eq("stripe_price_id", stripe_price_id)
            .limit(1)
            .execute()
        )
        return SubscriptionPlan(**response.data[0]) if response.data else None

    @retry_on_ssl_error
    async def get_current_subscription(self, user_id: str) -> Optional[UserSubscription]:
        """
        The current subscription is the most recently created row with
        status=active. Older rows are history from earlier lifecycles.
        """
        response = (
            self.supabase.table(SUBSCRIPTIONS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .eq("status", SubscriptionStatus.ACTIVE.value)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return UserSubscription(**response.data[0]) if response.data else None

    async def get_current_plan(self, user_id: str) -> Optional[SubscriptionPlan]:
        """Plan of the current subscription, None for free-tier users"""
        subscription = await self.get_current_subscription(user_id)
        if subscription is None:
            return None
        return await self.get_plan(subscription.plan_id)

    @retry_on_ssl_error
    async def get_subscription_by_stripe_id(self, stripe_subscription_id: str) -> Optional[UserSubscription]:
        response = (
            self.supabase.table(SUBSCRIPTIONS_TABLE)
            .select("*")
            .eq("stripe_subscription_id", stripe_subscription_id)
            .limit(1)
            .execute()
        )
        return UserSubscription(**response.data[0]) if response.data else None

    @retry_on_ssl_error
    async def list_payments(self, user_id: str, limit: int = 20, offset: int = 0) -> List[Payment]:
        response = (
            self.supabase.table(PAYMENTS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [Payment(**row) for row in response.data or []]

    async def create_subscription_record(
        self,
        user_id: str,
        plan_id: str,
        stripe_subscription_id: str,
        stripe_customer_id: Optional[str],
        current_period_start: Optional[datetime] = None,
        current_period_end: Optional[datetime] = None,
        cancel_at_period_end: bool = False,
    ) -> bool:
        """
        Insert an active subscription row. Returns False when a row for the
        same Stripe subscription already exists (replayed event).
        """
        record = {
            "user_id": user_id,
            "plan_id": plan_id,
            "stripe_subscription_id": stripe_subscription_id,
            "stripe_customer_id": stripe_customer_id,
            "status": SubscriptionStatus.ACTIVE.value,
            "current_period_start": _iso(current_period_start),
            "current_period_end": _iso(current_period_end),
            "cancel_at_period_end": cancel_at_period_end,
        }
        response = (
            self.supabase.table(SUBSCRIPTIONS_TABLE)
            .upsert(record, on_conflict="stripe_subscription_id", ignore_duplicates=True)
            .execute()
        )
        return bool(response.data)

    async def update_subscription_status(
        self,
        stripe_subscription_id: str,
        status: Optional[SubscriptionStatus] = None,
        current_period_start: Optional[datetime] = None,
        current_period_end: Optional[datetime] = None,
        cancel_at_period_end: Optional[bool] = None,
    ) -> int:
        """
        Mirror Stripe's view of a subscription onto its row. Only the given
        fields are written. Returns the number of rows updated.
        """
        update_data: Dict[str, Any] = {"updated_at": datetime.now(timezone.utc).isoformat()}
        if status is not None:
            update_data["status"] = status.value
        if current_period_start is not None:
            update_data["current_period_start"] = _iso(current_period_start)
        if current_period_end is not None:
            update_data["current_period_end"] = _iso(current_period_end)
        if cancel_at_period_end is not None:
            update_data["cancel_at_period_end"] = cancel_at_period_end

        response = (
            self.supabase.table(SUBSCRIPTIONS_TABLE)
            .update(update_data)
            .eq("stripe_subscription_id", stripe_subscription_id)
            .execute()
        )
        return len(response.data or [])

    async def create_payment_record(
        self,
        user_id: str,
        amount: int,
        currency: str,
        status: PaymentStatus,
        subscription_id: Optional[str] = None,
        stripe_invoice_id: Optional[str] = None,
        stripe_payment_intent_id: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> bool:
        """
        Append a payment row. Rows are unique per (invoice, status) and per
        (payment intent, status); a replayed event is ignored and returns False.
        """
        if not stripe_invoice_id and not stripe_payment_intent_id:
            raise ValueError("A payment needs an invoice or payment intent reference")

        record = {
            "user_id": user_id,
            "subscription_id": subscription_id,
            "stripe_invoice_id": stripe_invoice_id,
            "stripe_payment_intent_id": stripe_payment_intent_id,
            "amount": amount,
            "currency": currency,
            "status": status.value,
            "payment_method": payment_method,
        }
        conflict_key = "stripe_invoice_id,status" if stripe_invoice_id else "stripe_payment_intent_id,status"
        response = (
            self.supabase.table(PAYMENTS_TABLE)
            .upsert(record, on_conflict=conflict_key, ignore_duplicates=True)
            .execute()
        )
        return bool(response.data)
