"""
Entitlement snapshot: current subscription, plan, usage and limits
"""
from typing import Optional
from supabase import Client

from models.subscription import SubscriptionDetails
from services.subscription_service import SubscriptionService
from services.usage_service import UsageService, check_usage_limits, period_key


class EntitlementService:
    def __init__(self, supabase_client: Client):
        self.subscriptions = SubscriptionService(supabase_client)
        self.usage = UsageService(supabase_client)

    async def get_details(self, user_id: str, month_year: Optional[str] = None) -> SubscriptionDetails:
        """
        Re-read everything from the store; nothing is cached between requests
        """
        month_year = month_year or period_key()
        subscription = await self.subscriptions.get_current_subscription(user_id)
        plan = await self.subscriptions.get_plan(subscription.plan_id) if subscription else None
        usage = await self.usage.get_usage(user_id, month_year)

        return SubscriptionDetails(
            subscription=subscription,
            plan=plan,
            usage=usage,
            limits=check_usage_limits(plan, usage),
        )
