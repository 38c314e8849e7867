"""
Usage metering for recipe and image uploads
"""
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import logging
from supabase import Client

from config.decorators import retry_on_ssl_error
from config.plan_config import FREE_TIER_LIMITS, UNLIMITED_RECIPES
from models.subscription import SubscriptionPlan
from models.usage import UsageCounter, UsageLimits

logger = logging.getLogger(__name__)

USAGE_TABLE = "user_usage"


def period_key(moment: Optional[datetime] = None) -> str:
    """
    Billing bucket for a moment in time: the UTC calendar month as YYYY-MM
    """
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m")


def image_limit_reason(plan: Optional[SubscriptionPlan]) -> str:
    return "Free plan image size limit reached" if plan is None else "Image size limit reached"


def check_usage_limits(plan: Optional[SubscriptionPlan], usage: UsageCounter) -> UsageLimits:
    """
    Decide whether another recipe or image upload fits the plan. No plan
    means the free tier. ``reason`` is only set when a check fails, and the
    recipe limit is reported ahead of the image limit.
    """
    if plan is None:
        can_upload = usage.recipes_uploaded < FREE_TIER_LIMITS["max_recipes"]
        can_upload_image = usage.total_image_size < FREE_TIER_LIMITS["max_image_size"]
        if not can_upload:
            reason = "Free plan recipe upload limit reached"
        elif not can_upload_image:
            reason = image_limit_reason(plan)
        else:
            reason = None
        return UsageLimits(can_upload=can_upload, can_upload_image=can_upload_image, reason=reason)

    can_upload = plan.max_recipes == UNLIMITED_RECIPES or usage.recipes_uploaded < plan.max_recipes
    can_upload_image = usage.total_image_size < plan.max_image_size

    if not can_upload:
        reason = "Recipe upload limit reached"
    elif not can_upload_image:
        reason = image_limit_reason(plan)
    else:
        reason = None
    return UsageLimits(can_upload=can_upload, can_upload_image=can_upload_image, reason=reason)


class UsageService:
    """
    Only writer of user_usage. Increments go through SQL functions that do
    INSERT ... ON CONFLICT DO UPDATE in a single statement, so concurrent
    increments for the same bucket never lose updates.
    """

    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client

    @retry_on_ssl_error
    async def get_usage(self, user_id: str, month_year: str) -> UsageCounter:
        """
        Counter for the bucket, or a zero counter when nothing was recorded
        yet. Reading never creates a row.
        """
        response = (
            self.supabase.table(USAGE_TABLE)
            .select("user_id, month_year, recipes_uploaded, images_uploaded, total_image_size")
            .eq("user_id", user_id)
            .eq("month_year", month_year)
            .limit(1)
            .execute()
        )
        if not response.data:
            return UsageCounter(user_id=user_id, month_year=month_year)
        return UsageCounter(**response.data[0])

    async def increment_recipe_usage(self, user_id: str, month_year: str) -> UsageCounter:
        response = self.supabase.rpc(
            "increment_recipe_usage",
            {"p_user_id": user_id, "p_month_year": month_year},
        ).execute()
        counter = self._counter_from_rpc(response.data, user_id, month_year)
        logger.info(f"Recipe usage for user {user_id} in {month_year}: {counter.recipes_uploaded}")
        return counter

    async def increment_image_usage(self, user_id: str, month_year: str, size_bytes: int) -> UsageCounter:
        if size_bytes < 0:
            raise ValueError("size_bytes must not be negative")

        response = self.supabase.rpc(
            "increment_image_usage",
            {"p_user_id": user_id, "p_month_year": month_year, "p_size_bytes": size_bytes},
        ).execute()
        counter = self._counter_from_rpc(response.data, user_id, month_year)
        logger.info(
            f"Image usage for user {user_id} in {month_year}: "
            f"{counter.images_uploaded} images, {counter.total_image_size} bytes"
        )
        return counter

    def _counter_from_rpc(self, data: Any, user_id: str, month_year: str) -> UsageCounter:
        # PostgREST returns a composite result as an object, SETOF as a list
        row: Optional[Dict[str, Any]] = data[0] if isinstance(data, list) and data else data
        if not row:
            raise RuntimeError(f"Usage increment for user {user_id} in {month_year} returned no row")
        return UsageCounter(
            user_id=row.get("user_id", user_id),
            month_year=row.get("month_year", month_year),
            recipes_uploaded=row.get("recipes_uploaded", 0),
            images_uploaded=row.get("images_uploaded", 0),
            total_image_size=row.get("total_image_size", 0),
        )
