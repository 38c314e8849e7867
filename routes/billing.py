"""
Billing routes: Stripe checkout, portal, subscription state and webhooks
"""
from fastapi import APIRouter, HTTPException, status, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
import logging
from supabase import Client

from auth.dependencies import get_current_user, get_stripe_service, get_supabase
from models.subscription import Payment, SubscriptionDetails, SubscriptionPlan
from services.entitlement_service import EntitlementService
from services.stripe_service import StripeService, WebhookPayloadError, WebhookVerificationError
from services.subscription_service import SubscriptionService
from services.webhook_service import WebhookService

router = APIRouter(prefix="/api/stripe", tags=["Billing"])
logger = logging.getLogger(__name__)

class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    price_id: Optional[str] = Field(default=None, alias="priceId")

class CheckoutResponse(BaseModel):
    sessionId: str
    url: Optional[str] = None

class PortalResponse(BaseModel):
    url: str

@router.post("/create-checkout-session", response_model=CheckoutResponse)
async def create_checkout_session(
    request: CheckoutRequest,
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """
    Create Stripe checkout session for a subscription plan
    """
    if not request.price_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="priceId is required"
        )

    try:
        plan = await SubscriptionService(supabase).get_plan_by_price(request.price_id)
        if plan is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unknown price"
            )

        session = await stripe_service.create_checkout_session(
            current_user["id"],
            request.price_id,
            email=current_user.get("email"),
        )

        logger.info(f"Created checkout session for user {current_user['id']}, plan: {plan.id}")
        return CheckoutResponse(sessionId=session["id"], url=session.get("url"))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Checkout creation error for user {current_user['id']}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create checkout session"
        )

@router.post("/create-portal-session", response_model=PortalResponse)
async def create_portal_session(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """
    Create Stripe customer portal session
    """
    try:
        subscription = await SubscriptionService(supabase).get_current_subscription(current_user["id"])
        if not subscription or not subscription.stripe_customer_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No subscription found"
            )

        portal_url = await stripe_service.create_portal_session(subscription.stripe_customer_id)
        return PortalResponse(url=portal_url)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Portal creation error for user {current_user['id']}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create portal session"
        )

async def _set_cancel_at_period_end(user_id: str, cancel: bool, supabase: Client, stripe_service: StripeService) -> dict:
    subscription = await SubscriptionService(supabase).get_current_subscription(user_id)
    if not subscription or not subscription.stripe_subscription_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active subscription"
        )

    result = await stripe_service.set_cancel_at_period_end(subscription.stripe_subscription_id, cancel)
    return {
        "subscription_id": subscription.id,
        "cancel_at_period_end": result.get("cancel_at_period_end", cancel),
    }

@router.post("/cancel-subscription")
async def cancel_subscription(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """
    Cancel the current subscription at the end of its billing period
    """
    try:
        return await _set_cancel_at_period_end(current_user["id"], True, supabase, stripe_service)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Cancel subscription error for user {current_user['id']}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel subscription"
        )

@router.post("/reactivate-subscription")
async def reactivate_subscription(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """
    Undo a scheduled cancellation
    """
    try:
        return await _set_cancel_at_period_end(current_user["id"], False, supabase, stripe_service)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Reactivate subscription error for user {current_user['id']}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reactivate subscription"
        )

@router.get("/plans", response_model=List[SubscriptionPlan])
async def get_available_plans(supabase: Client = Depends(get_supabase)):
    """
    Get available subscription plans with pricing
    """
    try:
        return await SubscriptionService(supabase).list_plans()
    except Exception as e:
        logger.error(f"Error fetching plans: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not fetch available plans"
        )

@router.get("/subscription", response_model=SubscriptionDetails)
async def get_subscription_details(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
):
    """
    Current subscription, plan, usage for this month and remaining limits
    """
    try:
        return await EntitlementService(supabase).get_details(current_user["id"])
    except Exception as e:
        logger.error(f"Error getting subscription details for user {current_user['id']}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get subscription details"
        )

@router.get("/payments", response_model=List[Payment])
async def get_payment_history(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    try:
        return await SubscriptionService(supabase).list_payments(current_user["id"], limit=limit, offset=offset)
    except Exception as e:
        logger.error(f"Error getting payments for user {current_user['id']}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get payment history"
        )

@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    supabase: Client = Depends(get_supabase),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """
    Handle Stripe webhook events. 400 stops processing for unsigned or
    malformed payloads; 500 asks Stripe to redeliver later.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = stripe_service.construct_event(payload, signature)
    except WebhookVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except WebhookPayloadError as e:
        logger.warning(f"Webhook payload rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed event payload"
        )

    try:
        webhook_service = WebhookService(SubscriptionService(supabase), stripe_service)
        return await webhook_service.handle_event(event)
    except Exception as e:
        logger.error(f"Error processing webhook {event.id} ({event.type}): {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed"
        )
