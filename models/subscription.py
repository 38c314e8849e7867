"""
Subscription, plan and payment models for the recipe backend
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from models.usage import UsageCounter, UsageLimits

class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    TRIALING = "trialing"

class PaymentStatus(str, Enum):
    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"
    CANCELED = "canceled"

class SubscriptionPlan(BaseModel):
    id: str
    name: str
    stripe_price_id: str
    price: float
    currency: str = "usd"
    interval: str = "month"
    features: List[str] = Field(default_factory=list)
    max_recipes: int = Field(..., description="-1 means unlimited")
    max_image_size: int = Field(..., description="Cumulative image bytes per month")
    has_ads: bool = False

class UserSubscription(BaseModel):
    id: str
    user_id: str
    plan_id: str
    stripe_subscription_id: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    status: SubscriptionStatus
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class Payment(BaseModel):
    id: str
    user_id: str
    subscription_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    stripe_invoice_id: Optional[str] = None
    amount: int
    currency: str = "usd"
    status: PaymentStatus
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None

class SubscriptionDetails(BaseModel):
    """Current entitlement snapshot returned to the client"""
    subscription: Optional[UserSubscription] = None
    plan: Optional[SubscriptionPlan] = None
    usage: UsageCounter
    limits: UsageLimits
