"""
Token, webhook signature and seed helpers shared by the tests
"""
import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"
WEBHOOK_SECRET = "whsec_test_secret"
USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"
PRO_PRICE_ID = "price_pro_monthly"
PREMIUM_PRICE_ID = "price_premium_monthly"


def make_token(user_id: str = USER_ID, email: Optional[str] = "cook@example.com", expires_in: int = 3600,
               secret: str = JWT_SECRET, **claims) -> str:
    payload = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: str = USER_ID, **kwargs) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header the way Stripe does"""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def event_payload(event_type: str, data_object: Dict[str, Any], event_id: str = "evt_test_1") -> str:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": data_object},
    })


def seed_plans(supabase) -> None:
    supabase.seed(
        "subscription_plans",
        id="pro",
        name="Pro",
        stripe_price_id=PRO_PRICE_ID,
        price=9.99,
        currency="usd",
        interval="month",
        features=["recipes:50", "images:50mb", "no_ads"],
        max_recipes=50,
        max_image_size=50 * 1024 * 1024,
        has_ads=False,
    )
    supabase.seed(
        "subscription_plans",
        id="premium",
        name="Premium",
        stripe_price_id=PREMIUM_PRICE_ID,
        price=19.99,
        currency="usd",
        interval="month",
        features=["recipes:unlimited", "images:500mb", "no_ads"],
        max_recipes=-1,
        max_image_size=500 * 1024 * 1024,
        has_ads=False,
    )


def seed_subscription(supabase, user_id: str = USER_ID, plan_id: str = "pro", status: str = "active",
                      stripe_subscription_id: str = "sub_123", stripe_customer_id: str = "cus_123") -> Dict[str, Any]:
    return supabase.seed(
        "user_subscriptions",
        user_id=user_id,
        plan_id=plan_id,
        stripe_subscription_id=stripe_subscription_id,
        stripe_customer_id=stripe_customer_id,
        status=status,
        current_period_start="2025-01-01T00:00:00+00:00",
        current_period_end="2025-02-01T00:00:00+00:00",
        cancel_at_period_end=False,
    )
