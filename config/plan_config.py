# config/plan_config.py

from typing import Dict, Any, Optional

# Limits applied when a user has no active subscription
FREE_TIER_LIMITS: Dict[str, Any] = {
    "name": "Free",
    "max_recipes": 10,
    "max_image_size": 5 * 1024 * 1024,  # 5MB
    "has_ads": True,
}

# Sentinel stored in subscription_plans.max_recipes
UNLIMITED_RECIPES = -1

CONSULTING_OPTIONS: Dict[str, Dict[str, Any]] = {
    "individual": {
        "name": "Individual Recipe Consulting",
        "price": 12500,  # cents
        "sessions": 1,
        "description": "One-on-one personalized recipe consultation",
    },
    "group": {
        "name": "Group Recipe Consulting",
        "price": 22500,  # cents
        "sessions": 4,
        "description": "Group sessions with recipe experts",
    },
}

def get_consulting_option(option_id: str) -> Optional[Dict[str, Any]]:
    """Look up a consulting option by id, None when unknown."""
    return CONSULTING_OPTIONS.get(option_id)
