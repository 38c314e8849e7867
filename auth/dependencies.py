"""
Authentication and client dependencies for the recipe backend
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from supabase import Client

from .middleware import AuthMiddleware, get_auth_middleware
from config.settings import Settings, get_settings
from services.stripe_service import StripeService

# auto_error=False so a missing header is a 401 raised by verify_token
security = HTTPBearer(auto_error=False)

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth: AuthMiddleware = Depends(get_auth_middleware),
) -> dict:
    """
    Get current authenticated user
    """
    return await auth.verify_token(credentials)

async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth: AuthMiddleware = Depends(get_auth_middleware),
) -> Optional[dict]:
    """
    Get current user if a bearer token was sent, otherwise None.
    A token that is present but invalid is still rejected.
    """
    if not credentials:
        return None
    return await auth.verify_token(credentials)

def get_supabase(auth: AuthMiddleware = Depends(get_auth_middleware)) -> Client:
    """Shared Supabase client"""
    return auth.supabase

# Global Stripe service instance - created on first use
stripe_service: Optional[StripeService] = None

def get_stripe_service(settings: Settings = Depends(get_settings)) -> StripeService:
    """Get or create the Stripe service"""
    global stripe_service
    if stripe_service is None:
        stripe_service = StripeService(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            site_url=settings.site_url,
        )
    return stripe_service
