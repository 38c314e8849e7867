"""
Authentication middleware for the recipe backend with local JWT validation
"""
import jwt
from fastapi import HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from typing import Optional
import logging
from supabase import create_client, Client, ClientOptions

from config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Supabase Auth access tokens
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"


def create_supabase_client(settings: Settings) -> Client:
    """
    Build the service-role Supabase client shared by every request
    """
    if not settings.supabase_url:
        raise ValueError("SUPABASE_URL environment variable is required")
    if not settings.supabase_service_key:
        raise ValueError("SUPABASE_SERVICE_KEY environment variable is required")

    options = ClientOptions(postgrest_client_timeout=settings.supabase_timeout)
    return create_client(settings.supabase_url, settings.supabase_service_key, options=options)


class AuthMiddleware:
    def __init__(self, supabase_client: Client, jwt_secret: str):
        if not jwt_secret:
            raise ValueError("SUPABASE_JWT_SECRET environment variable is required")
        self.supabase = supabase_client
        self.jwt_secret = jwt_secret

    async def verify_token(self, credentials: Optional[HTTPAuthorizationCredentials]) -> dict:
        """
        Verify a Supabase Auth access token locally without a round-trip
        """
        if credentials is None or not credentials.credentials:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized - Please log in",
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            payload = jwt.decode(
                credentials.credentials,
                self.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                audience=JWT_AUDIENCE
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired"
            )
        except jwt.InvalidAudienceError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token audience"
            )
        except jwt.InvalidSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token signature"
            )
        except jwt.InvalidTokenError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Unauthorized - Invalid token: {str(e)}"
            )

        # Extract user information from token
        user_id = payload.get("sub")
        email = payload.get("email")

        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing user information"
            )

        return {
            "id": user_id,
            "email": email,
            "role": payload.get("role", JWT_AUDIENCE),
        }


# Global auth middleware instance - created on first use
auth_middleware: Optional[AuthMiddleware] = None

def get_auth_middleware() -> AuthMiddleware:
    """Get or create auth middleware instance"""
    global auth_middleware
    if auth_middleware is None:
        settings = get_settings()
        auth_middleware = AuthMiddleware(
            create_supabase_client(settings),
            settings.supabase_jwt_secret,
        )
        logger.info("✅ Supabase client initialized with local JWT validation")
    return auth_middleware
