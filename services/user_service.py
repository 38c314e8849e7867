"""
User service for profile database operations
"""
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import logging
from supabase import Client

from models.user import UserUpdate

logger = logging.getLogger(__name__)

USERS_TABLE = "users"


class UserService:
    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client

    async def get_user_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get user profile by ID
        """
        response = self.supabase.table(USERS_TABLE).select("*").eq("id", user_id).limit(1).execute()
        return response.data[0] if response.data else None

    async def update_user_profile(self, user_id: str, update: UserUpdate) -> Dict[str, Any]:
        """
        Update the profile, creating it on first write. A new profile needs
        a username.
        """
        update_data = {k: v for k, v in update.model_dump(exclude_unset=True).items() if v is not None}

        existing = await self.get_user_profile(user_id)
        if existing is None:
            if not update_data.get("username"):
                raise ValueError("username is required to create a profile")
            response = self.supabase.table(USERS_TABLE).insert({"id": user_id, **update_data}).execute()
            logger.info(f"Created user profile: {user_id}")
            return response.data[0]

        if not update_data:
            return existing

        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        response = self.supabase.table(USERS_TABLE).update(update_data).eq("id", user_id).execute()
        logger.info(f"Updated user profile: {user_id}")
        return response.data[0] if response.data else {**existing, **update_data}
